import logging
import time
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.db import models
from app.db.init_db import seed_resource_templates
from app.db.session import SessionLocal, engine
from app.portal.router import router as rpc_router

if not logging.getLogger().handlers:
    logging.basicConfig(level=logging.INFO)

logger = logging.getLogger("portal")

app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Client portal for requests, tasks, documents, invoices and the advisory assistant",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    models.Base.metadata.create_all(bind=engine)
    if settings.SEED_RESOURCE_TEMPLATES:
        with SessionLocal() as db:
            seed_resource_templates(db)
    if settings.ENV.lower() == "production" and settings.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        logger.warning("SQLALCHEMY_DATABASE_URI points to SQLite in production.")


app.include_router(rpc_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
