import pytest
from sqlalchemy.orm import sessionmaker

from app.db import models
from app.db.session import create_db_engine


@pytest.fixture()
def db_session():
    engine = create_db_engine("sqlite://")
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()
