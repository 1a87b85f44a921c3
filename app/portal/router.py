import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.core.context import PortalContext, get_portal_context
from app.core.errors import PortalError
from app.db import models
from app.db.session import get_db
from app.portal import schemas, service
from app.services.calculators import calculate_loan_payment, calculate_vat

logger = logging.getLogger("portal.rpc")

router = APIRouter(tags=["RPC"])

QUERY = "query"
MUTATION = "mutation"


def user_response(u: models.User) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=u.id, email=u.email, name=u.name, role=u.role, createdAt=u.created_at, updatedAt=u.updated_at
    )


def organization_response(o: models.Organization) -> schemas.OrganizationResponse:
    return schemas.OrganizationResponse(id=o.id, name=o.name, createdAt=o.created_at, updatedAt=o.updated_at)


def member_response(m: models.OrganizationMember) -> schemas.OrganizationMemberResponse:
    return schemas.OrganizationMemberResponse(
        id=m.id, userId=m.user_id, organizationId=m.organization_id, role=m.role
    )


def request_response(r: models.Request) -> schemas.RequestResponse:
    return schemas.RequestResponse(
        id=r.id,
        organizationId=r.organization_id,
        title=r.title,
        description=r.description,
        status=r.status,
        createdAt=r.created_at,
        updatedAt=r.updated_at,
    )


def task_response(t: models.Task) -> schemas.TaskResponse:
    return schemas.TaskResponse(
        id=t.id,
        requestId=t.request_id,
        title=t.title,
        description=t.description,
        status=t.status,
        assigneeId=t.assignee_id,
        priority=t.priority,
        dueDate=t.due_date,
        createdAt=t.created_at,
        updatedAt=t.updated_at,
    )


def document_response(d: models.Document) -> schemas.DocumentResponse:
    return schemas.DocumentResponse(
        id=d.id,
        organizationId=d.organization_id,
        requestId=d.request_id,
        taskId=d.task_id,
        uploaderId=d.uploader_id,
        fileName=d.file_name,
        fileUrl=d.file_url,
        mimeType=d.mime_type,
        fileSize=d.file_size,
        createdAt=d.created_at,
        updatedAt=d.updated_at,
    )


def invoice_response(i: models.Invoice) -> schemas.InvoiceResponse:
    return schemas.InvoiceResponse(
        id=i.id,
        organizationId=i.organization_id,
        invoiceNumber=i.invoice_number,
        amount=float(i.amount),
        currency=i.currency,
        dueDate=i.due_date,
        issueDate=i.issue_date,
        paymentStatus=i.payment_status,
        paymentTransactionId=i.payment_transaction_id,
        createdAt=i.created_at,
        updatedAt=i.updated_at,
    )


def chat_response(c: models.ChatHistory) -> schemas.ChatHistoryResponse:
    return schemas.ChatHistoryResponse(
        id=c.id,
        userId=c.user_id,
        query=c.query,
        response=c.response,
        timestamp=c.timestamp,
        isGuest=c.is_guest,
        organizationId=c.organization_id,
    )


def template_response(t: models.ResourceTemplate) -> schemas.ResourceTemplateResponse:
    return schemas.ResourceTemplateResponse(
        id=t.id,
        name=t.name,
        type=t.type,
        content=t.content,
        category=t.category,
        createdAt=t.created_at,
        updatedAt=t.updated_at,
    )


def _optional(mapper: Callable, row) -> Optional[BaseModel]:
    return mapper(row) if row is not None else None


def _healthcheck(db: Session, ctx: PortalContext, payload: None) -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


def _invoice_summary(db: Session, ctx: PortalContext, payload: schemas.ByOrganizationInput):
    summary = service.summarize_invoices(db, payload.organizationId)
    return schemas.InvoiceSummaryResponse(
        organizationId=summary["organization_id"],
        totalOutstanding=float(summary["total_outstanding"]),
        totalPaid=float(summary["total_paid"]),
        overdueCount=summary["overdue_count"],
        countByStatus=summary["count_by_status"],
    )


def _vat(db: Session, ctx: PortalContext, payload: schemas.VatCalculationInput):
    result = calculate_vat(payload.amount, payload.rate)
    return schemas.VatCalculationResponse(vat=float(result["vat"]), totalWithVat=float(result["total_with_vat"]))


def _loan(db: Session, ctx: PortalContext, payload: schemas.LoanPaymentInput):
    result = calculate_loan_payment(payload.principal, payload.annualRate, payload.years)
    return schemas.LoanPaymentResponse(
        monthlyPayment=float(result["monthly_payment"]),
        totalPayment=float(result["total_payment"]),
        totalInterest=float(result["total_interest"]),
    )


@dataclass(frozen=True)
class Procedure:
    kind: str
    input_model: Optional[type[BaseModel]]
    handler: Callable[[Session, PortalContext, Any], Any]


PROCEDURES: dict[str, Procedure] = {
    "healthcheck": Procedure(QUERY, None, _healthcheck),
    # Users
    "createUser": Procedure(
        MUTATION, schemas.CreateUserInput, lambda db, ctx, p: user_response(service.create_user(db, p))
    ),
    "getUsers": Procedure(QUERY, None, lambda db, ctx, p: [user_response(u) for u in service.list_users(db)]),
    "getUserById": Procedure(
        QUERY, schemas.ByIdInput, lambda db, ctx, p: _optional(user_response, service.get_user_by_id(db, p.id))
    ),
    # Organizations
    "createOrganization": Procedure(
        MUTATION,
        schemas.CreateOrganizationInput,
        lambda db, ctx, p: organization_response(service.create_organization(db, p)),
    ),
    "getOrganizations": Procedure(
        QUERY, None, lambda db, ctx, p: [organization_response(o) for o in service.list_organizations(db)]
    ),
    "getOrganizationById": Procedure(
        QUERY,
        schemas.ByIdInput,
        lambda db, ctx, p: _optional(organization_response, service.get_organization_by_id(db, p.id)),
    ),
    "addOrganizationMember": Procedure(
        MUTATION,
        schemas.AddOrganizationMemberInput,
        lambda db, ctx, p: member_response(service.add_organization_member(db, p)),
    ),
    "getMembersByOrganization": Procedure(
        QUERY,
        schemas.ByOrganizationInput,
        lambda db, ctx, p: [member_response(m) for m in service.list_organization_members(db, p.organizationId)],
    ),
    # Requests
    "createRequest": Procedure(
        MUTATION, schemas.CreateRequestInput, lambda db, ctx, p: request_response(service.create_request(db, p))
    ),
    "getRequests": Procedure(
        QUERY, None, lambda db, ctx, p: [request_response(r) for r in service.list_requests(db)]
    ),
    "getRequestsByOrganization": Procedure(
        QUERY,
        schemas.ByOrganizationInput,
        lambda db, ctx, p: [
            request_response(r) for r in service.list_requests_by_organization(db, p.organizationId)
        ],
    ),
    "updateRequest": Procedure(
        MUTATION, schemas.UpdateRequestInput, lambda db, ctx, p: request_response(service.update_request(db, p))
    ),
    # Tasks
    "createTask": Procedure(
        MUTATION, schemas.CreateTaskInput, lambda db, ctx, p: task_response(service.create_task(db, p))
    ),
    "getTasksByRequest": Procedure(
        QUERY,
        schemas.ByRequestInput,
        lambda db, ctx, p: [task_response(t) for t in service.list_tasks_by_request(db, p.requestId)],
    ),
    "updateTask": Procedure(
        MUTATION, schemas.UpdateTaskInput, lambda db, ctx, p: task_response(service.update_task(db, p))
    ),
    # Documents
    "createDocument": Procedure(
        MUTATION, schemas.CreateDocumentInput, lambda db, ctx, p: document_response(service.create_document(db, p))
    ),
    "getDocumentsByOrganization": Procedure(
        QUERY,
        schemas.ByOrganizationInput,
        lambda db, ctx, p: [
            document_response(d) for d in service.list_documents_by_organization(db, p.organizationId)
        ],
    ),
    # Invoices
    "createInvoice": Procedure(
        MUTATION, schemas.CreateInvoiceInput, lambda db, ctx, p: invoice_response(service.create_invoice(db, p))
    ),
    "getInvoicesByOrganization": Procedure(
        QUERY,
        schemas.ByOrganizationInput,
        lambda db, ctx, p: [
            invoice_response(i) for i in service.list_invoices_by_organization(db, p.organizationId)
        ],
    ),
    "updateInvoice": Procedure(
        MUTATION, schemas.UpdateInvoiceInput, lambda db, ctx, p: invoice_response(service.update_invoice(db, p))
    ),
    "getInvoiceSummaryByOrganization": Procedure(QUERY, schemas.ByOrganizationInput, _invoice_summary),
    # Chat history and assistant
    "createChatHistory": Procedure(
        MUTATION,
        schemas.CreateChatHistoryInput,
        lambda db, ctx, p: chat_response(service.create_chat_history(db, p)),
    ),
    "getChatHistoryByUser": Procedure(
        QUERY,
        schemas.ByUserInput,
        lambda db, ctx, p: [chat_response(c) for c in service.list_chat_history_by_user(db, p.userId)],
    ),
    "askAssistant": Procedure(
        MUTATION, schemas.AskAssistantInput, lambda db, ctx, p: chat_response(service.ask_assistant(db, ctx, p))
    ),
    # Resource center
    "createResourceTemplate": Procedure(
        MUTATION,
        schemas.CreateResourceTemplateInput,
        lambda db, ctx, p: template_response(service.create_resource_template(db, p)),
    ),
    "getResourceTemplates": Procedure(
        QUERY, None, lambda db, ctx, p: [template_response(t) for t in service.list_resource_templates(db)]
    ),
    "getResourceTemplatesByType": Procedure(
        QUERY,
        schemas.ByTypeInput,
        lambda db, ctx, p: [template_response(t) for t in service.list_resource_templates_by_type(db, p.type)],
    ),
    "calculateVat": Procedure(QUERY, schemas.VatCalculationInput, _vat),
    "calculateLoanPayment": Procedure(QUERY, schemas.LoanPaymentInput, _loan),
}


def _error(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": jsonable_encoder(body)})


def _internal_error(name: str) -> JSONResponse:
    logger.exception("Unexpected error in procedure %s", name)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_SERVER_ERROR", "Something went wrong, please try again later"
    )


def _dispatch(kind: str, name: str, raw_input: Any, db: Session, context: PortalContext) -> JSONResponse:
    procedure = PROCEDURES.get(name)
    if procedure is None:
        return _error(status.HTTP_404_NOT_FOUND, "NOT_FOUND", f"No procedure named {name}")
    if procedure.kind != kind:
        return _error(
            status.HTTP_405_METHOD_NOT_ALLOWED,
            "METHOD_NOT_SUPPORTED",
            f"{name} is a {procedure.kind}",
        )
    try:
        payload = None
        if procedure.input_model is not None:
            payload = procedure.input_model.model_validate(raw_input if raw_input is not None else {})
        data = procedure.handler(db, context, payload)
    except ValidationError as exc:
        logger.info("procedure %s rejected invalid input", name)
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "BAD_REQUEST",
            "Invalid input",
            exc.errors(include_url=False, include_context=False),
        )
    except PortalError as exc:
        return _error(exc.status_code, exc.code, exc.message)
    except Exception:
        return _internal_error(name)
    return JSONResponse(content={"result": {"data": jsonable_encoder(data)}})


@router.get("/rpc/{procedure}")
def call_query(
    procedure: str,
    input: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    context: PortalContext = Depends(get_portal_context),
):
    try:
        raw_input = json.loads(input) if input else None
    except json.JSONDecodeError:
        return _error(status.HTTP_400_BAD_REQUEST, "PARSE_ERROR", "input is not valid JSON")
    return _dispatch(QUERY, procedure, raw_input, db, context)


_MALFORMED_BODY = object()


async def read_mutation_input(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError:
        return _MALFORMED_BODY


@router.post("/rpc/{procedure}")
def call_mutation(
    procedure: str,
    payload: Any = Depends(read_mutation_input),
    db: Session = Depends(get_db),
    context: PortalContext = Depends(get_portal_context),
):
    if payload is _MALFORMED_BODY:
        return _error(status.HTTP_400_BAD_REQUEST, "PARSE_ERROR", "request body is not valid JSON")
    return _dispatch(MUTATION, procedure, payload, db, context)
