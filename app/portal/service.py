import logging
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.assistant.responder import generate_response
from app.core.context import PortalContext
from app.core.errors import DuplicateKeyError, NotFoundError, StoreFailure
from app.db import models
from app.db.enums import PaymentStatus, RequestStatus, ResourceTemplateType, TaskStatus, UserRole
from app.portal import schemas

logger = logging.getLogger("portal.service")

CENT = Decimal("0.01")

_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"

REQUEST_FIELDS = {"title": "title", "description": "description", "status": "status"}
TASK_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "assigneeId": "assignee_id",
    "priority": "priority",
    "dueDate": "due_date",
}
INVOICE_FIELDS = {"paymentStatus": "payment_status", "paymentTransactionId": "payment_transaction_id"}


def _error_code(exc: IntegrityError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _is_unique_violation(exc: IntegrityError) -> bool:
    code = _error_code(exc)
    if code:
        return code == _UNIQUE_VIOLATION
    return "unique" in str(exc.orig).lower()


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    code = _error_code(exc)
    if code:
        return code == _FOREIGN_KEY_VIOLATION
    return "foreign key" in str(exc.orig).lower()


def _save(db: Session, row, action: str):
    """Commit ``row`` in one statement; store failures roll back and surface as domain errors."""
    db.add(row)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _is_unique_violation(exc):
            logger.warning("%s rejected: duplicate key (%s)", action, exc.orig)
            raise DuplicateKeyError(f"{action}: a record with the same unique value already exists") from exc
        if _is_foreign_key_violation(exc):
            logger.warning("%s rejected: missing referenced record (%s)", action, exc.orig)
            raise NotFoundError(f"{action}: referenced record not found") from exc
        logger.exception("%s failed on integrity check", action)
        raise StoreFailure(f"{action} failed") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed", action)
        raise StoreFailure(f"{action} failed") from exc
    db.refresh(row)
    return row


def _query_all(db: Session, action: str, query):
    try:
        return query.all()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed", action)
        raise StoreFailure(f"{action} failed") from exc


def _query_first(db: Session, action: str, query):
    try:
        return query.first()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed", action)
        raise StoreFailure(f"{action} failed") from exc


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _stamp_created(row) -> None:
    now = models.utcnow()
    row.created_at = now
    row.updated_at = now


def _touch(row) -> None:
    now = models.utcnow()
    if row.updated_at is not None and now <= row.updated_at:
        now = row.updated_at + timedelta(microseconds=1)
    row.updated_at = now


def _apply_changes(row, changes: dict, field_map: dict[str, str]) -> None:
    for field, value in changes.items():
        if isinstance(value, datetime):
            value = _naive_utc(value)
        setattr(row, field_map[field], value)


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


# Users


def create_user(db: Session, payload: schemas.CreateUserInput) -> models.User:
    user = models.User(id=models.new_id(), email=payload.email, name=payload.name, role=payload.role)
    _stamp_created(user)
    return _save(db, user, "create user")


def list_users(db: Session) -> list[models.User]:
    return _query_all(db, "list users", db.query(models.User).order_by(models.User.created_at.desc()))


def get_user_by_id(db: Session, user_id: str) -> Optional[models.User]:
    return _query_first(db, "get user", db.query(models.User).filter(models.User.id == user_id))


# Organizations


def create_organization(db: Session, payload: schemas.CreateOrganizationInput) -> models.Organization:
    organization = models.Organization(id=models.new_id(), name=payload.name)
    _stamp_created(organization)
    return _save(db, organization, "create organization")


def list_organizations(db: Session) -> list[models.Organization]:
    return _query_all(
        db, "list organizations", db.query(models.Organization).order_by(models.Organization.created_at.desc())
    )


def get_organization_by_id(db: Session, organization_id: str) -> Optional[models.Organization]:
    query = db.query(models.Organization).filter(models.Organization.id == organization_id)
    return _query_first(db, "get organization", query)


def add_organization_member(
    db: Session, payload: schemas.AddOrganizationMemberInput
) -> models.OrganizationMember:
    member = models.OrganizationMember(
        id=models.new_id(),
        organization_id=payload.organizationId,
        user_id=payload.userId,
        role=payload.role,
    )
    return _save(db, member, "add organization member")


def list_organization_members(db: Session, organization_id: str) -> list[models.OrganizationMember]:
    query = db.query(models.OrganizationMember).filter(
        models.OrganizationMember.organization_id == organization_id
    )
    return _query_all(db, "list organization members", query)


# Requests


def create_request(db: Session, payload: schemas.CreateRequestInput) -> models.Request:
    # The check and the insert share the session transaction; the FK constraint stays authoritative.
    if get_organization_by_id(db, payload.organizationId) is None:
        logger.warning("create request rejected: organization %s not found", payload.organizationId)
        raise NotFoundError(f"Organization {payload.organizationId} not found")
    request = models.Request(
        id=models.new_id(),
        organization_id=payload.organizationId,
        title=payload.title,
        description=payload.description,
        status=RequestStatus.OPEN,
    )
    _stamp_created(request)
    return _save(db, request, "create request")


def list_requests(db: Session) -> list[models.Request]:
    return _query_all(db, "list requests", db.query(models.Request).order_by(models.Request.created_at.desc()))


def list_requests_by_organization(db: Session, organization_id: str) -> list[models.Request]:
    query = (
        db.query(models.Request)
        .filter(models.Request.organization_id == organization_id)
        .order_by(models.Request.created_at.desc())
    )
    return _query_all(db, "list requests by organization", query)


def update_request(db: Session, payload: schemas.UpdateRequestInput) -> models.Request:
    request = _query_first(db, "update request", db.query(models.Request).filter(models.Request.id == payload.id))
    if request is None:
        logger.warning("update request rejected: request %s not found", payload.id)
        raise NotFoundError(f"Request with id {payload.id} not found")
    _apply_changes(request, payload.changes(), REQUEST_FIELDS)
    _touch(request)
    return _save(db, request, "update request")


# Tasks


def create_task(db: Session, payload: schemas.CreateTaskInput) -> models.Task:
    task = models.Task(
        id=models.new_id(),
        request_id=payload.requestId,
        title=payload.title,
        description=payload.description,
        status=TaskStatus.NOT_STARTED,
        assignee_id=payload.assigneeId,
        priority=payload.priority,
        due_date=_naive_utc(payload.dueDate),
    )
    _stamp_created(task)
    return _save(db, task, "create task")


def list_tasks_by_request(db: Session, request_id: str) -> list[models.Task]:
    query = db.query(models.Task).filter(models.Task.request_id == request_id).order_by(models.Task.created_at.asc())
    return _query_all(db, "list tasks by request", query)


def update_task(db: Session, payload: schemas.UpdateTaskInput) -> models.Task:
    task = _query_first(db, "update task", db.query(models.Task).filter(models.Task.id == payload.id))
    if task is None:
        logger.warning("update task rejected: task %s not found", payload.id)
        raise NotFoundError(f"Task with id {payload.id} not found")
    _apply_changes(task, payload.changes(), TASK_FIELDS)
    _touch(task)
    return _save(db, task, "update task")


# Documents


def create_document(db: Session, payload: schemas.CreateDocumentInput) -> models.Document:
    document = models.Document(
        id=models.new_id(),
        organization_id=payload.organizationId,
        request_id=payload.requestId or None,
        task_id=payload.taskId or None,
        uploader_id=payload.uploaderId,
        file_name=payload.fileName,
        file_url=payload.fileUrl,
        mime_type=payload.mimeType,
        file_size=payload.fileSize,
    )
    _stamp_created(document)
    return _save(db, document, "create document")


def list_documents_by_organization(db: Session, organization_id: str) -> list[models.Document]:
    query = (
        db.query(models.Document)
        .filter(models.Document.organization_id == organization_id)
        .order_by(models.Document.created_at.desc())
    )
    return _query_all(db, "list documents by organization", query)


# Invoices


def create_invoice(db: Session, payload: schemas.CreateInvoiceInput) -> models.Invoice:
    invoice = models.Invoice(
        id=models.new_id(),
        organization_id=payload.organizationId,
        invoice_number=payload.invoiceNumber,
        amount=to_money(payload.amount),
        currency=payload.currency,
        due_date=_naive_utc(payload.dueDate),
        issue_date=_naive_utc(payload.issueDate),
        payment_status=PaymentStatus.DRAFT,
        payment_transaction_id=None,
    )
    _stamp_created(invoice)
    return _save(db, invoice, "create invoice")


def list_invoices_by_organization(db: Session, organization_id: str) -> list[models.Invoice]:
    query = (
        db.query(models.Invoice)
        .filter(models.Invoice.organization_id == organization_id)
        .order_by(models.Invoice.issue_date.desc())
    )
    return _query_all(db, "list invoices by organization", query)


def update_invoice(db: Session, payload: schemas.UpdateInvoiceInput) -> models.Invoice:
    invoice = _query_first(db, "update invoice", db.query(models.Invoice).filter(models.Invoice.id == payload.id))
    if invoice is None:
        logger.warning("update invoice rejected: invoice %s not found", payload.id)
        raise NotFoundError(f"Invoice with id {payload.id} not found")
    _apply_changes(invoice, payload.changes(), INVOICE_FIELDS)
    _touch(invoice)
    return _save(db, invoice, "update invoice")


def summarize_invoices(db: Session, organization_id: str) -> dict:
    """Outstanding (Sent + Overdue) and paid totals plus status counts for one organization.

    An invoice counts as overdue when flagged Overdue, or when it is still Sent past its due date.
    """
    invoices = list_invoices_by_organization(db, organization_id)
    now = models.utcnow()
    outstanding = Decimal("0.00")
    paid = Decimal("0.00")
    overdue = 0
    counts = {status.value: 0 for status in PaymentStatus}
    for invoice in invoices:
        status = PaymentStatus(invoice.payment_status)
        counts[status.value] += 1
        if status in (PaymentStatus.SENT, PaymentStatus.OVERDUE):
            outstanding += invoice.amount
        elif status == PaymentStatus.PAID:
            paid += invoice.amount
        if status == PaymentStatus.OVERDUE or (status == PaymentStatus.SENT and invoice.due_date < now):
            overdue += 1
    return {
        "organization_id": organization_id,
        "total_outstanding": to_money(outstanding),
        "total_paid": to_money(paid),
        "overdue_count": overdue,
        "count_by_status": counts,
    }


# Chat history


def create_chat_history(db: Session, payload: schemas.CreateChatHistoryInput) -> models.ChatHistory:
    entry = models.ChatHistory(
        id=models.new_id(),
        user_id=payload.userId,
        query=payload.query,
        response=payload.response,
        timestamp=models.utcnow(),
        is_guest=payload.isGuest,
        organization_id=payload.organizationId,
    )
    return _save(db, entry, "create chat history")


def list_chat_history_by_user(db: Session, user_id: str) -> list[models.ChatHistory]:
    query = (
        db.query(models.ChatHistory)
        .filter(models.ChatHistory.user_id == user_id)
        .order_by(models.ChatHistory.timestamp.desc(), models.ChatHistory.id.desc())
    )
    return _query_all(db, "list chat history by user", query)


def ask_assistant(db: Session, context: PortalContext, payload: schemas.AskAssistantInput) -> models.ChatHistory:
    if not context.user_id:
        raise NotFoundError("No calling user in request context")
    user = get_user_by_id(db, context.user_id)
    if user is None:
        logger.warning("assistant query rejected: user %s not found", context.user_id)
        raise NotFoundError(f"User {context.user_id} not found")
    response = generate_response(payload.query)
    return create_chat_history(
        db,
        schemas.CreateChatHistoryInput(
            userId=user.id,
            query=payload.query,
            response=response,
            isGuest=UserRole(user.role) == UserRole.GUEST,
            organizationId=context.organization_id,
        ),
    )


# Resource templates


def create_resource_template(
    db: Session, payload: schemas.CreateResourceTemplateInput
) -> models.ResourceTemplate:
    template = models.ResourceTemplate(
        id=models.new_id(),
        name=payload.name,
        type=payload.type,
        content=payload.content,
        category=payload.category,
    )
    _stamp_created(template)
    return _save(db, template, "create resource template")


def list_resource_templates(db: Session) -> list[models.ResourceTemplate]:
    query = db.query(models.ResourceTemplate).order_by(
        models.ResourceTemplate.category.asc(), models.ResourceTemplate.name.asc()
    )
    return _query_all(db, "list resource templates", query)


def list_resource_templates_by_type(
    db: Session, template_type: ResourceTemplateType
) -> list[models.ResourceTemplate]:
    query = (
        db.query(models.ResourceTemplate)
        .filter(models.ResourceTemplate.type == template_type)
        .order_by(models.ResourceTemplate.category.asc(), models.ResourceTemplate.name.asc())
    )
    return _query_all(db, "list resource templates by type", query)
