from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator, model_validator

from app.db.enums import (
    OrganizationMemberRole,
    PaymentStatus,
    RequestStatus,
    ResourceTemplateType,
    TaskPriority,
    TaskStatus,
    UserRole,
)


class PortalInput(BaseModel):
    model_config = {"extra": "forbid"}


class PortalUpdateInput(PortalInput):
    """Partial update. Omitted fields stay untouched; only nullable columns accept an explicit null."""

    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_for_required(self):
        for name in self.model_fields_set:
            if name not in self.nullable_fields and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set if name != "id"}


# Create inputs never carry id, createdAt, updatedAt or lifecycle status.


class CreateUserInput(PortalInput):
    email: EmailStr
    name: str
    role: UserRole


class CreateOrganizationInput(PortalInput):
    name: str


class AddOrganizationMemberInput(PortalInput):
    organizationId: str
    userId: str
    role: OrganizationMemberRole = OrganizationMemberRole.MEMBER


class CreateRequestInput(PortalInput):
    organizationId: str
    title: str
    description: str


class UpdateRequestInput(PortalUpdateInput):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[RequestStatus] = None


class CreateTaskInput(PortalInput):
    requestId: str
    title: str
    description: str
    assigneeId: Optional[str] = None
    priority: TaskPriority
    dueDate: Optional[datetime] = None


class UpdateTaskInput(PortalUpdateInput):
    nullable_fields = frozenset({"assigneeId", "dueDate"})

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    assigneeId: Optional[str] = None
    priority: Optional[TaskPriority] = None
    dueDate: Optional[datetime] = None


class CreateDocumentInput(PortalInput):
    organizationId: str
    requestId: Optional[str] = None
    taskId: Optional[str] = None
    uploaderId: str
    fileName: str
    fileUrl: str
    mimeType: str
    fileSize: int = Field(ge=0)


class CreateInvoiceInput(PortalInput):
    organizationId: str
    invoiceNumber: str
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    currency: str
    dueDate: datetime
    issueDate: datetime


class UpdateInvoiceInput(PortalUpdateInput):
    nullable_fields = frozenset({"paymentTransactionId"})

    id: str
    paymentStatus: Optional[PaymentStatus] = None
    paymentTransactionId: Optional[str] = None


class CreateChatHistoryInput(PortalInput):
    userId: str
    query: str
    response: str
    isGuest: bool
    organizationId: Optional[str] = None


class CreateResourceTemplateInput(PortalInput):
    name: str
    type: ResourceTemplateType
    content: str
    category: str


class AskAssistantInput(PortalInput):
    query: str = Field(max_length=2000)

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Query must not be blank")
        return cleaned


class VatCalculationInput(PortalInput):
    amount: Decimal = Field(ge=0)
    rate: Decimal = Field(ge=0, le=100)


class LoanPaymentInput(PortalInput):
    principal: Decimal = Field(gt=0)
    annualRate: Decimal = Field(gt=0, le=100)
    years: int = Field(gt=0, le=50)


class ByIdInput(PortalInput):
    id: str


class ByOrganizationInput(PortalInput):
    organizationId: str


class ByRequestInput(PortalInput):
    requestId: str


class ByUserInput(PortalInput):
    userId: str


class ByTypeInput(PortalInput):
    type: ResourceTemplateType


# Wire shapes


def _as_utc(value: datetime) -> datetime:
    # stored values are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class OrganizationResponse(BaseModel):
    id: str
    name: str
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class OrganizationMemberResponse(BaseModel):
    id: str
    userId: str
    organizationId: str
    role: OrganizationMemberRole


class RequestResponse(BaseModel):
    id: str
    organizationId: str
    title: str
    description: str
    status: RequestStatus
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class TaskResponse(BaseModel):
    id: str
    requestId: str
    title: str
    description: str
    status: TaskStatus
    assigneeId: Optional[str] = None
    priority: TaskPriority
    dueDate: Optional[UtcDateTime] = None
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class DocumentResponse(BaseModel):
    id: str
    organizationId: str
    requestId: Optional[str] = None
    taskId: Optional[str] = None
    uploaderId: str
    fileName: str
    fileUrl: str
    mimeType: str
    fileSize: int
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class InvoiceResponse(BaseModel):
    id: str
    organizationId: str
    invoiceNumber: str
    amount: float
    currency: str
    dueDate: UtcDateTime
    issueDate: UtcDateTime
    paymentStatus: PaymentStatus
    paymentTransactionId: Optional[str] = None
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class InvoiceSummaryResponse(BaseModel):
    organizationId: str
    totalOutstanding: float
    totalPaid: float
    overdueCount: int
    countByStatus: dict[str, int]


class ChatHistoryResponse(BaseModel):
    id: str
    userId: str
    query: str
    response: str
    timestamp: UtcDateTime
    isGuest: bool
    organizationId: Optional[str] = None


class ResourceTemplateResponse(BaseModel):
    id: str
    name: str
    type: ResourceTemplateType
    content: str
    category: str
    createdAt: UtcDateTime
    updatedAt: UtcDateTime


class VatCalculationResponse(BaseModel):
    vat: float
    totalWithVat: float


class LoanPaymentResponse(BaseModel):
    monthlyPayment: float
    totalPayment: float
    totalInterest: float
