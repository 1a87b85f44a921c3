import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from app.db.enums import (
    OrganizationMemberRole,
    PaymentStatus,
    RequestStatus,
    ResourceTemplateType,
    TaskPriority,
    TaskStatus,
    UserRole,
)

Base = declarative_base()


def utcnow() -> datetime:
    # naive UTC, the form SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


def _enum_column(enum_cls, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        create_constraint=True,
        validate_strings=True,
    )


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False)
    role = Column(_enum_column(UserRole, "user_role"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    memberships = relationship(
        "OrganizationMember", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    assigned_tasks = relationship("Task", back_populates="assignee")
    uploaded_documents = relationship("Document", back_populates="uploader")
    chat_history = relationship(
        "ChatHistory", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Account(Base):
    """Auth-provider account link, kept for compatibility with the auth layer."""

    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    provider_account_id = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    access_token = Column(String, nullable=True)
    expires_at = Column(Integer, nullable=True)
    token_type = Column(String, nullable=True)
    scope = Column(String, nullable=True)
    id_token = Column(String, nullable=True)
    session_state = Column(String, nullable=True)

    user = relationship("User", back_populates="accounts")


class Session(Base):
    __tablename__ = "sessions"

    id = Column(String, primary_key=True, default=new_id)
    session_token = Column(String, nullable=False, unique=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="sessions")


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    members = relationship(
        "OrganizationMember", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True
    )
    requests = relationship("Request", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    documents = relationship(
        "Document", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True
    )
    invoices = relationship("Invoice", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    chat_history = relationship(
        "ChatHistory", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True
    )


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_organization_member"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    role = Column(_enum_column(OrganizationMemberRole, "organization_member_role"), nullable=False)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="members")


class Request(Base):
    __tablename__ = "requests"

    id = Column(String, primary_key=True, default=new_id)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(_enum_column(RequestStatus, "request_status"), nullable=False, default=RequestStatus.OPEN)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="requests")
    tasks = relationship("Task", back_populates="request", cascade="all, delete-orphan", passive_deletes=True)
    documents = relationship("Document", back_populates="request", cascade="all, delete-orphan", passive_deletes=True)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_id)
    request_id = Column(String, ForeignKey("requests.id", ondelete="CASCADE"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(_enum_column(TaskStatus, "task_status"), nullable=False, default=TaskStatus.NOT_STARTED)
    assignee_id = Column(String, ForeignKey("users.id"), nullable=True)
    priority = Column(_enum_column(TaskPriority, "task_priority"), nullable=False)
    due_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    request = relationship("Request", back_populates="tasks")
    assignee = relationship("User", back_populates="assigned_tasks")
    documents = relationship("Document", back_populates="task", cascade="all, delete-orphan", passive_deletes=True)


class Document(Base):
    """Metadata for an uploaded file. ``file_url`` is an opaque locator."""

    __tablename__ = "documents"

    id = Column(String, primary_key=True, default=new_id)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    request_id = Column(String, ForeignKey("requests.id", ondelete="CASCADE"), nullable=True)
    task_id = Column(String, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=True)
    uploader_id = Column(String, ForeignKey("users.id"), nullable=False)
    file_name = Column(String, nullable=False)
    file_url = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="documents")
    request = relationship("Request", back_populates="documents")
    task = relationship("Task", back_populates="documents")
    uploader = relationship("User", back_populates="uploaded_documents")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String, primary_key=True, default=new_id)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    invoice_number = Column(String, nullable=False, unique=True)
    amount = Column(Numeric(10, 2, asdecimal=True), nullable=False)
    currency = Column(String, nullable=False)
    due_date = Column(DateTime, nullable=False)
    issue_date = Column(DateTime, nullable=False)
    payment_status = Column(
        _enum_column(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.DRAFT
    )
    payment_transaction_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="invoices")


class ChatHistory(Base):
    """Append-only log of assistant exchanges."""

    __tablename__ = "chat_history"
    __table_args__ = (Index("ix_chat_history_user_timestamp", "user_id", "timestamp"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    query = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    is_guest = Column(Boolean, nullable=False)
    organization_id = Column(String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True)

    user = relationship("User", back_populates="chat_history")
    organization = relationship("Organization", back_populates="chat_history")


class ResourceTemplate(Base):
    __tablename__ = "resource_templates"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    type = Column(_enum_column(ResourceTemplateType, "resource_template_type"), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
