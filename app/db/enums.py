"""Closed value sets for the portal entities.

Members carry the literal values stored in the database and exchanged on the
wire, so ``TaskStatus.IN_PROGRESS.value == "In Progress"``.
"""

from enum import Enum


class UserRole(str, Enum):
    GUEST = "Guest"
    CLIENT_USER = "Client-User"
    CLIENT_ADMIN = "Client-Admin"
    FIRM_ACCOUNTANT = "Firm-Accountant"
    SYSTEM_ADMIN = "System-Admin"


class OrganizationMemberRole(str, Enum):
    MEMBER = "member"
    ADMIN = "admin"


class RequestStatus(str, Enum):
    """Request lifecycle. Any value may replace any other on update."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CLOSED = "Closed"


class TaskStatus(str, Enum):
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    AWAITING_CLIENT_FEEDBACK = "Awaiting Client Feedback"
    COMPLETED = "Completed"


class TaskPriority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class PaymentStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    PAID = "Paid"
    OVERDUE = "Overdue"


class ResourceTemplateType(str, Enum):
    DOCUMENT_TEMPLATE = "document_template"
    CALCULATOR = "calculator"
