import logging

from sqlalchemy.orm import Session

from app.db import models
from app.db.enums import ResourceTemplateType

logger = logging.getLogger("portal.db")

DEFAULT_RESOURCE_TEMPLATES = [
    {
        "name": "Service Agreement Template",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Legal",
        "content": "Standard service agreement for professional services.",
    },
    {
        "name": "Invoice Template (Tunisia)",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Finance",
        "content": "Compliant invoice template for Tunisian businesses.",
    },
    {
        "name": "VAT Declaration Form",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Tax",
        "content": "Monthly VAT declaration template.",
    },
    {
        "name": "Employment Contract",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Legal",
        "content": "Standard employment contract template.",
    },
    {
        "name": "Financial Statement Template",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Finance",
        "content": "Basic financial statement format.",
    },
    {
        "name": "Company Formation Checklist",
        "type": ResourceTemplateType.DOCUMENT_TEMPLATE,
        "category": "Legal",
        "content": "Complete checklist for incorporating in Tunisia.",
    },
    {
        "name": "VAT Calculator",
        "type": ResourceTemplateType.CALCULATOR,
        "category": "Tax",
        "content": "Computes VAT and the gross total from a net amount and a rate (standard 19%, reduced 13%).",
    },
    {
        "name": "Loan Payment Calculator",
        "type": ResourceTemplateType.CALCULATOR,
        "category": "Finance",
        "content": "Computes the monthly installment, total paid and total interest of an amortizing loan.",
    },
]


def seed_resource_templates(db: Session) -> int:
    """Insert the default catalogue when the table is empty. Returns the number of rows added."""
    if db.query(models.ResourceTemplate.id).first() is not None:
        return 0
    now = models.utcnow()
    for item in DEFAULT_RESOURCE_TEMPLATES:
        db.add(models.ResourceTemplate(id=models.new_id(), created_at=now, updated_at=now, **item))
    db.commit()
    logger.info("Seeded %s resource templates", len(DEFAULT_RESOURCE_TEMPLATES))
    return len(DEFAULT_RESOURCE_TEMPLATES)
