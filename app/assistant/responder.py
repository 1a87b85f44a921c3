import logging
from typing import Callable

from jinja2 import Template

logger = logging.getLogger("portal.assistant")

_TAX_TEMPLATE = Template(
    """**Tax Guidance for Tunisia**

Based on your query about {{ topic }}, here's what you need to know:

**Current VAT Rates in Tunisia:**
- Standard rate: 19%
- Reduced rate: 13% (essential goods)
- Zero rate: 0% (exports, certain services)

**Key Compliance Requirements:**
- Monthly VAT declarations for businesses with turnover > 100,000 TND
- Quarterly declarations for smaller businesses
- Electronic filing required through the tax portal

**Upcoming Deadlines:**
- VAT declaration: 28th of each month
- Annual tax return: March 31st

Would you like me to help you calculate your VAT liability or explain specific compliance requirements?"""
)

_BUSINESS_TEMPLATE = Template(
    """**Business Formation in Tunisia**

For setting up your business in Tunisia, here are the key steps:

**Business Structure Options:**
- SARL (Limited Liability Company) - Most common
- SA (Joint Stock Company) - For larger businesses
- SUARL (Single-person LLC) - For sole proprietors

**Required Documentation:**
- Company name reservation
- Articles of incorporation
- Initial capital deposit (minimum 1,000 TND for SARL)
- Registration with Commercial Registry

**Timeline:** Typically 15-30 days for complete registration

Would you like specific guidance on any aspect of business formation?"""
)

_INVOICING_TEMPLATE = Template(
    """**Invoicing & Payment Guidelines**

**Legal Requirements:**
- Sequential numbering system
- Company details and tax ID
- Client information and tax status
- Clear description of services/goods
- VAT breakdown (if applicable)

**Payment Terms:**
- Standard terms: 30 days from invoice date
- Late payment interest: Currently 7.5% annually
- Electronic payment increasingly required for B2B transactions

I can help you review your invoicing process or calculate payment terms. What specific aspect would you like to discuss?"""
)

_FINANCIAL_TEMPLATE = Template(
    """**Financial Management Guidance**

**Monthly Requirements:**
- Bank reconciliation
- Expense categorization
- Revenue recognition
- VAT calculation and filing

**Annual Obligations:**
- Financial statements preparation
- Tax return filing
- Audit requirements (for companies > certain thresholds)
- Social security declarations

**Key Ratios to Monitor:**
- Current ratio (liquidity)
- Gross profit margin
- Cash flow trends
- Accounts receivable turnover

What specific financial management area would you like to focus on?"""
)

_DEFAULT_TEMPLATE = Template(
    """**Lucapacioli GPT - Your Financial & Legal Assistant**

Thank you for your question! I'm here to help with:

**Financial Services:**
- Tax planning and compliance
- VAT calculations and filings
- Financial statement analysis
- Cash flow management

**Legal Services:**
- Business formation and registration
- Contract review and drafting
- Regulatory compliance

**Specialized Tools:**
- Financial calculators (VAT, loan payments)
- Document templates
- Compliance checklists

Could you please provide more specific details about what you need help with?"""
)


def _mentions(*keywords: str) -> Callable[[str], bool]:
    return lambda text: any(keyword in text for keyword in keywords)


# First match wins.
_RULES: list[tuple[str, Callable[[str], bool]]] = [
    ("tax", _mentions("tax", "vat")),
    ("business", _mentions("company", "business", "incorporation")),
    ("invoicing", _mentions("invoice", "billing", "payment")),
    ("financial", _mentions("financial", "accounting", "bookkeeping")),
]

_TEMPLATES = {
    "tax": _TAX_TEMPLATE,
    "business": _BUSINESS_TEMPLATE,
    "invoicing": _INVOICING_TEMPLATE,
    "financial": _FINANCIAL_TEMPLATE,
    "default": _DEFAULT_TEMPLATE,
}


def classify_query(query: str) -> str:
    text = (query or "").lower()
    for topic, matches in _RULES:
        if matches(text):
            return topic
    return "default"


def generate_response(query: str) -> str:
    """Pick the canned answer for ``query``; deterministic, no external calls."""
    topic = classify_query(query)
    logger.debug("assistant topic=%s", topic)
    return _TEMPLATES[topic].render(topic="VAT" if "vat" in (query or "").lower() else "tax")
