from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.portal import schemas
from app.services.calculators import calculate_loan_payment, calculate_vat


def test_vat_standard_rate():
    result = calculate_vat(Decimal("1000"), Decimal("19"))
    assert result == {"vat": Decimal("190.00"), "total_with_vat": Decimal("1190.00")}


def test_vat_rounds_half_up():
    result = calculate_vat(Decimal("0.50"), Decimal("13"))
    assert result["vat"] == Decimal("0.07")
    assert result["total_with_vat"] == Decimal("0.57")


def test_vat_zero_rate():
    result = calculate_vat(Decimal("250.00"), Decimal("0"))
    assert result == {"vat": Decimal("0.00"), "total_with_vat": Decimal("250.00")}


def test_loan_payment():
    result = calculate_loan_payment(Decimal("10000"), Decimal("5"), 10)
    assert result["monthly_payment"] == Decimal("106.07")
    assert result["total_payment"] == Decimal("12727.86")
    assert result["total_interest"] == Decimal("2727.86")


def test_loan_input_bounds():
    with pytest.raises(ValidationError):
        schemas.LoanPaymentInput(principal=0, annualRate=5, years=10)
    with pytest.raises(ValidationError):
        schemas.LoanPaymentInput(principal=1000, annualRate=5, years=0)
    with pytest.raises(ValidationError):
        schemas.VatCalculationInput(amount=10, rate=101)
