from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def _round(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_vat(amount: Decimal, rate: Decimal) -> dict[str, Decimal]:
    """VAT due on a net ``amount`` at ``rate`` percent."""
    vat = amount * rate / Decimal(100)
    return {"vat": _round(vat), "total_with_vat": _round(amount + vat)}


def calculate_loan_payment(principal: Decimal, annual_rate: Decimal, years: int) -> dict[str, Decimal]:
    """Fixed monthly installment for an amortizing loan compounded monthly.

    payment = P * r * (1 + r)^n / ((1 + r)^n - 1), with r the monthly rate and n the number of months.
    """
    monthly_rate = annual_rate / Decimal(100) / Decimal(12)
    months = years * 12
    growth = (1 + monthly_rate) ** months
    monthly_payment = principal * monthly_rate * growth / (growth - 1)
    total_payment = monthly_payment * months
    return {
        "monthly_payment": _round(monthly_payment),
        "total_payment": _round(total_payment),
        "total_interest": _round(total_payment - principal),
    }
