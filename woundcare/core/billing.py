"""Treatment billing math and invoice status transitions."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MONEY_QUANT = Decimal("0.01")
INVOICE_SHARE = Decimal("0.60")
COMMISSION_POOL_SHARE = Decimal("0.30")
PAYABLE_TERM_DAYS = 30

INVOICE_STATUSES = ("open", "payable", "closed")


class InvoiceStatusError(ValueError):
    """Raised when an invoice status transition is not allowed."""


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal | None:
    """Parse a numeric-ish value, returning None when it cannot be read."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    text = str(value).strip().replace(",", "").replace("$", "")
    if not text:
        return None
    try:
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


@dataclass(frozen=True)
class Financials:
    total_revenue: Decimal
    invoice_total: Decimal
    total_commission: Decimal


def compute_financials(area: Decimal | None, price_per_unit: Decimal | None) -> Financials:
    """Revenue is area times unit price; the invoice is 60% of revenue and
    the commission pool is 30% of the invoice. Each step is rounded to cents."""
    area = area if area is not None else Decimal("0")
    price = price_per_unit if price_per_unit is not None else Decimal("0")
    revenue = quantize_money(area * price)
    invoice = quantize_money(revenue * INVOICE_SHARE)
    pool = quantize_money(invoice * COMMISSION_POOL_SHARE)
    return Financials(total_revenue=revenue, invoice_total=invoice, total_commission=pool)


def commission_amount(invoice_total: Decimal, rate: Decimal | None) -> Decimal:
    """Rep commission for a percentage rate applied to the invoice total."""
    if rate is None:
        return Decimal("0.00")
    return quantize_money(invoice_total * rate / Decimal("100"))


def clinic_commission(total_commission: Decimal, rep_amounts) -> Decimal:
    paid_to_reps = sum((Decimal(amount) for amount in rep_amounts), Decimal("0"))
    return quantize_money(total_commission - paid_to_reps)


def default_payable_date(invoice_date: date | None) -> date | None:
    if invoice_date is None:
        return None
    return invoice_date + timedelta(days=PAYABLE_TERM_DAYS)


def apply_invoice_status(
    record: Any,
    new_status: str,
    payment_date: date | None = None,
) -> None:
    """Move a treatment (or anything with invoice_status/payment_date) to a new status.

    Closing needs a payment date. Any other status clears the payment date so
    the stored date is present exactly when the invoice is closed.
    """
    status = (new_status or "").strip().lower()
    if status not in INVOICE_STATUSES:
        raise InvoiceStatusError(f"Invalid invoice status: {new_status!r}")
    if status == "closed":
        if payment_date is None:
            raise InvoiceStatusError("A payment date is required to close an invoice.")
        record.invoice_status = status
        record.payment_date = payment_date
    else:
        record.invoice_status = status
        record.payment_date = None


def is_overdue(payable_date: date | None, status: str | None, today: date | None = None) -> bool:
    if payable_date is None or status == "closed":
        return False
    today = today or date.today()
    return payable_date < today


__all__ = [
    "COMMISSION_POOL_SHARE",
    "Financials",
    "INVOICE_SHARE",
    "INVOICE_STATUSES",
    "InvoiceStatusError",
    "MONEY_QUANT",
    "apply_invoice_status",
    "clinic_commission",
    "commission_amount",
    "compute_financials",
    "default_payable_date",
    "is_overdue",
    "quantize_money",
    "to_decimal",
]
