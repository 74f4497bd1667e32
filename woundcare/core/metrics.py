"""Invoice dashboard metrics computed over a set of treatments."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from woundcare.core.billing import is_overdue, quantize_money


@dataclass
class InvoiceMetrics:
    outstanding_total: Decimal
    outstanding_count: int
    overdue_total: Decimal
    overdue_count: int
    paid_this_month: Decimal
    paid_this_month_count: int
    average_days_to_payment: int
    total_count: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def days_outstanding(payable_date: date | None, today: date | None = None) -> int | None:
    """Whole days from the payable date to today.

    Closed invoices are measured against today as well, not the payment date.
    """
    if payable_date is None:
        return None
    today = today or date.today()
    return (today - payable_date).days


def _amount(value) -> Decimal:
    return Decimal(value) if value is not None else Decimal("0")


def invoice_metrics(treatments: Iterable[Any], today: date | None = None) -> InvoiceMetrics:
    """Aggregate outstanding, overdue and paid figures from treatment rows."""
    today = today or date.today()
    outstanding = Decimal("0")
    outstanding_count = 0
    overdue = Decimal("0")
    overdue_count = 0
    paid = Decimal("0")
    paid_count = 0
    day_counts: list[int] = []
    total = 0

    for item in treatments:
        total += 1
        status = item.invoice_status
        amount = _amount(item.invoice_total)
        if status in ("open", "payable"):
            outstanding += amount
            outstanding_count += 1
        if is_overdue(item.payable_date, status, today):
            overdue += amount
            overdue_count += 1
        if status == "closed":
            reference = item.invoice_date or item.treatment_date
            if reference is not None and (reference.year, reference.month) == (today.year, today.month):
                paid += amount
                paid_count += 1
            # A closed invoice without a payable date counts as zero days
            day_counts.append(days_outstanding(item.payable_date, today) or 0)

    # Halves round up, so 2.5 days reads as 3
    average_days = math.floor(sum(day_counts) / len(day_counts) + 0.5) if day_counts else 0

    return InvoiceMetrics(
        outstanding_total=quantize_money(outstanding),
        outstanding_count=outstanding_count,
        overdue_total=quantize_money(overdue),
        overdue_count=overdue_count,
        paid_this_month=quantize_money(paid),
        paid_this_month_count=paid_count,
        average_days_to_payment=average_days,
        total_count=total,
    )
