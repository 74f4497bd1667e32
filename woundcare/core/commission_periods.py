"""Twice-monthly commission payout windows, shared by the CLI and web app."""
from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from woundcare.core.billing import quantize_money


@dataclass
class CommissionRecord:
    """One rep's share of one treatment, as fed into the period aggregator."""

    sales_rep: str
    commission_amount: Decimal
    commission_rate: Decimal = Decimal("0")
    treatment_id: Optional[int] = None
    invoice_no: Optional[str] = None
    patient_name: Optional[str] = None
    invoice_total: Decimal = Decimal("0")
    invoice_date: Optional[date] = None
    treatment_date: Optional[date] = None

    @property
    def reference_date(self) -> Optional[date]:
        return self.invoice_date or self.treatment_date


@dataclass
class CommissionPeriod:
    sales_rep: str
    period_start: date
    period_end: date
    payment_date: date
    total_commission: Decimal = Decimal("0.00")
    invoice_count: int = 0
    records: List[CommissionRecord] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, date, date]:
        return (self.sales_rep, self.period_start, self.period_end)


def month_windows(year: int, month: int) -> list[tuple[date, date, date]]:
    """Return the (start, end, payment date) windows for a month."""
    last_day = calendar.monthrange(year, month)[1]
    return [
        (date(year, month, 1), date(year, month, 15), date(year, month, 15)),
        (date(year, month, 16), date(year, month, last_day), date(year, month, last_day)),
    ]


def build_commission_periods(
    records: Iterable[CommissionRecord],
    year: int | None = None,
    month: int | None = None,
) -> list[CommissionPeriod]:
    """Group records by rep into the two windows of the target month.

    The target month defaults to the current month. Records without an
    invoice date or treatment date never land in a window, and windows that
    collect no records are not returned.
    """
    if year is None or month is None:
        today = date.today()
        year = year or today.year
        month = month or today.month

    by_rep: dict[str, list[CommissionRecord]] = defaultdict(list)
    for record in records:
        if record.reference_date is None:
            continue
        by_rep[record.sales_rep].append(record)

    windows = month_windows(year, month)
    periods: list[CommissionPeriod] = []
    for rep_name, rep_records in by_rep.items():
        for start, end, pay_date in windows:
            in_window = [r for r in rep_records if start <= r.reference_date <= end]
            if not in_window:
                continue
            total = sum((r.commission_amount for r in in_window), Decimal("0"))
            periods.append(
                CommissionPeriod(
                    sales_rep=rep_name,
                    period_start=start,
                    period_end=end,
                    payment_date=pay_date,
                    total_commission=quantize_money(total),
                    invoice_count=len(in_window),
                    records=sorted(in_window, key=lambda r: (r.reference_date, r.treatment_id or 0)),
                )
            )

    periods.sort(key=lambda p: p.sales_rep)
    periods.sort(key=lambda p: p.payment_date, reverse=True)
    return periods


__all__ = [
    "CommissionPeriod",
    "CommissionRecord",
    "build_commission_periods",
    "month_windows",
]
