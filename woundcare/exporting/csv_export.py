"""CSV renderings of commission reports, commission periods and invoices."""
from __future__ import annotations

import csv
from datetime import date
from io import StringIO
from typing import Any, Iterable, Sequence

from woundcare.core.formatting import format_currency, format_iso_date, format_percent

COMMISSION_REPORT_HEADER = [
    "Sales Rep",
    "Invoice No.",
    "Paid Date",
    "Commission Rate",
    "Commission Amount",
    "Type",
]

INVOICE_HEADER = [
    "Invoice No.",
    "Status",
    "Invoice Date",
    "Payable Date",
    "Patient",
    "Sales Rep",
    "Provider",
    "Graft",
    "Product Code",
    "Size",
    "Total Billable",
    "Total Invoice",
    "Total Commission",
    "Rep Commission",
    "Clinic Commission",
]

TREATMENT_INVOICE_HEADER = [
    "Invoice No",
    "Patient Name",
    "Provider",
    "Sales Rep",
    "Invoice Date",
    "Due Date",
    "Amount",
    "Status",
    "Days Outstanding",
]

COMMISSION_PERIOD_HEADER = [
    "Sales Rep",
    "Period Start",
    "Period End",
    "Payment Date",
    "Invoices",
    "Total Commission",
    "Date Paid",
    "Reference",
]


def _write(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue()


def _get(item: Any, name: str) -> Any:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def commission_report_csv(rows: Iterable[Any]) -> str:
    return _write(
        COMMISSION_REPORT_HEADER,
        (
            [
                _get(row, "sales_rep"),
                _get(row, "invoice_no"),
                format_iso_date(_get(row, "paid_at")),
                format_percent(_get(row, "commission_rate")),
                format_currency(_get(row, "commission_amount")),
                "Legacy" if _get(row, "is_legacy") else "Multi-Rep",
            ]
            for row in rows
        ),
    )


def invoices_csv(invoices: Iterable[Any]) -> str:
    return _write(
        INVOICE_HEADER,
        (
            [
                _get(item, "invoice_no"),
                _get(item, "status"),
                format_iso_date(_get(item, "invoice_date")),
                format_iso_date(_get(item, "payable_date")),
                _get(item, "patient_name"),
                _get(item, "sales_rep"),
                _get(item, "provider"),
                _get(item, "graft"),
                _get(item, "product_code"),
                _get(item, "size"),
                format_currency(_get(item, "total_billable")),
                format_currency(_get(item, "total_invoice")),
                format_currency(_get(item, "total_commission")),
                format_currency(_get(item, "rep_commission")),
                format_currency(_get(item, "clinic_commission")),
            ]
            for item in invoices
        ),
    )


def treatment_invoices_csv(treatments: Iterable[Any]) -> str:
    """Invoice view of treatments, one row per treatment."""
    return _write(
        TREATMENT_INVOICE_HEADER,
        (
            [
                _get(item, "invoice_no"),
                _get(item, "patient_name"),
                _get(item, "acting_provider"),
                _get(item, "sales_rep"),
                format_iso_date(_get(item, "invoice_date")),
                format_iso_date(_get(item, "payable_date")),
                format_currency(_get(item, "invoice_total")),
                _get(item, "invoice_status"),
                _get(item, "days_outstanding") or 0,
            ]
            for item in treatments
        ),
    )


def commission_periods_csv(periods: Iterable[tuple[Any, Any]]) -> str:
    """Render (period, payment record or None) pairs."""
    return _write(
        COMMISSION_PERIOD_HEADER,
        (
            [
                period.sales_rep,
                format_iso_date(period.period_start),
                format_iso_date(period.period_end),
                format_iso_date(period.payment_date),
                period.invoice_count,
                format_currency(period.total_commission),
                format_iso_date(payment.date_paid) if payment is not None else "",
                payment.reference if payment is not None else "",
            ]
            for period, payment in periods
        ),
    )


def export_filename(prefix: str, today: date | None = None) -> str:
    """File name such as commission-report-2024-06-01.csv."""
    today = today or date.today()
    return f"{prefix}-{today.isoformat()}.csv"


__all__ = [
    "COMMISSION_PERIOD_HEADER",
    "COMMISSION_REPORT_HEADER",
    "INVOICE_HEADER",
    "TREATMENT_INVOICE_HEADER",
    "commission_periods_csv",
    "commission_report_csv",
    "export_filename",
    "invoices_csv",
    "treatment_invoices_csv",
]
