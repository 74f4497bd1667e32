import csv
from datetime import date
from decimal import Decimal
from io import StringIO
from types import SimpleNamespace

from woundcare.core.commission_periods import CommissionPeriod
from woundcare.exporting.csv_export import (
    COMMISSION_REPORT_HEADER,
    INVOICE_HEADER,
    TREATMENT_INVOICE_HEADER,
    commission_periods_csv,
    commission_report_csv,
    export_filename,
    invoices_csv,
    treatment_invoices_csv,
)


def _invoice(number, total):
    return SimpleNamespace(
        invoice_no=number,
        status="open",
        invoice_date=date(2024, 5, 1),
        payable_date=date(2024, 5, 31),
        patient_name="Jane Doe",
        sales_rep="Alice",
        provider="Dr. Smith",
        graft="Helicoll",
        product_code="Q4164-Q4",
        size=Decimal("2.00"),
        total_billable=total,
        total_invoice=total,
        total_commission=Decimal("0"),
        rep_commission=None,
        clinic_commission=Decimal("0"),
    )


def test_invoice_export_has_header_three_rows_and_dollar_amounts():
    content = invoices_csv(
        [
            _invoice("INV-1", Decimal("100.00")),
            _invoice("INV-2", Decimal("250.50")),
            _invoice("INV-3", Decimal("0")),
        ]
    )
    rows = list(csv.reader(StringIO(content)))
    assert rows[0] == INVOICE_HEADER
    assert len(rows) == 4
    total_column = INVOICE_HEADER.index("Total Invoice")
    assert [row[total_column] for row in rows[1:]] == ["$100.00", "$250.50", "$0.00"]
    assert rows[1][INVOICE_HEADER.index("Rep Commission")] == "$0.00"
    assert rows[1][INVOICE_HEADER.index("Invoice Date")] == "2024-05-01"


def test_every_field_is_double_quoted():
    content = invoices_csv([_invoice("INV-1", Decimal("100.00"))])
    for line in content.strip().split("\n"):
        assert line.startswith('"') and line.endswith('"')
    assert '"$100.00"' in content


def test_commission_report_rows_format_rate_and_type():
    content = commission_report_csv(
        [
            {
                "sales_rep": "Alice",
                "invoice_no": "INV-9",
                "paid_at": date(2024, 6, 1),
                "commission_rate": Decimal("12.5"),
                "commission_amount": Decimal("75"),
                "is_legacy": False,
            },
            {
                "sales_rep": "Bob",
                "invoice_no": None,
                "paid_at": date(2024, 5, 30),
                "commission_rate": Decimal("10"),
                "commission_amount": Decimal("60"),
                "is_legacy": True,
            },
        ]
    )
    rows = list(csv.reader(StringIO(content)))
    assert rows[0] == COMMISSION_REPORT_HEADER
    assert rows[1] == ["Alice", "INV-9", "2024-06-01", "12.50%", "$75.00", "Multi-Rep"]
    assert rows[2] == ["Bob", "", "2024-05-30", "10.00%", "$60.00", "Legacy"]


def test_commission_periods_include_payment_record():
    period = CommissionPeriod(
        sales_rep="Alice",
        period_start=date(2024, 3, 1),
        period_end=date(2024, 3, 15),
        payment_date=date(2024, 3, 15),
        total_commission=Decimal("80.00"),
        invoice_count=2,
    )
    payment = SimpleNamespace(date_paid=date(2024, 3, 16), reference="CHK-101")
    rows = list(csv.reader(StringIO(commission_periods_csv([(period, payment), (period, None)]))))
    assert rows[1] == ["Alice", "2024-03-01", "2024-03-15", "2024-03-15", "2", "$80.00", "2024-03-16", "CHK-101"]
    assert rows[2][-2:] == ["", ""]


def test_export_filename_embeds_date():
    assert export_filename("commission-report", date(2024, 6, 1)) == "commission-report-2024-06-01.csv"
    assert export_filename("invoices", date(2024, 6, 1)) == "invoices-2024-06-01.csv"


def test_treatment_invoice_export_rows_and_dollar_amounts():
    treatments = [
        SimpleNamespace(
            invoice_no="INV-7",
            patient_name="Jane Doe",
            acting_provider="Dr. Smith",
            sales_rep="Alice Rep",
            invoice_date=date(2024, 5, 1),
            payable_date=date(2024, 5, 31),
            invoice_total=Decimal("600"),
            invoice_status="payable",
            days_outstanding=12,
        ),
        SimpleNamespace(
            invoice_no=None,
            patient_name="John Roe",
            acting_provider=None,
            sales_rep="Bob Rep",
            invoice_date=None,
            payable_date=None,
            invoice_total=Decimal("1234.5"),
            invoice_status="open",
            days_outstanding=None,
        ),
    ]
    rows = list(csv.reader(StringIO(treatment_invoices_csv(treatments))))
    assert rows[0] == TREATMENT_INVOICE_HEADER
    assert len(rows) == 3
    assert rows[1] == [
        "INV-7", "Jane Doe", "Dr. Smith", "Alice Rep", "2024-05-01", "2024-05-31", "$600.00", "payable", "12",
    ]
    assert rows[2][6] == "$1234.50"
    assert rows[2][8] == "0"
