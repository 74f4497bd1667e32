from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from woundcare.core.billing import (
    InvoiceStatusError,
    apply_invoice_status,
    clinic_commission,
    commission_amount,
    compute_financials,
    default_payable_date,
    is_overdue,
    to_decimal,
)


def test_financials_for_ten_square_cm_at_one_hundred():
    result = compute_financials(Decimal("10"), Decimal("100"))
    assert result.total_revenue == Decimal("1000.00")
    assert result.invoice_total == Decimal("600.00")
    assert result.total_commission == Decimal("180.00")


def test_financials_round_half_up_at_each_step():
    # 1.5 * 3.35 = 5.025 -> 5.03; 5.03 * 0.6 = 3.018 -> 3.02; 3.02 * 0.3 = 0.906 -> 0.91
    result = compute_financials(Decimal("1.5"), Decimal("3.35"))
    assert result.total_revenue == Decimal("5.03")
    assert result.invoice_total == Decimal("3.02")
    assert result.total_commission == Decimal("0.91")


def test_financials_treat_missing_inputs_as_zero():
    result = compute_financials(None, Decimal("100"))
    assert result.total_revenue == Decimal("0.00")
    assert result.total_commission == Decimal("0.00")


def test_commission_amount_and_clinic_remainder():
    invoice = Decimal("600.00")
    first = commission_amount(invoice, Decimal("10"))
    second = commission_amount(invoice, Decimal("7.5"))
    assert first == Decimal("60.00")
    assert second == Decimal("45.00")
    assert clinic_commission(Decimal("180.00"), [first, second]) == Decimal("75.00")
    assert commission_amount(invoice, None) == Decimal("0.00")


def test_default_payable_date_is_thirty_days_after_invoice():
    assert default_payable_date(date(2024, 1, 15)) == date(2024, 2, 14)
    assert default_payable_date(None) is None


def test_open_to_payable_keeps_payment_date_empty():
    record = SimpleNamespace(invoice_status="open", payment_date=None)
    apply_invoice_status(record, "payable")
    assert record.invoice_status == "payable"
    assert record.payment_date is None


def test_closing_requires_payment_date():
    record = SimpleNamespace(invoice_status="open", payment_date=None)
    with pytest.raises(InvoiceStatusError):
        apply_invoice_status(record, "closed")
    assert record.invoice_status == "open"

    apply_invoice_status(record, "closed", date(2024, 6, 1))
    assert record.invoice_status == "closed"
    assert record.payment_date == date(2024, 6, 1)


def test_reopening_clears_payment_date():
    record = SimpleNamespace(invoice_status="closed", payment_date=date(2024, 6, 1))
    apply_invoice_status(record, "open")
    assert record.invoice_status == "open"
    assert record.payment_date is None


def test_unknown_status_is_rejected():
    record = SimpleNamespace(invoice_status="open", payment_date=None)
    with pytest.raises(InvoiceStatusError):
        apply_invoice_status(record, "void")


def test_overdue_only_when_payable_date_passed_and_not_closed():
    yesterday = date.today() - timedelta(days=1)
    assert is_overdue(yesterday, "open") is True
    assert is_overdue(yesterday, "payable") is True
    assert is_overdue(yesterday, "closed") is False
    assert is_overdue(date.today(), "open") is False
    assert is_overdue(None, "open") is False


def test_to_decimal_reads_money_text():
    assert to_decimal("$1,250.50") == Decimal("1250.50")
    assert to_decimal("abc") is None
    assert to_decimal("") is None


@pytest.mark.parametrize("raw", ["NaN", "nan", "Infinity", "-Infinity", "sNaN", Decimal("NaN"), float("inf")])
def test_to_decimal_rejects_non_finite_values(raw):
    assert to_decimal(raw) is None


def test_non_finite_sheet_values_do_not_reach_the_money_math():
    amount = to_decimal("Infinity")
    result = compute_financials(amount, to_decimal("NaN"))
    assert result.total_revenue == Decimal("0.00")
    assert commission_amount(result.invoice_total, to_decimal("NaN")) == Decimal("0.00")
