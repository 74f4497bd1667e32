from datetime import date
from decimal import Decimal

from woundcare.core.commission_periods import CommissionRecord, build_commission_periods, month_windows


def _record(rep, amount, invoice_date=None, treatment_date=None, treatment_id=1):
    return CommissionRecord(
        sales_rep=rep,
        commission_amount=Decimal(amount),
        treatment_id=treatment_id,
        invoice_date=invoice_date,
        treatment_date=treatment_date,
    )


def test_month_windows_split_on_the_fifteenth():
    assert month_windows(2024, 2) == [
        (date(2024, 2, 1), date(2024, 2, 15), date(2024, 2, 15)),
        (date(2024, 2, 16), date(2024, 2, 29), date(2024, 2, 29)),
    ]


def test_invoice_on_the_tenth_lands_in_first_half_only():
    periods = build_commission_periods([_record("Alice", "50.00", invoice_date=date(2024, 3, 10))], 2024, 3)
    assert len(periods) == 1
    period = periods[0]
    assert (period.period_start, period.period_end) == (date(2024, 3, 1), date(2024, 3, 15))
    assert period.payment_date == date(2024, 3, 15)
    assert period.total_commission == Decimal("50.00")
    assert period.invoice_count == 1


def test_invoice_on_the_sixteenth_lands_in_second_half_only():
    periods = build_commission_periods([_record("Alice", "20.00", invoice_date=date(2024, 3, 16))], 2024, 3)
    assert len(periods) == 1
    assert (periods[0].period_start, periods[0].period_end) == (date(2024, 3, 16), date(2024, 3, 31))
    assert periods[0].payment_date == date(2024, 3, 31)


def test_boundary_days_are_inclusive():
    records = [
        _record("Alice", "1.00", invoice_date=date(2024, 3, 15), treatment_id=1),
        _record("Alice", "2.00", invoice_date=date(2024, 3, 1), treatment_id=2),
        _record("Alice", "4.00", invoice_date=date(2024, 3, 31), treatment_id=3),
    ]
    first, second = sorted(build_commission_periods(records, 2024, 3), key=lambda p: p.period_start)
    assert first.total_commission == Decimal("3.00")
    assert first.invoice_count == 2
    assert second.total_commission == Decimal("4.00")


def test_treatment_date_is_used_when_invoice_date_missing():
    periods = build_commission_periods([_record("Bob", "10.00", treatment_date=date(2024, 3, 20))], 2024, 3)
    assert [p.period_start for p in periods] == [date(2024, 3, 16)]


def test_records_without_any_date_are_excluded():
    periods = build_commission_periods(
        [_record("Bob", "10.00"), _record("Bob", "5.00", invoice_date=date(2024, 3, 2), treatment_id=2)],
        2024,
        3,
    )
    assert len(periods) == 1
    assert periods[0].invoice_count == 1
    assert periods[0].total_commission == Decimal("5.00")


def test_records_outside_target_month_and_empty_windows_are_dropped():
    periods = build_commission_periods([_record("Bob", "10.00", invoice_date=date(2024, 4, 2))], 2024, 3)
    assert periods == []


def test_periods_grouped_by_rep_and_sorted_by_payment_date_descending():
    records = [
        _record("Carol", "10.00", invoice_date=date(2024, 3, 3), treatment_id=1),
        _record("Alice", "15.00", invoice_date=date(2024, 3, 20), treatment_id=2),
        _record("Alice", "5.00", invoice_date=date(2024, 3, 5), treatment_id=3),
        _record("Bob", "7.50", invoice_date=date(2024, 3, 25), treatment_id=4),
    ]
    periods = build_commission_periods(records, 2024, 3)
    assert [(p.sales_rep, p.payment_date) for p in periods] == [
        ("Alice", date(2024, 3, 31)),
        ("Bob", date(2024, 3, 31)),
        ("Alice", date(2024, 3, 15)),
        ("Carol", date(2024, 3, 15)),
    ]


def test_default_target_month_is_current_month():
    today = date.today()
    periods = build_commission_periods([_record("Dana", "3.00", invoice_date=today)])
    assert len(periods) == 1
    assert periods[0].period_start <= today <= periods[0].period_end
