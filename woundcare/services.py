"""Application service layer."""
from __future__ import annotations

import calendar
import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.core.billing import (
    InvoiceStatusError,
    apply_invoice_status,
    clinic_commission,
    commission_amount,
    compute_financials,
    default_payable_date,
    quantize_money,
)
from woundcare.core.commission_periods import CommissionPeriod, CommissionRecord, build_commission_periods
from woundcare.core.grafts import find_graft
from woundcare.core.metrics import InvoiceMetrics, invoice_metrics
from woundcare.models import TREATABLE_PATIENT_STATUSES, Treatment, TreatmentCommission
from woundcare.schemas import TreatmentCreate, TreatmentUpdate

logger = logging.getLogger(__name__)

INVOICE_FILTER_STATUSES = ("open", "payable", "closed", "overdue")

REPORT_RANGES = ("all", "current_month", "last_month", "last_3_months", "last_6_months", "custom")


class TreatmentError(ValueError):
    """Raised for treatment requests that cannot be applied."""


def report_date_range(
    range_name: str,
    start: date | None = None,
    end: date | None = None,
    today: date | None = None,
) -> tuple[date | None, date | None]:
    """Resolve a named report range to inclusive (start, end) bounds.

    "all" and an incomplete "custom" range are unbounded.
    """
    today = today or date.today()
    month_start = today.replace(day=1)
    month_end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    if range_name == "all":
        return None, None
    if range_name == "current_month":
        return month_start, month_end
    if range_name == "last_month":
        last_start = month_start - relativedelta(months=1)
        return last_start, month_start - relativedelta(days=1)
    if range_name == "last_3_months":
        return month_start - relativedelta(months=3), month_end
    if range_name == "last_6_months":
        return month_start - relativedelta(months=6), month_end
    if range_name == "custom":
        if start is None or end is None:
            return None, None
        return start, end
    raise ValueError(f"Unknown report range: {range_name!r}")


def filter_invoices(
    treatments: Iterable[Treatment],
    search: str | None = None,
    status: str | None = None,
    sales_rep: str | None = None,
    provider: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Treatment]:
    """Narrow treatments the way the invoice list filters them.

    Search matches patient name, invoice number or provider, case-insensitive.
    Status "overdue" selects by the overdue flag rather than the stored status.
    The date range is inclusive and applies to the invoice date, else the
    treatment date; it is ignored unless both ends are given.
    """
    needle = search.strip().lower() if search else ""
    result = []
    for treatment in treatments:
        if needle and not any(
            needle in (value or "").lower()
            for value in (treatment.patient_name, treatment.invoice_no, treatment.acting_provider)
        ):
            continue
        if status == "overdue":
            if not treatment.is_overdue:
                continue
        elif status and treatment.invoice_status != status:
            continue
        if sales_rep and sales_rep != treatment.sales_rep and sales_rep not in {
            c.sales_rep_name for c in treatment.commissions
        }:
            continue
        if provider and treatment.acting_provider != provider:
            continue
        if start is not None and end is not None:
            reference = treatment.invoice_date or treatment.treatment_date
            if reference is None or not start <= reference <= end:
                continue
        result.append(treatment)
    return result


class TreatmentService:
    """Coordinates treatment billing and commission operations using database state."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # --- treatments ---

    def list_treatments(self, sales_rep: str | None = None, **filters) -> Sequence[Treatment]:
        return crud.list_treatments(self.db, sales_rep=sales_rep, **filters)

    def create_treatment(self, payload: TreatmentCreate) -> Treatment:
        patient = crud.get_patient(self.db, payload.patient_id)
        if patient is None:
            raise LookupError("Patient not found")
        if patient.patient_status not in TREATABLE_PATIENT_STATUSES:
            raise TreatmentError(
                "Treatments can only be recorded for patients with IVR Approved or In Treatment status."
            )

        treatment = Treatment(patient_id=patient.id)
        treatment.patient = patient
        treatment.treatment_number = payload.treatment_number or crud.next_treatment_number(self.db, patient.id)
        try:
            self._apply_payload(treatment, payload, default_rep=patient.sales_rep)
            self.db.add(treatment)
            self.db.commit()
        except (TreatmentError, InvoiceStatusError, SQLAlchemyError):
            self.db.rollback()
            raise
        logger.info(
            "Recorded treatment %s for patient %s (invoice total %s)",
            treatment.id,
            patient.id,
            treatment.invoice_total,
        )
        return crud.get_treatment(self.db, treatment.id)

    def update_treatment(self, treatment: Treatment, payload: TreatmentUpdate) -> Treatment:
        try:
            if payload.treatment_number is not None:
                treatment.treatment_number = payload.treatment_number
            self._apply_payload(treatment, payload, default_rep=treatment.patient.sales_rep)
            self.db.commit()
        except (TreatmentError, InvoiceStatusError, SQLAlchemyError):
            self.db.rollback()
            raise
        self.db.expire(treatment)
        return crud.get_treatment(self.db, treatment.id)

    def list_invoices(
        self,
        scope_rep: str | None = None,
        search: str | None = None,
        status: str | None = None,
        sales_rep: str | None = None,
        provider: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[Treatment]:
        """Treatments as invoices. scope_rep limits to one rep's patients."""
        if status and status not in INVOICE_FILTER_STATUSES:
            raise ValueError(f"Unknown invoice status filter: {status!r}")
        return filter_invoices(
            crud.list_treatments(self.db, sales_rep=scope_rep),
            search=search,
            status=status,
            sales_rep=sales_rep,
            provider=provider,
            start=start,
            end=end,
        )

    def set_invoice_status(self, treatment: Treatment, status: str, payment_date: date | None) -> Treatment:
        updated = crud.set_treatment_invoice_status(self.db, treatment, status, payment_date)
        logger.info("Treatment %s invoice status set to %s", updated.id, updated.invoice_status)
        return updated

    def _apply_payload(
        self,
        treatment: Treatment,
        payload: TreatmentCreate | TreatmentUpdate,
        default_rep: str,
    ) -> None:
        graft = find_graft(payload.skin_graft_type)
        price = payload.price_per_sq_cm
        if price is None:
            if graft is None:
                raise TreatmentError(f"Unknown graft {payload.skin_graft_type!r}; supply a price per sq cm.")
            price = graft.asp

        treatment.skin_graft_type = payload.skin_graft_type
        treatment.q_code = payload.q_code or (graft.q_code if graft else None)
        treatment.wound_size_at_treatment = payload.wound_size_at_treatment
        treatment.price_per_sq_cm = quantize_money(price)
        treatment.treatment_date = payload.treatment_date
        treatment.status = payload.status
        treatment.acting_provider = payload.acting_provider
        treatment.notes = payload.notes

        treatment.invoice_date = payload.invoice_date
        treatment.invoice_no = payload.invoice_no
        treatment.payable_date = payload.payable_date or default_payable_date(payload.invoice_date)
        apply_invoice_status(treatment, payload.invoice_status, payload.payment_date)

        financials = compute_financials(payload.wound_size_at_treatment, price)
        treatment.total_revenue = financials.total_revenue
        treatment.invoice_total = financials.invoice_total
        treatment.total_commission = financials.total_commission

        treatment.sales_rep = payload.sales_rep or default_rep
        legacy_rate = payload.sales_rep_commission_rate
        if legacy_rate is None:
            rep = crud.get_sales_rep_by_name(self.db, treatment.sales_rep)
            legacy_rate = rep.commission_rate if rep is not None else Decimal("0")
        treatment.sales_rep_commission_rate = legacy_rate

        self._sync_commissions(treatment, payload)

        if treatment.commissions:
            treatment.sales_rep_commission = Decimal("0.00")
            rep_amounts = [c.commission_amount for c in treatment.commissions]
        else:
            treatment.sales_rep_commission = commission_amount(treatment.invoice_total, legacy_rate)
            rep_amounts = [treatment.sales_rep_commission]
        treatment.clinic_commission = clinic_commission(treatment.total_commission, rep_amounts)

    def _sync_commissions(self, treatment: Treatment, payload: TreatmentCreate | TreatmentUpdate) -> None:
        """Update assignments in place; amounts always come from the invoice total."""
        wanted: dict[int, Decimal] = {}
        for assignment in payload.commissions:
            if assignment.sales_rep_id in wanted:
                raise TreatmentError("A sales rep can only be assigned once per treatment.")
            wanted[assignment.sales_rep_id] = assignment.commission_rate

        existing = {c.sales_rep_id: c for c in treatment.commissions}
        for rep_id, commission in existing.items():
            if rep_id not in wanted:
                treatment.commissions.remove(commission)

        for rep_id, rate in wanted.items():
            rep = crud.get_sales_rep(self.db, rep_id)
            if rep is None:
                raise TreatmentError(f"Sales rep {rep_id} does not exist.")
            commission = existing.get(rep_id)
            if commission is None:
                commission = TreatmentCommission(sales_rep_id=rep.id)
                treatment.commissions.append(commission)
            commission.sales_rep_name = rep.name
            commission.commission_rate = rate
            commission.commission_amount = commission_amount(treatment.invoice_total, rate)

    # --- commission reporting ---

    def commission_records(self, sales_rep: str | None = None) -> list[CommissionRecord]:
        """One record per (treatment, rep) share of every closed invoice."""
        records: list[CommissionRecord] = []
        for treatment in crud.list_treatments(self.db, invoice_status="closed"):
            records.extend(_records_for(treatment))
        if sales_rep is not None:
            records = [r for r in records if r.sales_rep == sales_rep]
        return records

    def commission_report_rows(
        self,
        range_name: str = "all",
        start: date | None = None,
        end: date | None = None,
        sales_rep: str | None = None,
    ) -> list[dict]:
        """Commission rows for closed invoices, most recently paid first."""
        lower, upper = report_date_range(range_name, start, end)
        rows: list[dict] = []
        for treatment in crud.list_treatments(self.db, invoice_status="closed"):
            paid_at = treatment.payment_date or treatment.invoice_date or treatment.treatment_date
            if lower is not None and (paid_at is None or paid_at < lower):
                continue
            if upper is not None and (paid_at is None or paid_at > upper):
                continue
            for record, rep_id, is_legacy in _shares_for(treatment):
                if sales_rep is not None and record.sales_rep != sales_rep:
                    continue
                rows.append(
                    {
                        "treatment_id": treatment.id,
                        "invoice_no": treatment.invoice_no,
                        "invoice_status": treatment.invoice_status,
                        "patient_name": treatment.patient_name,
                        "sales_rep_id": rep_id,
                        "sales_rep": record.sales_rep,
                        "commission_rate": record.commission_rate,
                        "commission_amount": record.commission_amount,
                        "invoice_total": treatment.invoice_total,
                        "paid_at": paid_at,
                        "is_legacy": is_legacy,
                    }
                )
        rows.sort(key=lambda row: (row["paid_at"] or date.min, row["treatment_id"]), reverse=True)
        return rows

    @staticmethod
    def summarize_report(rows: Iterable[dict]) -> dict:
        reps: dict[str, dict] = {}
        total = Decimal("0")
        count = 0
        for row in rows:
            count += 1
            total += row["commission_amount"]
            entry = reps.setdefault(
                row["sales_rep"],
                {"sales_rep": row["sales_rep"], "total_commission": Decimal("0"), "invoice_count": 0},
            )
            entry["total_commission"] += row["commission_amount"]
            entry["invoice_count"] += 1
        for entry in reps.values():
            entry["total_commission"] = quantize_money(entry["total_commission"])
        return {
            "total_commission": quantize_money(total),
            "total_invoices": count,
            "unique_reps": len(reps),
            "reps": sorted(reps.values(), key=lambda entry: entry["sales_rep"]),
        }

    def commission_periods(
        self,
        year: int | None = None,
        month: int | None = None,
        sales_rep: str | None = None,
    ) -> list[tuple[CommissionPeriod, object]]:
        """Periods for the month, each paired with its payment record (or None)."""
        periods = build_commission_periods(self.commission_records(sales_rep), year, month)
        if not periods:
            return []
        first = min(p.period_start for p in periods)
        last = max(p.period_end for p in periods)
        payments = {
            (p.sales_rep, p.period_start, p.period_end): p
            for p in crud.list_commission_payments(self.db, period_start=first, period_end=last)
        }
        return [(period, payments.get(period.key)) for period in periods]

    def invoice_metrics(
        self,
        sales_rep: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> InvoiceMetrics:
        return invoice_metrics(crud.list_treatments(self.db, sales_rep=sales_rep, start=start, end=end))


def _shares_for(treatment: Treatment) -> list[tuple[CommissionRecord, int | None, bool]]:
    base = {
        "treatment_id": treatment.id,
        "invoice_no": treatment.invoice_no,
        "patient_name": treatment.patient_name,
        "invoice_total": treatment.invoice_total,
        "invoice_date": treatment.invoice_date,
        "treatment_date": treatment.treatment_date,
    }
    if treatment.commissions:
        return [
            (
                CommissionRecord(
                    sales_rep=c.sales_rep_name,
                    commission_rate=c.commission_rate,
                    commission_amount=c.commission_amount,
                    **base,
                ),
                c.sales_rep_id,
                False,
            )
            for c in treatment.commissions
        ]
    if not treatment.sales_rep:
        return []
    return [
        (
            CommissionRecord(
                sales_rep=treatment.sales_rep,
                commission_rate=treatment.sales_rep_commission_rate,
                commission_amount=treatment.sales_rep_commission,
                **base,
            ),
            None,
            True,
        )
    ]


def _records_for(treatment: Treatment) -> list[CommissionRecord]:
    return [record for record, _, _ in _shares_for(treatment)]
