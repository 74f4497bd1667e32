"""Database access helpers."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from dateutil.relativedelta import relativedelta
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from woundcare.core.billing import (
    InvoiceStatusError,
    apply_invoice_status,
    commission_amount,
    compute_financials,
    default_payable_date,
    is_overdue,
    quantize_money,
)
from woundcare.core.grafts import find_graft
from woundcare.models import (
    KANBAN_STATUS_ENUM,
    CommissionPayment,
    Invoice,
    LoginAttempt,
    Patient,
    PipelineNote,
    Referral,
    SalesRep,
    Treatment,
    TreatmentCommission,
)
from woundcare.schemas import (
    CommissionPaymentUpsert,
    InvoiceCreate,
    InvoiceUpdate,
    PatientCreate,
    PatientUpdate,
    PipelineNoteCreate,
    PipelineNoteUpdate,
    ReferralCreate,
    SalesRepCreate,
    SalesRepUpdate,
)

logger = logging.getLogger(__name__)


# --- Sales reps ---


def list_sales_reps(db: Session, active_only: bool = False) -> Sequence[SalesRep]:
    stmt = select(SalesRep)
    if active_only:
        stmt = stmt.where(SalesRep.is_active.is_(True))
    return db.execute(stmt.order_by(SalesRep.name)).scalars().all()


def get_sales_rep(db: Session, rep_id: int) -> SalesRep | None:
    return db.get(SalesRep, rep_id)


def get_sales_rep_by_name(db: Session, name: str) -> SalesRep | None:
    stmt = select(SalesRep).where(SalesRep.name == name)
    return db.execute(stmt).scalars().first()


def create_sales_rep(db: Session, payload: SalesRepCreate) -> SalesRep:
    rep = SalesRep(**payload.model_dump())
    db.add(rep)
    db.commit()
    db.refresh(rep)
    return rep


def update_sales_rep(db: Session, rep: SalesRep, payload: SalesRepUpdate) -> SalesRep:
    for field, value in payload.model_dump().items():
        setattr(rep, field, value)
    db.commit()
    db.refresh(rep)
    return rep


def deactivate_sales_rep(db: Session, rep: SalesRep) -> SalesRep:
    """Reps are never hard-deleted; commission history keeps pointing at them."""
    rep.is_active = False
    db.commit()
    db.refresh(rep)
    return rep


# --- Patients ---


def list_patients(
    db: Session,
    sales_rep: str | None = None,
    search: str | None = None,
    status: str | None = None,
) -> Sequence[Patient]:
    stmt = select(Patient)
    if sales_rep is not None:
        stmt = stmt.where(Patient.sales_rep == sales_rep)
    if status:
        stmt = stmt.where(Patient.patient_status == status)
    if search:
        like_value = f"%{search.strip()}%"
        stmt = stmt.where(
            (Patient.first_name.ilike(like_value))
            | (Patient.last_name.ilike(like_value))
            | (Patient.phone_number.ilike(like_value))
        )
    stmt = stmt.order_by(Patient.last_name, Patient.first_name)
    return db.execute(stmt).scalars().all()


def get_patient(db: Session, patient_id: int) -> Patient | None:
    return db.get(Patient, patient_id)


def create_patient(db: Session, payload: PatientCreate) -> Patient:
    patient = Patient(**payload.model_dump())
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def update_patient(db: Session, patient: Patient, payload: PatientUpdate) -> Patient:
    for field, value in payload.model_dump().items():
        setattr(patient, field, value)
    db.commit()
    db.refresh(patient)
    return patient


def delete_patient(db: Session, patient: Patient) -> None:
    db.delete(patient)
    db.commit()


# --- Referrals ---


def list_referrals(
    db: Session,
    sales_rep: str | None = None,
    include_archived: bool = False,
) -> Sequence[Referral]:
    stmt = select(Referral)
    if sales_rep is not None:
        stmt = stmt.where(Referral.sales_rep == sales_rep)
    if not include_archived:
        stmt = stmt.where(Referral.is_archived.is_(False))
    stmt = stmt.order_by(Referral.referral_date.desc(), Referral.id.desc())
    return db.execute(stmt).scalars().all()


def referral_board(db: Session, sales_rep: str | None = None) -> dict[str, list[Referral]]:
    """Active referrals grouped into kanban columns, newest first within each."""
    board: dict[str, list[Referral]] = {status: [] for status in KANBAN_STATUS_ENUM}
    for referral in list_referrals(db, sales_rep=sales_rep):
        board.setdefault(referral.kanban_status, []).append(referral)
    return board


def get_referral(db: Session, referral_id: int) -> Referral | None:
    return db.get(Referral, referral_id)


def create_referral(db: Session, payload: ReferralCreate) -> Referral:
    data = payload.model_dump()
    if data.get("referral_date") is None:
        data["referral_date"] = date.today()
    referral = Referral(**data)
    db.add(referral)
    db.commit()
    db.refresh(referral)
    return referral


def update_referral_status(db: Session, referral: Referral, kanban_status: str) -> Referral:
    referral.kanban_status = kanban_status
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(referral)
    return referral


# --- Treatments ---


def list_treatments(
    db: Session,
    sales_rep: str | None = None,
    patient_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    invoice_status: str | None = None,
) -> Sequence[Treatment]:
    """Treatments newest first. A rep filter applies to the patient's rep."""
    stmt = select(Treatment).options(
        selectinload(Treatment.commissions),
        selectinload(Treatment.patient),
    )
    if sales_rep is not None:
        stmt = stmt.join(Patient, Treatment.patient_id == Patient.id).where(Patient.sales_rep == sales_rep)
    if patient_id is not None:
        stmt = stmt.where(Treatment.patient_id == patient_id)
    if start is not None:
        stmt = stmt.where(Treatment.treatment_date >= start)
    if end is not None:
        stmt = stmt.where(Treatment.treatment_date <= end)
    if invoice_status:
        stmt = stmt.where(Treatment.invoice_status == invoice_status)
    stmt = stmt.order_by(Treatment.treatment_date.desc(), Treatment.id.desc())
    return db.execute(stmt).scalars().all()


def get_treatment(db: Session, treatment_id: int) -> Treatment | None:
    stmt = (
        select(Treatment)
        .options(selectinload(Treatment.commissions), selectinload(Treatment.patient))
        .where(Treatment.id == treatment_id)
    )
    return db.execute(stmt).scalars().first()


def next_treatment_number(db: Session, patient_id: int) -> int:
    stmt = select(func.coalesce(func.max(Treatment.treatment_number), 0)).where(Treatment.patient_id == patient_id)
    return int(db.execute(stmt).scalar_one() or 0) + 1


def list_treatment_commissions(db: Session, treatment_id: int) -> Sequence[TreatmentCommission]:
    stmt = (
        select(TreatmentCommission)
        .where(TreatmentCommission.treatment_id == treatment_id)
        .order_by(TreatmentCommission.sales_rep_name)
    )
    return db.execute(stmt).scalars().all()


def delete_treatment(db: Session, treatment: Treatment) -> None:
    db.delete(treatment)
    db.commit()


# --- Legacy invoices ---


def list_invoices(
    db: Session,
    sales_rep: str | None = None,
    status: str | None = None,
) -> Sequence[Invoice]:
    stmt = select(Invoice)
    if sales_rep is not None:
        stmt = stmt.where(Invoice.sales_rep == sales_rep)
    if status:
        stmt = stmt.where(Invoice.status == status)
    stmt = stmt.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
    return db.execute(stmt).scalars().all()


def get_invoice(db: Session, invoice_id: int) -> Invoice | None:
    return db.get(Invoice, invoice_id)


def _apply_invoice_payload(db: Session, invoice: Invoice, payload: InvoiceCreate | InvoiceUpdate) -> None:
    """Copy fields and recompute the money columns from size, graft ASP and rep rate."""
    data = payload.model_dump()
    graft = find_graft(data["graft"])
    if graft is None:
        raise ValueError(f"Unknown graft: {data['graft']}")

    for field in (
        "status",
        "invoice_date",
        "invoice_no",
        "treatment_start_date",
        "patient_name",
        "sales_rep",
        "provider",
        "graft",
        "size",
    ):
        setattr(invoice, field, data[field])
    invoice.product_code = data.get("product_code") or graft.q_code
    invoice.payable_date = data.get("payable_date") or default_payable_date(data["invoice_date"])

    financials = compute_financials(data["size"], graft.asp)
    rep = get_sales_rep_by_name(db, data["sales_rep"])
    rate = rep.commission_rate if rep is not None else Decimal("0")
    rep_amount = commission_amount(financials.invoice_total, rate)

    invoice.total_billable = financials.total_revenue
    invoice.total_invoice = financials.invoice_total
    invoice.total_commission = financials.total_commission
    invoice.rep_commission = rep_amount
    invoice.clinic_commission = quantize_money(financials.total_commission - rep_amount)


def create_invoice(db: Session, payload: InvoiceCreate) -> Invoice:
    invoice = Invoice()
    _apply_invoice_payload(db, invoice, payload)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


def update_invoice(db: Session, invoice: Invoice, payload: InvoiceUpdate) -> Invoice:
    _apply_invoice_payload(db, invoice, payload)
    db.commit()
    db.refresh(invoice)
    return invoice


def delete_invoice(db: Session, invoice: Invoice) -> None:
    db.delete(invoice)
    db.commit()


# --- Commission payments ---


def list_commission_payments(
    db: Session,
    period_start: date | None = None,
    period_end: date | None = None,
    sales_rep: str | None = None,
) -> Sequence[CommissionPayment]:
    stmt = select(CommissionPayment)
    if period_start is not None:
        stmt = stmt.where(CommissionPayment.period_start >= period_start)
    if period_end is not None:
        stmt = stmt.where(CommissionPayment.period_end <= period_end)
    if sales_rep is not None:
        stmt = stmt.where(CommissionPayment.sales_rep == sales_rep)
    stmt = stmt.order_by(CommissionPayment.period_start.desc(), CommissionPayment.sales_rep)
    return db.execute(stmt).scalars().all()


def get_commission_payment(
    db: Session,
    sales_rep: str,
    period_start: date,
    period_end: date,
) -> CommissionPayment | None:
    stmt = select(CommissionPayment).where(
        CommissionPayment.sales_rep == sales_rep,
        CommissionPayment.period_start == period_start,
        CommissionPayment.period_end == period_end,
    )
    return db.execute(stmt).scalars().first()


def upsert_commission_payment(
    db: Session,
    payload: CommissionPaymentUpsert,
    recorded_by: str | None = None,
) -> CommissionPayment:
    payment = get_commission_payment(db, payload.sales_rep, payload.period_start, payload.period_end)
    if payment is None:
        payment = CommissionPayment(
            sales_rep=payload.sales_rep,
            period_start=payload.period_start,
            period_end=payload.period_end,
        )
        db.add(payment)
    payment.date_paid = payload.date_paid
    payment.reference = payload.reference
    payment.recorded_by = recorded_by
    db.commit()
    db.refresh(payment)
    logger.info(
        "Commission period %s..%s for %s marked paid on %s",
        payment.period_start,
        payment.period_end,
        payment.sales_rep,
        payment.date_paid,
    )
    return payment


def delete_commission_payment(db: Session, payment: CommissionPayment) -> None:
    db.delete(payment)
    db.commit()


# --- Pipeline notes ---


def list_pipeline_notes(db: Session, user_id: int) -> Sequence[PipelineNote]:
    stmt = (
        select(PipelineNote)
        .where(PipelineNote.user_id == user_id)
        .order_by(PipelineNote.sort_order, PipelineNote.id)
    )
    return db.execute(stmt).scalars().all()


def get_pipeline_note(db: Session, note_id: int) -> PipelineNote | None:
    return db.get(PipelineNote, note_id)


def create_pipeline_note(db: Session, user_id: int, payload: PipelineNoteCreate) -> PipelineNote:
    sort_order = payload.sort_order
    if sort_order is None:
        stmt = select(func.coalesce(func.max(PipelineNote.sort_order), -1)).where(PipelineNote.user_id == user_id)
        sort_order = int(db.execute(stmt).scalar_one()) + 1
    note = PipelineNote(
        user_id=user_id,
        patient_id=payload.patient_id,
        content=payload.content,
        sort_order=sort_order,
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def update_pipeline_note(db: Session, note: PipelineNote, payload: PipelineNoteUpdate) -> PipelineNote:
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "content" and (value is None or not str(value).strip()):
            raise ValueError("Note content cannot be empty.")
        setattr(note, field, value)
    db.commit()
    db.refresh(note)
    return note


def delete_pipeline_note(db: Session, note: PipelineNote) -> None:
    db.delete(note)
    db.commit()


def reorder_pipeline_notes(db: Session, user_id: int, orders: Iterable[tuple[int, int]]) -> Sequence[PipelineNote]:
    """Apply (note id, sort order) pairs in one transaction.

    Raises LookupError, leaving every note untouched, when an id is unknown
    or belongs to another user.
    """
    notes = {note.id: note for note in list_pipeline_notes(db, user_id)}
    try:
        for note_id, sort_order in orders:
            note = notes.get(note_id)
            if note is None:
                raise LookupError(f"Pipeline note {note_id} not found")
            note.sort_order = sort_order
        db.commit()
    except LookupError:
        db.rollback()
        raise
    return list_pipeline_notes(db, user_id)


# --- Maintenance ---


def reset_application_data(db: Session) -> dict[str, int]:
    """Delete every domain row while keeping user accounts."""
    counts: dict[str, int] = {}
    for model in (
        PipelineNote,
        TreatmentCommission,
        Treatment,
        Referral,
        Patient,
        Invoice,
        CommissionPayment,
        SalesRep,
        LoginAttempt,
    ):
        result = db.execute(delete(model))
        counts[model.__tablename__] = result.rowcount or 0
    db.commit()
    return counts


# --- Dashboard ---


def _money(value) -> Decimal:
    return Decimal(value) if value is not None else Decimal("0")


def _rep_shares(treatment: Treatment) -> list[tuple[str, Decimal]]:
    if treatment.commissions:
        return [(c.sales_rep_name, _money(c.commission_amount)) for c in treatment.commissions]
    if treatment.sales_rep:
        return [(treatment.sales_rep, _money(treatment.sales_rep_commission))]
    return []


def dashboard_summary(db: Session, sales_rep: str | None = None, today: date | None = None) -> dict:
    """Clinic dashboard figures. A rep filter restricts everything to that rep's patients."""
    today = today or date.today()
    treatments = list_treatments(db, sales_rep=sales_rep)
    patients = list_patients(db, sales_rep=sales_rep)

    total_treatments = len(treatments)
    total_revenue = sum((_money(t.total_revenue) for t in treatments), Decimal("0"))
    pipeline = {
        "total_treatments": total_treatments,
        "active_treatments": sum(1 for t in treatments if t.status == "active"),
        "completed_treatments": sum(1 for t in treatments if t.status == "completed"),
        "cancelled_treatments": sum(1 for t in treatments if t.status == "cancelled"),
        "total_revenue": quantize_money(total_revenue),
        "average_revenue_per_treatment": quantize_money(total_revenue / total_treatments)
        if total_treatments
        else Decimal("0.00"),
    }

    rep_rows: dict[str, dict] = {}
    total_paid = Decimal("0")
    total_pending = Decimal("0")
    for treatment in treatments:
        for rep_name, amount in _rep_shares(treatment):
            row = rep_rows.setdefault(
                rep_name,
                {
                    "sales_rep": rep_name,
                    "total_commissions": Decimal("0"),
                    "paid_commissions": Decimal("0"),
                    "pending_commissions": Decimal("0"),
                    "treatment_count": 0,
                },
            )
            row["total_commissions"] += amount
            row["treatment_count"] += 1
            if treatment.invoice_status == "closed":
                row["paid_commissions"] += amount
                total_paid += amount
            else:
                row["pending_commissions"] += amount
                total_pending += amount

    graft_rows: dict[str, dict] = defaultdict(
        lambda: {"patients": set(), "treatments": 0, "revenue": Decimal("0")}
    )
    for treatment in treatments:
        entry = graft_rows[treatment.skin_graft_type]
        entry["patients"].add(treatment.patient_id)
        entry["treatments"] += 1
        entry["revenue"] += _money(treatment.total_revenue)
    graft_analysis = []
    for name, entry in graft_rows.items():
        share = (entry["revenue"] / total_revenue * 100) if total_revenue else Decimal("0")
        graft_analysis.append(
            {
                "graft": name,
                "patient_count": len(entry["patients"]),
                "treatment_count": entry["treatments"],
                "total_revenue": quantize_money(entry["revenue"]),
                "revenue_share": quantize_money(share),
            }
        )
    graft_analysis.sort(key=lambda row: row["total_revenue"], reverse=True)

    first_month = today.replace(day=1) - relativedelta(months=11)
    trends = []
    for offset in range(12):
        month_start = first_month + relativedelta(months=offset)
        in_month = [
            t
            for t in treatments
            if (t.treatment_date.year, t.treatment_date.month) == (month_start.year, month_start.month)
        ]
        new_patients = [
            p
            for p in patients
            if (p.created_at.year, p.created_at.month) == (month_start.year, month_start.month)
        ]
        trends.append(
            {
                "month": month_start.strftime("%Y-%m"),
                "treatments": len(in_month),
                "revenue": quantize_money(sum((_money(t.total_revenue) for t in in_month), Decimal("0"))),
                "new_patients": len(new_patients),
            }
        )

    thirty_days_ago = today - relativedelta(days=30)
    pending_actions = {
        "pending_invoices": sum(1 for t in treatments if t.invoice_status in ("open", "payable")),
        "overdue_invoices": sum(
            1
            for t in treatments
            if is_overdue(t.payable_date, t.invoice_status, today) and t.payable_date < thirty_days_ago
        ),
        "new_patients": sum(1 for p in patients if p.created_at.date() >= thirty_days_ago),
        "active_treatments": pipeline["active_treatments"],
    }

    return {
        "treatment_pipeline": pipeline,
        "commission_summary": {
            "total_commissions_paid": quantize_money(total_paid),
            "total_commissions_pending": quantize_money(total_pending),
            "sales_rep_breakdown": sorted(rep_rows.values(), key=lambda row: row["sales_rep"]),
        },
        "graft_analysis": graft_analysis,
        "monthly_trends": trends,
        "pending_actions": pending_actions,
    }


def set_treatment_invoice_status(
    db: Session,
    treatment: Treatment,
    status: str,
    payment_date: date | None,
) -> Treatment:
    """Apply a status change and commit, or roll back leaving the row as stored."""
    try:
        apply_invoice_status(treatment, status, payment_date)
        db.commit()
    except (InvoiceStatusError, SQLAlchemyError):
        db.rollback()
        raise
    db.refresh(treatment)
    return treatment
