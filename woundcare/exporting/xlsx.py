from __future__ import annotations

from io import BytesIO
from typing import Iterable

import pandas as pd
from sqlalchemy.orm import Session, selectinload

from woundcare.models import (
    CommissionPayment,
    Invoice,
    Patient,
    SalesRep,
    Treatment,
    TreatmentCommission,
)

TREATMENT_COLUMNS = [
    "treatment_id",
    "patient_id",
    "patient_name",
    "treatment_number",
    "treatment_date",
    "graft",
    "q_code",
    "wound_size",
    "price_per_sq_cm",
    "total_revenue",
    "invoice_total",
    "total_commission",
    "clinic_commission",
    "sales_rep",
    "invoice_status",
    "invoice_no",
    "invoice_date",
    "payable_date",
    "payment_date",
]


def _float(value) -> float | None:
    return float(value) if value is not None else None


def _reps_df(reps: Iterable[SalesRep]) -> pd.DataFrame:
    rows = []
    for item in reps:
        rows.append(
            {
                "sales_rep_id": item.id,
                "name": item.name,
                "email": item.email,
                "commission_rate": _float(item.commission_rate),
                "is_active": item.is_active,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows, columns=["sales_rep_id", "name", "email", "commission_rate", "is_active", "created_at"])


def _patients_df(patients: Iterable[Patient]) -> pd.DataFrame:
    rows = []
    for item in patients:
        rows.append(
            {
                "patient_id": item.id,
                "first_name": item.first_name,
                "last_name": item.last_name,
                "date_of_birth": item.date_of_birth,
                "insurance": item.custom_insurance or item.insurance,
                "referral_source": item.referral_source,
                "sales_rep": item.sales_rep,
                "wound_type": item.wound_type,
                "wound_size": item.wound_size,
                "patient_status": item.patient_status,
                "created_at": item.created_at,
            }
        )
    return pd.DataFrame(rows)


def _treatments_df(treatments: Iterable[Treatment]) -> pd.DataFrame:
    rows = []
    for item in treatments:
        rows.append(
            {
                "treatment_id": item.id,
                "patient_id": item.patient_id,
                "patient_name": item.patient_name,
                "treatment_number": item.treatment_number,
                "treatment_date": item.treatment_date,
                "graft": item.skin_graft_type,
                "q_code": item.q_code,
                "wound_size": _float(item.wound_size_at_treatment),
                "price_per_sq_cm": _float(item.price_per_sq_cm),
                "total_revenue": _float(item.total_revenue),
                "invoice_total": _float(item.invoice_total),
                "total_commission": _float(item.total_commission),
                "clinic_commission": _float(item.clinic_commission),
                "sales_rep": item.sales_rep,
                "invoice_status": item.invoice_status,
                "invoice_no": item.invoice_no,
                "invoice_date": item.invoice_date,
                "payable_date": item.payable_date,
                "payment_date": item.payment_date,
            }
        )
    return pd.DataFrame(rows, columns=TREATMENT_COLUMNS)


def _commissions_df(commissions: Iterable[TreatmentCommission]) -> pd.DataFrame:
    rows = []
    for item in commissions:
        rows.append(
            {
                "commission_id": item.id,
                "treatment_id": item.treatment_id,
                "sales_rep_id": item.sales_rep_id,
                "sales_rep": item.sales_rep_name,
                "commission_rate": _float(item.commission_rate),
                "commission_amount": _float(item.commission_amount),
            }
        )
    return pd.DataFrame(rows)


def _invoices_df(invoices: Iterable[Invoice]) -> pd.DataFrame:
    rows = []
    for item in invoices:
        rows.append(
            {
                "invoice_id": item.id,
                "invoice_no": item.invoice_no,
                "status": item.status,
                "invoice_date": item.invoice_date,
                "payable_date": item.payable_date,
                "patient_name": item.patient_name,
                "sales_rep": item.sales_rep,
                "provider": item.provider,
                "graft": item.graft,
                "product_code": item.product_code,
                "size": _float(item.size),
                "total_invoice": _float(item.total_invoice),
                "rep_commission": _float(item.rep_commission),
                "clinic_commission": _float(item.clinic_commission),
            }
        )
    return pd.DataFrame(rows)


def _payments_df(payments: Iterable[CommissionPayment]) -> pd.DataFrame:
    rows = []
    for item in payments:
        rows.append(
            {
                "sales_rep": item.sales_rep,
                "period_start": item.period_start,
                "period_end": item.period_end,
                "date_paid": item.date_paid,
                "reference": item.reference,
                "recorded_by": item.recorded_by,
            }
        )
    return pd.DataFrame(rows)


def export_full_workbook(db: Session) -> bytes:
    """Return an XLSX workbook (bytes) with all key clinic tables."""

    reps = db.query(SalesRep).order_by(SalesRep.name).all()
    patients = db.query(Patient).order_by(Patient.last_name, Patient.first_name).all()
    treatments = (
        db.query(Treatment)
        .options(selectinload(Treatment.patient))
        .order_by(Treatment.treatment_date, Treatment.id)
        .all()
    )
    commissions = db.query(TreatmentCommission).order_by(TreatmentCommission.treatment_id).all()
    invoices = db.query(Invoice).order_by(Invoice.invoice_date).all()
    payments = db.query(CommissionPayment).order_by(CommissionPayment.period_start).all()

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        _reps_df(reps).to_excel(writer, sheet_name="SalesReps", index=False)
        _patients_df(patients).to_excel(writer, sheet_name="Patients", index=False)
        _treatments_df(treatments).to_excel(writer, sheet_name="Treatments", index=False)
        _commissions_df(commissions).to_excel(writer, sheet_name="TreatmentCommissions", index=False)
        _invoices_df(invoices).to_excel(writer, sheet_name="Invoices", index=False)
        _payments_df(payments).to_excel(writer, sheet_name="CommissionPayments", index=False)

    buffer.seek(0)
    return buffer.getvalue()
