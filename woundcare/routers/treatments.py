"""Treatment recording and the invoice status workflow."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.core.billing import InvoiceStatusError
from woundcare.database import get_session
from woundcare.dependencies import get_current_user, scoped_rep
from woundcare.exporting import export_filename, treatment_invoices_csv
from woundcare.models import Treatment
from woundcare.routers.patients import get_visible_patient
from woundcare.schemas import (
    InvoiceStatusUpdate,
    TreatmentCommissionRead,
    TreatmentCreate,
    TreatmentRead,
    TreatmentUpdate,
)
from woundcare.services import TreatmentError, TreatmentService

router = APIRouter(tags=["Treatments"])


def _get_visible_treatment(db: Session, treatment_id: int, user: User) -> Treatment:
    treatment = crud.get_treatment(db, treatment_id)
    visible = user.visible_rep()
    if treatment is None or (visible is not None and treatment.patient.sales_rep != visible):
        raise HTTPException(status_code=404, detail="Treatment not found")
    return treatment


def _filtered_invoices(
    db: Session,
    user: User,
    search: Optional[str],
    invoice_status: Optional[str],
    sales_rep: Optional[str],
    provider: Optional[str],
    start: Optional[date],
    end: Optional[date],
) -> List[Treatment]:
    try:
        return TreatmentService(db).list_invoices(
            scope_rep=scoped_rep(user),
            search=search,
            status=invoice_status,
            sales_rep=sales_rep,
            provider=provider,
            start=start,
            end=end,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/api/treatments/all", response_model=List[TreatmentRead])
def list_all_treatments(
    search: Optional[str] = None,
    invoice_status: Optional[str] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    provider: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Every treatment the user may see, for the invoice and commission screens.

    invoice_status also accepts "overdue".
    """
    return _filtered_invoices(db, user, search, invoice_status, sales_rep, provider, start, end)


@router.get("/api/treatments/export")
def export_treatment_invoices(
    search: Optional[str] = None,
    invoice_status: Optional[str] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    provider: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> StreamingResponse:
    treatments = _filtered_invoices(db, user, search, invoice_status, sales_rep, provider, start, end)
    csv_bytes = treatment_invoices_csv(treatments).encode("utf-8-sig")
    response = StreamingResponse(iter([csv_bytes]), media_type="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={export_filename('invoices')}"
    return response


@router.get("/api/treatments", response_model=List[TreatmentRead])
def list_treatments(
    patient_id: Optional[int] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    if patient_id is not None:
        get_visible_patient(db, patient_id, user)
    return crud.list_treatments(db, sales_rep=scoped_rep(user), patient_id=patient_id)


@router.post("/api/treatments", response_model=TreatmentRead, status_code=201)
def create_treatment(payload: TreatmentCreate, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    get_visible_patient(db, payload.patient_id, user)
    try:
        return TreatmentService(db).create_treatment(payload)
    except (TreatmentError, InvoiceStatusError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/api/treatments/{treatment_id}", response_model=TreatmentRead)
def get_treatment(treatment_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return _get_visible_treatment(db, treatment_id, user)


@router.put("/api/treatments/{treatment_id}", response_model=TreatmentRead)
def update_treatment(
    treatment_id: int,
    payload: TreatmentUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    treatment = _get_visible_treatment(db, treatment_id, user)
    try:
        return TreatmentService(db).update_treatment(treatment, payload)
    except (TreatmentError, InvoiceStatusError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/api/treatments/{treatment_id}", status_code=204)
def delete_treatment(treatment_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    treatment = _get_visible_treatment(db, treatment_id, user)
    crud.delete_treatment(db, treatment)
    return Response(status_code=204)


@router.patch("/api/treatments/{treatment_id}/invoice-status", response_model=TreatmentRead)
def update_invoice_status(
    treatment_id: int,
    payload: InvoiceStatusUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Move an invoice between open, payable and closed.

    Closing requires paymentDate in the same request; the body is rejected
    with 422 before anything is written when it is missing.
    """
    treatment = _get_visible_treatment(db, treatment_id, user)
    try:
        return TreatmentService(db).set_invoice_status(treatment, payload.invoice_status, payload.payment_date)
    except InvoiceStatusError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/api/treatment-commissions/{treatment_id}", response_model=List[TreatmentCommissionRead])
def list_treatment_commissions(
    treatment_id: int,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    treatment = _get_visible_treatment(db, treatment_id, user)
    return crud.list_treatment_commissions(db, treatment.id)
