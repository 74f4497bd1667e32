"""Invoice dashboard metrics and the standalone invoice ledger."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_current_user, scoped_rep
from woundcare.exporting import export_filename, invoices_csv
from woundcare.schemas import InvoiceCreate, InvoiceMetricsRead, InvoiceRead, InvoiceUpdate
from woundcare.services import TreatmentService

router = APIRouter(prefix="/api/invoices", tags=["Invoices"])


@router.get("/metrics", response_model=InvoiceMetricsRead)
def invoice_metrics(
    start: Optional[date] = None,
    end: Optional[date] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Outstanding, overdue and paid figures over treatment invoices."""
    return TreatmentService(db).invoice_metrics(sales_rep=scoped_rep(user), start=start, end=end).as_dict()


@router.get("", response_model=List[InvoiceRead])
def list_invoices(
    status: Optional[str] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return crud.list_invoices(db, sales_rep=scoped_rep(user), status=status)


@router.get("/export")
def export_invoices(
    status: Optional[str] = None,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> StreamingResponse:
    invoices = crud.list_invoices(db, sales_rep=scoped_rep(user), status=status)
    csv_bytes = invoices_csv(invoices).encode("utf-8-sig")
    response = StreamingResponse(iter([csv_bytes]), media_type="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={export_filename('invoices')}"
    return response


@router.post("", response_model=InvoiceRead, status_code=201)
def create_invoice(payload: InvoiceCreate, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    try:
        return crud.create_invoice(db, payload)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))


def _get_visible_invoice(db: Session, invoice_id: int, user: User):
    invoice = crud.get_invoice(db, invoice_id)
    visible = user.visible_rep()
    if invoice is None or (visible is not None and invoice.sales_rep != visible):
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


@router.put("/{invoice_id}", response_model=InvoiceRead)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    invoice = _get_visible_invoice(db, invoice_id, user)
    try:
        return crud.update_invoice(db, invoice, payload)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{invoice_id}", status_code=204)
def delete_invoice(invoice_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    invoice = _get_visible_invoice(db, invoice_id, user)
    crud.delete_invoice(db, invoice)
    return Response(status_code=204)
