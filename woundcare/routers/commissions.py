"""Commission reports, half-month payout periods and payout records."""
from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.core.commission_periods import CommissionPeriod
from woundcare.database import get_session
from woundcare.dependencies import get_admin_user, get_current_user, scoped_rep
from woundcare.exporting import commission_periods_csv, commission_report_csv, export_filename
from woundcare.schemas import (
    CommissionPaymentRead,
    CommissionPaymentUpsert,
    CommissionPeriodRead,
    CommissionReportRow,
    CommissionReportSummary,
)
from woundcare.services import REPORT_RANGES, TreatmentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Commissions"])


def _csv_response(content: str, prefix: str) -> StreamingResponse:
    csv_bytes = content.encode("utf-8-sig")
    response = StreamingResponse(iter([csv_bytes]), media_type="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={export_filename(prefix)}"
    return response


def _report_rows(
    db: Session,
    user: User,
    range_name: str,
    start: Optional[date],
    end: Optional[date],
    sales_rep: Optional[str],
) -> list[dict]:
    if range_name not in REPORT_RANGES:
        raise HTTPException(status_code=400, detail=f"Invalid range: {range_name}")
    return TreatmentService(db).commission_report_rows(
        range_name=range_name,
        start=start,
        end=end,
        sales_rep=scoped_rep(user, sales_rep),
    )


@router.get("/api/commission-reports", response_model=List[CommissionReportRow])
def commission_reports(
    range_name: str = Query("all", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return _report_rows(db, user, range_name, start, end, sales_rep)


@router.get("/api/commission-reports/summary", response_model=CommissionReportSummary)
def commission_report_summary(
    range_name: str = Query("all", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    rows = _report_rows(db, user, range_name, start, end, sales_rep)
    return TreatmentService.summarize_report(rows)


@router.get("/api/commission-reports/export")
def export_commission_report(
    range_name: str = Query("all", alias="range"),
    start: Optional[date] = None,
    end: Optional[date] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> StreamingResponse:
    rows = _report_rows(db, user, range_name, start, end, sales_rep)
    return _csv_response(commission_report_csv(rows), "commission-report")


def _period_payload(period: CommissionPeriod, payment) -> dict:
    return {
        "sales_rep": period.sales_rep,
        "period_start": period.period_start,
        "period_end": period.period_end,
        "payment_date": period.payment_date,
        "total_commission": period.total_commission,
        "invoice_count": period.invoice_count,
        "date_paid": payment.date_paid if payment is not None else None,
        "reference": payment.reference if payment is not None else None,
        "records": period.records,
    }


def _periods(db: Session, user: User, year: Optional[int], month: Optional[int], sales_rep: Optional[str]):
    if month is not None and not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    return TreatmentService(db).commission_periods(year, month, scoped_rep(user, sales_rep))


@router.get("/api/commission-periods", response_model=List[CommissionPeriodRead])
def commission_periods(
    year: Optional[int] = None,
    month: Optional[int] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Half-month payout windows for a month (the current one by default)."""
    return [_period_payload(period, payment) for period, payment in _periods(db, user, year, month, sales_rep)]


@router.get("/api/commission-periods/export")
def export_commission_periods(
    year: Optional[int] = None,
    month: Optional[int] = None,
    sales_rep: Optional[str] = Query(None, alias="salesRep"),
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> StreamingResponse:
    periods = _periods(db, user, year, month, sales_rep)
    return _csv_response(commission_periods_csv(periods), "commission-periods")


@router.put("/api/commission-payments", response_model=CommissionPaymentRead)
def record_commission_payment(
    payload: CommissionPaymentUpsert,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    return crud.upsert_commission_payment(db, payload, recorded_by=admin.username)


@router.delete("/api/commission-payments", status_code=204)
def delete_commission_payment(
    sales_rep: str = Query(..., alias="salesRep"),
    period_start: date = Query(..., alias="periodStart"),
    period_end: date = Query(..., alias="periodEnd"),
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    payment = crud.get_commission_payment(db, sales_rep, period_start, period_end)
    if payment is None:
        raise HTTPException(status_code=404, detail="Commission payment not found")
    crud.delete_commission_payment(db, payment)
    logger.info("Commission payment for %s %s..%s removed by %s", sales_rep, period_start, period_end, admin.username)
    return Response(status_code=204)
