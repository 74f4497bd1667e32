"""Dashboard routes."""
from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_admin_user, get_current_user, scoped_rep, templates
from woundcare.exporting import export_full_workbook
from woundcare.services import TreatmentService

router = APIRouter(tags=["Dashboard"])


def _camelize(value):
    if isinstance(value, dict):
        return {to_camel(key): _camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_camelize(item) for item in value]
    return value


@router.get("/dashboard")
def dashboard(request: Request, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    rep = scoped_rep(user)
    summary = crud.dashboard_summary(db, sales_rep=rep)
    metrics = TreatmentService(db).invoice_metrics(sales_rep=rep)
    today = date.today()
    return templates.TemplateResponse(
        request,
        "dashboard/index.html",
        {
            "user": user,
            "summary": summary,
            "metrics": metrics,
            "current_month_name": today.strftime("%B"),
            "current_year": today.year,
        },
    )


@router.get("/api/dashboard/metrics")
def dashboard_metrics(db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    """Clinic dashboard summary as JSON. Sales reps only see their own patients."""
    summary = crud.dashboard_summary(db, sales_rep=scoped_rep(user))
    summary["last_updated"] = datetime.now()
    return _camelize(jsonable_encoder(summary))


@router.get("/dashboard/export-xlsx")
def export_dashboard_xlsx(db: Session = Depends(get_session), user: User = Depends(get_admin_user)) -> Response:
    content = export_full_workbook(db)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"woundcare_full_export_{timestamp}.xlsx"
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
