"""Sales representative management."""
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_admin_user, get_current_user
from woundcare.schemas import SalesRepCreate, SalesRepRead, SalesRepUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sales-reps", tags=["Sales Reps"])


def _get_or_404(db: Session, rep_id: int):
    rep = crud.get_sales_rep(db, rep_id)
    if rep is None:
        raise HTTPException(status_code=404, detail="Sales rep not found")
    return rep


@router.get("", response_model=List[SalesRepRead])
def list_sales_reps(
    active: bool = False,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return crud.list_sales_reps(db, active_only=active)


@router.post("", response_model=SalesRepRead, status_code=201)
def create_sales_rep(
    payload: SalesRepCreate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    try:
        rep = crud.create_sales_rep(db, payload)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A sales rep with that name or email already exists")
    logger.info("Sales rep %s created by %s", rep.name, admin.username)
    return rep


@router.get("/{rep_id}", response_model=SalesRepRead)
def get_sales_rep(rep_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return _get_or_404(db, rep_id)


@router.put("/{rep_id}", response_model=SalesRepRead)
def update_sales_rep(
    rep_id: int,
    payload: SalesRepUpdate,
    db: Session = Depends(get_session),
    admin: User = Depends(get_admin_user),
):
    rep = _get_or_404(db, rep_id)
    try:
        return crud.update_sales_rep(db, rep, payload)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A sales rep with that name or email already exists")


@router.delete("/{rep_id}", response_model=SalesRepRead)
def deactivate_sales_rep(rep_id: int, db: Session = Depends(get_session), admin: User = Depends(get_admin_user)):
    rep = _get_or_404(db, rep_id)
    logger.info("Sales rep %s deactivated by %s", rep.name, admin.username)
    return crud.deactivate_sales_rep(db, rep)
