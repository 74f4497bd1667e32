"""Referral intake and the kanban board."""
from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_current_user, scoped_rep
from woundcare.models import KANBAN_STATUS_ENUM
from woundcare.schemas import ReferralCreate, ReferralRead, ReferralStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/referrals", tags=["Referrals"])


@router.get("", response_model=List[ReferralRead])
def list_referrals(
    include_archived: bool = False,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return crud.list_referrals(db, sales_rep=scoped_rep(user), include_archived=include_archived)


@router.get("/board", response_model=Dict[str, List[ReferralRead]])
def referral_board(db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return crud.referral_board(db, sales_rep=scoped_rep(user))


@router.post("", response_model=ReferralRead, status_code=201)
def create_referral(payload: ReferralCreate, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    visible = user.visible_rep()
    if visible is not None:
        payload.sales_rep = visible
    return crud.create_referral(db, payload)


@router.patch("/{referral_id}/status", response_model=ReferralRead)
def update_referral_status(
    referral_id: int,
    payload: ReferralStatusUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    """Move a referral card to another kanban column."""
    status = payload.kanban_status.strip().lower()
    if status not in KANBAN_STATUS_ENUM:
        raise HTTPException(status_code=400, detail=f"Invalid kanban status: {payload.kanban_status}")

    referral = crud.get_referral(db, referral_id)
    visible = user.visible_rep()
    if referral is None or (visible is not None and referral.sales_rep != visible):
        raise HTTPException(status_code=404, detail="Referral not found")

    previous = referral.kanban_status
    updated = crud.update_referral_status(db, referral, status)
    logger.info("Referral %s moved from %s to %s", referral_id, previous, status)
    return updated
