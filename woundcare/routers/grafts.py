"""Graft product catalog."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from woundcare.auth import User
from woundcare.core.grafts import GRAFT_OPTIONS, active_grafts
from woundcare.dependencies import get_current_user
from woundcare.schemas import GraftRead

router = APIRouter(prefix="/api/grafts", tags=["Grafts"])


@router.get("", response_model=List[GraftRead])
def list_grafts(include_inactive: bool = False, user: User = Depends(get_current_user)):
    return list(GRAFT_OPTIONS) if include_inactive else active_grafts()
