"""Shared FastAPI dependencies."""
from __future__ import annotations

from pathlib import Path

from fastapi import Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from woundcare.auth import User
from woundcare.core.formatting import format_currency, format_display_date, format_display_datetime
from woundcare.database import get_session

TEMPLATES_PATH = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_PATH))

templates.env.filters["money"] = format_currency
templates.env.filters["display_date"] = format_display_date
templates.env.filters["display_datetime"] = format_display_datetime


def get_current_user(request: Request, db: Session = Depends(get_session)) -> User:
    """Resolve the signed-in user from the session cookie."""
    user_id = request.cookies.get("user_id")
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_pk = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.get(User, user_pk)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_admin_user(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin():
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def scoped_rep(user: User, requested: str | None = None) -> str | None:
    """Rep name a query is limited to.

    Admins may narrow to any rep; sales reps always see only their own rows.
    """
    visible = user.visible_rep()
    if visible is None:
        return requested or None
    return visible
