"""Authentication routes and session management."""
from __future__ import annotations

import os

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_current_user, templates
from woundcare.schemas import MeRead
from woundcare.security import (
    is_account_locked,
    record_login_attempt,
    register_failed_login,
    reset_failed_login,
)

router = APIRouter(tags=["Auth"])

DEFAULT_LANDING = "/dashboard"


def _safe_next(value: str | None) -> str:
    """Only same-site paths are allowed as a post-login destination."""
    if not value or "://" in value or not value.startswith("/") or value.startswith("//"):
        return DEFAULT_LANDING
    return value


@router.get("/login")
def login_page(request: Request):
    return templates.TemplateResponse(
        request, "auth/login.html", {"next": request.query_params.get("next")}
    )


@router.post("/login")
def login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
    next: str | None = Form(default=None),
    db: Session = Depends(get_session),
):
    """Handle the login form with account lockout."""
    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "")

    locked, reason = is_account_locked(db, username)
    if locked:
        record_login_attempt(db, username, False, client_ip, user_agent)
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": f"Account locked due to too many failed login attempts. {reason}", "next": next},
            status_code=403,
        )

    user = db.execute(select(User).where(User.username == username)).scalars().first()
    if user is None or not user.verify_password(password):
        remaining = register_failed_login(db, username)
        record_login_attempt(db, username, False, client_ip, user_agent)
        error = "Invalid username or password"
        if remaining > 0:
            error += f" ({remaining} attempt{'s' if remaining != 1 else ''} remaining)"
        return templates.TemplateResponse(
            request,
            "auth/login.html",
            {"error": error, "attempts_remaining": remaining, "next": next},
            status_code=401,
        )

    reset_failed_login(db, username)
    record_login_attempt(db, username, True, client_ip, user_agent)

    response = RedirectResponse(url=_safe_next(next or request.query_params.get("next")), status_code=303)
    # HTTPS only when the app runs against a production database
    is_production = os.getenv("ENVIRONMENT", "development").lower() == "production"
    response.set_cookie(
        key="user_id",
        value=str(user.id),
        httponly=True,
        path="/",
        secure=is_production,
        samesite="lax",
        max_age=86400,
    )
    return response


@router.get("/logout")
def logout():
    response = RedirectResponse(url="/login", status_code=303)
    response.delete_cookie("user_id")
    return response


@router.get("/api/me", response_model=MeRead)
def me(user: User = Depends(get_current_user)) -> User:
    return user
