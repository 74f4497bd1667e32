"""Account lockout and login attempt tracking."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from woundcare.auth import User
from woundcare.core.formatting import format_display_datetime
from woundcare.models import LoginAttempt

logger = logging.getLogger(__name__)

MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION_MINUTES = 15


def _get_user(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalars().first()


def record_login_attempt(
    db: Session,
    username: str,
    success: bool,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    db.add(
        LoginAttempt(
            username=username,
            success=success,
            ip_address=ip_address,
            user_agent=user_agent,
        )
    )
    db.commit()


def recent_failed_attempts(db: Session, username: str, minutes: int = LOCKOUT_DURATION_MINUTES) -> int:
    cutoff = datetime.now() - timedelta(minutes=minutes)
    stmt = select(func.count(LoginAttempt.id)).where(
        LoginAttempt.username == username,
        LoginAttempt.success.is_(False),
        LoginAttempt.attempted_at >= cutoff,
    )
    return int(db.execute(stmt).scalar_one() or 0)


def is_account_locked(db: Session, username: str) -> tuple[bool, str | None]:
    """Return (locked, reason). An expired lock is lifted as a side effect."""
    user = _get_user(db, username)
    if user is None or not user.is_locked:
        return False, None

    if user.locked_until and user.locked_until > datetime.now():
        return True, f"Account is locked until {format_display_datetime(user.locked_until)}"

    user.is_locked = False
    user.locked_until = None
    user.failed_login_count = 0
    db.commit()
    return False, None


def register_failed_login(db: Session, username: str) -> int:
    """Count a failed login and lock the account once the limit is reached.

    Returns the number of attempts left before lockout.
    """
    user = _get_user(db, username)
    if user is None:
        return MAX_FAILED_ATTEMPTS

    user.failed_login_count += 1
    user.last_failed_login = datetime.now()
    if user.failed_login_count >= MAX_FAILED_ATTEMPTS:
        user.is_locked = True
        user.locked_until = datetime.now() + timedelta(minutes=LOCKOUT_DURATION_MINUTES)
        user.failed_login_count = 0
        logger.warning("Locked account %s after %s failed logins", username, MAX_FAILED_ATTEMPTS)
        db.commit()
        return 0
    db.commit()
    return MAX_FAILED_ATTEMPTS - user.failed_login_count


def reset_failed_login(db: Session, username: str) -> None:
    user = _get_user(db, username)
    if user is None:
        return
    user.failed_login_count = 0
    user.last_failed_login = None
    db.commit()


def unlock_account(db: Session, username: str) -> None:
    """Lift a lockout by hand."""
    user = _get_user(db, username)
    if user is None:
        return
    user.is_locked = False
    user.locked_until = None
    user.failed_login_count = 0
    user.last_failed_login = None
    db.commit()
