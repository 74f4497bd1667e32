"""User accounts for application access."""
from __future__ import annotations

from datetime import datetime

import bcrypt
from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from woundcare.database import Base

ROLE_ENUM = ("admin", "sales_rep")


class User(Base):
    """A clinic staff member or sales representative who can sign in."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), default="sales_rep", nullable=False)
    # Links a sales_rep login to the SalesRep.name used on patients and treatments
    sales_rep_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.now, nullable=False)
    is_locked: Mapped[bool] = mapped_column(default=False, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    failed_login_count: Mapped[int] = mapped_column(default=0, nullable=False)
    last_failed_login: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    def verify_password(self, password: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), self.password_hash.encode("utf-8"))

    @classmethod
    def create_user(
        cls,
        username: str,
        password: str,
        role: str = "sales_rep",
        sales_rep_name: str | None = None,
    ) -> User:
        return cls(
            username=username,
            password_hash=cls.hash_password(password),
            role=role,
            sales_rep_name=sales_rep_name,
        )

    def is_admin(self) -> bool:
        return self.role == "admin"

    def visible_rep(self) -> str | None:
        """Rep name this user is restricted to, or None for full visibility."""
        if self.is_admin():
            return None
        return self.sales_rep_name or ""
