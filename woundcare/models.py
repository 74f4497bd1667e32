"""SQLAlchemy models for the wound care application."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from woundcare.auth import User  # noqa: F401  (pipeline notes reference users.id)
from woundcare.core.billing import is_overdue
from woundcare.core.grafts import parse_wound_size
from woundcare.core.metrics import days_outstanding
from woundcare.database import Base

INVOICE_STATUS_ENUM = ("open", "payable", "closed")
TREATMENT_STATUS_ENUM = ("active", "completed", "cancelled")
PATIENT_STATUS_ENUM = (
    "Evaluation Stage",
    "IVR Requested",
    "IVR Approved",
    "IVR Denied",
    "In Treatment",
    "Completed",
)
TREATABLE_PATIENT_STATUSES = ("IVR Approved", "In Treatment")
KANBAN_STATUS_ENUM = ("new", "medicare", "advantage_plans", "patient_created")


class SalesRep(Base):
    __tablename__ = "sales_reps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("10.00"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_sales_reps_rate_range"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    phone_number: Mapped[str] = mapped_column(String(50), nullable=False)
    insurance: Mapped[str] = mapped_column(String(100), nullable=False)
    custom_insurance: Mapped[str | None] = mapped_column(String(100), nullable=True)
    referral_source: Mapped[str] = mapped_column(String(200), nullable=False)
    sales_rep: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    provider: Mapped[str | None] = mapped_column(String(200), nullable=True)
    wound_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    wound_size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    patient_status: Mapped[str] = mapped_column(String(50), nullable=False, default="Evaluation Stage")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    treatments: Mapped[list["Treatment"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan", order_by="Treatment.treatment_number"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def wound_area(self) -> float:
        return parse_wound_size(self.wound_size)


class Referral(Base):
    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    referral_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)
    referral_source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    patient_insurance: Mapped[str | None] = mapped_column(String(100), nullable=True)
    estimated_wound_size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sales_rep: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    kanban_status: Mapped[str] = mapped_column(String(30), nullable=False, default="new")
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    patient_id: Mapped[int | None] = mapped_column(ForeignKey("patients.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "kanban_status IN ('new', 'medicare', 'advantage_plans', 'patient_created')",
            name="ck_referrals_kanban_status_valid",
        ),
    )


class Treatment(Base):
    __tablename__ = "patient_treatments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    treatment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    skin_graft_type: Mapped[str] = mapped_column(String(200), nullable=False)
    q_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    wound_size_at_treatment: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    price_per_sq_cm: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    invoice_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    clinic_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    # Legacy single-rep path, kept for treatments recorded before multi-rep assignments
    sales_rep: Mapped[str] = mapped_column(String(200), nullable=False)
    sales_rep_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    sales_rep_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    treatment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    acting_provider: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    invoice_status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    invoice_no: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payable_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    patient: Mapped[Patient] = relationship(back_populates="treatments")
    commissions: Mapped[list["TreatmentCommission"]] = relationship(
        back_populates="treatment",
        cascade="all, delete-orphan",
        order_by="TreatmentCommission.sales_rep_name",
    )

    @property
    def patient_name(self) -> str | None:
        return self.patient.full_name if self.patient is not None else None

    @property
    def is_overdue(self) -> bool:
        return is_overdue(self.payable_date, self.invoice_status)

    @property
    def days_outstanding(self) -> int | None:
        return days_outstanding(self.payable_date)

    __table_args__ = (
        CheckConstraint(
            "invoice_status IN ('open', 'payable', 'closed')",
            name="ck_treatments_invoice_status_valid",
        ),
        CheckConstraint(
            "(invoice_status = 'closed' AND payment_date IS NOT NULL) "
            "OR (invoice_status != 'closed' AND payment_date IS NULL)",
            name="ck_treatments_payment_date_when_closed",
        ),
        Index("idx_treatments_invoice_status", "invoice_status"),
    )


class TreatmentCommission(Base):
    __tablename__ = "treatment_commissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    treatment_id: Mapped[int] = mapped_column(
        ForeignKey("patient_treatments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sales_rep_id: Mapped[int] = mapped_column(ForeignKey("sales_reps.id", ondelete="CASCADE"), nullable=False)
    sales_rep_name: Mapped[str] = mapped_column(String(200), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    treatment: Mapped[Treatment] = relationship(back_populates="commissions")

    __table_args__ = (
        UniqueConstraint("treatment_id", "sales_rep_id", name="uq_treatment_commission_rep"),
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_commission_rate_range"),
    )


class Invoice(Base):
    """Standalone invoice entered by hand; not linked to treatments."""

    __tablename__ = "invoices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    invoice_no: Mapped[str] = mapped_column(String(50), nullable=False)
    payable_date: Mapped[date] = mapped_column(Date, nullable=False)
    treatment_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sales_rep: Mapped[str] = mapped_column(String(200), nullable=False)
    provider: Mapped[str] = mapped_column(String(200), nullable=False)
    graft: Mapped[str] = mapped_column(String(200), nullable=False)
    product_code: Mapped[str] = mapped_column(String(20), nullable=False)
    size: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_billable: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_invoice: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rep_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    clinic_commission: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("status IN ('open', 'payable', 'closed')", name="ck_invoices_status_valid"),
        CheckConstraint("size >= 0", name="ck_invoices_size_nonnegative"),
    )

    @property
    def is_overdue(self) -> bool:
        return is_overdue(self.payable_date, self.status)


class CommissionPayment(Base):
    """Records that a rep's half-month commission period was paid out."""

    __tablename__ = "commission_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sales_rep: Mapped[str] = mapped_column(String(200), nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    date_paid: Mapped[date] = mapped_column(Date, nullable=False)
    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recorded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("sales_rep", "period_start", "period_end", name="uq_commission_payment_period"),
        CheckConstraint("period_start <= period_end", name="ck_commission_payment_period_order"),
    )


class PipelineNote(Base):
    __tablename__ = "pipeline_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    patient_id: Mapped[int | None] = mapped_column(ForeignKey("patients.id", ondelete="SET NULL"), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now, nullable=False
    )


class LoginAttempt(Base):
    __tablename__ = "login_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(default=False, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False, index=True)

    __table_args__ = (
        Index("idx_failed_attempts", "username", "success", "attempted_at"),
    )
