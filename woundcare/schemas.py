"""Pydantic schemas for API requests and responses."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from woundcare.models import (
    INVOICE_STATUS_ENUM,
    KANBAN_STATUS_ENUM,
    PATIENT_STATUS_ENUM,
    TREATMENT_STATUS_ENUM,
)


class CamelModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _quantize(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _require_text(value: Any, info: ValidationInfo) -> str:
    label = info.field_name.replace("_", " ").capitalize()
    if value is None:
        raise ValueError(f"{label} is required.")
    text = str(value).strip()
    if not text:
        raise ValueError(f"{label} cannot be empty.")
    return text


# --- Sales reps ---


class SalesRepBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=200)
    commission_rate: Decimal = Field(Decimal("10.00"), ge=0, le=100)
    is_active: bool = True

    @field_validator("name", mode="before")
    def strip_name(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @field_validator("email", mode="before")
    def blank_email_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator("commission_rate")
    def quantize_rate(cls, value: Decimal) -> Decimal:
        return _quantize(value)


class SalesRepCreate(SalesRepBase):
    pass


class SalesRepUpdate(SalesRepBase):
    pass


class SalesRepRead(SalesRepBase):
    id: int
    created_at: datetime
    updated_at: datetime


# --- Patients ---


class PatientBase(CamelModel):
    first_name: str = Field(..., max_length=100)
    last_name: str = Field(..., max_length=100)
    date_of_birth: date
    phone_number: str = Field(..., max_length=50)
    insurance: str = Field(..., max_length=100)
    custom_insurance: Optional[str] = Field(None, max_length=100)
    referral_source: str = Field(..., max_length=200)
    sales_rep: str = Field(..., max_length=200)
    provider: Optional[str] = Field(None, max_length=200)
    wound_type: Optional[str] = Field(None, max_length=100)
    wound_size: Optional[str] = Field(None, max_length=100)
    patient_status: str = "Evaluation Stage"
    notes: Optional[str] = None

    @field_validator(
        "first_name", "last_name", "phone_number", "insurance", "referral_source", "sales_rep", mode="before"
    )
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @field_validator("patient_status")
    def validate_patient_status(cls, value: str) -> str:
        for status in PATIENT_STATUS_ENUM:
            if status.lower() == value.strip().lower():
                return status
        raise ValueError(f"Patient status must be one of: {', '.join(PATIENT_STATUS_ENUM)}.")


class PatientCreate(PatientBase):
    pass


class PatientUpdate(PatientBase):
    pass


class PatientRead(PatientBase):
    id: int
    wound_area: float = 0.0
    created_at: datetime
    updated_at: datetime


# --- Referrals ---


class ReferralCreate(CamelModel):
    patient_name: str = Field(..., max_length=200)
    referral_date: Optional[date] = None
    referral_source: Optional[str] = Field(None, max_length=200)
    patient_insurance: Optional[str] = Field(None, max_length=100)
    estimated_wound_size: Optional[str] = Field(None, max_length=100)
    sales_rep: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    kanban_status: str = "new"

    @field_validator("patient_name", mode="before")
    def strip_patient_name(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @field_validator("kanban_status")
    def validate_kanban_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in KANBAN_STATUS_ENUM:
            raise ValueError(f"Kanban status must be one of: {', '.join(KANBAN_STATUS_ENUM)}.")
        return normalized


class ReferralRead(CamelModel):
    id: int
    patient_name: str
    referral_date: date
    referral_source: Optional[str]
    patient_insurance: Optional[str]
    estimated_wound_size: Optional[str]
    sales_rep: Optional[str]
    notes: Optional[str]
    kanban_status: str
    is_archived: bool
    patient_id: Optional[int]
    created_at: datetime
    updated_at: datetime


class ReferralStatusUpdate(CamelModel):
    # Membership is checked by the router so an unknown column is a 400
    kanban_status: str


# --- Treatments ---


class CommissionAssignmentIn(CamelModel):
    sales_rep_id: int
    commission_rate: Decimal = Field(..., ge=0, le=100)

    @field_validator("commission_rate")
    def quantize_rate(cls, value: Decimal) -> Decimal:
        return _quantize(value)


class TreatmentCommissionRead(CamelModel):
    id: int
    treatment_id: int
    sales_rep_id: int
    sales_rep_name: str
    commission_rate: Decimal
    commission_amount: Decimal


def _check_closed_has_payment_date(status: Optional[str], payment_date: Optional[date]) -> None:
    if status is not None and status.strip().lower() == "closed" and payment_date is None:
        raise ValueError("Payment date is required when the invoice status is closed.")


class TreatmentBase(CamelModel):
    skin_graft_type: str = Field(..., max_length=200)
    q_code: Optional[str] = Field(None, max_length=20)
    wound_size_at_treatment: Decimal = Field(..., ge=0)
    price_per_sq_cm: Optional[Decimal] = Field(None, ge=0)
    treatment_date: date
    treatment_number: Optional[int] = Field(None, ge=1)
    status: str = "active"
    acting_provider: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = None
    invoice_status: str = "open"
    invoice_date: Optional[date] = None
    invoice_no: Optional[str] = Field(None, max_length=50)
    payable_date: Optional[date] = None
    payment_date: Optional[date] = None
    sales_rep: Optional[str] = Field(None, max_length=200)
    sales_rep_commission_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    commissions: List[CommissionAssignmentIn] = Field(default_factory=list)

    @field_validator("skin_graft_type", mode="before")
    def strip_graft(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in TREATMENT_STATUS_ENUM:
            raise ValueError("Treatment status must be active, completed, or cancelled.")
        return normalized

    @field_validator("invoice_status")
    def validate_invoice_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in INVOICE_STATUS_ENUM:
            raise ValueError("Invoice status must be open, payable, or closed.")
        return normalized

    @model_validator(mode="after")
    def closed_requires_payment_date(self):
        _check_closed_has_payment_date(self.invoice_status, self.payment_date)
        return self


class TreatmentCreate(TreatmentBase):
    patient_id: int


class TreatmentUpdate(TreatmentBase):
    pass


class TreatmentRead(CamelModel):
    id: int
    patient_id: int
    patient_name: Optional[str] = None
    treatment_number: int
    skin_graft_type: str
    q_code: Optional[str]
    wound_size_at_treatment: Optional[Decimal]
    price_per_sq_cm: Decimal
    total_revenue: Decimal
    invoice_total: Decimal
    total_commission: Decimal
    clinic_commission: Decimal
    sales_rep: str
    sales_rep_commission_rate: Decimal
    sales_rep_commission: Decimal
    treatment_date: date
    status: str
    acting_provider: Optional[str]
    notes: Optional[str]
    invoice_status: str
    invoice_date: Optional[date]
    invoice_no: Optional[str]
    payable_date: Optional[date]
    payment_date: Optional[date]
    is_overdue: bool = False
    days_outstanding: Optional[int] = None
    commissions: List[TreatmentCommissionRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class InvoiceStatusUpdate(CamelModel):
    invoice_status: str
    payment_date: Optional[date] = None

    @model_validator(mode="after")
    def closed_requires_payment_date(self):
        _check_closed_has_payment_date(self.invoice_status, self.payment_date)
        return self


# --- Legacy invoices ---


class InvoiceBase(CamelModel):
    status: str = "open"
    invoice_date: date
    invoice_no: str = Field(..., max_length=50)
    payable_date: Optional[date] = None
    treatment_start_date: date
    patient_name: str = Field(..., max_length=200)
    sales_rep: str = Field(..., max_length=200)
    provider: str = Field(..., max_length=200)
    graft: str = Field(..., max_length=200)
    product_code: Optional[str] = Field(None, max_length=20)
    size: Decimal = Field(..., ge=0)

    @field_validator("invoice_no", "patient_name", "sales_rep", "provider", "graft", mode="before")
    def strip_required_strings(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @field_validator("status")
    def validate_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in INVOICE_STATUS_ENUM:
            raise ValueError("Status must be open, payable, or closed.")
        return normalized

    @field_validator("size")
    def quantize_size(cls, value: Decimal) -> Decimal:
        return _quantize(value)


class InvoiceCreate(InvoiceBase):
    pass


class InvoiceUpdate(InvoiceBase):
    pass


class InvoiceRead(CamelModel):
    id: int
    status: str
    invoice_date: date
    invoice_no: str
    payable_date: date
    treatment_start_date: date
    patient_name: str
    sales_rep: str
    provider: str
    graft: str
    product_code: str
    size: Decimal
    total_billable: Decimal
    total_invoice: Decimal
    total_commission: Decimal
    rep_commission: Decimal
    clinic_commission: Decimal
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime


class InvoiceMetricsRead(CamelModel):
    outstanding_total: Decimal
    outstanding_count: int
    overdue_total: Decimal
    overdue_count: int
    paid_this_month: Decimal
    paid_this_month_count: int
    average_days_to_payment: int
    total_count: int


# --- Commission reports and periods ---


class CommissionReportRow(CamelModel):
    treatment_id: int
    invoice_no: Optional[str]
    invoice_status: str
    patient_name: Optional[str]
    sales_rep_id: Optional[int]
    sales_rep: str
    commission_rate: Decimal
    commission_amount: Decimal
    invoice_total: Decimal
    paid_at: Optional[date]
    is_legacy: bool


class CommissionRepSummary(CamelModel):
    sales_rep: str
    total_commission: Decimal
    invoice_count: int


class CommissionReportSummary(CamelModel):
    total_commission: Decimal
    total_invoices: int
    unique_reps: int
    reps: List[CommissionRepSummary] = Field(default_factory=list)


class CommissionRecordRead(CamelModel):
    treatment_id: Optional[int]
    invoice_no: Optional[str]
    patient_name: Optional[str]
    invoice_date: Optional[date]
    treatment_date: Optional[date]
    invoice_total: Decimal
    commission_rate: Decimal
    commission_amount: Decimal


class CommissionPeriodRead(CamelModel):
    sales_rep: str
    period_start: date
    period_end: date
    payment_date: date
    total_commission: Decimal
    invoice_count: int
    date_paid: Optional[date] = None
    reference: Optional[str] = None
    records: List[CommissionRecordRead] = Field(default_factory=list)


class CommissionPaymentUpsert(CamelModel):
    sales_rep: str = Field(..., max_length=200)
    period_start: date
    period_end: date
    date_paid: date
    reference: Optional[str] = Field(None, max_length=200)

    @field_validator("sales_rep", mode="before")
    def strip_rep(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)

    @model_validator(mode="after")
    def period_in_order(self):
        if self.period_start > self.period_end:
            raise ValueError("Period start must not be after period end.")
        return self


class CommissionPaymentRead(CamelModel):
    id: int
    sales_rep: str
    period_start: date
    period_end: date
    date_paid: date
    reference: Optional[str]
    recorded_by: Optional[str]


# --- Grafts ---


class GraftRead(CamelModel):
    manufacturer: str
    name: str
    q_code: str
    asp: Decimal
    year: int
    quarter: str
    is_active: bool


# --- Pipeline notes ---


class PipelineNoteCreate(CamelModel):
    content: str
    patient_id: Optional[int] = None
    sort_order: Optional[int] = None

    @field_validator("content", mode="before")
    def strip_content(cls, value: Any, info: ValidationInfo) -> str:
        return _require_text(value, info)


class PipelineNoteUpdate(CamelModel):
    content: Optional[str] = None
    patient_id: Optional[int] = None
    sort_order: Optional[int] = None


class PipelineNoteRead(CamelModel):
    id: int
    user_id: int
    patient_id: Optional[int]
    content: str
    sort_order: int
    created_at: datetime
    updated_at: datetime


class PipelineNoteOrder(CamelModel):
    id: int
    sort_order: int


class PipelineNoteReorder(CamelModel):
    items: List[PipelineNoteOrder]


# --- Current user ---


class MeRead(CamelModel):
    id: int
    username: str
    role: str
    sales_rep_name: Optional[str]
