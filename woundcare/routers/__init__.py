"""Router package exports."""
from . import (
    auth,
    commissions,
    dashboard,
    grafts,
    invoices,
    patients,
    pipeline_notes,
    referrals,
    sales_reps,
    treatments,
)

__all__ = [
    "auth",
    "commissions",
    "dashboard",
    "grafts",
    "invoices",
    "patients",
    "pipeline_notes",
    "referrals",
    "sales_reps",
    "treatments",
]
