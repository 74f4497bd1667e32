from woundcare.exporting.csv_export import (
    commission_periods_csv,
    commission_report_csv,
    export_filename,
    invoices_csv,
    treatment_invoices_csv,
)
from woundcare.exporting.xlsx import export_full_workbook

__all__ = [
    "commission_periods_csv",
    "commission_report_csv",
    "export_filename",
    "export_full_workbook",
    "invoices_csv",
    "treatment_invoices_csv",
]
