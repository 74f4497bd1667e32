"""Load treatment commission rows from a CSV or Excel sheet."""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pandas as pd
from dateutil import parser as date_parser

from woundcare.core.billing import commission_amount, compute_financials, quantize_money, to_decimal
from woundcare.core.commission_periods import CommissionRecord

CANONICAL_COLUMNS = {
    "sales rep": "sales_rep",
    "invoice no": "invoice_no",
    "invoice no.": "invoice_no",
    "patient": "patient_name",
    "invoice date": "invoice_date",
    "treatment date": "treatment_date",
    "wound size": "wound_size",
    "price per sq cm": "price_per_sq_cm",
    "commission rate": "commission_rate",
    "commission amount": "commission_amount",
}

REQUIRED_COLUMNS = ("sales_rep", "commission_rate")


def load_sheet(input_path: Path) -> pd.DataFrame:
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    ext = input_path.suffix.lower()
    if ext == ".csv":
        df = pd.read_csv(input_path)
    elif ext in {".xls", ".xlsx"}:
        df = pd.read_excel(input_path)
    else:
        raise ValueError("Unsupported input file type. Provide .csv or .xlsx")
    return normalize_columns(df)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Rename known headers to snake_case and check the required ones exist."""
    rename_map = {}
    for column in df.columns:
        key = str(column).strip().lower()
        if key in CANONICAL_COLUMNS:
            rename_map[column] = CANONICAL_COLUMNS[key]
    df = df.rename(columns=rename_map)

    missing = [name for name in REQUIRED_COLUMNS if name not in df.columns]
    if missing:
        raise ValueError(f"Input missing required columns: {', '.join(missing)}")
    has_amount = "commission_amount" in df.columns
    has_inputs = "wound_size" in df.columns and "price_per_sq_cm" in df.columns
    if not (has_amount or has_inputs):
        raise ValueError("Input needs either a Commission Amount column or Wound Size and Price Per Sq Cm columns")
    return df


def parse_date(value) -> Optional[date]:
    if value is None or pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, TypeError, OverflowError):
        return None


def _cell(row: pd.Series, name: str):
    value = row.get(name)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    return value


def parse_records(df: pd.DataFrame) -> List[CommissionRecord]:
    """Turn sheet rows into commission records.

    A row without a Commission Amount has it derived from wound size, unit
    price and rate with the same math the web app uses. Rows without a rep
    name are skipped.
    """
    records: List[CommissionRecord] = []
    for index, row in df.iterrows():
        rep = _cell(row, "sales_rep")
        if rep is None or not str(rep).strip():
            continue
        rate = to_decimal(_cell(row, "commission_rate")) or Decimal("0")
        financials = compute_financials(
            to_decimal(_cell(row, "wound_size")),
            to_decimal(_cell(row, "price_per_sq_cm")),
        )
        amount = to_decimal(_cell(row, "commission_amount"))
        if amount is None:
            amount = commission_amount(financials.invoice_total, rate)
        invoice_no = _cell(row, "invoice_no")
        patient = _cell(row, "patient_name")
        records.append(
            CommissionRecord(
                sales_rep=str(rep).strip(),
                commission_amount=quantize_money(amount),
                commission_rate=rate,
                treatment_id=int(index) + 2,
                invoice_no=str(invoice_no) if invoice_no is not None else None,
                patient_name=str(patient) if patient is not None else None,
                invoice_total=financials.invoice_total,
                invoice_date=parse_date(_cell(row, "invoice_date")),
                treatment_date=parse_date(_cell(row, "treatment_date")),
            )
        )
    return records
