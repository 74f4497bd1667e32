"""Commission period CLI.

Reads treatment commission rows from CSV or Excel, groups them into the
twice-monthly payout windows for a month, and writes the periods and their
contributing rows to an Excel workbook and a CSV file.
"""
from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from woundcare.core.commission_periods import CommissionPeriod, build_commission_periods
from woundcare.core.logging import setup_logging
from woundcare.exporting.csv_export import commission_periods_csv
from woundcare.importers.treatment_sheet import load_sheet, parse_records

logger = logging.getLogger("woundcare.cli")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute half-month commission payout periods.")
    parser.add_argument("--month", help="Target month in YYYY-MM format (default: current month).")
    parser.add_argument("--input", required=True, help="Path to treatments CSV or Excel file.")
    parser.add_argument("--out", default="./dist", help="Output directory for generated files (default: ./dist).")
    parser.add_argument("--preview", action="store_true", help="Print the periods to stdout before writing files.")
    return parser.parse_args(argv)


def parse_month(value: Optional[str]) -> tuple[int, int]:
    if not value:
        today = date.today()
        return today.year, today.month
    try:
        year_text, month_text = value.split("-", 1)
        year, month = int(year_text), int(month_text)
    except ValueError as exc:
        raise SystemExit("--month must be provided in YYYY-MM format.") from exc
    if not 1 <= month <= 12:
        raise SystemExit("--month must be provided in YYYY-MM format.")
    return year, month


def periods_frame(periods: Sequence[CommissionPeriod]) -> pd.DataFrame:
    rows = [
        {
            "Sales Rep": p.sales_rep,
            "Period Start": p.period_start,
            "Period End": p.period_end,
            "Payment Date": p.payment_date,
            "Invoices": p.invoice_count,
            "Total Commission": float(p.total_commission),
        }
        for p in periods
    ]
    return pd.DataFrame(
        rows,
        columns=["Sales Rep", "Period Start", "Period End", "Payment Date", "Invoices", "Total Commission"],
    )


def records_frame(periods: Sequence[CommissionPeriod]) -> pd.DataFrame:
    rows = []
    for period in periods:
        for record in period.records:
            rows.append(
                {
                    "Sales Rep": period.sales_rep,
                    "Payment Date": period.payment_date,
                    "Row": record.treatment_id,
                    "Invoice No.": record.invoice_no,
                    "Patient": record.patient_name,
                    "Invoice Date": record.invoice_date,
                    "Treatment Date": record.treatment_date,
                    "Commission Rate": float(record.commission_rate),
                    "Commission Amount": float(record.commission_amount),
                }
            )
    return pd.DataFrame(rows)


def main(argv: Optional[Sequence[str]] = None) -> None:
    setup_logging()
    args = parse_args(argv)
    year, month = parse_month(args.month)

    records = parse_records(load_sheet(Path(args.input)))
    periods = build_commission_periods(records, year, month)

    summary = periods_frame(periods)
    if args.preview:
        print(summary.to_string(index=False) if not summary.empty else "No commission periods for this month.")

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    base_filename = f"commission_periods_{year:04d}_{month:02d}"
    with pd.ExcelWriter(out_dir / f"{base_filename}.xlsx", engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Periods", index=False)
        records_frame(periods).to_excel(writer, sheet_name="Records", index=False)
    (out_dir / f"{base_filename}.csv").write_text(
        commission_periods_csv((period, None) for period in periods), encoding="utf-8"
    )

    total = sum(p.total_commission for p in periods)
    logger.info("Read %s commission rows from %s", len(records), args.input)
    print(f"Built {len(periods)} commission periods for {year:04d}-{month:02d}, total commission USD {total:.2f}.")


if __name__ == "__main__":
    main()
