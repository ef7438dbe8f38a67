"""
SplitLedger
- Read members, subgroups and shared expenses from a workbook, CSV or JSON file.
- Work out each member's and each subgroup's balance and the transfers that settle them.
- Print the tables, and optionally write them to an "Expense Output" sheet or CSV files.

Run:
  python split_ledger.py trip.xlsx -o trip_out.xlsx

Dependencies:
  pip install openpyxl
"""
from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import Any, List, Optional, Sequence

from config import DEFAULT_CURRENCY, ConfigError, load_ledger
from computations import compute_report, report_tables
from csv_handler import export_tables_to_csv, import_ledger_from_csv
from excel_export import export_excel
from excel_import import import_ledger_from_excel
from models import Ledger

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")

TABLE_TITLES = {
    "item_splits": "Per-item splits",
    "balances": "Balances",
    "subgroup_balances": "Subgroup balances",
    "subgroup_transfers": "Subgroup transfers",
    "member_transfers": "Member transfers",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="split-ledger",
        description="Net shared expenses per member and subgroup and list the transfers that settle them",
    )
    parser.add_argument("input", help="Ledger file (.xlsx, .xlsm, .csv or .json)")
    parser.add_argument("--sheet", help="Read this sheet as one merged table (workbooks only)")
    parser.add_argument("-o", "--output", help="Write an Expense Output sheet to this .xlsx file")
    parser.add_argument("--csv-dir", help="Write each table as a CSV file into this directory")
    parser.add_argument("--currency", default=DEFAULT_CURRENCY, help="Currency symbol for table headers")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def load_input(path: str, sheet: Optional[str] = None) -> Ledger:
    """Pick a reader by file extension"""
    ext = os.path.splitext(path)[1].lower()
    if ext in EXCEL_EXTENSIONS:
        return import_ledger_from_excel(path, sheet=sheet)
    if ext == ".csv":
        return import_ledger_from_csv(path)
    if ext == ".json":
        return load_ledger(path)
    raise ConfigError(f"{path}: unsupported input type {ext or '(none)'!r}")


def format_table(rows: Sequence[Sequence[Any]]) -> str:
    """Plain-text table with left-aligned text and right-aligned numbers"""
    cells = [[str(v) for v in r] for r in rows]
    widths = [max(len(r[i]) for r in cells) for i in range(len(cells[0]))]
    lines = []
    for n, (raw, r) in enumerate(zip(rows, cells)):
        parts = []
        for i, s in enumerate(r):
            numeric = n > 0 and not isinstance(raw[i], str)
            parts.append(s.rjust(widths[i]) if numeric else s.ljust(widths[i]))
        lines.append("  ".join(parts).rstrip())
        if n == 0:
            lines.append("  ".join("-" * w for w in widths))
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application"""
    args = create_cli().parse_args(argv)
    setup_logging(args.verbose)

    try:
        ledger = load_input(args.input, args.sheet)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    report = compute_report(ledger)
    for name, rows in report_tables(report, args.currency).items():
        print(f"\n{TABLE_TITLES[name]}")
        print(format_table(rows))
    for s in report.skipped:
        logger.warning("Skipped expense row %s: %s", s.row, s.reason)

    if args.output:
        source = args.input if os.path.splitext(args.input)[1].lower() in EXCEL_EXTENSIONS else None
        export_excel(report, args.output, source=source, currency=args.currency)
    if args.csv_dir:
        export_tables_to_csv(report, args.csv_dir, currency=args.currency)
    return 0


if __name__ == "__main__":
    sys.exit(main())
