"""
Excel import functionality for SplitLedger

Two workbook layouts are accepted:
- separate "Members", "Subgroups" and "Expenses" sheets, each with a header row
- one sheet holding a merged table (Members, Subgroups, Item, Paid By, Amount,
  Split Between columns)
"""
from __future__ import annotations
import logging
from typing import Any, List, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from config import (
    EXPENSE_FIELDS,
    EXPENSES_SHEET,
    MEMBERS_SHEET,
    SUBGROUPS_SHEET,
    ConfigError,
    ledger_from_table,
    resolve_columns,
)
from models import ExpenseRow, Ledger

logger = logging.getLogger(__name__)


def _rows(ws: Worksheet) -> List[Sequence[Any]]:
    return [list(r) for r in ws.iter_rows(values_only=True)]


def _column(rows: List[Sequence[Any]], idx: int) -> List[Any]:
    """Non-blank values of one column, header excluded"""
    out = []
    for r in rows[1:]:
        v = r[idx] if idx < len(r) else None
        if v is None or (isinstance(v, str) and not v.strip()):
            continue
        out.append(v)
    return out


def _read_split_sheets(wb) -> Ledger:
    missing = [n for n in (MEMBERS_SHEET, SUBGROUPS_SHEET, EXPENSES_SHEET) if n not in wb.sheetnames]
    if missing:
        raise ConfigError(f"missing required sheet(s): {', '.join(missing)}")

    members = _rows(wb[MEMBERS_SHEET])
    if not members:
        raise ConfigError(f'{MEMBERS_SHEET}: could not find column(s) "members"')
    member_col = resolve_columns(members[0], ("members",), source=MEMBERS_SHEET)["members"]

    subgroups = _rows(wb[SUBGROUPS_SHEET])
    group_col = 1  # column B unless a Subgroups header says otherwise
    if subgroups:
        try:
            group_col = resolve_columns(subgroups[0], ("subgroups",), source=SUBGROUPS_SHEET)["subgroups"]
        except ConfigError:
            pass

    expenses = _rows(wb[EXPENSES_SHEET])
    if not expenses:
        raise ConfigError(f"{EXPENSES_SHEET}: sheet is empty")
    cols = resolve_columns(expenses[0], EXPENSE_FIELDS, source=EXPENSES_SHEET)

    ledger = Ledger(
        members=_column(members, member_col),
        subgroups=_column(subgroups, group_col),
    )
    for n, r in enumerate(expenses[1:], start=2):
        values = [r[cols[f]] if cols[f] < len(r) else None for f in EXPENSE_FIELDS]
        values = [None if isinstance(v, str) and not v.strip() else v for v in values]
        if any(v is not None for v in values):
            ledger.expenses.append(ExpenseRow(*values, row=n))
    return ledger


def import_ledger_from_excel(filepath: str, sheet: Optional[str] = None) -> Ledger:
    """
    Import a ledger from a workbook.
    With `sheet`, that sheet is read as a merged table. Otherwise the
    Members/Subgroups/Expenses sheets are used when any of them exists, and the
    first sheet is read as a merged table when none does.
    """
    wb = load_workbook(filepath, read_only=True, data_only=True)
    try:
        if sheet is not None:
            if sheet not in wb.sheetnames:
                raise ConfigError(f"{filepath}: no sheet named {sheet!r}")
            rows = _rows(wb[sheet])
            ledger = ledger_from_table(rows[0] if rows else [], rows[1:], source=sheet)
        elif {MEMBERS_SHEET, SUBGROUPS_SHEET, EXPENSES_SHEET} & set(wb.sheetnames):
            ledger = _read_split_sheets(wb)
        else:
            ws = wb.worksheets[0]
            rows = _rows(ws)
            ledger = ledger_from_table(rows[0] if rows else [], rows[1:], source=ws.title)
    finally:
        wb.close()

    logger.info("Loaded %d member(s), %d expense row(s) from %s", len(ledger.members), len(ledger.expenses), filepath)
    return ledger
