"""
Excel export functionality for SplitLedger
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Dict, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import DEFAULT_CURRENCY, OUTPUT_SHEET
from computations import report_tables
from models import LedgerReport

logger = logging.getLogger(__name__)

HEADER_FILL = "4CAF50"
HEADER_FONT_COLOR = "FFFFFF"
ALTERNATE_ROW_FILL = "F9F9F9"
POSITIVE_COLOR = "008000"
NEGATIVE_COLOR = "FF0000"
ZERO_COLOR = "000000"


def _style_table(ws, first_row: int, n_rows: int, n_cols: int, first_col: int = 1):
    """Apply header, border and alternating-row styling to a table block"""
    header_font = Font(bold=True, color=HEADER_FONT_COLOR, size=12)
    header_fill = PatternFill("solid", fgColor=HEADER_FILL)
    alt_fill = PatternFill("solid", fgColor=ALTERNATE_ROW_FILL)
    align = Alignment(horizontal="center", vertical="center")
    thin = Side(style="thin", color="A0A0A0")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    for r in range(first_row, first_row + n_rows):
        ws.row_dimensions[r].height = 30
        for c in range(first_col, first_col + n_cols):
            cell = ws.cell(r, c)
            cell.border = border
            cell.alignment = align
            if r == first_row:
                cell.font = header_font
                cell.fill = header_fill
                continue
            cell.font = Font(size=10)
            if (r - first_row) % 2 == 1:
                cell.fill = alt_fill
            if isinstance(cell.value, (int, float, Decimal)):
                cell.number_format = "0.00"


def _color_signed(ws, first_row: int, n_rows: int, first_col: int, n_cols: int):
    """Bold green for positive, red for negative, black for zero"""
    for r in range(first_row, first_row + n_rows):
        for c in range(first_col, first_col + n_cols):
            cell = ws.cell(r, c)
            v = cell.value
            if not isinstance(v, (int, float, Decimal)):
                continue
            color = POSITIVE_COLOR if v > 0 else NEGATIVE_COLOR if v < 0 else ZERO_COLOR
            cell.font = Font(bold=True, size=10, color=color)


def _column_widths(tables, min_width=10, max_width=45) -> Dict[int, int]:
    """Width per 1-based column, fitted to the widest value any stacked table puts there"""
    widths: Dict[int, int] = {}
    for table in tables:
        for values in table:
            for col, v in enumerate(values, start=1):
                # amounts show with two places under the "0.00" format
                text = f"{v:.2f}" if isinstance(v, Decimal) else str(v)
                widths[col] = max(widths.get(col, min_width), min(max_width, len(text) + 2))
    return widths


def write_report_sheet(ws, report: LedgerReport, currency: str = DEFAULT_CURRENCY) -> None:
    """
    Write all tables onto one worksheet, stacked top to bottom:
    per-item splits, balances, subgroup balances, subgroup transfers,
    member transfers.
    """
    tables = report_tables(report, currency)
    row = 1
    for name, table in tables.items():
        n_rows, n_cols = len(table), len(table[0])
        for i, values in enumerate(table):
            for j, v in enumerate(values):
                ws.cell(row + i, 1 + j, v)
        _style_table(ws, row, n_rows, n_cols)
        if name == "item_splits":
            _color_signed(ws, row + 1, n_rows - 1, 2, n_cols - 1)
        row += n_rows + 2
    for col, width in _column_widths(tables.values()).items():
        ws.column_dimensions[get_column_letter(col)].width = width


def export_excel(
    report: LedgerReport,
    filepath: str,
    source: Optional[str] = None,
    currency: str = DEFAULT_CURRENCY,
) -> None:
    """
    Write the report to the "Expense Output" sheet of `filepath`.
    With `source`, that workbook is copied and its output sheet replaced;
    otherwise a new workbook is created.
    """
    if source:
        wb = load_workbook(source)
        if OUTPUT_SHEET in wb.sheetnames:
            wb.remove(wb[OUTPUT_SHEET])
        ws = wb.create_sheet(OUTPUT_SHEET)
    else:
        wb = Workbook()
        ws = wb.active
        ws.title = OUTPUT_SHEET

    write_report_sheet(ws, report, currency)
    wb.save(filepath)
    logger.info("Wrote %s to %s", OUTPUT_SHEET, filepath)
