"""
Configuration, column resolution and JSON ledger loading/saving for SplitLedger
"""
from __future__ import annotations
import json
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from models import ExpenseRow, Ledger

logger = logging.getLogger(__name__)

WILDCARD = "*"
EPSILON = Decimal("0.01")
# shares are kept to this many places while accumulating; cents only on output
SHARE_PRECISION = Decimal("1e-10")
# amounts at or above this are rejected per row
MAX_AMOUNT = Decimal("1e40")
DEFAULT_CURRENCY = "₹"

MEMBERS_SHEET = "Members"
SUBGROUPS_SHEET = "Subgroups"
EXPENSES_SHEET = "Expenses"
OUTPUT_SHEET = "Expense Output"

# field -> accepted headers (compared trimmed and lower-cased)
COLUMN_ALIASES: Dict[str, Sequence[str]] = {
    "members": ("members", "member"),
    "subgroups": ("subgroups", "subgroup"),
    "item": ("item", "description"),
    "paid_by": ("paid by", "paid_by", "paidby", "payer"),
    "amount": ("amount",),
    "split_between": ("split between", "split_between", "splitbetween", "split"),
}

EXPENSE_FIELDS = ("item", "paid_by", "amount", "split_between")


class ConfigError(Exception):
    """Raised when the input cannot be mapped onto the expected fields."""

    pass


def resolve_columns(
    headers: Sequence[Any],
    fields: Iterable[str],
    source: str = "input",
) -> Dict[str, int]:
    """
    Map each requested field to a zero-based column index.
    Raises ConfigError listing every field that has no matching header.
    """
    normalized = [str(h).strip().lower() if h is not None else "" for h in headers]
    out: Dict[str, int] = {}
    missing: List[str] = []
    for f in fields:
        idx = next((i for i, h in enumerate(normalized) if h in COLUMN_ALIASES[f]), None)
        if idx is None:
            missing.append(f)
        else:
            out[f] = idx
    if missing:
        wanted = ", ".join(f'"{COLUMN_ALIASES[f][0]}"' for f in missing)
        raise ConfigError(f"{source}: could not find column(s) {wanted}")
    return out


def ledger_to_dict(ledger: Ledger) -> dict:
    """Convert Ledger object to dictionary for JSON serialization"""
    return {
        "version": ledger.version,
        "members": list(ledger.members),
        "subgroups": list(ledger.subgroups),
        "expenses": [
            {
                "item": e.item,
                "paid_by": e.paid_by,
                "amount": str(e.amount) if isinstance(e.amount, Decimal) else e.amount,
                "split_between": e.split_between,
            }
            for e in ledger.expenses
        ],
    }


def _expense_from_dict(d: Mapping[str, Any], index: int) -> ExpenseRow:
    if not isinstance(d, Mapping):
        raise ConfigError(f"expenses[{index}]: expected an object")
    lowered = {str(k).strip().lower(): v for k, v in d.items()}
    cols = resolve_columns(list(lowered), EXPENSE_FIELDS, source=f"expenses[{index}]")
    values = list(lowered.values())
    return ExpenseRow(
        item=values[cols["item"]],
        paid_by=values[cols["paid_by"]],
        amount=values[cols["amount"]],
        split_between=values[cols["split_between"]],
        row=index + 1,
    )


def _list_field(d: Mapping[str, Any], key: str) -> list:
    value = d.get(key, [])
    if not isinstance(value, list):
        raise ConfigError(f'"{key}" must be a list, got {type(value).__name__}')
    return list(value)


def dict_to_ledger(d: dict) -> Ledger:
    """Convert dictionary from JSON to Ledger object"""
    if not isinstance(d, dict):
        raise ConfigError("ledger JSON must be an object")
    return Ledger(
        version=d.get("version", 1),
        members=_list_field(d, "members"),
        subgroups=_list_field(d, "subgroups"),
        expenses=[_expense_from_dict(e, i) for i, e in enumerate(_list_field(d, "expenses"))],
    )


def load_ledger(path: str) -> Ledger:
    """Load a ledger from a JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    ledger = dict_to_ledger(data)
    logger.info("Loaded %d expense(s) from %s", len(ledger.expenses), path)
    return ledger


def save_ledger(ledger: Ledger, path: str) -> None:
    """Write a ledger to a JSON file"""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(ledger_to_dict(ledger), f, ensure_ascii=False, indent=2)


def _cell(row: Sequence[Any], idx: int) -> Any:
    value = row[idx] if idx < len(row) else None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def ledger_from_table(
    headers: Sequence[Any],
    rows: Iterable[Sequence[Any]],
    source: str = "input",
    first_row: int = 2,
) -> Ledger:
    """
    Build a Ledger from one merged table with Members, Subgroups, Item,
    Paid By, Amount and Split Between columns. Subgroups is optional.
    Rows are numbered from first_row (the header being row 1).
    """
    cols = resolve_columns(headers, ("members",) + EXPENSE_FIELDS, source=source)
    try:
        cols.update(resolve_columns(headers, ("subgroups",), source=source))
    except ConfigError:
        logger.debug("%s: no subgroups column, every member settles alone", source)

    ledger = Ledger()
    for n, row in enumerate(rows, start=first_row):
        member = _cell(row, cols["members"])
        if member is not None:
            ledger.members.append(member)
        if "subgroups" in cols:
            group = _cell(row, cols["subgroups"])
            if group is not None:
                ledger.subgroups.append(group)
        values = [_cell(row, cols[f]) for f in EXPENSE_FIELDS]
        if any(v is not None for v in values):
            ledger.expenses.append(ExpenseRow(*values, row=n))
    return ledger
