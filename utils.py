"""
Utility functions for SplitLedger
"""
from __future__ import annotations
import functools
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Callable, Optional

CENTS = Decimal("0.01")
# digits carried by ledger arithmetic; room for ten-place shares of very large amounts
DECIMAL_DIGITS = 60
MONEY_CONTEXT = Context(prec=DECIMAL_DIGITS)


def money_arithmetic(func: Callable) -> Callable:
    """Run func under MONEY_CONTEXT instead of the default 28-digit context"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext(MONEY_CONTEXT):
            return func(*args, **kwargs)

    return wrapper


def normalize_name(raw: Any) -> Optional[str]:
    """Canonical member id: trimmed and case-folded. None for blank input."""
    if raw is None:
        return None
    name = str(raw).strip().casefold()
    return name or None


def display_name(member: str) -> str:
    """Capitalize the first letter for presentation"""
    return member[:1].upper() + member[1:]


def safe_decimal(x: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """Convert a cell value to a finite Decimal, returning default on error"""
    if x is None or isinstance(x, bool):
        return default
    if isinstance(x, float):
        x = repr(x)
    try:
        value = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return default
    if not value.is_finite():
        return default
    return value


@money_arithmetic
def round_money(value: Decimal) -> Decimal:
    """Round to cents, half up"""
    # adding zero turns -0.00 into 0.00
    return value.quantize(CENTS, rounding=ROUND_HALF_UP) + 0
