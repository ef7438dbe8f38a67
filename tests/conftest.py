"""Test fixtures and utilities."""

from decimal import Decimal

import pytest

from models import ExpenseRow, Ledger


@pytest.fixture
def settle():
    """Return a function giving the balances left after every transfer is paid."""

    def apply(balances, transfers):
        out = {k: Decimal(v) for k, v in balances.items()}
        for t in transfers:
            out[t.from_key] += t.amount
            out[t.to_key] -= t.amount
        return out

    return apply


@pytest.fixture
def lunch_ledger():
    """Three members, one wildcard lunch paid by Alice."""
    return Ledger(
        members=["Alice", "Bob", "Carol"],
        expenses=[ExpenseRow("Lunch", "Alice", 90, "*", row=2)],
    )


@pytest.fixture
def trip_ledger():
    """Four members, one couple, a mix of wildcard, weighted and broken rows."""
    return Ledger(
        members=["Alice", " bob ", "CAROL", "Dave", "alice"],
        subgroups=["Bob, Alice", "carol,dave", "alice, carol"],
        expenses=[
            ExpenseRow("Hotel", "Alice", "400", "*", row=2),
            ExpenseRow("Dinner", "bob", 120, "alice:2, bob, carol:0, dave:x", row=3),
            ExpenseRow("Taxi", "Dave", "35.50", "carol, dave", row=4),
            ExpenseRow("", "Alice", 10, "*", row=5),
            ExpenseRow("Snacks", None, 10, "*", row=6),
            ExpenseRow("Museum", "Carol", "free", "*", row=7),
            ExpenseRow("Refund", "Carol", -20, "*", row=8),
            ExpenseRow("Fuel", "Carol", 60, " , ", row=9),
            ExpenseRow("Dinner", "Carol", 30, "carol", row=10),
        ],
    )
