"""
Data models for SplitLedger
"""
from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Hashable, List, Optional, Tuple

from utils import display_name


@dataclass(frozen=True)
class ExpenseRow:
    """Raw expense record as read from a sheet, CSV or JSON file"""
    item: Any
    paid_by: Any
    amount: Any
    split_between: Any
    row: Optional[int] = None  # source row number, for audit only


@dataclass(frozen=True)
class Participant:
    """One entry of a split: who shares and with what weight"""
    member: str
    weight: Decimal = Decimal(1)


@dataclass(frozen=True)
class Expense:
    """Validated expense"""
    item: str
    payer: str
    amount: Decimal
    wildcard: bool = False
    participants: Tuple[Participant, ...] = ()


@dataclass(frozen=True, order=True)
class SubgroupKey:
    """Canonical subgroup identifier: sorted member names"""
    members: Tuple[str, ...]

    @property
    def value(self) -> str:
        return ",".join(self.members)

    def display(self) -> str:
        return ", ".join(display_name(m) for m in self.members)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Clustering:
    """Partition of the roster into subgroups"""
    subgroup_of: Dict[str, SubgroupKey]
    groups: Dict[SubgroupKey, Tuple[str, ...]]


@dataclass(frozen=True)
class Allocation:
    """Effect of a single expense on balances and on its item's split"""
    item: str
    balance_delta: Dict[str, Decimal]
    split_delta: Dict[str, Decimal]


@dataclass(frozen=True)
class Transaction:
    """from_key pays to_key the amount"""
    from_key: Hashable
    to_key: Hashable
    amount: Decimal


@dataclass(frozen=True)
class SkippedRow:
    """Expense row left out of the computation"""
    row: Optional[int]
    reason: str


@dataclass
class Ledger:
    """One input batch"""
    members: List[str] = field(default_factory=list)
    subgroups: List[str] = field(default_factory=list)
    expenses: List[ExpenseRow] = field(default_factory=list)
    version: int = 1


@dataclass(frozen=True)
class LedgerReport:
    """Everything computed from one Ledger"""
    members: Tuple[str, ...]
    item_splits: Dict[str, Dict[str, Decimal]]
    net_totals: Dict[str, Decimal]
    balances: Dict[str, Decimal]
    clustering: Clustering
    group_balances: Dict[SubgroupKey, Decimal]
    group_transfers: Tuple[Transaction, ...]
    member_transfers: Tuple[Transaction, ...]
    skipped: Tuple[SkippedRow, ...] = ()
