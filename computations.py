"""
Business logic and computations for SplitLedger

Pipeline: raw rows -> members/subgroups -> allocated balances and per-item
splits -> subgroup balances -> settling transfers. Every function here is pure:
it builds and returns new dicts and never touches its arguments.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any, Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from config import DEFAULT_CURRENCY, EPSILON, MAX_AMOUNT, SHARE_PRECISION, WILDCARD
from models import (
    Allocation,
    Clustering,
    Expense,
    ExpenseRow,
    Ledger,
    LedgerReport,
    Participant,
    SkippedRow,
    SubgroupKey,
    Transaction,
)
from utils import display_name, money_arithmetic, normalize_name, round_money, safe_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)


class InvalidExpenseRow(ValueError):
    """Raised for an expense row that has to be left out of the batch."""

    pass


# ---------- Members and subgroups ----------

def normalize_members(raw_members: Iterable[Any]) -> List[str]:
    """Normalize raw names, dropping blanks and duplicates, keeping first-seen order"""
    out: List[str] = []
    for raw in raw_members:
        name = normalize_name(raw)
        if name is not None and name not in out:
            out.append(name)
    return out


def parse_subgroup(raw: Any) -> Optional[SubgroupKey]:
    """Parse "Bob, alice" into the key ('alice', 'bob'). None if no names."""
    if raw is None:
        return None
    names = {normalize_name(n) for n in str(raw).split(",")}
    names.discard(None)
    if not names:
        return None
    return SubgroupKey(tuple(sorted(names)))


def cluster_subgroups(members: Sequence[str], explicit_groups: Iterable[Any]) -> Clustering:
    """
    Partition members into subgroups.
    Explicit groups are registered in input order, first occurrence of a key
    wins. A member goes to the first registered group that lists it, or to a
    singleton group of its own.
    """
    registered: Dict[SubgroupKey, frozenset] = {}
    for raw in explicit_groups:
        key = parse_subgroup(raw)
        if key is not None and key not in registered:
            registered[key] = frozenset(key.members)

    subgroup_of: Dict[str, SubgroupKey] = {}
    assigned: Dict[SubgroupKey, List[str]] = {k: [] for k in registered}
    for member in members:
        key = next((k for k, names in registered.items() if member in names), None)
        if key is None:
            key = SubgroupKey((member,))
            assigned.setdefault(key, [])
        subgroup_of[member] = key
        assigned[key].append(member)

    # explicit groups whose members all landed elsewhere hold no one
    groups = {k: tuple(v) for k, v in assigned.items() if v}
    return Clustering(subgroup_of=subgroup_of, groups=groups)


# ---------- Expenses ----------

def parse_split(split_between: Any) -> Tuple[bool, Tuple[Participant, ...]]:
    """
    Parse a split specifier.
    Returns (True, ()) for the wildcard, else (False, participants) where each
    "name" or "name:weight" entry becomes a Participant. Weights that are
    missing, non-numeric or not positive become 1; a repeated name keeps its
    first weight.
    """
    text = "" if split_between is None else str(split_between).strip()
    if text == WILDCARD:
        return True, ()

    participants: List[Participant] = []
    seen = set()
    for entry in text.split(","):
        parts = entry.split(":")
        name = normalize_name(parts[0])
        if name is None or name in seen:
            continue
        weight = safe_decimal(parts[1]) if len(parts) > 1 else None
        if weight is None or weight <= 0:
            weight = ONE
        seen.add(name)
        participants.append(Participant(name, weight))
    return False, tuple(participants)


def parse_expense(row: ExpenseRow) -> Expense:
    """Validate a raw row. Raises InvalidExpenseRow when it must be skipped."""
    item = "" if row.item is None else str(row.item).strip()
    if not item:
        raise InvalidExpenseRow("missing item")
    payer = normalize_name(row.paid_by)
    if payer is None:
        raise InvalidExpenseRow("missing payer")
    amount = safe_decimal(row.amount)
    if amount is None:
        raise InvalidExpenseRow(f"amount {row.amount!r} is not a number")
    if amount <= 0:
        raise InvalidExpenseRow(f"amount {amount} is not positive")
    if amount >= MAX_AMOUNT:
        raise InvalidExpenseRow(f"amount {amount} is too large")

    wildcard, participants = parse_split(row.split_between)
    if not wildcard and not participants:
        raise InvalidExpenseRow("no participants")
    return Expense(item=item, payer=payer, amount=amount, wildcard=wildcard, participants=participants)


def resolve_participants(expense: Expense, members: Sequence[str]) -> Tuple[Participant, ...]:
    """Wildcard expands to every declared member at weight 1"""
    if expense.wildcard:
        return tuple(Participant(m, ONE) for m in members)
    return expense.participants


@money_arithmetic
def allocate_expense(expense: Expense, members: Sequence[str]) -> Allocation:
    """
    Split one expense by weight.
    Each participant is charged amount * weight / total_weight; the last one
    takes whatever is left so the charges add up to the amount exactly. The
    payer is credited the full amount whether or not they participate.
    """
    participants = resolve_participants(expense, members)
    if not participants:
        raise InvalidExpenseRow("split resolves to no participants")

    delta: Dict[str, Decimal] = {}
    charged = ZERO
    last = len(participants) - 1
    try:
        total_weight = sum((p.weight for p in participants), ZERO)
        for i, p in enumerate(participants):
            if i == last:
                share = expense.amount - charged
            else:
                share = (expense.amount * p.weight / total_weight).quantize(SHARE_PRECISION)
            charged += share
            delta[p.member] = delta.get(p.member, ZERO) - share
    except DecimalException as exc:
        raise InvalidExpenseRow(f"weights cannot split the amount ({type(exc).__name__})") from exc
    delta[expense.payer] = delta.get(expense.payer, ZERO) + expense.amount

    return Allocation(item=expense.item, balance_delta=delta, split_delta=dict(delta))


def parse_expenses(rows: Iterable[ExpenseRow]) -> Tuple[List[Tuple[Optional[int], Expense]], List[SkippedRow]]:
    """Validate every row, collecting the ones that fail"""
    valid: List[Tuple[Optional[int], Expense]] = []
    skipped: List[SkippedRow] = []
    for row in rows:
        try:
            valid.append((row.row, parse_expense(row)))
        except InvalidExpenseRow as exc:
            logger.debug("Skipping expense row %s: %s", row.row, exc)
            skipped.append(SkippedRow(row.row, str(exc)))
    return valid, skipped


def build_roster(members: Sequence[str], expenses: Iterable[Expense]) -> List[str]:
    """
    Declared members followed by undeclared payers/participants, first seen first.
    A wildcard expense with no declared members cannot be allocated and adds no one.
    """
    roster = list(members)
    for e in expenses:
        if e.wildcard and not members:
            continue
        for name in [e.payer] + [p.member for p in e.participants]:
            if name not in roster:
                roster.append(name)
    return roster


@money_arithmetic
def allocate_expenses(
    expenses: Iterable[Tuple[Optional[int], Expense]],
    members: Sequence[str],
    roster: Sequence[str],
) -> Tuple[Dict[str, Decimal], Dict[str, Dict[str, Decimal]], List[SkippedRow]]:
    """
    Fold every expense into fresh balance and per-item split tables.
    Returns (balances, item_splits, skipped).
    """
    balances: Dict[str, Decimal] = {m: ZERO for m in roster}
    item_splits: Dict[str, Dict[str, Decimal]] = {}
    skipped: List[SkippedRow] = []

    for row, expense in expenses:
        try:
            alloc = allocate_expense(expense, members)
        except InvalidExpenseRow as exc:
            logger.debug("Skipping expense row %s: %s", row, exc)
            skipped.append(SkippedRow(row, str(exc)))
            continue
        for m, d in alloc.balance_delta.items():
            balances[m] = balances.get(m, ZERO) + d
        split = item_splits.setdefault(alloc.item, {})
        for m, d in alloc.split_delta.items():
            split[m] = split.get(m, ZERO) + d

    return balances, item_splits, skipped


# ---------- Aggregation and settlement ----------

@money_arithmetic
def aggregate_group_balances(
    balances: Mapping[str, Decimal],
    subgroup_of: Mapping[str, SubgroupKey],
) -> Dict[SubgroupKey, Decimal]:
    """Sum member balances per subgroup, groups ordered by first member seen"""
    out: Dict[SubgroupKey, Decimal] = {}
    for member, balance in balances.items():
        key = subgroup_of.get(member) or SubgroupKey((member,))
        out[key] = out.get(key, ZERO) + balance
    return out


@dataclass
class _Party:
    order: int
    key: Hashable
    remaining: Decimal


def _largest(parties: List[_Party]) -> _Party:
    # ties go to the party that came first in the input
    return max(parties, key=lambda p: (p.remaining, -p.order))


@money_arithmetic
def compute_transfers(balances: Mapping[Hashable, Any]) -> List[Transaction]:
    """
    Compute transfers to settle balances.
    Greedy: the largest debtor pays the largest creditor the smaller of the
    two amounts, until one side is empty. Balances are rounded to cents first
    and anything within EPSILON of zero counts as settled.
    Works for member names and SubgroupKeys alike.
    """
    creditors: List[_Party] = []
    debtors: List[_Party] = []
    for order, (key, balance) in enumerate(balances.items()):
        value = round_money(Decimal(balance))
        if value > EPSILON:
            creditors.append(_Party(order, key, value))
        elif value < -EPSILON:
            debtors.append(_Party(order, key, -value))

    transfers: List[Transaction] = []
    while creditors and debtors:
        creditor = _largest(creditors)
        debtor = _largest(debtors)
        amount = min(creditor.remaining, debtor.remaining)
        transfers.append(Transaction(debtor.key, creditor.key, amount))
        creditor.remaining -= amount
        debtor.remaining -= amount
        if creditor.remaining < EPSILON:
            creditors.remove(creditor)
        if debtor.remaining < EPSILON:
            debtors.remove(debtor)

    if creditors or debtors:
        logger.debug("Unsettled after greedy pass: %d creditor(s), %d debtor(s)", len(creditors), len(debtors))
    return transfers


# ---------- Pipeline ----------

@money_arithmetic
def compute_report(ledger: Ledger) -> LedgerReport:
    """Run the whole pipeline over one ledger"""
    members = normalize_members(ledger.members)
    expenses, skipped = parse_expenses(ledger.expenses)
    roster = build_roster(members, (e for _, e in expenses))
    clustering = cluster_subgroups(roster, ledger.subgroups)
    balances, item_splits, unallocated = allocate_expenses(expenses, members, roster)

    net_totals = {
        m: sum((split.get(m, ZERO) for split in item_splits.values()), ZERO)
        for m in roster
    }
    group_balances = aggregate_group_balances(balances, clustering.subgroup_of)
    skipped = sorted(skipped + unallocated, key=lambda s: (s.row is None, s.row or 0))

    logger.debug(
        "Computed %d member(s), %d subgroup(s), %d item(s), %d skipped row(s)",
        len(roster), len(clustering.groups), len(item_splits), len(skipped),
    )
    return LedgerReport(
        members=tuple(roster),
        item_splits=item_splits,
        net_totals=net_totals,
        balances=balances,
        clustering=clustering,
        group_balances=group_balances,
        group_transfers=tuple(compute_transfers(group_balances)),
        member_transfers=tuple(compute_transfers(balances)),
        skipped=tuple(skipped),
    )


# ---------- Presentation tables ----------

def render_key(key: Hashable) -> str:
    """Display form of a member name or subgroup key"""
    if isinstance(key, SubgroupKey):
        return key.display()
    return display_name(str(key))


def report_tables(report: LedgerReport, currency: str = DEFAULT_CURRENCY) -> Dict[str, List[List[Any]]]:
    """
    Build the output tables, header row first, amounts rounded to cents.
    Keys: item_splits, balances, subgroup_balances, subgroup_transfers,
    member_transfers.
    """
    members = report.members
    splits: List[List[Any]] = [["Item"] + [display_name(m) for m in members]]
    for item, shares in report.item_splits.items():
        splits.append([item] + [round_money(shares.get(m, ZERO)) for m in members])
    splits.append(["Person's Net Total"] + [round_money(report.net_totals.get(m, ZERO)) for m in members])

    balances = [["Name", f"Balance ({currency})"]]
    balances += [[display_name(m), round_money(b)] for m, b in report.balances.items()]

    groups = [["Subgroup", f"Total Balance ({currency})"]]
    groups += [[k.display(), round_money(b)] for k, b in report.group_balances.items()]

    group_tx = [["From Subgroup", "To Subgroup", f"Amount ({currency})"]]
    group_tx += [[render_key(t.from_key), render_key(t.to_key), t.amount] for t in report.group_transfers]

    member_tx = [["From", "To", f"Amount ({currency})"]]
    member_tx += [[render_key(t.from_key), render_key(t.to_key), t.amount] for t in report.member_transfers]

    return {
        "item_splits": splits,
        "balances": balances,
        "subgroup_balances": groups,
        "subgroup_transfers": group_tx,
        "member_transfers": member_tx,
    }
