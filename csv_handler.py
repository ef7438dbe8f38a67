"""
CSV import and export functionality for SplitLedger
"""
from __future__ import annotations
import csv
import logging
import os
from typing import List

from config import DEFAULT_CURRENCY, ConfigError, ledger_from_table
from computations import report_tables
from models import Ledger, LedgerReport

logger = logging.getLogger(__name__)


def import_ledger_from_csv(filepath: str) -> Ledger:
    """
    Import a ledger from one merged CSV table
    CSV columns: Members, Subgroups, Item, Paid By, Amount, Split Between
    """
    with open(filepath, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        headers = next(reader, None)
        if headers is None:
            raise ConfigError(f"{filepath}: file is empty")
        ledger = ledger_from_table(headers, list(reader), source=filepath)

    logger.info("Loaded %d member(s), %d expense row(s) from %s", len(ledger.members), len(ledger.expenses), filepath)
    return ledger


def export_tables_to_csv(report: LedgerReport, directory: str, currency: str = DEFAULT_CURRENCY) -> List[str]:
    """
    Export each result table to <directory>/<table>.csv
    Returns the written paths.
    """
    os.makedirs(directory, exist_ok=True)
    paths = []
    for name, rows in report_tables(report, currency).items():
        path = os.path.join(directory, f"{name}.csv")
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerows(rows)
        paths.append(path)
        logger.info("Wrote %s", path)
    return paths
