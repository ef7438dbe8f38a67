"""Tests for workbook, CSV and command-line input/output."""

import csv
import os
from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook

from computations import compute_report
from config import OUTPUT_SHEET, ConfigError
from csv_handler import export_tables_to_csv, import_ledger_from_csv
from excel_export import NEGATIVE_COLOR, POSITIVE_COLOR, export_excel
from excel_import import import_ledger_from_excel
from models import ExpenseRow
from split_ledger import format_table, load_input, main

MERGED = [
    ["Members", "Subgroups", "Item", "Paid By", "Amount", "Split Between"],
    ["Alice", "Alice,Bob", "Lunch", "Alice", 90, "*"],
    ["Bob", None, "Taxi", "Bob", 100, "Alice:3,Bob:1"],
    ["Carol", None, None, None, None, None],
]


@pytest.fixture
def split_workbook(tmp_path):
    """Workbook with separate Members, Subgroups and Expenses sheets."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Members"
    for r in [["Members"], ["Alice"], ["Bob"], [None], ["Carol"]]:
        ws.append(r)
    ws = wb.create_sheet("Subgroups")
    for r in [["Name", "Group"], ["couple", "Alice, Bob"]]:
        ws.append(r)
    ws = wb.create_sheet("Expenses")
    for r in [["Item", "Paid By", "Amount", "Split Between"], ["Lunch", "Alice", 90, "*"], [None, None, None, None]]:
        ws.append(r)
    path = tmp_path / "trip.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def merged_workbook(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Data"
    for r in MERGED:
        ws.append(r)
    path = tmp_path / "merged.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def merged_csv(tmp_path):
    path = tmp_path / "ledger.csv"
    with open(path, "w", newline="", encoding="utf-8") as f:
        csv.writer(f).writerows(MERGED)
    return path


class TestExcelImport:
    """Tests for reading workbooks."""

    def test_split_sheets(self, split_workbook):
        ledger = import_ledger_from_excel(str(split_workbook))
        assert ledger.members == ["Alice", "Bob", "Carol"]
        assert ledger.subgroups == ["Alice, Bob"]
        assert ledger.expenses == [ExpenseRow("Lunch", "Alice", 90, "*", row=2)]

    def test_merged_sheet(self, merged_workbook):
        ledger = import_ledger_from_excel(str(merged_workbook))
        assert ledger.members == ["Alice", "Bob", "Carol"]
        assert [e.item for e in ledger.expenses] == ["Lunch", "Taxi"]
        assert ledger.expenses[1].row == 3

    def test_named_sheet(self, merged_workbook):
        ledger = import_ledger_from_excel(str(merged_workbook), sheet="Data")
        assert len(ledger.expenses) == 2

    def test_unknown_sheet(self, merged_workbook):
        with pytest.raises(ConfigError, match="Nope"):
            import_ledger_from_excel(str(merged_workbook), sheet="Nope")

    def test_missing_sheet(self, tmp_path):
        wb = Workbook()
        wb.active.title = "Members"
        wb.active.append(["Members"])
        path = tmp_path / "partial.xlsx"
        wb.save(path)
        with pytest.raises(ConfigError, match="Subgroups, Expenses"):
            import_ledger_from_excel(str(path))

    def test_missing_expense_column(self, split_workbook):
        wb = load_workbook(split_workbook)
        wb["Expenses"]["D1"] = "Shared By"
        wb.save(split_workbook)
        with pytest.raises(ConfigError, match="split between"):
            import_ledger_from_excel(str(split_workbook))


class TestExcelExport:
    """Tests for the Expense Output sheet."""

    def test_new_workbook(self, merged_workbook, tmp_path):
        report = compute_report(import_ledger_from_excel(str(merged_workbook)))
        out = tmp_path / "out.xlsx"
        export_excel(report, str(out))

        wb = load_workbook(out)
        assert wb.sheetnames == [OUTPUT_SHEET]
        ws = wb[OUTPUT_SHEET]
        assert [c.value for c in ws[1]] == ["Item", "Alice", "Bob", "Carol"]
        assert [c.value for c in ws[2]] == ["Lunch", 60, -30, -30]
        assert ws["B2"].font.color.rgb.endswith(POSITIVE_COLOR)
        assert ws["C2"].font.color.rgb.endswith(NEGATIVE_COLOR)
        assert ws["A1"].font.bold
        # widest column A value is "Person's Net Total", column B is "Total Balance (₹)"
        assert ws.column_dimensions["A"].width == 20
        assert ws.column_dimensions["B"].width == 19
        # item table: header, two items, net total; then two blank rows
        assert ws["A7"].value == "Name"
        values = [c.value for c in ws["A"] if c.value is not None]
        assert "From Subgroup" in values
        assert values[-1] in ("Alice", "Bob", "Carol")

    def test_replaces_output_in_source(self, split_workbook, tmp_path):
        report = compute_report(import_ledger_from_excel(str(split_workbook)))
        out = tmp_path / "out.xlsx"
        export_excel(report, str(out), source=str(split_workbook))
        export_excel(report, str(out), source=str(out))

        wb = load_workbook(out)
        assert wb.sheetnames == ["Members", "Subgroups", "Expenses", OUTPUT_SHEET]


class TestCsv:
    """Tests for CSV input and output."""

    def test_import(self, merged_csv):
        ledger = import_ledger_from_csv(str(merged_csv))
        assert ledger.members == ["Alice", "Bob", "Carol"]
        assert ledger.subgroups == ["Alice,Bob"]
        assert ledger.expenses[0] == ExpenseRow("Lunch", "Alice", "90", "*", row=2)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ConfigError):
            import_ledger_from_csv(str(path))

    def test_export(self, merged_csv, tmp_path):
        report = compute_report(import_ledger_from_csv(str(merged_csv)))
        paths = export_tables_to_csv(report, str(tmp_path / "tables"), currency="$")
        assert [os.path.basename(p) for p in paths] == [
            "item_splits.csv",
            "balances.csv",
            "subgroup_balances.csv",
            "subgroup_transfers.csv",
            "member_transfers.csv",
        ]
        with open(paths[1], newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows == [["Name", "Balance ($)"], ["Alice", "-15.00"], ["Bob", "45.00"], ["Carol", "-30.00"]]


def test_csv_and_workbook_agree(merged_csv, merged_workbook):
    from_csv = compute_report(import_ledger_from_csv(str(merged_csv)))
    from_xlsx = compute_report(import_ledger_from_excel(str(merged_workbook)))
    assert from_csv.balances == from_xlsx.balances
    assert from_csv.member_transfers == from_xlsx.member_transfers


class TestCli:
    """Tests for the command-line entry point."""

    def test_load_input_rejects_unknown_type(self, tmp_path):
        with pytest.raises(ConfigError, match="unsupported"):
            load_input(str(tmp_path / "ledger.txt"))

    def test_prints_tables(self, merged_csv, capsys):
        assert main([str(merged_csv), "--currency", "$"]) == 0
        out = capsys.readouterr().out
        assert "Member transfers" in out
        assert "Amount ($)" in out
        assert "Carol" in out

    def test_writes_outputs(self, split_workbook, tmp_path):
        out = tmp_path / "result.xlsx"
        assert main([str(split_workbook), "-o", str(out), "--csv-dir", str(tmp_path / "csv")]) == 0
        assert OUTPUT_SHEET in load_workbook(out).sheetnames
        assert (tmp_path / "csv" / "balances.csv").exists()

    def test_config_error_exit_code(self, tmp_path, capsys):
        path = tmp_path / "bad.csv"
        path.write_text("Invalid,Headers\nData,Here\n", encoding="utf-8")
        assert main([str(path)]) == 2
        assert "could not find" in capsys.readouterr().err


def test_format_table():
    text = format_table([["Name", "Balance"], ["Alice", Decimal("60.00")], ["Bob", Decimal("-5.00")]])
    assert text.splitlines() == [
        "Name   Balance",
        "-----  -------",
        "Alice    60.00",
        "Bob      -5.00",
    ]
