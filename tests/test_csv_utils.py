import csv
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from csv_utils import (
    export_filename,
    export_report_summary,
    export_transactions,
    parse_date,
    sanitize_csv_value,
)
from ledger import LedgerCategory, LedgerSplit, LedgerTransaction
from models import TransactionType
from reports import build_report


FOOD = LedgerCategory(id=1, name="Food", icon="🍔")
TRAVEL = LedgerCategory(id=2, name="Travel", icon="✈️")


def _ledger():
    return [
        LedgerTransaction(
            id=1,
            type=TransactionType.expense,
            amount=Decimal("100.00"),
            date=date(2024, 6, 10),
            is_split=True,
            description="Road trip",
            splits=(
                LedgerSplit(category_id=1, amount=Decimal("60.00"), category=FOOD),
                LedgerSplit(category_id=2, amount=Decimal("40.00"), category=TRAVEL),
            ),
        ),
        LedgerTransaction(
            id=2,
            type=TransactionType.income,
            amount=Decimal("500.00"),
            date=date(2024, 6, 1),
            description="=HYPERLINK(\"x\")",
            merchant="Acme",
            payment_method="Bank",
        ),
    ]


def test_sanitize_csv_value_blocks_formulas():
    assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"
    assert sanitize_csv_value("https://example.com") == "\thttps://example.com"
    assert sanitize_csv_value("bash -c \"rm -rf x\"") == "\tbash -c \"rm -rf x\""
    assert sanitize_csv_value("sh run.sh") == "\tsh run.sh"
    assert sanitize_csv_value(".hidden") == "\t.hidden"
    assert sanitize_csv_value("Shopping") == "Shopping"
    assert sanitize_csv_value("  Groceries ") == "Groceries"
    assert sanitize_csv_value("") == ""


def test_parse_helpers():
    assert parse_date("2024-06-01") == date(2024, 6, 1)
    assert parse_date("01.06.2024") == date(2024, 6, 1)
    with pytest.raises(ValueError):
        parse_date("June 1st")


def test_export_transactions_includes_split_details():
    rows = list(csv.reader(StringIO(export_transactions(_ledger()))))
    assert rows[0][0] == "Date"
    assert rows[0][-1] == "Split Details"

    split_row = rows[1]
    assert split_row[2] == "Split Transaction"
    assert split_row[6] == "100.00"
    assert split_row[7] == "Food: 60.00; Travel: 40.00"

    income_row = rows[2]
    assert income_row[2] == "Uncategorized"
    assert income_row[3].startswith("\t=")
    assert income_row[7] == ""


def test_export_report_summary():
    report = build_report(_ledger(), date(2024, 6, 1), date(2024, 6, 30), "monthly", [FOOD, TRAVEL])
    text = export_report_summary(report, "KES")
    rows = list(csv.reader(StringIO(text)))
    assert rows[0] == ["Monthly Report"]
    assert ["Total Income", "KSh 500.00"] in rows
    assert ["Savings Rate", "80.0%"] in rows
    assert ["Food", "60.00", "60.0%", "1"] in rows
    assert ["Jun 2024", "500.00", "100.00", "400.00"] in rows


def test_export_filename():
    assert (
        export_filename(date(2024, 6, 1), date(2024, 6, 30))
        == "fintrack_transactions_2024-06-01_to_2024-06-30.csv"
    )
