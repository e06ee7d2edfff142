import csv
import re
from datetime import date, datetime
from io import StringIO
from typing import Sequence

from currencies import format_currency
from ledger import UNCATEGORIZED, LedgerTransaction
from reports import ReportData


TRANSACTION_HEADER = [
    "Date",
    "Type",
    "Category",
    "Description",
    "Merchant",
    "Payment Method",
    "Amount",
    "Split Details",
]


def sanitize_csv_value(value: str) -> str:
    """
    Sanitize CSV values to prevent formula injection by prefixing dangerous patterns with tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()

    if value.startswith(("=", "+", "-", "@", "\t", "\r")):
        return "\t" + value

    dangerous_patterns = (
        r"^cmd\s*",
        r"^powershell\s*",
        r"^bash\b",
        r"^sh\b",
        r"^\.",
        r"^http[s]?://",
    )
    for pattern in dangerous_patterns:
        if re.match(pattern, value, re.IGNORECASE):
            return "\t" + value

    return value


def parse_date(value: str) -> date:
    value = value.strip()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return datetime.strptime(value, "%d.%m.%Y").date()


def _category_cell(txn: LedgerTransaction) -> str:
    if txn.is_split:
        return "Split Transaction"
    return (txn.category or UNCATEGORIZED).name


def _split_details(txn: LedgerTransaction) -> str:
    if not txn.is_split:
        return ""
    return "; ".join(
        f"{(split.category or UNCATEGORIZED).name}: {split.amount:.2f}"
        for split in txn.splits
    )


def export_transactions(transactions: Sequence[LedgerTransaction]) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(TRANSACTION_HEADER)
    for txn in transactions:
        writer.writerow(
            [
                txn.date.isoformat(),
                txn.type.value,
                sanitize_csv_value(_category_cell(txn)),
                sanitize_csv_value(txn.description or ""),
                sanitize_csv_value(txn.merchant or ""),
                sanitize_csv_value(txn.payment_method or ""),
                f"{txn.amount:.2f}",
                sanitize_csv_value(_split_details(txn)),
            ]
        )
    return output.getvalue()


def export_report_summary(report: ReportData, currency: str) -> str:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow([report.period])
    writer.writerow(
        ["Period", f"{report.start_date.isoformat()} to {report.end_date.isoformat()}"]
    )
    writer.writerow([])
    writer.writerow(["Summary"])
    writer.writerow(["Total Income", format_currency(report.total_income, currency)])
    writer.writerow(["Total Expenses", format_currency(report.total_expenses, currency)])
    writer.writerow(["Net Balance", format_currency(report.net_balance, currency)])
    writer.writerow(["Savings Rate", f"{report.savings_rate:.1f}%"])
    writer.writerow(["Transactions", report.transaction_count])
    writer.writerow(
        ["Average Daily Expense", format_currency(report.avg_daily_expense, currency)]
    )
    writer.writerow([])
    writer.writerow(["Category", "Amount", "Percentage", "Transactions"])
    for line in report.category_breakdown:
        writer.writerow(
            [
                sanitize_csv_value(line.category),
                f"{line.amount:.2f}",
                f"{line.percentage:.1f}%",
                line.count,
            ]
        )
    writer.writerow([])
    writer.writerow(["Month", "Income", "Expenses", "Balance"])
    for month in report.monthly_trend:
        writer.writerow(
            [
                month.month,
                f"{month.income:.2f}",
                f"{month.expenses:.2f}",
                f"{month.balance:.2f}",
            ]
        )
    return output.getvalue()


def export_filename(start: date, end: date) -> str:
    return f"fintrack_transactions_{start.isoformat()}_to_{end.isoformat()}.csv"
