from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union


@dataclass(frozen=True)
class Currency:
    code: str
    symbol: str
    name: str


CURRENCIES: dict[str, Currency] = {
    c.code: c
    for c in (
        Currency("USD", "$", "US Dollar"),
        Currency("KES", "KSh", "Kenyan Shilling"),
        Currency("EUR", "€", "Euro"),
        Currency("GBP", "£", "British Pound"),
        Currency("JPY", "¥", "Japanese Yen"),
        Currency("CNY", "¥", "Chinese Yuan"),
        Currency("INR", "₹", "Indian Rupee"),
        Currency("AUD", "A$", "Australian Dollar"),
        Currency("CAD", "C$", "Canadian Dollar"),
        Currency("ZAR", "R", "South African Rand"),
        Currency("NGN", "₦", "Nigerian Naira"),
        Currency("GHS", "₵", "Ghanaian Cedi"),
        Currency("TZS", "TSh", "Tanzanian Shilling"),
        Currency("UGX", "USh", "Ugandan Shilling"),
    )
}

FALLBACK_CURRENCY = "KES"


def get_currency(code: str) -> Currency:
    return CURRENCIES.get((code or "").upper(), CURRENCIES[FALLBACK_CURRENCY])


def currency_symbol(code: str) -> str:
    return get_currency(code).symbol


def format_currency(amount: Union[Decimal, int, float], code: str) -> str:
    # Sign is carried by the transaction type, so only the magnitude is shown.
    value = abs(Decimal(str(amount))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{currency_symbol(code)} {value:,.2f}"
