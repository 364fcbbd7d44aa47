"""Nepali Rupee formatting for prices and dashboard figures."""
import math

CURRENCY_SYMBOL = "Rs."
CURRENCY_CODE = "NPR"
CURRENCY_NAME = "Nepali Rupee"

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000


def to_amount(value):
    """Number or numeric string as a float, None when it is not a finite number."""
    if isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    return amount


def format_currency(value):
    amount = to_amount(value)
    if amount is None:
        return f"{CURRENCY_SYMBOL} 0"
    if amount % 1 == 0:
        return f"{CURRENCY_SYMBOL} {amount:,.0f}"
    return f"{CURRENCY_SYMBOL} {amount:,.2f}"


def format_currency_compact(value):
    """Short form for large amounts: K (thousand), L (lakh), Cr (crore)."""
    amount = to_amount(value)
    if amount is None:
        return f"{CURRENCY_SYMBOL} 0"
    magnitude = abs(amount)
    if magnitude >= CRORE:
        return f"{CURRENCY_SYMBOL} {amount / CRORE:.1f}Cr"
    if magnitude >= LAKH:
        return f"{CURRENCY_SYMBOL} {amount / LAKH:.1f}L"
    if magnitude >= THOUSAND:
        return f"{CURRENCY_SYMBOL} {amount / THOUSAND:.1f}K"
    return format_currency(amount)
