"""Fixed-point money helpers. Amounts are integer minor units everywhere."""
from decimal import Decimal, ROUND_DOWN
from typing import Tuple

# ISO 4217 minor-unit exponents that differ from the usual 2
CURRENCY_EXPONENTS = {
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "CLP": 0,
    "ISK": 0,
    "BHD": 3,
    "KWD": 3,
    "OMR": 3,
    "JOD": 3,
    "TND": 3,
}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "INR": "₹",
    "JPY": "¥",
}


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency.upper(), 2)


def format_amount(amount_cents: int, currency: str) -> str:
    """Render minor units for humans, e.g. 1250 USD -> "$12.50"."""
    exponent = currency_exponent(currency)
    value = Decimal(amount_cents).scaleb(-exponent)
    text = f"{value:.{exponent}f}"
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{text}"
    return f"{text} {currency.upper()}"


def split_equally(total_cents: int, parts: int) -> Tuple[int, int]:
    """
    Split total into `parts` shares rounded down.

    Returns (share, remainder); remainder is what rounding left over.
    """
    if parts <= 0:
        raise ValueError("parts must be positive")
    share = total_cents // parts
    return share, total_cents - share * parts


def percentage_share(total_cents: int, percentage: Decimal) -> int:
    """Floor of total * percentage / 100 in minor units."""
    share = (Decimal(total_cents) * Decimal(percentage) / Decimal(100))
    return int(share.to_integral_value(rounding=ROUND_DOWN))