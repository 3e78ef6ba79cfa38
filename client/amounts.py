"""
Conversion between user-facing cUSDT amounts and base units.

cUSDT has 6 decimals: "1.25" is 1_250_000 base units.
"""

import re


DECIMALS = 6
SCALE = 10**DECIMALS
DISPLAY_FRACTION_DIGITS = 4
PLACEHOLDER = "—"

_DIGITS = re.compile(r"[0-9]+")
_OPTIONAL_DIGITS = re.compile(r"[0-9]*")


def parse_amount(text: str) -> int | None:
    """
    Parse a decimal amount into base units.

    Extra fraction digits are truncated, missing ones padded with zeros.
    Returns None for empty input, signs, exponents, or any other
    non-digit character.

        >>> parse_amount("1.25")
        1250000
        >>> parse_amount("0.1234567")
        123456
    """
    trimmed = text.strip()
    if not trimmed:
        return None
    whole, _, fraction = trimmed.partition(".")
    if not _DIGITS.fullmatch(whole) or not _OPTIONAL_DIGITS.fullmatch(fraction):
        return None
    padded = (fraction + "0" * DECIMALS)[:DECIMALS]
    return int(whole + padded)


def format_amount(value: int | None) -> str:
    """Render base units with up to four fraction digits, e.g. "1.25"."""
    if value is None:
        return PLACEHOLDER
    whole, fraction = divmod(value, SCALE)
    fraction_str = str(fraction).rjust(DECIMALS, "0").rstrip("0") or "0"
    return f"{whole}.{fraction_str[:DISPLAY_FRACTION_DIGITS]}"


def format_countdown(end_timestamp: int, now: int) -> str:
    remaining = end_timestamp - now
    if remaining <= 0:
        return "Ended"
    days, remaining = divmod(remaining, 86400)
    hours, remaining = divmod(remaining, 3600)
    minutes = remaining // 60
    return f"{days}d {hours}h {minutes}m"
