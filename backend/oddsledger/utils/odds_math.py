from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

EXTREME_ODDS_CUTOFF = 50000
MAX_ODDS = 9999
NULL_LINE_TOKENS = {"", "null", "none", "undefined"}


def american_to_decimal(american_odds: int) -> float:
    """Convert American odds to decimal. -110 -> 1.909, +150 -> 2.5"""
    if american_odds == 0:
        raise ValueError("American odds cannot be 0")
    if american_odds > 0:
        return round((american_odds / 100) + 1, 3)
    return round((100 / abs(american_odds)) + 1, 3)


def american_to_profit_multiplier(american_odds: int) -> float:
    """Profit per unit staked on a win. -110 -> 0.909, +150 -> 1.5 (unrounded)."""
    if american_odds == 0:
        raise ValueError("American odds cannot be 0")
    if american_odds > 0:
        return american_odds / 100
    return 100 / abs(american_odds)


def potential_payout(stake: float, american_odds: int) -> float:
    """Total return (stake + profit) of a winning single."""
    return stake + stake * american_to_profit_multiplier(american_odds)


def parse_american_odds(value: Any) -> int | None:
    """Feed price -> integer American odds. "+150" -> 150; garbage -> None.

    Values beyond +/-50000 are feed placeholders and dropped; the rest are
    clamped to +/-9999.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(str(value).strip())
    except ValueError:
        return None
    if parsed != parsed or parsed == 0:
        return None
    if abs(parsed) > EXTREME_ODDS_CUTOFF:
        return None
    return int(round(min(max(parsed, -MAX_ODDS), MAX_ODDS)))


def normalize_line(value: Any) -> str | None:
    """Canonical string form of a line, or None for the main line.

    "+3.5", 3.5 and "3.50" all become "3.5"; 3.0 becomes "3".
    """
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if text.lower() in NULL_LINE_TOKENS:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return text
    if not number.is_finite():
        return text
    if number == 0:
        return "0"
    return format(number.normalize(), "f")


def line_to_float(value: Any) -> float | None:
    normalized = normalize_line(value)
    if normalized is None:
        return None
    try:
        return float(normalized)
    except ValueError:
        return None
