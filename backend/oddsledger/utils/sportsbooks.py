"""Sportsbooks that get a dedicated price column family in the odds stores.

Keys are the upstream feed's bookmaker ids; each maps to ``<key>_odds`` and
``<key>_link`` columns on both odds tables.
"""

SPORTSBOOKS: tuple[str, ...] = (
    "fanduel",
    "draftkings",
    "caesars",
    "betmgm",
    "espnbet",
    "fanatics",
    "bovada",
    "betrivers",
    "pinnacle",
    "bet365",
)


def odds_column(book: str) -> str:
    return f"{book}_odds"


def link_column(book: str) -> str:
    return f"{book}_link"
