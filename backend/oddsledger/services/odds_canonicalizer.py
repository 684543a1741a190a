from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from oddsledger.utils.odds_math import normalize_line, parse_american_odds
from oddsledger.utils.sportsbooks import SPORTSBOOKS, link_column, odds_column

logger = logging.getLogger(__name__)

PLAYER_STAT_KEYWORDS = (
    "passing_",
    "rushing_",
    "receiving_",
    "defense_",
    "kicking_",
    "fieldgoals_",
    "batting_",
    "pitching_",
    "assists",
    "rebounds",
    "steals",
    "blocks",
    "goals",
    "saves",
    "shots_",
    "tackles",
    "interceptions",
    "fumble",
)
MAIN_LINE_STATS = {"points"}
MAIN_LINE_PERIODS = {"game", "reg"}
MAIN_LINE_BET_TYPES = {"ml", "sp", "ou", "ml3way"}
TEAM_SCOPES = {"home", "away"}
GAME_SCOPE = "all"

# width of the line, line_key and book_line columns
LINE_WIDTH = 32

_PLAYER_ENTITY_RE = re.compile(r"^[A-Z0-9]+(?:_[A-Z0-9]+)+$")


class MarketKind(str, Enum):
    MAIN_LINE = "main_line"
    PLAYER_PROP = "player_prop"
    TEAM_PROP = "team_prop"
    GAME_PROP = "game_prop"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CanonicalOddsRow:
    event_id: str
    odd_id: str
    line: str | None
    market_name: str
    bet_type_id: str | None
    side_id: str | None
    stat_id: str | None
    player_id: str | None
    period_id: str | None
    market_kind: MarketKind
    book_line: str | None
    book_odds: int | None
    prices: dict[str, int | None] = field(default_factory=dict)
    links: dict[str, str | None] = field(default_factory=dict)
    settled_score: str | None = None
    fetched_at: datetime | None = None

    @property
    def line_key(self) -> str:
        return self.line if self.line is not None else ""

    @property
    def is_alternate(self) -> bool:
        return self.line is not None

    def key(self) -> tuple[str, str, str | None]:
        return (self.event_id, self.odd_id, self.line)

    def store_values(self) -> dict[str, Any]:
        """Column values shared by the current and opening odds tables."""
        values: dict[str, Any] = {
            "eventid": self.event_id,
            "oddid": self.odd_id,
            "line": self.line,
            "line_key": self.line_key,
            "marketname": self.market_name,
            "bettypeid": self.bet_type_id,
            "sideid": self.side_id,
            "statid": self.stat_id,
            "playerid": self.player_id,
            "periodid": self.period_id,
            "market_kind": self.market_kind.value,
            "book_line": self.book_line,
            "bookodds": self.book_odds,
            "fetched_at": self.fetched_at,
        }
        for book in SPORTSBOOKS:
            values[odds_column(book)] = self.prices.get(book)
            values[link_column(book)] = self.links.get(book)
        return values


@dataclass(frozen=True)
class CanonicalBatch:
    event_id: str
    rows: list[CanonicalOddsRow]
    dropped: list[str]


class DataShapeError(ValueError):
    pass


def _truncate(value: Any, max_length: int) -> str | None:
    if value is None or value == "":
        return None
    text = str(value)
    return text[:max_length]


def classify_proposition(odd_id: str, market_name: str | None = None) -> MarketKind:
    """Best-effort market classification from oddID shape and market name.

    oddIDs look like ``{stat}-{entity}-{period}-{betType}-{side}``. Never
    used for keys; misclassification only affects reporting.
    """
    lowered = odd_id.lower()
    parts = odd_id.split("-")
    market = (market_name or "").lower()

    if len(parts) >= 5:
        stat, entity, period, bet_type = parts[0].lower(), parts[1], parts[2].lower(), parts[3].lower()
        scope = entity.lower()
        if scope in TEAM_SCOPES or scope == GAME_SCOPE:
            if stat in MAIN_LINE_STATS and period in MAIN_LINE_PERIODS and bet_type in MAIN_LINE_BET_TYPES:
                return MarketKind.MAIN_LINE
            return MarketKind.GAME_PROP if scope == GAME_SCOPE else MarketKind.TEAM_PROP
        if _PLAYER_ENTITY_RE.match(entity) or any(k in lowered for k in PLAYER_STAT_KEYWORDS):
            return MarketKind.PLAYER_PROP

    if any(k in lowered for k in PLAYER_STAT_KEYWORDS) or "player" in market:
        return MarketKind.PLAYER_PROP
    if f"-{GAME_SCOPE}-" in lowered:
        return MarketKind.GAME_PROP
    if "-home-" in lowered or "-away-" in lowered:
        return MarketKind.TEAM_PROP
    if any(token in market for token in ("moneyline", "spread", "over/under", "total")):
        return MarketKind.MAIN_LINE
    return MarketKind.UNKNOWN


class _RowBuilder:
    def __init__(
        self,
        event_id: str,
        odd_id: str,
        line: str | None,
        proposition: dict[str, Any],
        kind: MarketKind,
        book_odds: int | None,
    ) -> None:
        self.event_id = event_id
        self.odd_id = odd_id
        self.line = line
        self.proposition = proposition
        self.kind = kind
        self.book_odds = book_odds
        self.prices: dict[str, int | None] = {}
        self.links: dict[str, str | None] = {}

    def add_price(self, book: str, price: int | None, link: str | None) -> None:
        if book not in SPORTSBOOKS:
            return
        self.prices[book] = price
        if link:
            self.links[book] = _truncate(link, 512)

    def build(self, fetched_at: datetime | None) -> CanonicalOddsRow:
        p = self.proposition
        score = p.get("score")
        return CanonicalOddsRow(
            event_id=self.event_id,
            odd_id=self.odd_id,
            line=self.line,
            market_name=_truncate(p.get("marketName"), 50) or "unknown",
            bet_type_id=_truncate(p.get("betTypeID"), 50),
            side_id=_truncate(p.get("sideID"), 50),
            stat_id=_truncate(p.get("statID"), 100),
            player_id=_truncate(p.get("playerID"), 100),
            period_id=_truncate(p.get("periodID"), 50),
            market_kind=self.kind,
            book_line=normalize_line(_main_line_value(p)),
            book_odds=self.book_odds,
            prices=dict(self.prices),
            links=dict(self.links),
            settled_score=_truncate(score, 50) if score is not None else None,
            fetched_at=fetched_at,
        )


def _main_line_value(proposition: dict[str, Any]) -> Any:
    for key in ("bookSpread", "bookOverUnder", "fairSpread", "fairOverUnder", "line"):
        value = proposition.get(key)
        line = normalize_line(value)
        if line is not None and len(line) <= LINE_WIDTH:
            return value
    return None


def _alt_line_value(alt: dict[str, Any]) -> Any:
    for key in ("spread", "overUnder", "line"):
        value = alt.get(key)
        if normalize_line(value) is not None:
            return value
    return None


def _validate(odd_key: str, proposition: Any) -> dict[str, Any]:
    if not isinstance(proposition, dict):
        raise DataShapeError(f"proposition {odd_key!r} is not an object")
    if not proposition.get("marketName"):
        raise DataShapeError(f"proposition {odd_key!r} has no marketName")
    by_bookmaker = proposition.get("byBookmaker")
    if by_bookmaker is not None and not isinstance(by_bookmaker, dict):
        raise DataShapeError(f"proposition {odd_key!r} has malformed byBookmaker")
    return proposition


def canonicalize_event_odds(
    event_id: str,
    odds_payload: dict[str, Any] | None,
    fetched_at: datetime | None = None,
) -> CanonicalBatch:
    """Turn one event's ``odds`` map into canonical rows, one per (oddID, line).

    Pure: same payload and ``fetched_at`` give an identical batch.
    """
    builders: dict[tuple[str, str | None], _RowBuilder] = {}
    dropped: list[str] = []

    payload = odds_payload if isinstance(odds_payload, dict) else {}
    for odd_key, raw in payload.items():
        try:
            proposition = _validate(odd_key, raw)
        except DataShapeError as exc:
            logger.warning("dropping malformed proposition: event_id=%s odd_key=%s reason=%s", event_id, odd_key, exc)
            dropped.append(odd_key)
            continue

        odd_id = _truncate(proposition.get("oddID") or odd_key, 100)
        kind = classify_proposition(odd_id, proposition.get("marketName"))
        main_key = (odd_id, None)
        main = builders.get(main_key)
        if main is None:
            main = _RowBuilder(event_id, odd_id, None, proposition, kind, parse_american_odds(proposition.get("bookOdds")))
            builders[main_key] = main

        for book, quote in (proposition.get("byBookmaker") or {}).items():
            if not isinstance(quote, dict) or quote.get("available") is False:
                continue
            main.add_price(book, parse_american_odds(quote.get("odds")), quote.get("deeplink"))

            alt_lines = quote.get("altLines")
            for alt in alt_lines if isinstance(alt_lines, list) else []:
                if not isinstance(alt, dict) or alt.get("available") is False:
                    continue
                alt_line = normalize_line(_alt_line_value(alt))
                if alt_line is None:
                    continue
                if len(alt_line) > LINE_WIDTH:
                    logger.warning(
                        "dropping oversized alternate line: event_id=%s odd_id=%s book=%s line=%s",
                        event_id,
                        odd_id,
                        book,
                        alt_line[:LINE_WIDTH],
                    )
                    dropped.append(f"{odd_key}@{alt_line[:LINE_WIDTH]}")
                    continue
                alt_key = (odd_id, alt_line)
                builder = builders.get(alt_key)
                if builder is None:
                    builder = _RowBuilder(event_id, odd_id, alt_line, proposition, kind, parse_american_odds(alt.get("odds")))
                    builders[alt_key] = builder
                builder.add_price(book, parse_american_odds(alt.get("odds")), alt.get("deeplink"))

    rows = [builder.build(fetched_at) for builder in builders.values()]
    logger.debug(
        "canonicalized event odds: event_id=%s propositions=%s rows=%s dropped=%s",
        event_id,
        len(payload),
        len(rows),
        len(dropped),
    )
    return CanonicalBatch(event_id=event_id, rows=rows, dropped=dropped)
