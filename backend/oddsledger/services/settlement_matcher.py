"""Wager to odds-row matching and outcome derivation.

Everything here is pure: callers pass the wager, the event's odds rows and
the final score pair, and get back a decision. Nothing is guessed; a wager
that cannot be pinned to exactly one row stays unresolved with a reason.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence

from oddsledger.utils.odds_math import line_to_float, normalize_line, potential_payout

SIDES = ("home", "away", "over", "under", "yes", "no")

BET_TYPE_ALIASES = {
    "moneyline": "moneyline",
    "ml": "moneyline",
    "h2h": "moneyline",
    "spread": "spread",
    "spreads": "spread",
    "sp": "spread",
    "total": "total",
    "totals": "total",
    "ou": "total",
    "over_under": "total",
    "player_prop": "player_prop",
    "prop": "player_prop",
    "team_prop": "team_prop",
    "game_prop": "game_prop",
}

KEYWORD_FAMILIES = {
    "moneyline": ("moneyline",),
    "spread": ("spread",),
    "total": ("total", "over", "under"),
    "player_prop": ("prop", "player"),
    "team_prop": ("prop", "team"),
    "game_prop": ("prop",),
}

NO_MATCHING_ODDS = "no_matching_odds"
AMBIGUOUS_MATCH = "ambiguous_match"
MISSING_SCORE = "missing_score"
MISSING_LINE = "missing_line"
MISSING_SIDE = "missing_side"
MISSING_ODDS = "missing_odds"


class MatchTier(int, Enum):
    EXACT = 1
    PATTERN = 2
    MARKET = 3


class Outcome(str, Enum):
    WON = "won"
    LOST = "lost"
    PUSH = "push"


@dataclass(frozen=True)
class MatchResult:
    row: Any | None = None
    tier: MatchTier | None = None
    reason: str | None = None

    @property
    def resolved(self) -> bool:
        return self.row is not None


@dataclass(frozen=True)
class OutcomeResult:
    outcome: Outcome | None = None
    profit: float | None = None
    reason: str | None = None

    @property
    def resolved(self) -> bool:
        return self.outcome is not None


def bet_family(bet_type: str | None) -> str | None:
    if not bet_type:
        return None
    return BET_TYPE_ALIASES.get(bet_type.strip().lower())


def wager_side(wager: Any) -> str | None:
    side = (getattr(wager, "side", None) or "").strip().lower()
    if side in SIDES:
        return side
    odd_id = (getattr(wager, "oddid", None) or "").lower()
    for token in reversed(odd_id.split("-")):
        if token in SIDES:
            return token
    return None


def _row_side(row: Any) -> str | None:
    side = getattr(row, "sideid", None)
    return side.strip().lower() if side else None


def _narrow_by_line(candidates: list[Any], wager_line: str | None) -> list[Any]:
    same_line = [row for row in candidates if normalize_line(getattr(row, "line", None)) == wager_line]
    return same_line or candidates


def _decide(candidates: list[Any], tier: MatchTier) -> MatchResult | None:
    if not candidates:
        return None
    if len(candidates) > 1:
        return MatchResult(tier=tier, reason=AMBIGUOUS_MATCH)
    return MatchResult(row=candidates[0], tier=tier)


def match_wager(wager: Any, rows: Sequence[Any]) -> MatchResult:
    """Resolve ``wager`` to exactly one of ``rows``.

    Tiers run in order and the first tier with any candidate decides: exact
    (oddid, line), then case-folded substring on oddid either way, then the
    bet type's keyword family on marketname narrowed by side and line.
    """
    odd_id = (getattr(wager, "oddid", None) or "").strip()
    wager_line = normalize_line(getattr(wager, "line", None))

    if odd_id:
        exact = [
            row
            for row in rows
            if getattr(row, "oddid", None) == odd_id and normalize_line(getattr(row, "line", None)) == wager_line
        ]
        if exact:
            return MatchResult(row=exact[0], tier=MatchTier.EXACT)

        needle = odd_id.casefold()
        pattern = []
        for row in rows:
            candidate = (getattr(row, "oddid", None) or "").casefold()
            if candidate and (needle in candidate or candidate in needle):
                pattern.append(row)
        decided = _decide(_narrow_by_line(pattern, wager_line), MatchTier.PATTERN)
        if decided is not None:
            return decided

    keywords = KEYWORD_FAMILIES.get(bet_family(getattr(wager, "bet_type", None)) or "", ())
    if not keywords:
        return MatchResult(reason=NO_MATCHING_ODDS)

    market = [row for row in rows if any(k in (getattr(row, "marketname", None) or "").lower() for k in keywords)]
    side = wager_side(wager)
    if side is not None:
        market = [row for row in market if _row_side(row) in (None, side)]
    decided = _decide(_narrow_by_line(market, wager_line), MatchTier.MARKET)
    return decided or MatchResult(reason=NO_MATCHING_ODDS)


def _threshold(wager: Any, row: Any) -> float | None:
    line_value = getattr(wager, "line_value", None)
    if line_value is not None:
        return float(line_value)
    # the wager's own line wins over whatever line the matched row carries
    for value in (getattr(wager, "line", None), getattr(row, "line", None), getattr(row, "book_line", None)):
        parsed = line_to_float(value)
        if parsed is not None:
            return parsed
    return None


def _compare(lhs: float, rhs: float) -> Outcome:
    if lhs > rhs:
        return Outcome.WON
    if lhs < rhs:
        return Outcome.LOST
    return Outcome.PUSH


def _team_scores(side: str, home_score: int, away_score: int) -> tuple[float, float]:
    if side == "home":
        return float(home_score), float(away_score)
    return float(away_score), float(home_score)


def settlement_profit(outcome: Outcome, stake: float, odds: int | None, payout: float | None = None) -> float:
    if outcome == Outcome.PUSH:
        return 0.0
    if outcome == Outcome.LOST:
        return -stake
    if payout is None:
        payout = potential_payout(stake, odds)
    return round(payout - stake, 2)


def derive_outcome(wager: Any, row: Any, home_score: int | None, away_score: int | None) -> OutcomeResult:
    """Settle ``wager`` against its matched row and the final score pair.

    Moneyline and spread read the game score; totals and props read the
    row's settled score against the wager's threshold. Ties push.
    """
    family = bet_family(getattr(wager, "bet_type", None)) or bet_family(getattr(row, "bettypeid", None))
    side = wager_side(wager) or _row_side(row)
    has_scores = home_score is not None and away_score is not None

    if family in ("moneyline", "spread"):
        if side not in ("home", "away"):
            return OutcomeResult(reason=MISSING_SIDE)
        if not has_scores:
            return OutcomeResult(reason=MISSING_SCORE)
        team, opponent = _team_scores(side, home_score, away_score)
        if family == "spread":
            threshold = _threshold(wager, row)
            if threshold is None:
                return OutcomeResult(reason=MISSING_LINE)
            team += threshold
        outcome = _compare(team, opponent)
    else:
        score = line_to_float(getattr(row, "score", None))
        if score is None and family == "total" and has_scores and getattr(row, "statid", None) in (None, "points"):
            score = float(home_score + away_score)
        if score is None:
            return OutcomeResult(reason=MISSING_SCORE)
        if side in ("yes", "no"):
            outcome = Outcome.WON if (score > 0) == (side == "yes") else Outcome.LOST
        elif side in ("over", "under"):
            threshold = _threshold(wager, row)
            if threshold is None:
                return OutcomeResult(reason=MISSING_LINE)
            outcome = _compare(score, threshold) if side == "over" else _compare(threshold, score)
        else:
            return OutcomeResult(reason=MISSING_SIDE)

    stake = float(getattr(wager, "stake", 0.0) or 0.0)
    odds = getattr(wager, "odds", None)
    payout = getattr(wager, "potential_payout", None)
    if outcome == Outcome.WON and payout is None and not odds:
        return OutcomeResult(reason=MISSING_ODDS)
    profit = settlement_profit(outcome, stake, odds, payout)
    return OutcomeResult(outcome=outcome, profit=profit)


def settle_wagers(
    wagers: Iterable[Any],
    rows: Sequence[Any],
    home_score: int | None,
    away_score: int | None,
) -> list[tuple[Any, MatchResult, OutcomeResult]]:
    decisions = []
    for wager in wagers:
        match = match_wager(wager, rows)
        if not match.resolved:
            decisions.append((wager, match, OutcomeResult(reason=match.reason)))
            continue
        decisions.append((wager, match, derive_outcome(wager, match.row, home_score, away_score)))
    return decisions
