from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.models.game import STARTED_STATUSES, Game

logger = logging.getLogger(__name__)


@dataclass
class EventSnapshot:
    event_id: str
    status: str
    game_time: datetime | None
    home_team: str | None = None
    away_team: str | None = None
    home_score: int | None = None
    away_score: int | None = None

    def has_started(self, now: datetime | None = None) -> bool:
        if self.status in STARTED_STATUSES:
            return True
        if self.game_time is None:
            return False
        now = now or datetime.now(UTC)
        game_time = self.game_time.replace(tzinfo=UTC) if self.game_time.tzinfo is None else self.game_time
        return game_time <= now

    @property
    def is_final(self) -> bool:
        return self.status == "final" and self.home_score is not None and self.away_score is not None


def parse_feed_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def status_from_feed(event: dict[str, Any]) -> str | None:
    status = _mapping(event.get("status"))
    if status.get("finalized") or status.get("completed") or status.get("ended"):
        return "final"
    if status.get("live"):
        return "live"
    if status.get("started"):
        return "started"
    return None


def _score(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def scores_from_feed(event: dict[str, Any]) -> tuple[int | None, int | None]:
    teams = _mapping(event.get("teams"))
    results = _mapping(_mapping(event.get("results")).get("game"))
    home_score = _score(_mapping(teams.get("home")).get("score"))
    away_score = _score(_mapping(teams.get("away")).get("score"))
    if home_score is None:
        home_score = _score(_mapping(results.get("home")).get("points"))
    if away_score is None:
        away_score = _score(_mapping(results.get("away")).get("points"))
    return home_score, away_score


def proposition_scores_from_feed(event: dict[str, Any]) -> dict[str, str]:
    scores: dict[str, str] = {}
    for odd_key, proposition in _mapping(event.get("odds")).items():
        if not isinstance(proposition, dict):
            continue
        score = proposition.get("score")
        if score is None or score == "":
            continue
        scores[str(proposition.get("oddID") or odd_key)[:100]] = str(score)[:50]
    return scores


async def load_event_snapshot(
    session: AsyncSession,
    event_id: str,
    feed_event: dict[str, Any] | None = None,
) -> EventSnapshot | None:
    """Current lifecycle view of an event; feed flags override stored status."""
    game = await session.scalar(select(Game).where(Game.id == event_id))
    if game is None:
        return None

    snapshot = EventSnapshot(
        event_id=game.id,
        status=game.status,
        game_time=game.game_time,
        home_team=game.home_team,
        away_team=game.away_team,
        home_score=game.home_score,
        away_score=game.away_score,
    )
    if feed_event:
        feed_status = status_from_feed(feed_event)
        if feed_status is not None:
            snapshot.status = feed_status
        starts_at = parse_feed_time(_mapping(feed_event.get("status")).get("startsAt"))
        if starts_at is not None:
            snapshot.game_time = starts_at
        home_score, away_score = scores_from_feed(feed_event)
        if snapshot.status == "final" and home_score is not None and away_score is not None:
            snapshot.home_score, snapshot.away_score = home_score, away_score
    return snapshot


async def record_final_score(session: AsyncSession, event_id: str, home_score: int | None, away_score: int | None) -> bool:
    if home_score is None or away_score is None:
        return False
    result = await session.execute(
        update(Game)
        .where(Game.id == event_id)
        .values(status="final", home_score=home_score, away_score=away_score, updated_at=datetime.now(UTC))
    )
    if result.rowcount:
        logger.info("recorded final score: event_id=%s home_score=%s away_score=%s", event_id, home_score, away_score)
    return bool(result.rowcount)
