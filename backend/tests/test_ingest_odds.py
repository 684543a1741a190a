from __future__ import annotations

import asyncio
import importlib.util
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from oddsledger.config import settings
from oddsledger.data_providers.sportsgameodds import FeedResult, FeedUnavailableError
from oddsledger.database import Base
from oddsledger.models.game import Game
from oddsledger.models.odds import CurrentOdds, OpeningOdds
from oddsledger.tasks.ingest_odds import ingest_event_odds, ingest_league_odds

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _feed_event(event_id: str, started: bool = False) -> dict:
    return {
        "eventID": event_id,
        "leagueID": "NFL",
        "status": {"startsAt": (NOW + timedelta(hours=5)).isoformat(), "started": started, "live": started},
        "teams": {"home": {"names": {"long": "Buffalo Bills"}}, "away": {"names": {"long": "Miami Dolphins"}}},
        "odds": {
            "points-home-game-ml-home": {
                "oddID": "points-home-game-ml-home",
                "marketName": "Moneyline",
                "byBookmaker": {"draftkings": {"odds": "-150"}, "fanduel": {"odds": "-145"}},
            },
            "points-away-game-ml-away": {
                "oddID": "points-away-game-ml-away",
                "marketName": "Moneyline",
                "byBookmaker": {"draftkings": {"odds": "+130"}},
            },
            "broken": {"oddID": "broken"},
        },
    }


class _FakeClient:
    def __init__(self, events: list[dict] | None = None, error: Exception | None = None) -> None:
        self.events = events or []
        self.error = error
        self.calls: list[tuple] = []

    async def get_events(self, league, starts_after=None, starts_before=None, include_alt_lines=None):
        self.calls.append(("events", league, starts_after, starts_before))
        if self.error:
            raise self.error
        return FeedResult(data=self.events, pages=1)

    async def get_event(self, event_id, include_alt_lines=None):
        self.calls.append(("event", event_id))
        if self.error:
            raise self.error
        return next((e for e in self.events if e["eventID"] == event_id), None)


async def _setup(url: str) -> tuple:
    engine = create_async_engine(url)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with session_factory() as session:
        for event_id in ("evt-1", "evt-2"):
            session.add(
                Game(id=event_id, league="NFL", home_team="Buffalo Bills", away_team="Miami Dolphins", game_time=NOW + timedelta(hours=5))
            )
        await session.commit()
    return engine, session_factory


async def _counts(session_factory) -> tuple[int, int]:
    async with session_factory() as session:
        current = int(await session.scalar(select(func.count(CurrentOdds.id))))
        opening = int(await session.scalar(select(func.count(OpeningOdds.id))))
    return current, opening


def _require_aiosqlite() -> None:
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")


def test_ingest_event_odds_writes_and_reports():
    _require_aiosqlite()
    asyncio.run(_run_ingest_event_odds())


async def _run_ingest_event_odds() -> None:
    engine, session_factory = await _setup("sqlite+aiosqlite:///:memory:")
    client = _FakeClient(events=[_feed_event("evt-1")])

    result = await ingest_event_odds("evt-1", client=client, session_factory=session_factory, now=NOW)
    assert result["skipped_reason"] is None
    assert result["attempted"] == 2
    assert result["written_current"] == 2
    assert result["written_opening"] == 2
    assert result["dropped"] == ["broken"]

    again = await ingest_event_odds("evt-1", client=client, session_factory=session_factory, now=NOW)
    assert again["written_opening"] == 0
    assert await _counts(session_factory) == (2, 2)

    started = await ingest_event_odds("evt-1", session_factory=session_factory, feed_event=_feed_event("evt-1", started=True), now=NOW)
    assert started["skipped_reason"] == "game_started"
    assert started["written_current"] == 0
    await engine.dispose()


def test_ingest_event_odds_skips_on_feed_failure_and_unknown_event():
    _require_aiosqlite()
    asyncio.run(_run_ingest_skips())


async def _run_ingest_skips() -> None:
    engine, session_factory = await _setup("sqlite+aiosqlite:///:memory:")

    failing = _FakeClient(error=FeedUnavailableError("events: timed out"))
    result = await ingest_event_odds("evt-1", client=failing, session_factory=session_factory, now=NOW)
    assert result["skipped_reason"] == "feed_unavailable"
    assert result["errors"] == ["events: timed out"]

    unknown = await ingest_event_odds("evt-9", session_factory=session_factory, feed_event=_feed_event("evt-9"), now=NOW)
    assert unknown["skipped_reason"] == "unknown_event"

    missing = await ingest_event_odds("evt-2", client=_FakeClient(), session_factory=session_factory, now=NOW)
    assert missing["skipped_reason"] == "event_not_in_feed"
    assert await _counts(session_factory) == (0, 0)
    await engine.dispose()


def test_ingest_league_odds_runs_each_event(tmp_path, monkeypatch):
    _require_aiosqlite()
    monkeypatch.setattr(settings, "ingest_concurrency", 1)
    asyncio.run(_run_ingest_league(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"))


async def _run_ingest_league(url: str) -> None:
    engine, session_factory = await _setup(url)
    client = _FakeClient(events=[_feed_event("evt-1"), _feed_event("evt-2", started=True), _feed_event("evt-3")])

    result = await ingest_league_odds("NFL", client=client, session_factory=session_factory, now=NOW)
    assert result["events"] == 3
    assert result["written_current"] == 2
    assert result["written_opening"] == 2
    assert result["skipped"] == {"game_started": 1, "unknown_event": 1}

    _, league, starts_after, starts_before = client.calls[0]
    assert league == "NFL"
    assert starts_after == NOW
    assert starts_before == NOW + timedelta(days=settings.ingest_window_days)

    failing = await ingest_league_odds("NFL", client=_FakeClient(error=FeedUnavailableError("boom")), session_factory=session_factory, now=NOW)
    assert failing["skipped"] == {"feed_unavailable": 1}
    assert failing["errors"] == ["boom"]
    await engine.dispose()
