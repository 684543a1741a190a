from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oddsledger.config import settings
from oddsledger.data_providers.sportsgameodds import FeedUnavailableError, SportsGameOddsClient
from oddsledger.database import AsyncSessionLocal
from oddsledger.services.dual_table_writer import WriteSummary, write_event_odds
from oddsledger.services.event_catalog import load_event_snapshot
from oddsledger.services.odds_canonicalizer import canonicalize_event_odds

logger = logging.getLogger(__name__)

SKIPPED_FEED_UNAVAILABLE = "feed_unavailable"
SKIPPED_NOT_IN_FEED = "event_not_in_feed"
SKIPPED_UNKNOWN_EVENT = "unknown_event"


def _skipped(event_id: str, reason: str, error: str | None = None) -> dict[str, Any]:
    summary = WriteSummary(event_id=event_id, skipped_reason=reason)
    if error:
        summary.errors.append(error)
    return {**summary.to_dict(), "dropped": []}


async def ingest_event_odds(
    event_id: str,
    *,
    client: SportsGameOddsClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    feed_event: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Fetch, canonicalize and write one event's odds.

    ``feed_event`` skips the per-event feed call when the caller already has
    the payload (league batches).
    """
    now = now or datetime.now(UTC)
    if feed_event is None:
        client = client or SportsGameOddsClient()
        try:
            feed_event = await client.get_event(event_id)
        except FeedUnavailableError as exc:
            logger.warning("odds feed unavailable; event skipped: event_id=%s error=%s", event_id, exc)
            return _skipped(event_id, SKIPPED_FEED_UNAVAILABLE, str(exc))
        if feed_event is None:
            return _skipped(event_id, SKIPPED_NOT_IN_FEED)

    async with session_factory() as session:
        snapshot = await load_event_snapshot(session, event_id, feed_event)
        if snapshot is None:
            logger.info("odds ingest skipped for unknown event: event_id=%s", event_id)
            return _skipped(event_id, SKIPPED_UNKNOWN_EVENT)

        batch = canonicalize_event_odds(event_id, feed_event.get("odds"), fetched_at=now)
        summary = await write_event_odds(session, batch.rows, snapshot, now=now)

    return {**summary.to_dict(), "dropped": batch.dropped}


async def ingest_league_odds(
    league: str,
    *,
    client: SportsGameOddsClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.now(UTC)
    client = client or SportsGameOddsClient()
    result: dict[str, Any] = {
        "league": league,
        "events": 0,
        "attempted": 0,
        "written_current": 0,
        "written_opening": 0,
        "skipped": {},
        "errors": [],
    }

    try:
        feed = await client.get_events(
            league,
            starts_after=now,
            starts_before=now + timedelta(days=settings.ingest_window_days),
        )
    except FeedUnavailableError as exc:
        logger.warning("odds feed unavailable; league skipped: league=%s error=%s", league, exc)
        result["skipped"][SKIPPED_FEED_UNAVAILABLE] = 1
        result["errors"].append(str(exc))
        return result

    semaphore = asyncio.Semaphore(settings.ingest_concurrency)

    async def _run(event: dict[str, Any]) -> dict[str, Any]:
        event_id = str(event.get("eventID") or "")
        async with semaphore:
            try:
                return await ingest_event_odds(event_id, session_factory=session_factory, feed_event=event, now=now)
            except Exception as exc:
                logger.exception("odds ingest failed: league=%s event_id=%s", league, event_id)
                return _skipped(event_id, "error", f"{type(exc).__name__}: {exc}")

    events = [event for event in feed.data if event.get("eventID")]
    summaries = await asyncio.gather(*(_run(event) for event in events))

    for summary in summaries:
        result["events"] += 1
        result["attempted"] += summary["attempted"]
        result["written_current"] += summary["written_current"]
        result["written_opening"] += summary["written_opening"]
        reason = summary["skipped_reason"]
        if reason:
            result["skipped"][reason] = result["skipped"].get(reason, 0) + 1
        for error in summary["errors"]:
            if len(result["errors"]) < settings.error_sample_size:
                result["errors"].append(f"{summary['event_id']}: {error}")

    logger.info(
        "league odds ingested: league=%s events=%s written_current=%s written_opening=%s skipped=%s",
        league,
        result["events"],
        result["written_current"],
        result["written_opening"],
        result["skipped"],
    )
    return result

