from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from oddsledger.config import settings
from oddsledger.data_providers.sportsgameodds import SportsGameOddsClient
from oddsledger.database import AsyncSessionLocal, dialect_name
from oddsledger.models.bet import Bet
from oddsledger.models.game import Game
from oddsledger.services.settlement_service import settle_event_wagers

logger = logging.getLogger(__name__)

ADVISORY_LOCK_KEY = 927412


async def settle_event(
    event_id: str,
    *,
    client: SportsGameOddsClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    now: datetime | None = None,
) -> dict[str, Any]:
    async with session_factory() as session:
        return await settle_event_wagers(session, event_id, client=client, now=now)


async def _candidate_events(session: AsyncSession, now: datetime) -> list[str]:
    since = now - timedelta(days=settings.settlement_lookback_days)
    rows = await session.scalars(
        select(Game.id)
        .join(Bet, Bet.game_id == Game.id)
        .where(Bet.status == "pending", Game.game_time >= since, Game.game_time <= now)
        .distinct()
        .order_by(Game.id)
    )
    return list(rows.all())


async def _acquire_lock(session: AsyncSession) -> bool:
    if dialect_name(session) != "postgresql":
        return True
    return bool(await session.scalar(text("SELECT pg_try_advisory_lock(:key)"), {"key": ADVISORY_LOCK_KEY}))


async def _release_lock(session: AsyncSession) -> None:
    if dialect_name(session) != "postgresql":
        return
    await session.execute(text("SELECT pg_advisory_unlock(:key)"), {"key": ADVISORY_LOCK_KEY})
    await session.commit()


async def run_settlement_pipeline(
    *,
    client: SportsGameOddsClient | None = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    now: datetime | None = None,
) -> dict[str, Any]:
    now = now or datetime.now(UTC)
    client = client or SportsGameOddsClient()
    summary: dict[str, Any] = {
        "events": 0,
        "resolved": 0,
        "unresolved": 0,
        "already_settled": 0,
        "skipped": {},
        "errors": [],
        "locked": False,
    }

    async with session_factory() as lock_session:
        if not await _acquire_lock(lock_session):
            summary["locked"] = True
            return summary
        try:
            event_ids = await _candidate_events(lock_session, now)
            semaphore = asyncio.Semaphore(settings.settlement_concurrency)

            async def _run(event_id: str) -> dict[str, Any]:
                async with semaphore:
                    try:
                        return await settle_event(event_id, client=client, session_factory=session_factory, now=now)
                    except Exception as exc:
                        logger.exception("settlement failed: event_id=%s", event_id)
                        return {"event_id": event_id, "skipped_reason": "error", "errors": [f"{type(exc).__name__}: {exc}"]}

            results = await asyncio.gather(*(_run(event_id) for event_id in event_ids))
        finally:
            await _release_lock(lock_session)

    for result in results:
        summary["events"] += 1
        for key in ("resolved", "unresolved", "already_settled"):
            summary[key] += result.get(key, 0)
        reason = result.get("skipped_reason")
        if reason:
            summary["skipped"][reason] = summary["skipped"].get(reason, 0) + 1
        for error in result.get("errors", []):
            if len(summary["errors"]) < settings.error_sample_size:
                summary["errors"].append(f"{result['event_id']}: {error}")

    logger.info(
        "settlement pipeline finished: events=%s resolved=%s unresolved=%s already_settled=%s skipped=%s",
        summary["events"],
        summary["resolved"],
        summary["unresolved"],
        summary["already_settled"],
        summary["skipped"],
    )
    return summary
