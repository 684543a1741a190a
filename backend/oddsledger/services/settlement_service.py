from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.config import settings
from oddsledger.data_providers.sportsgameodds import FeedUnavailableError, SportsGameOddsClient
from oddsledger.models.bet import Bet
from oddsledger.models.odds import CurrentOdds
from oddsledger.services.event_catalog import (
    load_event_snapshot,
    proposition_scores_from_feed,
    record_final_score,
)
from oddsledger.services.odds_store import propagate_scores
from oddsledger.services.rollup_service import recompute_strategy_rollup, strategies_for_bets
from oddsledger.services.settlement_matcher import settle_wagers

logger = logging.getLogger(__name__)

ALREADY_SETTLED = "already_settled"


def _empty_result(event_id: str) -> dict[str, Any]:
    return {
        "event_id": event_id,
        "pending": 0,
        "resolved": 0,
        "unresolved": 0,
        "already_settled": 0,
        "won": 0,
        "lost": 0,
        "push": 0,
        "unresolved_reasons": {},
        "scores_propagated": 0,
        "rollups_recomputed": [],
        "skipped_reason": None,
        "errors": [],
    }


async def _refresh_from_feed(
    session: AsyncSession,
    event_id: str,
    client: SportsGameOddsClient,
    result: dict[str, Any],
) -> dict[str, Any] | None:
    try:
        feed_event = await client.get_event(event_id)
    except FeedUnavailableError as exc:
        logger.warning("odds feed unavailable during settlement: event_id=%s error=%s", event_id, exc)
        result["errors"].append(str(exc))
        return None
    if feed_event:
        result["scores_propagated"] = await propagate_scores(session, event_id, proposition_scores_from_feed(feed_event))
    return feed_event


async def settle_event_wagers(
    session: AsyncSession,
    event_id: str,
    client: SportsGameOddsClient | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Settle every pending wager on one completed event.

    Each wager is written with a conditional update on ``status='pending'``
    so overlapping runs settle it at most once. Linked strategy rollups are
    recomputed afterwards.
    """
    now = now or datetime.now(UTC)
    result = _empty_result(event_id)

    feed_event = await _refresh_from_feed(session, event_id, client, result) if client is not None else None
    snapshot = await load_event_snapshot(session, event_id, feed_event)
    if snapshot is None:
        result["skipped_reason"] = "unknown_event"
        return result
    if not snapshot.is_final:
        await session.commit()
        result["skipped_reason"] = "event_not_final"
        return result
    await record_final_score(session, event_id, snapshot.home_score, snapshot.away_score)

    pending = (await session.scalars(select(Bet).where(Bet.game_id == event_id, Bet.status == "pending"))).all()
    rows = (await session.scalars(select(CurrentOdds).where(CurrentOdds.eventid == event_id))).all()
    result["pending"] = len(pending)

    settled_ids: list[int] = []
    for wager, match, decision in settle_wagers(pending, rows, snapshot.home_score, snapshot.away_score):
        if not decision.resolved:
            result["unresolved"] += 1
            reasons = result["unresolved_reasons"]
            reasons[decision.reason] = reasons.get(decision.reason, 0) + 1
            logger.info(
                "wager left pending: bet_id=%s event_id=%s oddid=%s tier=%s reason=%s",
                wager.id,
                event_id,
                wager.oddid,
                match.tier.value if match.tier else None,
                decision.reason,
            )
            continue

        outcome = await session.execute(
            update(Bet)
            .where(Bet.id == wager.id, Bet.status == "pending")
            .values(
                status=decision.outcome.value,
                profit=decision.profit,
                matched_oddid=match.row.oddid,
                settled_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if not outcome.rowcount:
            result[ALREADY_SETTLED] += 1
            continue
        settled_ids.append(wager.id)
        result["resolved"] += 1
        result[decision.outcome.value] += 1

    await session.commit()

    for strategy_id in await strategies_for_bets(session, settled_ids):
        await recompute_strategy_rollup(session, strategy_id, now=now)
        result["rollups_recomputed"].append(strategy_id)

    logger.info(
        "event wagers settled: event_id=%s pending=%s resolved=%s unresolved=%s already_settled=%s rollups=%s",
        event_id,
        result["pending"],
        result["resolved"],
        result["unresolved"],
        result[ALREADY_SETTLED],
        len(result["rollups_recomputed"]),
    )
    result["errors"] = result["errors"][: settings.error_sample_size]
    return result
