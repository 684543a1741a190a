from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.config import settings
from oddsledger.services.event_catalog import EventSnapshot
from oddsledger.services.odds_canonicalizer import CanonicalOddsRow, MarketKind
from oddsledger.services.odds_store import (
    StoreConflictError,
    StoreInvariantError,
    WriteOutcome,
    insert_opening_odds,
    upsert_current_odds,
)

logger = logging.getLogger(__name__)

SKIPPED_GAME_STARTED = "game_started"
ALTERNATE_LINE = "alternate_line"
BREAKDOWN_KEYS = (
    MarketKind.MAIN_LINE.value,
    ALTERNATE_LINE,
    MarketKind.PLAYER_PROP.value,
    MarketKind.TEAM_PROP.value,
    MarketKind.GAME_PROP.value,
    MarketKind.UNKNOWN.value,
)


def _empty_breakdown() -> dict[str, int]:
    return {key: 0 for key in BREAKDOWN_KEYS}


@dataclass
class WriteSummary:
    event_id: str
    attempted: int = 0
    written_current: int = 0
    written_opening: int = 0
    opening_conflicts: int = 0
    current_conflicts: int = 0
    breakdown: dict[str, int] = field(default_factory=_empty_breakdown)
    skipped_reason: str | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def breakdown_key(row: CanonicalOddsRow) -> str:
    if row.is_alternate:
        return ALTERNATE_LINE
    return row.market_kind.value


def _record_error(summary: WriteSummary, message: str) -> None:
    if len(summary.errors) < settings.error_sample_size:
        summary.errors.append(message)


async def write_event_odds(
    session: AsyncSession,
    rows: list[CanonicalOddsRow],
    snapshot: EventSnapshot,
    now: datetime | None = None,
) -> WriteSummary:
    """Write one event's canonical rows into the current and opening stores.

    The cutoff is evaluated on every call from ``snapshot``; a started event
    gets no writes at all. Rows are written one savepoint at a time so an
    integrity failure only loses that row.
    """
    now = now or datetime.now(UTC)
    summary = WriteSummary(event_id=snapshot.event_id)

    if snapshot.has_started(now):
        summary.skipped_reason = SKIPPED_GAME_STARTED
        logger.info(
            "odds write skipped: event_id=%s status=%s game_time=%s rows=%s",
            snapshot.event_id,
            snapshot.status,
            snapshot.game_time,
            len(rows),
        )
        return summary

    for row in rows:
        if row.event_id != snapshot.event_id:
            logger.error("odds row rejected for wrong event: key=%s expected_event_id=%s", row.key(), snapshot.event_id)
            _record_error(summary, f"row for event {row.event_id} offered to {snapshot.event_id}")
            continue
        summary.attempted += 1
        summary.breakdown[breakdown_key(row)] += 1

        try:
            await upsert_current_odds(session, row, now)
            summary.written_current += 1
        except StoreConflictError:
            summary.current_conflicts += 1
        except StoreInvariantError as exc:
            logger.error("current odds write rejected: key=%s error=%s", row.key(), exc)
            _record_error(summary, f"current {row.key()}: {exc}")

        try:
            outcome = await insert_opening_odds(session, row, now)
        except StoreInvariantError as exc:
            logger.error("opening odds write rejected: key=%s error=%s", row.key(), exc)
            _record_error(summary, f"opening {row.key()}: {exc}")
            continue
        if outcome == WriteOutcome.WRITTEN:
            summary.written_opening += 1
        else:
            summary.opening_conflicts += 1

    await session.commit()
    logger.info(
        "odds written: event_id=%s attempted=%s written_current=%s written_opening=%s opening_conflicts=%s errors=%s",
        summary.event_id,
        summary.attempted,
        summary.written_current,
        summary.written_opening,
        summary.opening_conflicts,
        len(summary.errors),
    )
    return summary
