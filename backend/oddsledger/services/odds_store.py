from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.database import dialect_insert, dialect_name
from oddsledger.models.odds import CurrentOdds, OpeningOdds
from oddsledger.services.odds_canonicalizer import CanonicalOddsRow

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"
INTEGRITY_SQLSTATE_CLASS = "23"
SQLITE_UNIQUE_ERRORS = {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}

KEY_COLUMNS = ["eventid", "oddid", "line_key"]
# columns refreshed on every ingestion cycle; score and created_at are owned elsewhere
NON_UPDATABLE_COLUMNS = {"eventid", "oddid", "line", "line_key", "score", "created_at"}


class WriteOutcome(str, Enum):
    WRITTEN = "written"
    CONFLICT = "conflict"


class StoreError(Exception):
    def __init__(self, message: str, key: tuple | None = None) -> None:
        super().__init__(message)
        self.key = key


class StoreConflictError(StoreError):
    """The key already exists in the target store."""


class StoreInvariantError(StoreError):
    """Any other integrity failure: NOT NULL, foreign key, check."""


def _sqlstate(orig: object) -> str | None:
    for attr in ("sqlstate", "pgcode"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return None


def classify_store_error(exc: IntegrityError, key: tuple | None = None) -> StoreError:
    """Map a driver integrity error to the store's typed variants.

    Reads the SQLSTATE (asyncpg/psycopg) or the sqlite extended error name;
    the message text is never inspected.
    """
    orig = getattr(exc, "orig", exc)
    sqlstate = _sqlstate(orig)
    if sqlstate is not None:
        if sqlstate == UNIQUE_VIOLATION_SQLSTATE:
            return StoreConflictError("unique violation", key)
        if sqlstate.startswith(INTEGRITY_SQLSTATE_CLASS):
            return StoreInvariantError(f"integrity violation sqlstate={sqlstate}", key)

    errorname = getattr(orig, "sqlite_errorname", None)
    if errorname in SQLITE_UNIQUE_ERRORS:
        return StoreConflictError("unique violation", key)
    return StoreInvariantError(f"integrity violation {errorname or type(orig).__name__}", key)


def _conflict_target(session: AsyncSession, constraint: str) -> dict:
    if dialect_name(session) == "sqlite":
        return {"index_elements": KEY_COLUMNS}
    return {"constraint": constraint}


async def upsert_current_odds(session: AsyncSession, row: CanonicalOddsRow, now: datetime | None = None) -> WriteOutcome:
    now = now or datetime.now(UTC)
    values = row.store_values()
    values["fetched_at"] = values["fetched_at"] or now
    values["updated_at"] = now

    insert_stmt = dialect_insert(session, CurrentOdds).values(**values)
    stmt = insert_stmt.on_conflict_do_update(
        **_conflict_target(session, "uq_odds_event_odd_line"),
        set_={name: insert_stmt.excluded[name] for name in values if name not in NON_UPDATABLE_COLUMNS},
    )
    try:
        async with session.begin_nested():
            await session.execute(stmt)
    except IntegrityError as exc:
        raise classify_store_error(exc, row.key()) from exc
    return WriteOutcome.WRITTEN


async def insert_opening_odds(session: AsyncSession, row: CanonicalOddsRow, now: datetime | None = None) -> WriteOutcome:
    """Insert-once: an existing key is reported as CONFLICT, never raised."""
    now = now or datetime.now(UTC)
    values = row.store_values()
    values["fetched_at"] = values["fetched_at"] or now
    values["updated_at"] = now

    stmt = (
        dialect_insert(session, OpeningOdds)
        .values(**values)
        .on_conflict_do_nothing(**_conflict_target(session, "uq_open_odds_event_odd_line"))
        .returning(OpeningOdds.id)
    )
    try:
        async with session.begin_nested():
            inserted_id = (await session.execute(stmt)).scalar_one_or_none()
    except IntegrityError as exc:
        error = classify_store_error(exc, row.key())
        if isinstance(error, StoreConflictError):
            return WriteOutcome.CONFLICT
        raise error from exc
    return WriteOutcome.WRITTEN if inserted_id is not None else WriteOutcome.CONFLICT


async def propagate_scores(session: AsyncSession, event_id: str, scores: dict[str, str]) -> int:
    """Copy settled proposition scores onto existing current rows; never inserts."""
    now = datetime.now(UTC)
    updated = 0
    for odd_id, score in scores.items():
        result = await session.execute(
            update(CurrentOdds)
            .where(CurrentOdds.eventid == event_id, CurrentOdds.oddid == odd_id)
            .values(score=score, updated_at=now)
        )
        updated += result.rowcount or 0
    logger.debug("propagated proposition scores: event_id=%s scores=%s rows_updated=%s", event_id, len(scores), updated)
    return updated
