from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class StrategyRollupResponse(BaseModel):
    strategy_id: int
    total_bets: int
    settled_bets: int
    pending_bets: int
    winning_bets: int
    losing_bets: int
    push_bets: int
    win_rate: float
    roi_percentage: float
    total_staked: float
    total_profit: float
    last_calculated_at: datetime | None = None


class BetStatusUpdate(BaseModel):
    status: Literal["pending", "won", "lost", "push"]


class EventIngestResponse(BaseModel):
    event_id: str
    attempted: int
    written_current: int
    written_opening: int
    opening_conflicts: int
    current_conflicts: int
    breakdown: dict[str, int]
    skipped_reason: str | None = None
    errors: list[str]
    dropped: list[str]


class EventSettlementResponse(BaseModel):
    event_id: str
    pending: int
    resolved: int
    unresolved: int
    already_settled: int
    won: int
    lost: int
    push: int
    unresolved_reasons: dict[str, int]
    scores_propagated: int
    rollups_recomputed: list[int]
    skipped_reason: str | None = None
    errors: list[str]
