from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Iterable

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.database import dialect_insert, dialect_name
from oddsledger.models.bet import Bet
from oddsledger.models.strategy import StrategyBet, StrategyLeaderboard
from oddsledger.utils.odds_math import potential_payout

logger = logging.getLogger(__name__)

ROLLUP_LOCK_NAMESPACE = 927414


@dataclass
class StrategyRollup:
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

    def figures(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("last_calculated_at")
        return data


def _won_profit(bet: Any) -> float:
    stake = float(bet.stake or 0.0)
    payout = bet.potential_payout
    if payout is None:
        payout = potential_payout(stake, bet.odds) if bet.odds else stake
    return float(payout) - stake


def compute_rollup(strategy_id: int, bets: Iterable[Any]) -> StrategyRollup:
    bets = list(bets)
    won = [b for b in bets if b.status == "won"]
    lost = [b for b in bets if b.status == "lost"]
    pushed = [b for b in bets if b.status == "push"]
    settled = len(won) + len(lost) + len(pushed)

    # pushes stay out of both sides of the ROI ratio
    staked = sum(float(b.stake or 0.0) for b in won + lost)
    profit = sum(_won_profit(b) for b in won) - sum(float(b.stake or 0.0) for b in lost)

    return StrategyRollup(
        strategy_id=strategy_id,
        total_bets=len(bets),
        settled_bets=settled,
        pending_bets=len(bets) - settled,
        winning_bets=len(won),
        losing_bets=len(lost),
        push_bets=len(pushed),
        win_rate=len(won) / settled if settled > 0 else 0.0,
        roi_percentage=(profit / staked * 100.0) if staked > 0 else 0.0,
        total_staked=round(staked, 2),
        total_profit=round(profit, 2),
    )


async def _lock_strategy(session: AsyncSession, strategy_id: int) -> None:
    if dialect_name(session) != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(:namespace, :strategy_id)"),
        {"namespace": ROLLUP_LOCK_NAMESPACE, "strategy_id": strategy_id},
    )


async def recompute_strategy_rollup(
    session: AsyncSession,
    strategy_id: int,
    now: datetime | None = None,
    commit: bool = True,
) -> StrategyRollup:
    """Rebuild the strategy's leaderboard row from its linked bets.

    The cached row is never read. On PostgreSQL a transaction-scoped advisory
    lock serializes recomputations of the same strategy.
    """
    now = now or datetime.now(UTC)
    await _lock_strategy(session, strategy_id)

    bets = (
        await session.scalars(
            select(Bet)
            .join(StrategyBet, StrategyBet.bet_id == Bet.id)
            .where(StrategyBet.strategy_id == strategy_id)
            .execution_options(populate_existing=True)
        )
    ).all()
    rollup = compute_rollup(strategy_id, bets)
    rollup.last_calculated_at = now

    values = {**rollup.figures(), "last_calculated_at": now}
    insert_stmt = dialect_insert(session, StrategyLeaderboard).values(**values)
    await session.execute(
        insert_stmt.on_conflict_do_update(
            index_elements=["strategy_id"],
            set_={name: insert_stmt.excluded[name] for name in values if name != "strategy_id"},
        )
    )
    if commit:
        await session.commit()

    logger.info(
        "strategy rollup recomputed: strategy_id=%s total=%s won=%s lost=%s push=%s pending=%s roi=%.2f",
        strategy_id,
        rollup.total_bets,
        rollup.winning_bets,
        rollup.losing_bets,
        rollup.push_bets,
        rollup.pending_bets,
        rollup.roi_percentage,
    )
    return rollup


async def get_strategy_rollup(session: AsyncSession, strategy_id: int) -> StrategyRollup | None:
    row = await session.scalar(select(StrategyLeaderboard).where(StrategyLeaderboard.strategy_id == strategy_id))
    if row is None:
        return None
    return StrategyRollup(
        strategy_id=row.strategy_id,
        total_bets=row.total_bets,
        settled_bets=row.settled_bets,
        pending_bets=row.pending_bets,
        winning_bets=row.winning_bets,
        losing_bets=row.losing_bets,
        push_bets=row.push_bets,
        win_rate=row.win_rate,
        roi_percentage=row.roi_percentage,
        total_staked=row.total_staked,
        total_profit=row.total_profit,
        last_calculated_at=row.last_calculated_at,
    )


async def strategies_for_bets(session: AsyncSession, bet_ids: Iterable[int]) -> list[int]:
    bet_ids = list(bet_ids)
    if not bet_ids:
        return []
    rows = await session.scalars(
        select(StrategyBet.strategy_id).where(StrategyBet.bet_id.in_(bet_ids)).distinct().order_by(StrategyBet.strategy_id)
    )
    return list(rows.all())
