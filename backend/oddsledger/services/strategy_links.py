from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.database import dialect_insert
from oddsledger.models.bet import SETTLED_STATUSES, Bet
from oddsledger.models.strategy import StrategyBet
from oddsledger.services.rollup_service import StrategyRollup, recompute_strategy_rollup, strategies_for_bets
from oddsledger.services.settlement_matcher import Outcome, settlement_profit

logger = logging.getLogger(__name__)

BET_STATUSES = {"pending"} | SETTLED_STATUSES


class BetNotFoundError(LookupError):
    pass


class BetAlreadySettledError(RuntimeError):
    def __init__(self, bet_id: int, status: str | None):
        super().__init__(f"bet {bet_id} already settled as {status}")
        self.bet_id = bet_id
        self.status = status


async def link_bet_to_strategy(session: AsyncSession, strategy_id: int, bet_id: int) -> StrategyRollup:
    if await session.get(Bet, bet_id) is None:
        raise BetNotFoundError(bet_id)
    stmt = dialect_insert(session, StrategyBet).values(strategy_id=strategy_id, bet_id=bet_id)
    await session.execute(stmt.on_conflict_do_nothing(index_elements=["strategy_id", "bet_id"]))
    await session.commit()
    return await recompute_strategy_rollup(session, strategy_id)


async def unlink_bet_from_strategy(session: AsyncSession, strategy_id: int, bet_id: int) -> StrategyRollup:
    await session.execute(delete(StrategyBet).where(StrategyBet.strategy_id == strategy_id, StrategyBet.bet_id == bet_id))
    await session.commit()
    return await recompute_strategy_rollup(session, strategy_id)


async def update_bet_status(session: AsyncSession, bet_id: int, status: str) -> list[StrategyRollup]:
    """Settle a pending bet by hand and rebuild every strategy it is linked to.

    Settled bets are immutable: the update only applies while the stored
    status is still ``pending``, so it cannot overwrite a settlement run.
    """
    if status not in BET_STATUSES:
        raise ValueError(f"unsupported bet status: {status}")
    bet = await session.scalar(select(Bet).where(Bet.id == bet_id).execution_options(populate_existing=True))
    if bet is None:
        raise BetNotFoundError(bet_id)
    if bet.status in SETTLED_STATUSES:
        raise BetAlreadySettledError(bet_id, bet.status)

    values: dict = {"status": status, "updated_at": datetime.now(UTC)}
    if status in SETTLED_STATUSES:
        values["profit"] = settlement_profit(Outcome(status), bet.stake, bet.odds, bet.potential_payout)
        values["settled_at"] = datetime.now(UTC)
    result = await session.execute(update(Bet).where(Bet.id == bet_id, Bet.status == "pending").values(**values))
    if result.rowcount == 0:
        await session.rollback()
        raise BetAlreadySettledError(bet_id, await session.scalar(select(Bet.status).where(Bet.id == bet_id)))
    await session.commit()

    logger.info("bet status changed: bet_id=%s status=%s", bet_id, status)
    return [await recompute_strategy_rollup(session, strategy_id) for strategy_id in await strategies_for_bets(session, [bet_id])]
