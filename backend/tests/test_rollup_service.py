from __future__ import annotations

import asyncio
import importlib.util
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from oddsledger.database import Base
from oddsledger.models.bet import Bet
from oddsledger.models.game import Game
from oddsledger.models.strategy import Strategy, StrategyBet, StrategyLeaderboard
from oddsledger.services.rollup_service import compute_rollup, get_strategy_rollup, recompute_strategy_rollup
from oddsledger.services.strategy_links import (
    BetAlreadySettledError,
    BetNotFoundError,
    link_bet_to_strategy,
    unlink_bet_from_strategy,
    update_bet_status,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


def _bet(status: str, stake: float = 100.0, odds: int = 100, potential_payout: float | None = None):
    return SimpleNamespace(status=status, stake=stake, odds=odds, potential_payout=potential_payout)


def test_six_won_three_lost_one_pending():
    bets = [_bet("won")] * 6 + [_bet("lost")] * 3 + [_bet("pending")]
    rollup = compute_rollup(7, bets)

    assert rollup.total_bets == 10
    assert rollup.settled_bets == 9
    assert rollup.pending_bets == 1
    assert (rollup.winning_bets, rollup.losing_bets, rollup.push_bets) == (6, 3, 0)
    assert rollup.win_rate == pytest.approx(6 / 9)
    # even money: +600 on 900 staked
    assert rollup.total_staked == 900.0
    assert rollup.total_profit == 300.0
    assert rollup.roi_percentage == pytest.approx(300 / 900 * 100)


def test_partition_holds_with_pushes():
    bets = [_bet("won", potential_payout=250.0), _bet("push"), _bet("lost", stake=50.0), _bet("pending")]
    rollup = compute_rollup(1, bets)

    assert rollup.winning_bets + rollup.losing_bets + rollup.push_bets == rollup.settled_bets
    assert rollup.settled_bets + rollup.pending_bets == rollup.total_bets
    assert rollup.win_rate == pytest.approx(1 / 3)
    # push stays out of both numerator and denominator
    assert rollup.total_staked == 150.0
    assert rollup.total_profit == 100.0
    assert rollup.roi_percentage == pytest.approx(100 / 150 * 100)


def test_empty_and_all_pending_rollups_are_zero():
    assert compute_rollup(1, []).win_rate == 0.0
    pending_only = compute_rollup(1, [_bet("pending"), _bet("pending")])
    assert pending_only.total_bets == 2
    assert pending_only.win_rate == 0.0
    assert pending_only.roi_percentage == 0.0


def test_only_pushes_have_zero_roi():
    rollup = compute_rollup(1, [_bet("push"), _bet("push")])
    assert rollup.settled_bets == 2
    assert rollup.win_rate == 0.0
    assert rollup.roi_percentage == 0.0


def test_rollup_persistence_and_link_triggers():
    if importlib.util.find_spec("aiosqlite") is None:
        pytest.skip("aiosqlite not available in this environment")
    asyncio.run(_run_rollup_persistence())


async def _run_rollup_persistence() -> None:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        session.add(Game(id="g1", league="NBA", home_team="Knicks", away_team="Nets", game_time=NOW - timedelta(days=1)))
        session.add(Strategy(id=1, user_id="u1", name="Chalk"))
        await session.flush()
        statuses = ["won"] * 6 + ["lost"] * 3 + ["pending"]
        bets = [Bet(user_id="u1", game_id="g1", bet_type="moneyline", stake=100.0, odds=100, status=s) for s in statuses]
        session.add_all(bets)
        await session.flush()
        session.add_all([StrategyBet(strategy_id=1, bet_id=bet.id) for bet in bets])
        await session.commit()
        bet_ids = [bet.id for bet in bets]

    async with session_factory() as session:
        first = await recompute_strategy_rollup(session, 1, now=NOW)
        second = await recompute_strategy_rollup(session, 1, now=NOW + timedelta(minutes=1))
        assert first.figures() == second.figures()
        assert (second.total_bets, second.winning_bets, second.losing_bets, second.push_bets) == (10, 6, 3, 0)
        assert int(await session.scalar(select(func.count(StrategyLeaderboard.id)))) == 1

        stored = await get_strategy_rollup(session, 1)
        assert stored.win_rate == pytest.approx(6 / 9)
        assert stored.last_calculated_at.replace(tzinfo=UTC) == NOW + timedelta(minutes=1)

    async with session_factory() as session:
        # the pending bet settles as a push
        [after_push] = await update_bet_status(session, bet_ids[-1], "push")
        assert (after_push.settled_bets, after_push.push_bets, after_push.pending_bets) == (10, 1, 0)
        assert (await session.get(Bet, bet_ids[-1])).profit == 0.0

        after_unlink = await unlink_bet_from_strategy(session, 1, bet_ids[0])
        assert after_unlink.total_bets == 9
        assert after_unlink.winning_bets == 5

        after_link = await link_bet_to_strategy(session, 1, bet_ids[0])
        relinked = await link_bet_to_strategy(session, 1, bet_ids[0])
        assert after_link.total_bets == relinked.total_bets == 10

        # settled bets are immutable
        with pytest.raises(BetAlreadySettledError):
            await update_bet_status(session, bet_ids[0], "lost")
        with pytest.raises(BetAlreadySettledError):
            await update_bet_status(session, bet_ids[0], "pending")
        unchanged = await session.scalar(select(Bet).where(Bet.id == bet_ids[0]).execution_options(populate_existing=True))
        assert (unchanged.status, unchanged.profit) == ("won", None)
        rebuilt = await recompute_strategy_rollup(session, 1)
        assert (rebuilt.winning_bets, rebuilt.losing_bets, rebuilt.push_bets) == (6, 3, 1)

        with pytest.raises(BetNotFoundError):
            await link_bet_to_strategy(session, 1, 9999)
        with pytest.raises(ValueError):
            await update_bet_status(session, bet_ids[0], "cancelled")

    await engine.dispose()
