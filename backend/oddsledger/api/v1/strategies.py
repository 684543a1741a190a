from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from oddsledger.database import get_session
from oddsledger.schemas.ledger import BetStatusUpdate, StrategyRollupResponse
from oddsledger.services.rollup_service import get_strategy_rollup, recompute_strategy_rollup
from oddsledger.services.strategy_links import (
    BetAlreadySettledError,
    BetNotFoundError,
    link_bet_to_strategy,
    unlink_bet_from_strategy,
    update_bet_status,
)

router = APIRouter(tags=["strategies"])


@router.post("/strategies/{strategy_id}/rollup", response_model=StrategyRollupResponse)
async def recompute_rollup(strategy_id: int, session: AsyncSession = Depends(get_session)):
    return await recompute_strategy_rollup(session, strategy_id)


@router.get("/strategies/{strategy_id}/rollup", response_model=StrategyRollupResponse)
async def read_rollup(strategy_id: int, session: AsyncSession = Depends(get_session)):
    rollup = await get_strategy_rollup(session, strategy_id)
    if rollup is None:
        raise HTTPException(status_code=404, detail="rollup not calculated")
    return rollup


@router.put("/strategies/{strategy_id}/bets/{bet_id}", response_model=StrategyRollupResponse)
async def link_bet(strategy_id: int, bet_id: int, session: AsyncSession = Depends(get_session)):
    try:
        return await link_bet_to_strategy(session, strategy_id, bet_id)
    except BetNotFoundError:
        raise HTTPException(status_code=404, detail="bet not found")


@router.delete("/strategies/{strategy_id}/bets/{bet_id}", response_model=StrategyRollupResponse)
async def unlink_bet(strategy_id: int, bet_id: int, session: AsyncSession = Depends(get_session)):
    return await unlink_bet_from_strategy(session, strategy_id, bet_id)


@router.put("/bets/{bet_id}/status", response_model=list[StrategyRollupResponse])
async def change_bet_status(bet_id: int, body: BetStatusUpdate, session: AsyncSession = Depends(get_session)):
    try:
        return await update_bet_status(session, bet_id, body.status)
    except BetNotFoundError:
        raise HTTPException(status_code=404, detail="bet not found")
    except BetAlreadySettledError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
