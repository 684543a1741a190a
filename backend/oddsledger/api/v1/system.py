from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import APIRouter, Depends

from oddsledger.database import get_session
from oddsledger.models.bet import Bet
from oddsledger.models.odds import CurrentOdds, OpeningOdds

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/health")
async def health(session: AsyncSession = Depends(get_session)) -> dict[str, str | int | None]:
    current_count = int((await session.scalar(select(func.count(CurrentOdds.id)))) or 0)
    opening_count = int((await session.scalar(select(func.count(OpeningOdds.id)))) or 0)
    pending_bets = int((await session.scalar(select(func.count(Bet.id)).where(Bet.status == "pending"))) or 0)
    last_fetched_at = await session.scalar(select(func.max(CurrentOdds.fetched_at)))

    return {
        "status": "ok",
        "current_odds_count": current_count,
        "opening_odds_count": opening_count,
        "pending_bets": pending_bets,
        "last_fetched_at": last_fetched_at.isoformat() if last_fetched_at else None,
    }
