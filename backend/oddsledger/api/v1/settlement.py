from __future__ import annotations

from fastapi import APIRouter

from oddsledger.data_providers.sportsgameodds import SportsGameOddsClient
from oddsledger.schemas.ledger import EventSettlementResponse
from oddsledger.tasks.settle import run_settlement_pipeline, settle_event

router = APIRouter(prefix="/settlement", tags=["settlement"])


@router.post("/events/{event_id}", response_model=EventSettlementResponse)
async def settle_single_event(event_id: str) -> dict:
    return await settle_event(event_id, client=SportsGameOddsClient())


@router.post("/run")
async def run_settlement() -> dict:
    return await run_settlement_pipeline()
