from __future__ import annotations

from fastapi import APIRouter

from oddsledger.schemas.ledger import EventIngestResponse
from oddsledger.tasks.ingest_odds import ingest_event_odds, ingest_league_odds

router = APIRouter(prefix="/ingestion", tags=["ingestion"])


@router.post("/events/{event_id}", response_model=EventIngestResponse)
async def ingest_event(event_id: str) -> dict:
    return await ingest_event_odds(event_id)


@router.post("/leagues/{league}")
async def ingest_league(league: str) -> dict:
    return await ingest_league_odds(league.upper())
