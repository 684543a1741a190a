from fastapi import APIRouter

from oddsledger.api.v1.ingestion import router as ingestion_router
from oddsledger.api.v1.settlement import router as settlement_router
from oddsledger.api.v1.strategies import router as strategies_router
from oddsledger.api.v1.system import router as system_router

api_router = APIRouter()
api_router.include_router(ingestion_router)
api_router.include_router(settlement_router)
api_router.include_router(strategies_router)
api_router.include_router(system_router)
