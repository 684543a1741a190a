import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from oddsledger.api.v1.router import api_router
from oddsledger.config import get_database_identity, settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    host, database = get_database_identity()
    logger.info("starting %s: db_host=%s db_name=%s leagues=%s", settings.app_name, host, database, settings.leagues)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(api_router, prefix="/api/v1")
