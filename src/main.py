"""taskstreak - points, streaks and daily challenges for a to-do list app."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.redis_client import redis_client
from src.interface.points_router import router as points_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    if redis_client.is_available and not await redis_client.ping():
        logger.warning("startup_validation", extra={"service": "redis", "status": "unavailable"})

    yield

    await redis_client.close()
    await close_connection()


app = FastAPI(
    title="taskstreak",
    description="Points, streaks and daily challenges for a to-do list app",
    version="0.1.0",
    lifespan=lifespan,
)

instrument_fastapi(app)

app.include_router(points_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy", "redis": redis_client.get_health_status()}, status_code=200)
