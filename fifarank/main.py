"""FIFA ranking service - FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fifarank.config import get_settings
from fifarank.database import AsyncSessionLocal, close_db, init_db
from fifarank.errors import FifaRankError
from fifarank.ranking import OutcomeSimulator, ResultProcessor
from fifarank.routes import competitions_router, core_router, countries_router, matches_router
from fifarank.security import limiter
from fifarank.telemetry.sentry import init_sentry

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Only activates if SENTRY_DSN is set in environment
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting FIFA ranking service...")
    await init_db()

    app.state.result_processor = ResultProcessor(
        AsyncSessionLocal,
        simulator=OutcomeSimulator.seeded(settings.SIMULATION_SEED),
        lock_key=settings.RANKING_LOCK_KEY,
    )
    if settings.SIMULATION_SEED is not None:
        logger.info(f"[STARTUP] Simulator seeded with {settings.SIMULATION_SEED}")

    yield

    logger.info("Shutting down...")
    await close_db()


app = FastAPI(
    title="FIFA Ranking",
    description="National team rankings, competitions and match simulation",
    version="1.0.0",
    lifespan=lifespan,
)


async def fifarank_error_handler(request: Request, exc: FifaRankError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Unhandled domain error on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(FifaRankError, fifarank_error_handler)

# Include routers
app.include_router(core_router)
app.include_router(countries_router)
app.include_router(competitions_router)
app.include_router(matches_router)
