"""
Pairing service FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pairing import config
from pairing.deps import build_orchestrator
from pairing.middleware.rate_limit import RateLimiter
from pairing.routes import pair as pair_routes
from pairing.routes import sessions as session_routes
from pairing.services.orchestrator import PairingOrchestrator

logger = logging.getLogger(__name__)


async def sweeper_task(orchestrator: PairingOrchestrator, rate_limiter: RateLimiter) -> None:
    """
    Background task to evict expired OTPs, stale pairing requests, and old
    rate limit entries.

    Runs every OTP_SWEEP_INTERVAL_SECONDS (60 by default).
    """
    while True:
        try:
            otp_count, request_count = orchestrator.sweep()
            if otp_count or request_count:
                logger.info("Swept %d expired OTPs and %d stale pairing requests", otp_count, request_count)

            rate_limiter.cleanup_old_entries(max_age_hours=2)

        except Exception:
            logger.exception("Error in sweeper task")

        await asyncio.sleep(config.settings.OTP_SWEEP_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Build the orchestrator and its stores
    - Start the background sweeper
    - Cancel live sessions and flush pending SMS on shutdown
    """
    # Startup
    config.settings.SESSIONS_DIR.mkdir(parents=True, exist_ok=True)
    orchestrator = build_orchestrator()
    rate_limiter = RateLimiter()
    app.state.orchestrator = orchestrator
    app.state.rate_limiter = rate_limiter

    sweeper_handle = asyncio.create_task(sweeper_task(orchestrator, rate_limiter))
    logger.info("Sweeper started")

    yield

    # Shutdown
    sweeper_handle.cancel()
    try:
        await sweeper_handle
    except asyncio.CancelledError:
        logger.info("Sweeper stopped")

    await orchestrator.shutdown()
    logger.info("Pairing orchestrator stopped")


app = FastAPI(
    title="WhatsApp Pairing",
    lifespan=lifespan,
)

# Register routes
app.include_router(pair_routes.router)
app.include_router(session_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=config.settings.HOST, port=config.settings.PORT)
