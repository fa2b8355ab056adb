"""
FastAPI application entrypoint for the Nest camera monitor.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from nestmon.api.routes import router as api_router
from nestmon.core.config import get_settings
from nestmon.core.logging import configure_logging
from nestmon.monitoring import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the monitoring runtime for the lifetime of the server process."""
    runtime = build_runtime(get_settings())
    resumed = await runtime.start()
    app.state.runtime = runtime
    logger.info("Nest camera monitor running with %d resumed user(s)", resumed)
    try:
        yield
    finally:
        app.state.runtime = None
        await runtime.stop()


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Nest Camera Monitor",
        version="0.1.0",
        description="Per-user Nest camera event monitoring with OAuth token upkeep.",
        lifespan=lifespan,
    )
    app.state.runtime = None
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
