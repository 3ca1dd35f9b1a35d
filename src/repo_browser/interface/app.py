"""ASGI application for the repository browser."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from repo_browser.interface.dependencies import shutdown, startup
from repo_browser.interface.error_handlers import register_error_handlers
from repo_browser.interface.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    # A missing token fails here, before the server accepts traffic.
    await startup()
    logger.info("%s %s ready", app.title, app.version)
    try:
        yield
    finally:
        await shutdown()


def create_app() -> FastAPI:
    """Return a configured :class:`FastAPI` instance (used as a uvicorn factory)."""
    app = FastAPI(
        title="GitHub Repo Browser",
        version="1.0.0",
        description=(
            "Streams the complete file listing of a public GitHub repository "
            "as newline-delimited JSON, one tree generation at a time."
        ),
        lifespan=_lifespan,
    )
    register_error_handlers(app)
    app.include_router(router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
