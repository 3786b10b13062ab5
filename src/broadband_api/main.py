"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from broadband_api.core.config import get_settings
from broadband_api.core.database import dispose_engine, get_session_factory, init_engine
from broadband_api.core.logging import setup_logging
from broadband_api.lib.transport import USER_AGENT
from broadband_api.services.broadband_service import InvalidInputError, build_broadband_resolver


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Build the engine, shared HTTP client, and resolver on startup; release them on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as client:
        app.state.broadband_resolver = build_broadband_resolver(settings, get_session_factory(), client=client)
        logger.info(f"Broadband API started ({settings.environment})")
        try:
            yield
        finally:
            app.state.broadband_resolver = None
            await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Broadband API",
        description="Broadband provider availability by address or coordinates, from FCC data",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Liveness check."""
        return {"status": "ok"}

    from broadband_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
