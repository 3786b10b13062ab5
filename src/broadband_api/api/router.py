"""Root API router with the versioned prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from broadband_api.api.middleware import RequestLoggingMiddleware, setup_cors
from broadband_api.core.config import Settings


def create_router(settings: Settings) -> APIRouter:
    """Create the root API router with all sub-routers included.

    Args:
        settings: Application settings.

    Returns:
        Configured API router.
    """
    from broadband_api.api.v1.broadband import broadband_router

    root_router = APIRouter(prefix=settings.api_v1_prefix)
    root_router.include_router(broadband_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app."""
    setup_cors(app, settings)
    app.add_middleware(RequestLoggingMiddleware)
