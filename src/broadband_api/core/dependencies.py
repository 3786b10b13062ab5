"""FastAPI dependency injection for the broadband resolver."""

from fastapi import HTTPException, Request, status

from broadband_api.services.broadband_service import BroadbandResolver


def get_broadband_resolver(request: Request) -> BroadbandResolver:
    """Return the resolver built at startup.

    Raises:
        HTTPException: 503 if the application has not finished starting.
    """
    resolver: BroadbandResolver | None = getattr(request.app.state, "broadband_resolver", None)
    if resolver is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Broadband resolver is not initialized",
        )
    return resolver
