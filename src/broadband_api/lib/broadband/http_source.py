"""Shared HTTP plumbing and payload-schema helpers for the remote FCC sources."""

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict

from broadband_api.lib.broadband.base import BaseProviderSource, SourceError
from broadband_api.lib.transport import http_client

DEFAULT_TIMEOUT = 15.0


class UpstreamRow(BaseModel):
    """Base for per-source payload schemas: unknown fields ignored, identifiers coerced to text."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class HttpProviderSource(BaseProviderSource):
    """A provider source backed by a JSON-over-HTTP API.

    Args:
        timeout: Per-request timeout in seconds.
        client: Optional shared HTTP client.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None) -> None:
        self._timeout = timeout
        self._client = client

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET a URL and decode its JSON body.

        Raises:
            SourceError: On timeout, connection failure, non-2xx status, or a non-JSON body.
        """
        try:
            async with http_client(self._client, self._timeout) as client:
                response = await client.get(url, params=params, headers=headers, timeout=self._timeout)
                response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"{self.source_name} request timed out")
            raise SourceError(self.source_name, "Request timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"{self.source_name} HTTP error {e.response.status_code}")
            raise SourceError(
                self.source_name,
                f"Source returned HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.source_name} connection error")
            raise SourceError(self.source_name, "Connection to source failed") from e
        except ValueError as e:
            logger.warning(f"{self.source_name} returned a non-JSON body")
            raise SourceError(self.source_name, f"Invalid JSON response: {e}") from e
