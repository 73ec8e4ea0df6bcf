"""Shared plumbing for bearer-authenticated Google REST APIs."""

from typing import Any
from urllib.parse import quote

import httpx

from plexy.errors import UpstreamError
from plexy.utils.logging import get_logger

logger = get_logger(__name__)


def path_segment(value: str) -> str:
    """Quote an id for use as a single URL path segment."""
    return quote(str(value), safe="")


class GoogleAPIClient:
    """Base client: one GET per call, non-2xx raised as ``UpstreamError``."""

    service_name = "Google"

    def __init__(self, base_url: str, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = http_client

    async def get_json(self, path: str, token: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET a JSON document."""
        response = await self.get(path, token, params)
        return response.json()

    async def get(self, path: str, token: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """GET a raw response, raising on non-success status."""
        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}

        logger.debug(f"{self.service_name} GET {path} params={params}")
        response = await self._send(url, headers, params)

        if not response.is_success:
            logger.error(f"{self.service_name} API error ({response.status_code}) on {path}: {response.text[:200]}")
            raise UpstreamError(self.service_name, response.status_code, response.text)

        return response

    async def _send(self, url: str, headers: dict[str, str], params: dict[str, Any] | None) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, headers=headers, params=params)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=headers, params=params)
