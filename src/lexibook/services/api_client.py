"""Thin HTTP layer shared by the auth client and the sync engine."""
import logging
from typing import Any, Dict, Optional

import httpx

from lexibook.config import settings
from lexibook.errors import NetworkError

logger = logging.getLogger(__name__)


class ApiClient:
    """Sends JSON requests to the sync server."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.api_url = (api_url or settings.sync.api_url).rstrip("/")
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.sync.request_timeout,
        )

    def url(self, path: str) -> str:
        return f"{self.api_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request; transport failures become NetworkError."""
        kwargs: Dict[str, Any] = {"headers": headers or {}}
        if json is not None:
            kwargs["json"] = json
        try:
            return await self.http_client.request(method, self.url(path), **kwargs)
        except httpx.TransportError as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise NetworkError(self.api_url) from e

    @staticmethod
    def error_message(response: httpx.Response, default: str) -> str:
        """The server's error message, or a default when the body has none."""
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return default

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
