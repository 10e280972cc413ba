"""Template blob storage port and an HTTP implementation."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from fillengine.utils.errors import StorageUnavailable

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 30.0


class TemplateStorage(Protocol):
    async def fetch(self, url: str) -> bytes:
        """Return template bytes or raise StorageUnavailable."""


class HttpTemplateStorage:
    """Fetch template bytes from a blob URL."""

    def __init__(
        self,
        *,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout_seconds,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise StorageUnavailable(
                f"template fetch failed: {exc}", detail={"url": url}
            ) from exc

        if response.status_code != 200:
            raise StorageUnavailable(
                f"template fetch returned status {response.status_code}",
                detail={"url": url, "status_code": response.status_code},
            )

        logger.debug("fetched template bytes=%d", len(response.content))
        return response.content
