"""Literature index client (similarity search over pediatric references)."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any

import httpx

from nelson.config import LiteratureConfig
from nelson.errors import UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)


class LiteratureIndex(ABC):
    """Black-box ranked passage search."""

    @abstractmethod
    async def search(
        self, query: str, context: dict[str, Any], limit: int, threshold: float
    ) -> list[dict[str, Any]]:
        """Returns raw ``{title, page, excerpt, confidence}`` result dicts (possibly empty)."""

    async def aclose(self) -> None:
        """Releases pooled connections, if any."""


class HttpLiteratureIndex(LiteratureIndex):
    """Posts search requests to the vector-search endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient()

    async def search(
        self, query: str, context: dict[str, Any], limit: int, threshold: float
    ) -> list[dict[str, Any]]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        body = {"query": query, "context": context, "limit": limit, "threshold": threshold}

        try:
            response = await self._http.post(self.url, json=body, headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"Literature search timed out: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamUnavailable(f"Literature search transport error: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamUnavailable(f"Literature search returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("Literature search returned invalid JSON") from exc

        results = data.get("results") if isinstance(data, dict) else None
        return results if isinstance(results, list) else []

    async def aclose(self) -> None:
        await self._http.aclose()


def create_literature_index(
    config: LiteratureConfig, http_client: httpx.AsyncClient | None = None
) -> HttpLiteratureIndex | None:
    """Builds the shared index client, or returns ``None`` when no URL is configured."""
    url = os.environ.get(config.url_env)
    if not url:
        logger.warning("%s is not set; literature search is disabled.", config.url_env)
        return None
    return HttpLiteratureIndex(
        url=url,
        api_key=os.environ.get(config.api_key_env),
        timeout=config.timeout_s,
        http_client=http_client,
    )
