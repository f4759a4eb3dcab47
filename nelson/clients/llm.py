"""LLM service client.

The pipeline treats the LLM as an opaque ``generate(prompt, config)``
capability.  :class:`MistralClient` implements it with the official Mistral
SDK and maps every SDK and transport failure onto the stage error taxonomy.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
from mistralai import Mistral, models

from nelson.config import LLMConfig
from nelson.errors import UpstreamTimeout, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMRequestConfig:
    """Per-request sampling and timeout settings."""

    temperature: float = 0.2
    max_tokens: int = 2048
    top_p: float = 0.9
    timeout_ms: int = 30_000


class LLMClient(ABC):
    """Stateless text-generation capability."""

    @abstractmethod
    async def generate(self, prompt: str, config: LLMRequestConfig) -> str:
        """Returns the raw completion text for *prompt*.

        Raises:
            UpstreamTimeout: the call exceeded ``config.timeout_ms``.
            UpstreamUnavailable: any other transport, quota, or payload failure.
        """

    async def aclose(self) -> None:
        """Releases pooled connections, if any."""


class MistralClient(LLMClient):
    """Mistral chat-completions client backed by the ``mistralai`` SDK.

    The SDK sends requests through the injected ``httpx.AsyncClient``, which
    this client owns and closes in :meth:`aclose`.

    Attributes:
        model: Model name sent with every request.
        base_url: API server root, e.g. ``https://api.mistral.ai``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "mistral-large-latest",
        base_url: str = "https://api.mistral.ai",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient()
        self._sdk = Mistral(api_key=api_key, server_url=self.base_url, async_client=self._http)

    async def generate(self, prompt: str, config: LLMRequestConfig) -> str:
        logger.debug("LLM request: model=%s prompt_chars=%d", self.model, len(prompt))
        try:
            response = await self._sdk.chat.complete_async(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                top_p=config.top_p,
                timeout_ms=config.timeout_ms,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(f"LLM request timed out: {exc}") from exc
        except models.SDKError as exc:
            if exc.status_code == 429:
                raise UpstreamUnavailable("LLM quota exceeded (HTTP 429)") from exc
            raise UpstreamUnavailable(f"LLM service returned HTTP {exc.status_code}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamUnavailable(f"LLM transport error: {exc}") from exc
        except Exception as exc:
            # Request rejections and response-model validation failures
            raise UpstreamUnavailable(f"LLM request failed ({type(exc).__name__}): {exc}") from exc

        if response is None or not response.choices:
            raise UpstreamUnavailable("LLM returned a malformed completion payload")
        content = response.choices[0].message.content
        if not isinstance(content, str):
            raise UpstreamUnavailable("LLM completion content is not text")
        return content

    async def aclose(self) -> None:
        await self._http.aclose()


def create_llm(config: LLMConfig, http_client: httpx.AsyncClient | None = None) -> MistralClient | None:
    """Builds the shared LLM client, or returns ``None`` without credentials."""
    api_key = os.environ.get(config.api_key_env)
    if not api_key:
        logger.warning("%s is not set; the LLM client is unavailable.", config.api_key_env)
        return None
    return MistralClient(
        api_key=api_key,
        model=config.model,
        base_url=config.base_url,
        http_client=http_client,
    )
