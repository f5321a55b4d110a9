"""OpenAI-compatible chat completions answerer.

Works against any server exposing ``POST {base_url}/chat/completions``
(Ollama, vLLM, LM Studio, OpenAI).

Usage:
    answerer = ChatCompletionsAnswerer(get_config().answerer)
    text = await answerer.answer("What is the capital of France?")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stepwise.config.loader import AnswererConfig

logger = logging.getLogger(__name__)


class AnswererError(Exception):
    """Raised when the completion endpoint returns no usable answer"""

    pass


class ChatCompletionsAnswerer:
    """Question answerer over an OpenAI-compatible HTTP API.

    Transport errors and timeouts are retried (3 attempts, exponential
    backoff). HTTP error statuses are not retried.
    """

    def __init__(
        self,
        config: AnswererConfig | None = None,
        client: httpx.AsyncClient | None = None,
        system_prompt: str | None = None,
    ):
        self.config = config or AnswererConfig()
        self.system_prompt = system_prompt
        self._client = client
        self._owns_client = client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {}
            if self.config.api_key:
                headers["Authorization"] = f"Bearer {self.config.api_key}"
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds, headers=headers)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _build_payload(self, question: str) -> dict[str, Any]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": question})
        return {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TransportError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _complete(self, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_http_client()
        url = f"{self.config.base_url.rstrip('/')}/chat/completions"
        response = await client.post(url, json=payload)
        response.raise_for_status()
        return response.json()

    async def answer(self, question: str) -> str:
        """
        Ask a single question.

        Raises:
            httpx.HTTPError: Transport failure or error status
            AnswererError: Response without a message
        """
        data = await self._complete(self._build_payload(question))
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnswererError(f"Malformed completion response: {data!r}") from e

        if not content or not content.strip():
            raise AnswererError("The model returned an empty answer")

        usage = data.get("usage") or {}
        logger.debug(
            f"Answered with {self.config.model} "
            f"(prompt_tokens={usage.get('prompt_tokens')}, completion_tokens={usage.get('completion_tokens')})"
        )
        return content.strip()
