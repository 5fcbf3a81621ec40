# chatbot/llm_client.py

"""
Async chat-completion client.

Talks to any OpenAI-compatible endpoint; in practice a local Ollama server
(`OLLAMA_URL=http://localhost:11434`, served under `/v1`). The model is
discovered once at startup from `/v1/models` unless one is configured.

Every call is a single attempt bounded by a timeout. A timed-out request is
cancelled and surfaces as `LLMError`, so callers can fall back.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from carl.chatbot.config import Settings

log = logging.getLogger("chatbot.llm_client")

Message = Dict[str, str]


class LLMError(RuntimeError):
    pass


def _openai_base_url(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    return base_url if base_url.endswith("/v1") else f"{base_url}/v1"


class LLMClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "ollama",
        model: Optional[str] = None,
        timeout: float = 30.0,
        discovery_timeout: float = 5.0,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.base_url = _openai_base_url(base_url)
        self.model = model
        self.timeout = timeout
        self.discovery_timeout = discovery_timeout
        self._client = client or AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["LLMClient"]:
        """None when no LLM endpoint is configured."""
        if not settings.llm_base_url:
            return None
        return cls(
            base_url=settings.llm_base_url,
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
            discovery_timeout=settings.llm_discovery_timeout,
        )

    async def discover_model(self) -> str:
        client = self._client.with_options(timeout=self.discovery_timeout)

        async def _first_page():
            return await client.models.list()

        page = await asyncio.wait_for(_first_page(), self.discovery_timeout)
        models = list(page.data)
        if not models:
            raise LLMError("No models available. Pull a model first: ollama pull llama3.2:1b")
        return models[0].id

    async def is_available(self) -> bool:
        """
        Probe the server and pick a model. Meant to run once at startup;
        the result is not re-checked per request.
        """
        try:
            discovered = await self.discover_model()
        except (OpenAIError, LLMError, asyncio.TimeoutError) as e:
            log.warning("LLM at %s not reachable: %s", self.base_url, e)
            return False
        if not self.model:
            self.model = discovered
        return True

    async def chat(self, messages: List[Message]) -> str:
        if not self.model:
            raise LLMError("No model detected. Call is_available() first.")
        try:
            resp = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    temperature=0.1,
                    max_tokens=500,
                ),
                self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise LLMError(f"LLM request timed out after {self.timeout}s") from e
        except OpenAIError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        if not resp.choices:
            raise LLMError("LLM returned no choices")
        return resp.choices[0].message.content or ""

    async def close(self) -> None:
        await self._client.close()
