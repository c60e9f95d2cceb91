"""Anthropic Claude provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from council.providers.base import AIProvider, Message, ProviderError

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key, timeout=config.timeout_sec)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def complete(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=max_tokens or self._config.max_tokens,
                    system=system_prompt,
                    messages=messages,
                    temperature=temperature,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if not response.content:
            raise ProviderError(self._config.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self._config.name, "No text blocks in response")

        logger.debug("Anthropic completion: %.2fs", time.monotonic() - start)
        return "\n".join(text_blocks)

    async def stream(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        try:
            async with self._client.messages.stream(
                model=self._config.model,
                max_tokens=max_tokens or self._config.max_tokens,
                system=system_prompt,
                messages=messages,
                temperature=temperature,
            ) as response:
                async for text in response.text_stream:
                    yield text
        except Exception as exc:
            raise ProviderError(self._config.name, f"Streaming call failed: {exc}") from exc
