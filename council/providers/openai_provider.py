"""OpenAI and Azure OpenAI provider using the openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from openai import AsyncAzureOpenAI, AsyncOpenAI

from config.config_loader import ModelConfig
from council.providers.base import AIProvider, Message, ProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK. ``sdk: azure`` targets an Azure deployment."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        if config.sdk == "azure":
            if not config.base_url:
                raise ProviderError(config.name, "Azure provider needs base_url (the resource endpoint)")
            self._client = AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=config.base_url,
                api_version=config.api_version,
                timeout=config.timeout_sec,
            )
        else:
            self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url, timeout=config.timeout_sec)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _messages(self, system_prompt: str, messages: list[Message]) -> list[Message]:
        return [{"role": "system", "content": system_prompt}, *messages]

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
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=self._messages(system_prompt, messages),
                    temperature=temperature,
                    max_tokens=max_tokens or self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, "Empty response content")

        logger.debug("OpenAI completion: %.2fs", time.monotonic() - start)
        return choice.message.content

    async def stream(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                messages=self._messages(system_prompt, messages),
                temperature=temperature,
                max_tokens=max_tokens or self._config.max_tokens,
                stream=True,
            )
            async for chunk in response:
                # Azure sends a leading chunk with no choices (content filter results)
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as exc:
            raise ProviderError(self._config.name, f"Streaming call failed: {exc}") from exc
