"""Gemini provider and search-grounded research using google-genai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from council.providers.base import AIProvider, GroundedSearch, Message, ProviderError

logger = logging.getLogger(__name__)

_RESEARCH_TEMPERATURE = 0.3


def _client_for(config: ModelConfig) -> genai.Client:
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
    return genai.Client(api_key=api_key)


def _contents(messages: list[Message]) -> list[genai_types.Content]:
    return [
        genai_types.Content(
            role="model" if m["role"] == "assistant" else "user",
            parts=[genai_types.Part(text=m["content"])],
        )
        for m in messages
    ]


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._client = _client_for(config)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _generation_config(
        self, system_prompt: str, temperature: float, max_tokens: int | None,
    ) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            max_output_tokens=max_tokens or self._config.max_tokens,
        )

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
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=_contents(messages),
                    config=self._generation_config(system_prompt, temperature, max_tokens),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        logger.debug("Gemini completion: %.2fs", time.monotonic() - start)
        return response.text

    async def stream(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=self._config.model,
                contents=_contents(messages),
                config=self._generation_config(system_prompt, temperature, max_tokens),
            )
            async for chunk in response:
                if chunk.text:
                    yield chunk.text
        except Exception as exc:
            raise ProviderError(self._config.name, f"Streaming call failed: {exc}") from exc


class GeminiSearch(GroundedSearch):
    """Product/price research: Gemini with the Google Search grounding tool."""

    def __init__(self, config: ModelConfig, prompt_template: str) -> None:
        self._config = config
        self._prompt_template = prompt_template
        self._client = _client_for(config)

    async def summarize(self, query: str) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=self._prompt_template.format(query=query),
                    config=genai_types.GenerateContentConfig(
                        tools=[genai_types.Tool(google_search=genai_types.GoogleSearch())],
                        temperature=_RESEARCH_TEMPERATURE,
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Research timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"Grounded search failed: {exc}") from exc

        if not response.text:
            raise ProviderError(self._config.name, "Empty research summary")
        return response.text
