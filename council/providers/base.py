"""Abstract bases for LLM providers and research collaborators."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

Message = dict[str, str]   # {"role": "user" | "assistant", "content": ...}


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


def _parse_json_response(text: str) -> dict:
    """Parse a JSON object out of an LLM reply, tolerating code fences and chatter."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start != -1 and end > start:
            return json.loads(cleaned[start:end + 1])
        raise


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'azure', 'claude')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        """Return the full completion text.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        messages: list[Message],
        temperature: float,
        max_tokens: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield completion text incrementally.

        Raises:
            ProviderError: On API failure or a malformed stream.
        """
        ...

    async def generate_structured(
        self,
        schema: type[T],
        system_prompt: str,
        messages: list[Message],
        temperature: float,
    ) -> T:
        """Generate a reply matching a pydantic schema.

        The JSON schema is appended to the system prompt and the reply is
        validated with ``schema.model_validate``.

        Raises:
            ProviderError: On API failure, unparseable JSON, or schema mismatch.
        """
        json_schema = json.dumps(schema.model_json_schema(by_alias=True), indent=2)
        structured_system = (
            f"{system_prompt}\n\n"
            "Respond ONLY with a JSON object matching this schema, no markdown or commentary:\n"
            f"{json_schema}"
        )
        text = await self.complete(structured_system, messages, temperature)
        try:
            return schema.model_validate(_parse_json_response(text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.debug("Unparseable structured reply from %s: %s", self.name(), text[:500])
            raise ProviderError(self.name(), f"Invalid {schema.__name__} response: {exc}") from exc


class PageReader(ABC):
    """Fetches a web page as plain text."""

    @abstractmethod
    async def read(self, url: str) -> str:
        ...


class GroundedSearch(ABC):
    """Search-grounded LLM summary of a query."""

    @abstractmethod
    async def summarize(self, query: str) -> str:
        ...


class CitationSearch(ABC):
    """Search summary that reports the URLs it cited."""

    @abstractmethod
    async def summarize(self, query: str) -> tuple[str, list[str]]:
        """Return (summary_text, citations)."""
        ...
