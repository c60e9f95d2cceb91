"""General research through the Perplexity chat completions API, with citations."""

import logging

import httpx

from council.providers.base import CitationSearch, ProviderError

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = "You are a research assistant. Provide concise, factual summaries with sources."


class PerplexitySearch(CitationSearch):
    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.perplexity.ai/chat/completions",
        model: str = "sonar",
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint
        self._model = model
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def summarize(self, query: str) -> tuple[str, list[str]]:
        if not self._api_key:
            raise ProviderError("perplexity", "Perplexity API key not configured")

        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": f"Research and summarize: {query}"},
            ],
            "temperature": 0.2,
            "return_citations": True,
        }
        try:
            response = await self._client.post(
                self._endpoint,
                json=body,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError("perplexity", f"Search failed: {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError("perplexity", f"Search request failed: {exc}") from exc

        choices = data.get("choices") or []
        summary = (choices[0].get("message") or {}).get("content") if choices else None
        citations = [str(c) for c in data.get("citations") or []]
        logger.debug("Perplexity: %d citations for %r", len(citations), query)
        return summary or "No summary generated", citations

    async def aclose(self) -> None:
        await self._client.aclose()
