"""URL reader backed by the Jina.ai Reader API."""

import logging

import httpx

from council.providers.base import PageReader, ProviderError

logger = logging.getLogger(__name__)


class JinaReader(PageReader):
    """Fetches ``{reader_url}/{url}`` and returns the extracted page text."""

    def __init__(
        self,
        reader_url: str = "https://r.jina.ai",
        api_key: str | None = None,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._reader_url = reader_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def read(self, url: str) -> str:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            response = await self._client.get(f"{self._reader_url}/{url}", headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProviderError("jina", f"Reader failed: {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError("jina", f"Reader request failed: {exc}") from exc

        # The reader wraps its result in "data" for JSON responses
        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        content = data.get("content") or data.get("text")
        logger.debug("Jina read %s: %d chars", url, len(content or ""))
        return content or "No content extracted"

    async def aclose(self) -> None:
        await self._client.aclose()
