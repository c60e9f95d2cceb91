"""Provider tests — HTTP collaborators over httpx.MockTransport, no real API calls."""

import json

import httpx
import pytest
from pydantic import BaseModel

from council.providers.base import ProviderError, _parse_json_response
from council.providers.jina import JinaReader
from council.providers.openai_provider import OpenAIProvider
from council.providers.perplexity import PerplexitySearch
from council.schemas import ModeratorDecision
from tests.conftest import MockProvider


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_jina_reads_wrapped_content():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"code": 200, "data": {"title": "Review", "content": "Great boat."}})

    reader = JinaReader("https://r.jina.ai/", api_key="jina-key", client=_client(handler))
    text = await reader.read("https://example.com/boat")
    await reader.aclose()

    assert text == "Great boat."
    assert str(seen[0].url) == "https://r.jina.ai/https://example.com/boat"
    assert seen[0].headers["Accept"] == "application/json"
    assert seen[0].headers["Authorization"] == "Bearer jina-key"


async def test_jina_without_key_sends_no_auth():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return httpx.Response(200, json={"text": "Plain text."})

    reader = JinaReader(client=_client(handler))
    assert await reader.read("https://example.com") == "Plain text."


async def test_jina_empty_content_placeholder():
    reader = JinaReader(client=_client(lambda request: httpx.Response(200, json={"data": {}})))
    assert await reader.read("https://example.com") == "No content extracted"


async def test_jina_http_error_raises_provider_error():
    reader = JinaReader(client=_client(lambda request: httpx.Response(451)))
    with pytest.raises(ProviderError, match="451"):
        await reader.read("https://example.com")


async def test_perplexity_returns_summary_and_citations():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer pplx-key"
        return httpx.Response(200, json={
            "choices": [{"message": {"content": "Boats cost 10% a year to keep."}}],
            "citations": ["https://a.test", "https://b.test"],
        })

    search = PerplexitySearch("pplx-key", client=_client(handler))
    summary, citations = await search.summarize("boat upkeep")

    assert summary == "Boats cost 10% a year to keep."
    assert citations == ["https://a.test", "https://b.test"]
    body = seen[0]
    assert body["model"] == "sonar"
    assert body["return_citations"] is True
    assert body["temperature"] == 0.2
    assert body["messages"][1]["content"] == "Research and summarize: boat upkeep"


async def test_perplexity_empty_reply_placeholder():
    search = PerplexitySearch("pplx-key", client=_client(lambda request: httpx.Response(200, json={"choices": []})))
    assert await search.summarize("q") == ("No summary generated", [])


async def test_perplexity_requires_key():
    search = PerplexitySearch("", client=_client(lambda request: httpx.Response(200)))
    with pytest.raises(ProviderError, match="not configured"):
        await search.summarize("q")


async def test_perplexity_server_error():
    search = PerplexitySearch("pplx-key", client=_client(lambda request: httpx.Response(503)))
    with pytest.raises(ProviderError, match="503"):
        await search.summarize("q")


def test_parse_json_response_variants():
    assert _parse_json_response('{"a": 1}') == {"a": 1}
    assert _parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}
    assert _parse_json_response('Sure! Here it is: {"a": 1} Hope that helps.') == {"a": 1}


def test_parse_json_response_rejects_non_json():
    with pytest.raises(json.JSONDecodeError):
        _parse_json_response("no braces here")


async def test_generate_structured_validates():
    provider = MockProvider(structured_reply='{"decision": "CONTINUE", "reasoning": "Open questions."}')
    result = await provider.generate_structured(
        ModeratorDecision, "Judge.", [{"role": "user", "content": "go"}], temperature=0.3,
    )
    assert result == ModeratorDecision(decision="CONTINUE", reasoning="Open questions.")
    system_prompt = provider.complete.call_args.args[0]
    assert system_prompt.startswith("Judge.")
    assert '"CONCLUDE"' in system_prompt


async def test_generate_structured_wraps_validation_errors():
    class Payload(BaseModel):
        count: int

    provider = MockProvider("picky", structured_reply='{"count": "many"}')
    with pytest.raises(ProviderError, match=r"\[picky\] Invalid Payload response"):
        await provider.generate_structured(Payload, "s", [], temperature=0.0)


def test_openai_provider_needs_key(sample_model_config, monkeypatch):
    monkeypatch.delenv("TEST_API_KEY", raising=False)
    with pytest.raises(ProviderError, match="Missing API key"):
        OpenAIProvider(sample_model_config)


def test_azure_provider_needs_endpoint(sample_model_config, monkeypatch):
    monkeypatch.setenv("TEST_API_KEY", "key")
    sample_model_config.sdk = "azure"
    with pytest.raises(ProviderError, match="base_url"):
        OpenAIProvider(sample_model_config)


def test_openai_provider_identity(sample_model_config, monkeypatch):
    monkeypatch.setenv("TEST_API_KEY", "key")
    provider = OpenAIProvider(sample_model_config)
    assert provider.name() == "test_model"
    assert provider.model_string() == "test-model-1"
