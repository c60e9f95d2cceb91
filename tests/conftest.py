"""Shared pytest fixtures."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    InboxConfig,
    ModelConfig,
    PromptsConfig,
    ResearchConfig,
)
from council.models import AgentConsensus, AgentSnapshot, AgentTurn, DebateRecord, DecisionOutput, KeyInsight
from council.providers.base import AIProvider, CitationSearch, GroundedSearch, PageReader
from council.schemas import Agent
from council.storage import DebateStore

CONCLUDE_JSON = json.dumps({"decision": "CONCLUDE", "reasoning": "Positions are settled."})
CONTINUE_JSON = json.dumps({"decision": "CONTINUE", "reasoning": "Tensions remain unresolved."})


class MockProvider(AIProvider):
    """Test double AIProvider.

    ``stream`` replays queued texts in order (then ``default_response``) in two
    chunks each and records every call. ``complete`` is an AsyncMock, so
    structured replies are set through its return value.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        responses: list[str | Exception] | None = None,
        default_response: str = "Mock response",
        structured_reply: str = CONCLUDE_JSON,
    ) -> None:
        self._name = provider_name
        self._responses = list(responses or [])
        self.default_response = default_response
        self.stream_calls: list[dict] = []
        # Shadow the class method with an AsyncMock at the instance level.
        self.complete = AsyncMock(return_value=structured_reply)  # type: ignore[method-assign]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def complete(self, system_prompt, messages, temperature, max_tokens=None) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return CONCLUDE_JSON

    async def stream(self, system_prompt, messages, temperature, max_tokens=None):
        self.stream_calls.append({
            "system_prompt": system_prompt,
            "prompt": messages[-1]["content"],
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        text = self._responses.pop(0) if self._responses else self.default_response
        if isinstance(text, Exception):
            raise text
        middle = len(text) // 2
        for chunk in (text[:middle], text[middle:]):
            if chunk:
                yield chunk

    @property
    def prompts(self) -> list[str]:
        return [call["prompt"] for call in self.stream_calls]


class FakeReader(PageReader):
    def __init__(self, text: str = "Page text") -> None:
        self.text = text
        self.urls: list[str] = []

    async def read(self, url: str) -> str:
        self.urls.append(url)
        return self.text


class FakeGrounded(GroundedSearch):
    def __init__(self, text: str = "Grounded summary", error: Exception | None = None) -> None:
        self.text = text
        self.error = error

    async def summarize(self, query: str) -> str:
        if self.error is not None:
            raise self.error
        return self.text


class FakeCitations(CitationSearch):
    def __init__(self, text: str = "Cited summary", sources: list[str] | None = None) -> None:
        self.text = text
        self.sources = sources if sources is not None else ["https://example.com/a"]

    async def summarize(self, query: str) -> tuple[str, list[str]]:
        return self.text, list(self.sources)


class FakeStore(DebateStore):
    """In-memory store; set ``fail`` to make save raise."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.saved: list[tuple[str, DebateRecord]] = []

    async def save(self, owner_id: str, record: DebateRecord) -> DebateRecord:
        if self.fail:
            raise RuntimeError("store offline")
        self.saved.append((owner_id, record))
        return record

    async def get(self, owner_id, debate_id):
        return None

    async def list_debates(self, owner_id, limit=50):
        return [r for o, r in self.saved if o == owner_id][:limit]

    async def delete(self, owner_id, debate_id):
        return None

    async def update_output(self, owner_id, debate_id, output):
        raise NotImplementedError


def make_agent(agent_id: str, name: str | None = None, **overrides) -> Agent:
    fields = {
        "id": agent_id,
        "name": name or agent_id.title(),
        "emoji": "🤖",
        "role": f"{agent_id} perspective",
        "personality": "Test persona",
        "color": "#000000",
        "system_prompt": f"You are {agent_id}.",
    }
    fields.update(overrides)
    return Agent(**fields)


def make_output(score: int = 55) -> DecisionOutput:
    return DecisionOutput(
        confidence_score=score,
        recommendation="RECONSIDER",
        blind_spots=["exit costs"],
        agent_consensus=AgentConsensus(support=["YOLO"], conditional=["Risk"], oppose=[]),
        key_insights=[KeyInsight(agent_name="Risk", insight="Check the lease.")],
        recommended_action="Take 24-48 hours to gather more information before deciding.",
    )


def make_record(decision: str = "Should I move?", score: int = 55) -> DebateRecord:
    return DebateRecord(
        decision=decision,
        selected_agents=[AgentSnapshot(id="risk", name="Risk", emoji="⚠️", color="#ef4444")],
        total_rounds=2,
        output=make_output(score),
        intelligence_status="proceed",
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        round1="R1 {decision}{research_context} as {role}",
        round2="R2 {decision}\nROUND1:\n{round1_responses}{cross_examination}",
        round3="R3 {decision}\nSUMMARY:\n{debate_summary}",
        moderator_decision="You moderate.",
        moderator_decision_request="Judge {decision}\n{debate_summary}",
        moderator_synthesis="You synthesize.",
        synthesis_request="Synthesize {decision}\n{full_debate}",
        triage="You triage.",
        product_research="Research {query}",
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        agent_model="azure",
        moderator_model="azure",
        triage_model="azure",
        output_dir=tmp_path / "output",
        store_dir=tmp_path / "debates",
        owner="tester",
    )


@pytest.fixture
def sample_app_config(
    sample_defaults_config: DefaultsConfig,
    sample_prompts_config: PromptsConfig,
    sample_roster: list[dict],
) -> AppConfig:
    model_cfg = ModelConfig(
        name="azure",
        sdk="azure",
        model="gpt-test",
        api_key_env="AZURE_OPENAI_API_KEY",
        timeout_sec=60,
        max_tokens=1024,
        base_url="https://example.openai.azure.com",
        api_version="2024-10-21",
    )
    return AppConfig(
        defaults=sample_defaults_config,
        models={"azure": model_cfg},
        prompts=sample_prompts_config,
        research=ResearchConfig(),
        inbox=InboxConfig(),
        agents=sample_roster,
        available_providers={"azure"},
    )


@pytest.fixture
def sample_roster() -> list[dict]:
    """Raw roster entries in the camelCase form used by settings.yaml."""
    ids = ["risk", "contrarian", "ripple", "regret", "opportunity", "yolo", "grandparent", "procrastination", "chaos"]
    return [
        {
            "id": agent_id,
            "name": agent_id.title(),
            "emoji": "🤖",
            "role": f"{agent_id} perspective",
            "personality": "Test persona",
            "color": "#123456",
            "systemPrompt": f"You are {agent_id}.",
        }
        for agent_id in ids
    ]


@pytest.fixture
def all_agents(sample_roster: list[dict]) -> list[Agent]:
    return [Agent.model_validate(entry) for entry in sample_roster]


@pytest.fixture
def five_agents() -> list[Agent]:
    return [make_agent(f"agent{i}", f"Agent {i}") for i in range(1, 6)]


@pytest.fixture
def sample_history() -> list[AgentTurn]:
    return [
        AgentTurn("risk", "Risk", 1, "This is risky and dangerous."),
        AgentTurn("yolo", "YOLO", 1, "Yes, go for it."),
        AgentTurn("risk", "Risk", 2, "I support it if you keep savings, but be careful."),
        AgentTurn("yolo", "YOLO", 2, "Proceed. It is worth it."),
    ]


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()
