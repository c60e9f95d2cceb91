"""Pure dataclasses for the decision debate pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from typing import Literal

from council.schemas import Agent

Recommendation = Literal["PROCEED", "PROCEED_WITH_CAUTION", "RECONSIDER", "DO_NOT_PROCEED"]


@dataclass(frozen=True)
class AgentTurn:
    agent_id: str
    agent_name: str
    round: int
    response: str


@dataclass
class DebateContext:
    decision: str
    selected_agents: list[Agent]
    enriched_context: str | None = None
    history: list[AgentTurn] = field(default_factory=list)


@dataclass
class ResearchResult:
    query: str
    type: str              # "product", "url", "general"
    summary: str
    sources: list[str] = field(default_factory=list)


@dataclass
class AgentConsensus:
    support: list[str] = field(default_factory=list)
    conditional: list[str] = field(default_factory=list)
    oppose: list[str] = field(default_factory=list)


@dataclass
class KeyInsight:
    agent_name: str
    insight: str


@dataclass
class DecisionOutput:
    confidence_score: int
    recommendation: Recommendation
    blind_spots: list[str]
    agent_consensus: AgentConsensus
    key_insights: list[KeyInsight]
    recommended_action: str


@dataclass
class AgentSnapshot:
    id: str
    name: str
    emoji: str
    color: str
    avatar_image: str | None = None


@dataclass
class DebateRecord:
    decision: str
    selected_agents: list[AgentSnapshot]
    total_rounds: int
    output: DecisionOutput
    additional_context: str | None = None
    intelligence_status: str | None = None   # "proceed", "clarify", "research"
    research_conducted: bool = False
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class DebateOutcome:
    output: DecisionOutput
    total_rounds: int
    history: list[AgentTurn]
    synthesis: str
