"""Pydantic schemas for validated boundaries: roster entries and structured LLM output."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MAX_CLARIFYING_QUESTIONS = 3


class Agent(BaseModel):
    """A debate persona. Accepts camelCase keys as stored in the roster."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    emoji: str
    role: str
    personality: str
    color: str
    system_prompt: str
    avatar_image: str | None = None
    voice: str | None = None
    model: str | None = None
    is_system_agent: bool = True
    created_by: str | None = None
    is_public: bool = False
    created_at: str | None = None
    updated_at: str | None = None


class ResearchTask(BaseModel):
    query: str = Field(description="The specific query to research")
    type: str = Field(description='Type of research needed: "product", "url" or "general"')
    reasoning: str = Field(description="Why this research is needed")


class TriageResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: Literal["proceed", "clarify", "research"] = Field(description="Decision on how to proceed")
    confidence: Literal["high", "medium", "low"] = Field(description="Confidence level in the analysis")
    core_decision: str = Field(description="The core decision being evaluated")
    key_variables: list[str] = Field(description="Key variables identified in the decision")
    clarifying_questions: list[str] | None = Field(
        default=None,
        description="Questions to ask user if status is clarify, otherwise null",
    )
    research_needed: list[ResearchTask] | None = Field(
        default=None,
        description="Research tasks if status is research, otherwise null",
    )

    @model_validator(mode="after")
    def _null_inapplicable_fields(self) -> "TriageResult":
        if self.status != "clarify":
            self.clarifying_questions = None
        elif self.clarifying_questions:
            self.clarifying_questions = self.clarifying_questions[:MAX_CLARIFYING_QUESTIONS]
        if self.status != "research":
            self.research_needed = None
        return self


class ModeratorDecision(BaseModel):
    decision: Literal["CONTINUE", "CONCLUDE"] = Field(description="Whether to continue to Round 3 or conclude")
    reasoning: str = Field(description="Brief explanation for the decision (1-2 sentences)")
