"""Pre-debate stages: triage, then research when triage asks for it."""

import logging
from dataclasses import dataclass, field

from config.config_loader import PromptsConfig
from council.models import ResearchResult
from council.providers.base import AIProvider, CitationSearch, GroundedSearch, PageReader
from council.research import conduct_research, format_research_context
from council.schemas import MAX_CLARIFYING_QUESTIONS, TriageResult
from council.triage import evaluate_decision

logger = logging.getLogger(__name__)


@dataclass
class Preparation:
    triage: TriageResult
    clarifying_questions: list[str] = field(default_factory=list)
    research_results: list[ResearchResult] = field(default_factory=list)
    debate_context: str | None = None

    @property
    def needs_clarification(self) -> bool:
        return self.triage.status == "clarify" and bool(self.clarifying_questions)

    @property
    def research_conducted(self) -> bool:
        return bool(self.research_results)


def build_debate_context(*parts: str | None) -> str | None:
    """Join the non-empty context parts with blank lines; None when all are empty."""
    kept = [p.strip() for p in parts if p and p.strip()]
    return "\n\n".join(kept) or None


async def prepare_debate(
    decision: str,
    additional_context: str | None,
    provider: AIProvider,
    prompts: PromptsConfig,
    reader: PageReader,
    grounded: GroundedSearch,
    citations: CitationSearch,
) -> Preparation:
    """Triage the decision and gather research.

    When triage returns ``clarify`` nothing else runs: the caller must put the
    questions to the user before any debate starts.
    """
    triage = await evaluate_decision(decision, additional_context, provider, prompts)

    if triage.status == "clarify":
        questions = (triage.clarifying_questions or [])[:MAX_CLARIFYING_QUESTIONS]
        if questions:
            logger.info("Triage needs %d clarification(s)", len(questions))
            return Preparation(triage=triage, clarifying_questions=questions)
        logger.warning("Triage asked to clarify without questions, proceeding")

    results: list[ResearchResult] = []
    if triage.status == "research" and triage.research_needed:
        results = await conduct_research(triage.research_needed, reader, grounded, citations)

    return Preparation(
        triage=triage,
        research_results=results,
        debate_context=build_debate_context(additional_context, format_research_context(results)),
    )
