"""Intelligence triage: decide whether a decision can be debated as-is."""

import logging

from config.config_loader import PromptsConfig
from council.providers.base import AIProvider
from council.schemas import TriageResult

logger = logging.getLogger(__name__)

_TRIAGE_TEMPERATURE = 0.3


def fallback_result(decision: str) -> TriageResult:
    """Low-confidence ``proceed`` used whenever triage itself fails."""
    return TriageResult(
        status="proceed",
        confidence="low",
        core_decision=decision,
        key_variables=["User decision provided without evaluation"],
        clarifying_questions=None,
        research_needed=None,
    )


async def evaluate_decision(
    decision: str,
    additional_context: str | None,
    provider: AIProvider,
    prompts: PromptsConfig,
) -> TriageResult:
    """Classify a decision as proceed / clarify / research.

    Never raises: any provider or validation failure degrades to
    ``fallback_result``. Not retried.
    """
    user_input = f"Decision: {decision}"
    if additional_context:
        user_input += f"\n\nAdditional Context: {additional_context}"

    try:
        result = await provider.generate_structured(
            TriageResult,
            system_prompt=prompts.triage,
            messages=[{"role": "user", "content": user_input}],
            temperature=_TRIAGE_TEMPERATURE,
        )
    except Exception as exc:
        logger.warning("Triage failed, proceeding with low confidence: %s", exc)
        return fallback_result(decision)

    logger.info("Triage: %s (%s confidence)", result.status, result.confidence)
    return result
