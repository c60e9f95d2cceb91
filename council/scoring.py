"""Deterministic scoring and consensus extraction over a debate transcript.

Everything here is a crude keyword heuristic on purpose: the same transcript
and synthesis always produce the same DecisionOutput.
"""

import re

from council.models import AgentConsensus, AgentTurn, DecisionOutput, KeyInsight, Recommendation

BASE_SCORE = 50

# (phrases, delta): a family fires at most once, when any phrase is present.
_SCORE_FAMILIES: list[tuple[tuple[str, ...], int]] = [
    (("strong case", "compelling"), 15),
    (("weak case", "concerning"), -15),
    (("critical risk", "major downside"), -20),
    (("low risk", "minimal downside"), 10),
    (("missing information", "need more context"), -15),
    (("high opportunity cost",), -10),
    (("low regret",), 5),
    (("consensus", "agents agree"), 10),
    (("deeply divided", "strong disagreement"), -15),
]
_HIGH_REGRET_DELTA = -5

# (minimum score, recommendation, recommended action), highest band first
_BANDS: list[tuple[int, Recommendation, str]] = [
    (86, "PROCEED", "Move forward confidently. This decision is well-supported."),
    (61, "PROCEED_WITH_CAUTION", "Proceed, but address the concerns raised by the agents first."),
    (31, "RECONSIDER", "Take 24-48 hours to gather more information before deciding."),
    (0, "DO_NOT_PROCEED", "Reconsider this decision. The risks outweigh the benefits."),
]

_BLIND_SPOT_PATTERNS = [
    re.compile(r"blind spots?:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"not consider(?:ing|ed):?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"missing:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"overlooked:?\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"failed to address:?\s*([^\n]+)", re.IGNORECASE),
]
_CONCERN_PATTERN = re.compile(r"concerns?:?\s*([^\n]+)", re.IGNORECASE)
MAX_BLIND_SPOTS = 5

_POSITIVE = re.compile(r"\b(yes|go|proceed|support|recommend|worth|valuable|beneficial)\b")
_NEGATIVE = re.compile(r"\b(no|don't|avoid|risky|dangerous|problematic|concern|warning)\b")
_CONDITIONAL = re.compile(r"\b(if|but|however|unless|provided|assuming|depends|careful)\b")
_HEDGING_THRESHOLD = 3

_SENTENCE_BREAK = re.compile(r"[.!?]\s+")
MAX_INSIGHT_LENGTH = 200


def calculate_confidence_score(history: list[AgentTurn], synthesis: str) -> int:
    """Score 0-100 from keyword families found in the moderator synthesis.

    ``history`` is accepted for signature parity with the other extractors;
    the score depends only on the synthesis text.
    """
    lower = synthesis.lower()
    score = BASE_SCORE

    for phrases, delta in _SCORE_FAMILIES:
        if any(phrase in lower for phrase in phrases):
            score += delta

    if "regret potential" in lower and "high" in lower:
        score += _HIGH_REGRET_DELTA

    return max(0, min(100, score))


def recommendation_for(score: int) -> Recommendation:
    for floor, recommendation, _ in _BANDS:
        if score >= floor:
            return recommendation
    return "DO_NOT_PROCEED"


def recommended_action_for(score: int) -> str:
    for floor, _, action in _BANDS:
        if score >= floor:
            return action
    return _BANDS[-1][2]


def extract_blind_spots(synthesis: str) -> list[str]:
    """Collect fragments after blind-spot labels, falling back to "concerns:" labels.

    Matches are grouped by pattern, in pattern order, each in text order.
    """
    blind_spots = [
        match.group(1).strip()
        for pattern in _BLIND_SPOT_PATTERNS
        for match in pattern.finditer(synthesis)
        if match.group(1)
    ]
    if not blind_spots:
        blind_spots = [
            match.group(1).strip()
            for match in _CONCERN_PATTERN.finditer(synthesis)
            if match.group(1)
        ]
    return blind_spots[:MAX_BLIND_SPOTS]


def _final_responses(history: list[AgentTurn]) -> dict[str, AgentTurn]:
    """Each agent's response from its highest round, keyed by agent id in first-seen order."""
    final: dict[str, AgentTurn] = {}
    for turn in history:
        existing = final.get(turn.agent_id)
        if existing is None or turn.round >= existing.round:
            final[turn.agent_id] = turn
    return final


def classify_stance(response: str) -> str:
    """Return "support", "oppose" or "conditional" for one agent's statement."""
    lower = response.lower()
    positive = len(_POSITIVE.findall(lower))
    negative = len(_NEGATIVE.findall(lower))
    conditional = len(_CONDITIONAL.findall(lower))

    if conditional > _HEDGING_THRESHOLD:
        return "conditional"
    if positive > negative:
        return "support"
    if negative > positive:
        return "oppose"
    return "conditional"


def categorize_agent_consensus(history: list[AgentTurn]) -> AgentConsensus:
    consensus = AgentConsensus()
    for turn in _final_responses(history).values():
        getattr(consensus, classify_stance(turn.response)).append(turn.agent_name)
    return consensus


def extract_key_insights(history: list[AgentTurn]) -> list[KeyInsight]:
    """First two sentences of each agent's longest response."""
    longest: dict[str, AgentTurn] = {}
    for turn in history:
        best = longest.get(turn.agent_id)
        # Ties go to the later response
        if best is None or len(turn.response) >= len(best.response):
            longest[turn.agent_id] = turn

    insights: list[KeyInsight] = []
    for turn in longest.values():
        sentences = _SENTENCE_BREAK.split(turn.response)
        insight = ". ".join(sentences[:2]) + "."
        if len(insight) > MAX_INSIGHT_LENGTH:
            insight = insight[:MAX_INSIGHT_LENGTH] + "..."
        insights.append(KeyInsight(agent_name=turn.agent_name, insight=insight))
    return insights


def generate_decision_output(history: list[AgentTurn], synthesis: str) -> DecisionOutput:
    score = calculate_confidence_score(history, synthesis)
    return DecisionOutput(
        confidence_score=score,
        recommendation=recommendation_for(score),
        blind_spots=extract_blind_spots(synthesis),
        agent_consensus=categorize_agent_consensus(history),
        key_insights=extract_key_insights(history),
        recommended_action=recommended_action_for(score),
    )
