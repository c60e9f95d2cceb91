"""Tests for council/scoring.py."""

import pytest

from council.models import AgentTurn
from council.scoring import (
    MAX_BLIND_SPOTS,
    calculate_confidence_score,
    categorize_agent_consensus,
    classify_stance,
    extract_blind_spots,
    extract_key_insights,
    generate_decision_output,
    recommendation_for,
    recommended_action_for,
)


@pytest.mark.parametrize(
    "score,expected",
    [
        (100, "PROCEED"),
        (86, "PROCEED"),
        (85, "PROCEED_WITH_CAUTION"),
        (61, "PROCEED_WITH_CAUTION"),
        (60, "RECONSIDER"),
        (31, "RECONSIDER"),
        (30, "DO_NOT_PROCEED"),
        (0, "DO_NOT_PROCEED"),
    ],
)
def test_recommendation_bands(score, expected):
    assert recommendation_for(score) == expected


def test_recommended_action_follows_band():
    assert recommended_action_for(90) == "Move forward confidently. This decision is well-supported."
    assert recommended_action_for(70) == "Proceed, but address the concerns raised by the agents first."
    assert recommended_action_for(45) == "Take 24-48 hours to gather more information before deciding."
    assert recommended_action_for(10) == "Reconsider this decision. The risks outweigh the benefits."


def test_neutral_synthesis_scores_base():
    assert calculate_confidence_score([], "The council met.") == 50


def test_strong_case_scenario_scores_85():
    synthesis = "Agents agree this is a strong case with minimal downside."
    score = calculate_confidence_score([], synthesis)
    assert score == 85
    assert recommendation_for(score) == "PROCEED_WITH_CAUTION"


def test_score_clamped_to_zero():
    synthesis = "A critical risk, the panel is deeply divided, and there is missing information."
    assert calculate_confidence_score([], synthesis) == 0


def test_every_positive_family_together():
    synthesis = "A compelling, strong case with low risk, low regret, and consensus from everyone."
    assert calculate_confidence_score([], synthesis) == 90


def test_family_fires_once_even_with_both_phrases():
    assert calculate_confidence_score([], "strong case, compelling, strong case") == 65


def test_opposing_families_apply_independently():
    # Both the positive and the negative family fire; they cancel out.
    assert calculate_confidence_score([], "A strong case, but concerning.") == 50


def test_high_regret_needs_both_words():
    assert calculate_confidence_score([], "Regret potential is high.") == 45
    assert calculate_confidence_score([], "Regret potential is modest.") == 50


def test_score_is_case_insensitive():
    assert calculate_confidence_score([], "STRONG CASE") == 65


def test_blind_spots_grouped_by_pattern():
    synthesis = "Missing: savings plan\nBlind spot: health insurance\nOverlooked: visa rules"
    assert extract_blind_spots(synthesis) == ["health insurance", "savings plan", "visa rules"]


def test_blind_spots_fall_back_to_concerns():
    assert extract_blind_spots("Concerns: lease penalty\nConcern: commute") == ["lease penalty", "commute"]


def test_blind_spots_ignore_concerns_when_labels_present():
    assert extract_blind_spots("Blind spots: taxes\nConcerns: commute") == ["taxes"]


def test_blind_spots_capped():
    synthesis = "\n".join(f"Missing: item {i}" for i in range(8))
    spots = extract_blind_spots(synthesis)
    assert len(spots) == MAX_BLIND_SPOTS
    assert spots[0] == "item 0"


def test_blind_spots_empty_when_nothing_matches():
    assert extract_blind_spots("Go for it.") == []


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Yes, proceed. It is worth it.", "support"),
        ("Avoid this, it is risky and dangerous.", "oppose"),
        ("Yes, but no.", "conditional"),
        ("If and but, however, unless it depends. Yes yes yes yes yes.", "conditional"),
        ("Nothing to say.", "conditional"),
    ],
)
def test_classify_stance(text, expected):
    assert classify_stance(text) == expected


def test_classify_stance_uses_word_boundaries():
    # "going" and "nobody" must not count as "go" / "no"
    assert classify_stance("Nobody is going anywhere, yes.") == "support"


def test_consensus_uses_last_round_not_longest(sample_history):
    history = [
        AgentTurn("risk", "Risk", 1, "Proceed, I support it, this is worth it and valuable and beneficial."),
        AgentTurn("risk", "Risk", 2, "Avoid it."),
    ]
    consensus = categorize_agent_consensus(history)
    assert consensus.oppose == ["Risk"]
    assert consensus.support == []


def test_consensus_same_round_tie_goes_to_later_entry():
    history = [
        AgentTurn("risk", "Risk", 2, "Avoid it."),
        AgentTurn("risk", "Risk", 2, "Yes, proceed."),
    ]
    assert categorize_agent_consensus(history).support == ["Risk"]


def test_consensus_groups_are_disjoint_and_cover_all_agents(sample_history):
    consensus = categorize_agent_consensus(sample_history)
    groups = consensus.support + consensus.conditional + consensus.oppose
    assert sorted(groups) == ["Risk", "YOLO"]
    assert len(groups) == len(set(groups))
    assert consensus.support == ["Risk", "YOLO"]


def test_key_insight_first_two_sentences_of_longest():
    history = [
        AgentTurn("risk", "Risk", 1, "Short one."),
        AgentTurn("risk", "Risk", 2, "First point here. Second point here! Third point here?"),
    ]
    insights = extract_key_insights(history)
    assert len(insights) == 1
    assert insights[0].agent_name == "Risk"
    assert insights[0].insight == "First point here. Second point here."


def test_key_insight_truncated():
    history = [AgentTurn("risk", "Risk", 1, "x" * 250)]
    insight = extract_key_insights(history)[0].insight
    assert insight == "x" * 200 + "..."


def test_key_insight_one_per_agent_in_first_seen_order(sample_history):
    names = [k.agent_name for k in extract_key_insights(sample_history)]
    assert names == ["Risk", "YOLO"]


def test_generate_decision_output_is_deterministic(sample_history):
    synthesis = "Consensus reached. Blind spot: emergency fund"
    first = generate_decision_output(sample_history, synthesis)
    second = generate_decision_output(list(sample_history), synthesis)
    assert first == second
    assert first.confidence_score == 60
    assert first.recommendation == "RECONSIDER"
    assert first.blind_spots == ["emergency fund"]


def test_generate_decision_output_empty_history():
    output = generate_decision_output([], "")
    assert output.confidence_score == 50
    assert output.key_insights == []
    assert output.agent_consensus.support == []
