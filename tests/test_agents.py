"""Tests for council/agents.py."""

import logging
import random

from council.agents import (
    CHAOS_AGENT_ID,
    CORE_AGENT_IDS,
    PERSONALITY_AGENT_IDS,
    find_agents,
    get_all_agents,
    load_agents,
    select_debate_agents,
)
from council.storage import JsonAgentStore
from tests.conftest import make_agent


def test_core_agents_always_selected(all_agents):
    for seed in range(20):
        selected = select_debate_agents(all_agents, random.Random(seed))
        ids = [a.id for a in selected]
        assert ids[:5] == list(CORE_AGENT_IDS)


def test_exactly_three_personality_agents(all_agents):
    for seed in range(20):
        ids = [a.id for a in select_debate_agents(all_agents, random.Random(seed))]
        personality = [i for i in ids if i in PERSONALITY_AGENT_IDS]
        assert len(personality) == 3
        assert len(set(ids)) == len(ids)


def test_chaos_agent_joins_about_one_in_five(all_agents):
    rng = random.Random(1234)
    runs = 2000
    hits = sum(
        CHAOS_AGENT_ID in [a.id for a in select_debate_agents(all_agents, rng)]
        for _ in range(runs)
    )
    assert 0.15 < hits / runs < 0.25


def test_chaos_agent_is_last_when_selected(all_agents):
    rng = random.Random(0)
    for _ in range(200):
        ids = [a.id for a in select_debate_agents(all_agents, rng)]
        if CHAOS_AGENT_ID in ids:
            assert ids[-1] == CHAOS_AGENT_ID
            assert len(ids) == 9
            return
    raise AssertionError("chaos agent never selected in 200 draws")


def test_missing_ids_are_skipped(all_agents):
    roster = [a for a in all_agents if a.id not in {"risk", "yolo", "chaos"}]
    for seed in range(10):
        ids = [a.id for a in select_debate_agents(roster, random.Random(seed))]
        assert "risk" not in ids
        assert ids[:4] == ["contrarian", "ripple", "regret", "opportunity"]
        assert sorted(i for i in ids if i in PERSONALITY_AGENT_IDS) == ["grandparent", "procrastination"]


def test_empty_roster_selects_nobody():
    assert select_debate_agents([], random.Random(0)) == []


def test_unknown_ids_never_selected(all_agents):
    roster = all_agents + [make_agent("stranger")]
    for seed in range(10):
        assert "stranger" not in [a.id for a in select_debate_agents(roster, random.Random(seed))]


def test_load_agents_accepts_camel_case(sample_roster):
    agents = load_agents(sample_roster)
    assert len(agents) == 9
    assert agents[0].system_prompt == "You are risk."
    assert agents[0].is_system_agent is True


def test_load_agents_skips_invalid_entries(sample_roster, caplog):
    entries = sample_roster[:2] + [{"id": "broken", "name": "No fields"}]
    with caplog.at_level(logging.ERROR, logger="council.agents"):
        agents = load_agents(entries)
    assert [a.id for a in agents] == ["risk", "contrarian"]
    assert "broken" in caplog.text


def test_find_agents_keeps_requested_order(all_agents):
    found = find_agents(all_agents, ["yolo", "risk"])
    assert [a.id for a in found] == ["yolo", "risk"]


def test_find_agents_warns_on_unknown(all_agents, caplog):
    with caplog.at_level(logging.WARNING, logger="council.agents"):
        found = find_agents(all_agents, ["risk", "ghost"])
    assert [a.id for a in found] == ["risk"]
    assert "ghost" in caplog.text


def _custom_entry(agent_id: str) -> dict:
    return {
        "id": agent_id,
        "name": agent_id.title(),
        "emoji": "🧑",
        "role": "Custom persona",
        "personality": "Test persona",
        "color": "#654321",
        "systemPrompt": f"You are {agent_id}.",
    }


async def test_get_all_agents_appends_owner_agents(all_agents, tmp_path):
    store = JsonAgentStore(tmp_path)
    await store.import_agents("alice", [_custom_entry("mom"), _custom_entry("coach")])
    await store.import_agents("bob", [_custom_entry("boss")])

    merged = await get_all_agents(all_agents, store, "alice")

    assert [a.id for a in merged] == [a.id for a in all_agents] + ["coach", "mom"]
    assert all(not a.is_system_agent for a in merged[len(all_agents):])


async def test_get_all_agents_without_owner_is_system_only(all_agents, tmp_path):
    store = JsonAgentStore(tmp_path)
    await store.import_agents("alice", [_custom_entry("mom")])
    assert await get_all_agents(all_agents, store, None) == all_agents
    assert await get_all_agents(all_agents, None, "alice") == all_agents


async def test_custom_agent_cannot_shadow_system_agent(all_agents, tmp_path, caplog):
    store = JsonAgentStore(tmp_path)
    # Written without reserved ids, so the store accepts it
    await store.import_agents("alice", [_custom_entry("risk")])

    with caplog.at_level(logging.WARNING, logger="council.agents"):
        merged = await get_all_agents(all_agents, store, "alice")

    assert [a.id for a in merged] == [a.id for a in all_agents]
    assert merged[0].is_system_agent is True
    assert "risk" in caplog.text


async def test_custom_agents_only_join_when_picked(all_agents, tmp_path):
    store = JsonAgentStore(tmp_path)
    await store.import_agents("alice", [_custom_entry("mom")])
    merged = await get_all_agents(all_agents, store, "alice")

    for seed in range(10):
        assert "mom" not in [a.id for a in select_debate_agents(merged, random.Random(seed))]
    assert [a.id for a in find_agents(merged, ["mom", "risk"])] == ["mom", "risk"]
