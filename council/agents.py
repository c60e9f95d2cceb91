"""Agent roster loading, merging with custom agents, and the debate panel selection policy."""

import logging
import random
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from council.schemas import Agent
from council.storage import AgentStore

logger = logging.getLogger(__name__)

# Always on the panel
CORE_AGENT_IDS = ("risk", "contrarian", "ripple", "regret", "opportunity")
# Shuffled, up to PERSONALITY_PICKS of them join
PERSONALITY_AGENT_IDS = ("yolo", "grandparent", "procrastination")
PERSONALITY_PICKS = 3
CHAOS_AGENT_ID = "chaos"
CHAOS_PROBABILITY = 0.2

_default_rng = random.Random()


def select_debate_agents(all_agents: list[Agent], rng: random.Random | None = None) -> list[Agent]:
    """Pick the panel: every core agent, 3 shuffled personality agents, maybe chaos.

    Ids missing from ``all_agents`` are skipped. Pass ``rng`` for
    reproducible draws.
    """
    rng = rng or _default_rng

    selected = [a for a in all_agents if a.id in CORE_AGENT_IDS]

    personality = [a for a in all_agents if a.id in PERSONALITY_AGENT_IDS]
    rng.shuffle(personality)
    selected.extend(personality[:PERSONALITY_PICKS])

    if rng.random() < CHAOS_PROBABILITY:
        chaos = next((a for a in all_agents if a.id == CHAOS_AGENT_ID), None)
        if chaos is not None:
            selected.append(chaos)

    logger.debug("Selected agents: %s", [a.id for a in selected])
    return selected


def load_agents(entries: Iterable[dict[str, Any]]) -> list[Agent]:
    """Validate roster entries into Agents, skipping (and logging) invalid ones."""
    agents: list[Agent] = []
    for entry in entries:
        try:
            agents.append(Agent.model_validate(entry))
        except ValidationError as exc:
            logger.error("Invalid agent data for %s: %s", entry.get("id", "<no id>"), exc)
    return agents


def find_agents(all_agents: list[Agent], agent_ids: Iterable[str]) -> list[Agent]:
    """Resolve a manual panel by id, in the requested order."""
    by_id = {a.id: a for a in all_agents}
    found: list[Agent] = []
    for agent_id in agent_ids:
        agent = by_id.get(agent_id)
        if agent is None:
            logger.warning("Unknown agent '%s', skipping", agent_id)
            continue
        found.append(agent)
    return found


async def get_all_agents(
    system_agents: list[Agent],
    store: AgentStore | None,
    owner_id: str | None,
) -> list[Agent]:
    """System roster (in settings order) followed by the owner's custom agents.

    Custom agents only join a debate when picked by id; the automatic panel
    is drawn from the system ids alone.
    """
    if store is None or not owner_id:
        return list(system_agents)

    merged = list(system_agents)
    system_ids = {a.id for a in system_agents}
    for agent in await store.list_agents(owner_id):
        if agent.id in system_ids:
            logger.warning("Custom agent '%s' shadows a system agent, skipping", agent.id)
            continue
        merged.append(agent)
    return merged
