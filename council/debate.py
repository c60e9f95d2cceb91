"""Debate orchestration: sequential agent rounds, moderator gate, synthesis, scoring."""

import asyncio
import logging
from dataclasses import asdict

from config.config_loader import PromptsConfig
from council.agents import select_debate_agents
from council.events import (
    AGENT_COMPLETE,
    AGENT_START,
    AGENT_STREAM,
    DEBATE_COMPLETE,
    DEBATE_START,
    ERROR,
    MODERATOR_DECISION,
    MODERATOR_DECISION_START,
    MODERATOR_STREAM,
    MODERATOR_SYNTHESIS_COMPLETE,
    MODERATOR_SYNTHESIS_START,
    ROUND_COMPLETE,
    ROUND_START,
    DebateEvent,
    EventChannel,
)
from council.models import AgentSnapshot, AgentTurn, DebateContext, DebateOutcome, DebateRecord
from council.providers.base import AIProvider
from council.schemas import Agent, ModeratorDecision
from council.scoring import generate_decision_output
from council.storage import DebateStore

logger = logging.getLogger(__name__)

# Moderator's continue/conclude judge sees each statement cut to this length
_JUDGE_EXCERPT_CHARS = 200


def _snapshot(agent: Agent) -> AgentSnapshot:
    return AgentSnapshot(
        id=agent.id,
        name=agent.name,
        emoji=agent.emoji,
        color=agent.color,
        avatar_image=agent.avatar_image,
    )


def _agent_card(agent: Agent) -> dict[str, str | None]:
    return {
        "agent_id": agent.id,
        "agent_name": agent.name,
        "agent_emoji": agent.emoji,
        "agent_color": agent.color,
        "agent_avatar_image": agent.avatar_image,
    }


def _format_responses(turns: list[AgentTurn]) -> str:
    return "\n\n".join(f"**{t.agent_name}**: {t.response}" for t in turns)


def _format_debate_summary(turns: list[AgentTurn], excerpt: int | None = None) -> str:
    if excerpt is None:
        return "\n\n".join(f"[Round {t.round}] **{t.agent_name}**: {t.response}" for t in turns)
    return "\n\n".join(f"[Round {t.round}] **{t.agent_name}**: {t.response[:excerpt]}..." for t in turns)


def _format_full_transcript(turns: list[AgentTurn]) -> str:
    return "\n---\n\n".join(f"**[Round {t.round}] {t.agent_name}**:\n{t.response}\n" for t in turns)


class DebateOrchestrator:
    """Runs one decision through Round 1 → Round 2 → moderator gate → [Round 3] → synthesis.

    The orchestrator is the only writer to the EventChannel and to the debate
    history. Agents speak one at a time in selection order so each turn can
    see the statements made before it.

    Args:
        provider: Default provider streaming agent turns.
        prompts: Prompt templates from config.
        moderator: Provider for the moderator calls (defaults to ``provider``).
        agent_providers: Providers keyed by model name, used when an agent
            carries a ``model`` override.
        store: Where finished debates are saved when an owner id is given.
    """

    def __init__(
        self,
        provider: AIProvider,
        prompts: PromptsConfig,
        *,
        moderator: AIProvider | None = None,
        agent_providers: dict[str, AIProvider] | None = None,
        store: DebateStore | None = None,
        agent_temperature: float = 0.8,
        moderator_temperature: float = 0.3,
        synthesis_max_tokens: int = 100,
    ) -> None:
        self._provider = provider
        self._prompts = prompts
        self._moderator = moderator or provider
        self._agent_providers = agent_providers or {}
        self._store = store
        self._agent_temperature = agent_temperature
        self._moderator_temperature = moderator_temperature
        self._synthesis_max_tokens = synthesis_max_tokens

    def start(
        self,
        decision: str,
        all_agents: list[Agent],
        **kwargs,
    ) -> tuple[EventChannel, asyncio.Task]:
        """Schedule ``run`` on the running loop; consume the returned channel."""
        channel = EventChannel()
        task = asyncio.create_task(self.run(decision, all_agents, channel, **kwargs))
        return channel, task

    async def run(
        self,
        decision: str,
        all_agents: list[Agent],
        channel: EventChannel,
        owner_id: str | None = None,
        enriched_context: str | None = None,
        selected_agents: list[Agent] | None = None,
        intelligence_status: str | None = None,
        research_conducted: bool = False,
    ) -> DebateOutcome | None:
        """Run the full debate, emitting events on ``channel``.

        Returns the outcome, or None when the run failed (an ``error`` event
        was emitted). The channel is always closed on return.
        """
        try:
            agents = list(selected_agents) if selected_agents else select_debate_agents(all_agents)
            if not agents:
                raise ValueError("No agents available for debate")

            channel.send(DebateEvent(DEBATE_START, {
                "decision": decision,
                "agents": [asdict(_snapshot(a)) for a in agents],
            }))
            logger.info("Debate started with %d agents", len(agents))

            context = DebateContext(
                decision=decision,
                selected_agents=agents,
                enriched_context=enriched_context,
            )

            await self._run_round(context, 1, channel)
            await self._run_round(context, 2, channel)

            verdict = await self._moderator_decision(context, channel)
            total_rounds = 3 if verdict.decision == "CONTINUE" else 2
            if total_rounds == 3:
                await self._run_round(context, 3, channel)

            synthesis = await self._moderator_synthesis(context, channel)
            output = generate_decision_output(list(context.history), synthesis)

            channel.send(DebateEvent(DEBATE_COMPLETE, {"output": output, "total_rounds": total_rounds}))
            logger.info(
                "Debate complete: %d rounds, score %d (%s)",
                total_rounds, output.confidence_score, output.recommendation,
            )
        except Exception as exc:
            logger.exception("Debate failed")
            channel.send(DebateEvent(ERROR, {"error": str(exc) or type(exc).__name__}))
            channel.close()
            return None

        if owner_id and self._store is not None:
            await self._persist(
                owner_id,
                DebateRecord(
                    decision=decision,
                    selected_agents=[_snapshot(a) for a in agents],
                    total_rounds=total_rounds,
                    output=output,
                    additional_context=enriched_context,
                    intelligence_status=intelligence_status,
                    research_conducted=research_conducted,
                ),
            )

        channel.close()
        return DebateOutcome(
            output=output,
            total_rounds=total_rounds,
            history=list(context.history),
            synthesis=synthesis,
        )

    def _provider_for(self, agent: Agent) -> AIProvider:
        if agent.model and agent.model in self._agent_providers:
            return self._agent_providers[agent.model]
        return self._provider

    def _round_prompt(self, context: DebateContext, round_number: int, agent: Agent) -> str:
        if round_number == 1:
            research = (
                f"\n\nResearch Context:\n{context.enriched_context}" if context.enriched_context else ""
            )
            return self._prompts.round1.format(
                decision=context.decision,
                research_context=research,
                role=agent.role,
            )

        if round_number == 2:
            round1 = [t for t in context.history if t.round == 1]
            so_far = [t for t in context.history if t.round == 2]
            cross = f"\n\nRound 2 responses so far:\n{_format_responses(so_far)}" if so_far else ""
            return self._prompts.round2.format(
                decision=context.decision,
                round1_responses=_format_responses(round1),
                cross_examination=cross,
            )

        return self._prompts.round3.format(
            decision=context.decision,
            debate_summary=_format_debate_summary(context.history),
        )

    async def _run_round(self, context: DebateContext, round_number: int, channel: EventChannel) -> None:
        channel.send(DebateEvent(ROUND_START, {"round": round_number}))
        logger.info("Starting round %d", round_number)

        for agent in context.selected_agents:
            channel.send(DebateEvent(AGENT_START, {**_agent_card(agent), "round": round_number}))

            prompt = self._round_prompt(context, round_number, agent)
            response = ""
            async for chunk in self._provider_for(agent).stream(
                agent.system_prompt,
                [{"role": "user", "content": prompt}],
                temperature=self._agent_temperature,
            ):
                response += chunk
                channel.send(DebateEvent(AGENT_STREAM, {
                    "agent_id": agent.id,
                    "chunk": chunk,
                    "round": round_number,
                }))

            context.history.append(AgentTurn(
                agent_id=agent.id,
                agent_name=agent.name,
                round=round_number,
                response=response,
            ))
            channel.send(DebateEvent(AGENT_COMPLETE, {
                **_agent_card(agent),
                "agent_voice": agent.voice,
                "response": response,
                "round": round_number,
            }))

        channel.send(DebateEvent(ROUND_COMPLETE, {"round": round_number}))

    async def _moderator_decision(self, context: DebateContext, channel: EventChannel) -> ModeratorDecision:
        channel.send(DebateEvent(MODERATOR_DECISION_START, {}))

        request = self._prompts.moderator_decision_request.format(
            decision=context.decision,
            debate_summary=_format_debate_summary(context.history, excerpt=_JUDGE_EXCERPT_CHARS),
        )
        verdict = await self._moderator.generate_structured(
            ModeratorDecision,
            system_prompt=self._prompts.moderator_decision,
            messages=[{"role": "user", "content": request}],
            temperature=self._moderator_temperature,
        )

        channel.send(DebateEvent(MODERATOR_DECISION, {
            "decision": verdict.decision,
            "reasoning": verdict.reasoning,
        }))
        logger.info("Moderator: %s (%s)", verdict.decision, verdict.reasoning)
        return verdict

    async def _moderator_synthesis(self, context: DebateContext, channel: EventChannel) -> str:
        channel.send(DebateEvent(MODERATOR_SYNTHESIS_START, {}))

        request = self._prompts.synthesis_request.format(
            decision=context.decision,
            full_debate=_format_full_transcript(context.history),
        )
        synthesis = ""
        async for chunk in self._moderator.stream(
            self._prompts.moderator_synthesis,
            [{"role": "user", "content": request}],
            temperature=self._moderator_temperature,
            max_tokens=self._synthesis_max_tokens,
        ):
            synthesis += chunk
            channel.send(DebateEvent(MODERATOR_STREAM, {"chunk": chunk}))

        channel.send(DebateEvent(MODERATOR_SYNTHESIS_COMPLETE, {"synthesis": synthesis}))
        return synthesis

    async def _persist(self, owner_id: str, record: DebateRecord) -> None:
        """Best-effort save; the debate outcome was already delivered."""
        try:
            saved = await self._store.save(owner_id, record)
        except Exception:
            logger.exception("Failed to save debate for owner %s", owner_id)
            return
        logger.info("Debate saved: %s", saved.id)
