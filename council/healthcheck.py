"""Provider health checks — ping the models a run will call before it starts."""

import asyncio
import logging

from config.config_loader import AppConfig
from council.providers.base import AIProvider
from council.schemas import Agent

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


def models_in_use(config: AppConfig, agents: list[Agent]) -> set[str]:
    """Model keys a run can reach.

    The default agent, moderator and triage models, the grounded research
    model, and any per-agent ``model`` override on the roster.
    """
    names = {
        config.defaults.agent_model,
        config.defaults.moderator_model,
        config.defaults.triage_model,
    }
    if config.research.grounded_model:
        names.add(config.research.grounded_model)
    names.update(a.model for a in agents if a.model)
    return names


async def _check_one(name: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (name, ok, error_message)."""
    try:
        await asyncio.wait_for(
            provider.complete(
                "You are a health check.",
                [{"role": "user", "content": _PING_PROMPT}],
                temperature=0.0,
                max_tokens=5,
            ),
            timeout=_TIMEOUT_SEC,
        )
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", name, exc)
        return name, False, str(exc) or type(exc).__name__
    return name, True, ""


async def run_health_checks(
    providers: dict[str, AIProvider],
    only: set[str] | None = None,
) -> dict[str, tuple[bool, str]]:
    """Ping providers in parallel.

    Args:
        providers: Built providers keyed by model name.
        only: Restrict the pings to these model names. When none of them is
            built, every provider is pinged instead.

    Returns:
        Dict mapping provider name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    targets = {n: p for n, p in providers.items() if only is None or n in only} or providers
    skipped = sorted(set(providers) - set(targets))
    if skipped:
        logger.debug("Not pinging unused providers: %s", ", ".join(skipped))
    results = await asyncio.gather(*(_check_one(n, p) for n, p in targets.items()))
    return {name: (ok, err) for name, ok, err in results}
