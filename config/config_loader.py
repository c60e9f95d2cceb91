"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str               # "openai", "azure", "anthropic", "gemini"
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None
    api_version: str | None = None


@dataclass
class PromptsConfig:
    round1: str
    round2: str
    round3: str
    moderator_decision: str
    moderator_decision_request: str
    moderator_synthesis: str
    synthesis_request: str
    triage: str
    product_research: str


@dataclass
class DefaultsConfig:
    agent_model: str
    moderator_model: str
    triage_model: str
    output_dir: Path
    store_dir: Path
    agent_temperature: float = 0.8
    moderator_temperature: float = 0.3
    synthesis_max_tokens: int = 100
    max_clarify_rounds: int = 2
    owner: str | None = None


@dataclass
class ResearchConfig:
    jina_reader_url: str = "https://r.jina.ai"
    jina_api_key_env: str = "JINA_API_KEY"
    perplexity_endpoint: str = "https://api.perplexity.ai/chat/completions"
    perplexity_model: str = "sonar"
    perplexity_api_key_env: str = "PERPLEXITY_API_KEY"
    grounded_model: str | None = None
    timeout_sec: int = 60


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    research: ResearchConfig = field(default_factory=ResearchConfig)
    inbox: InboxConfig = field(default_factory=InboxConfig)
    agents: list[dict[str, Any]] = field(default_factory=list)
    available_providers: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise — callers check
    available_providers before building the panel.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    owner = defaults_raw.get("owner")
    defaults = DefaultsConfig(
        agent_model=str(defaults_raw["agent_model"]),
        moderator_model=str(defaults_raw.get("moderator_model", defaults_raw["agent_model"])),
        triage_model=str(defaults_raw.get("triage_model", defaults_raw["agent_model"])),
        output_dir=Path(defaults_raw["output_dir"]),
        store_dir=Path(defaults_raw["store_dir"]),
        agent_temperature=float(defaults_raw.get("agent_temperature", 0.8)),
        moderator_temperature=float(defaults_raw.get("moderator_temperature", 0.3)),
        synthesis_max_tokens=int(defaults_raw.get("synthesis_max_tokens", 100)),
        max_clarify_rounds=int(defaults_raw.get("max_clarify_rounds", 2)),
        owner=str(owner) if owner else None,
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        round1=prompts_raw["round1"],
        round2=prompts_raw["round2"],
        round3=prompts_raw["round3"],
        moderator_decision=prompts_raw["moderator_decision"],
        moderator_decision_request=prompts_raw["moderator_decision_request"],
        moderator_synthesis=prompts_raw["moderator_synthesis"],
        synthesis_request=prompts_raw["synthesis_request"],
        triage=prompts_raw["triage"],
        product_research=prompts_raw["product_research"],
    )

    research_raw = raw.get("research") or {}
    research = ResearchConfig(**research_raw)

    inbox_raw = raw.get("inbox") or {}
    inbox = InboxConfig(
        dir=Path(inbox_raw.get("dir", "./inbox")),
        archive_dir=Path(inbox_raw.get("archive_dir", "./inbox/archive")),
    )

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
            api_version=model_raw.get("api_version"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s — set %s in .env",
                provider_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        research=research,
        inbox=inbox,
        agents=list(raw.get("agents") or []),
        available_providers=available_providers,
    )
