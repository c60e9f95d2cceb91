"""Click CLI — orchestrates config loading, triage, research, debate, and output."""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from council.agents import find_agents, get_all_agents, load_agents
from council.debate import DebateOrchestrator
from council.healthcheck import models_in_use, run_health_checks
from council.inbox import (
    CLARIFY_PREFIX,
    FAILED_PREFIX,
    archive_file,
    ensure_dirs,
    parse_file,
    record_questions,
    scan_inbox,
)
from council.models import DebateOutcome
from council.output import print_agents, print_clarifying_questions, print_history, render_event, save_report
from council.pipeline import build_debate_context, prepare_debate
from council.providers.anthropic import AnthropicProvider
from council.providers.base import AIProvider, GroundedSearch, ProviderError
from council.providers.gemini import GeminiProvider, GeminiSearch
from council.providers.jina import JinaReader
from council.providers.openai_provider import OpenAIProvider
from council.providers.perplexity import PerplexitySearch
from council.schemas import Agent
from council.storage import AgentStore, JsonAgentStore, JsonDebateStore, StorageError

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

# Keyed by ModelConfig.sdk
PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "azure": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


class ClarificationNeeded(Exception):
    """Triage wants answers before a debate can start."""

    def __init__(self, questions: list[str]) -> None:
        self.questions = questions
        super().__init__(f"{len(questions)} clarifying question(s) unanswered")


class _UnconfiguredSearch(GroundedSearch):
    """Stands in when no Gemini model is available; each product task degrades."""

    async def summarize(self, query: str) -> str:
        raise ProviderError("research", "Product research is not configured (no Gemini API key)")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by model name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logging.warning("Model '%s' uses unknown sdk '%s', skipping", name, model_cfg.sdk)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logging.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _pick_provider(providers: dict[str, AIProvider], preferred: str, role: str) -> AIProvider:
    """Return the configured provider for a role, or the first working one."""
    if preferred in providers:
        return providers[preferred]
    fallback = next(iter(providers))
    logger.warning("%s model '%s' unavailable, using '%s'", role, preferred, fallback)
    return providers[fallback]


def _check_and_filter_providers(
    all_providers: dict[str, AIProvider],
    in_use: set[str] | None = None,
) -> dict[str, AIProvider]:
    """Ping the providers this run uses, print results, and ask what to do on failures.

    Returns the filtered dict of working providers. Exits if the user
    declines to continue or no providers pass.
    """
    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(all_providers, in_use))

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return all_providers

    working = {n: p for n, p in all_providers.items() if n not in failed_names}

    if len(failed_names) == len(results):
        console.print("\n[bold red]Error:[/bold red] No providers passed the health check.")
        sys.exit(1)

    console.print(
        f"\n[yellow]{len(failed_names)} provider(s) failed:[/yellow] {', '.join(failed_names)}"
    )
    console.print(f"Working providers: {', '.join(sorted(working))}")

    if not click.confirm("Continue with working providers only?", default=True):
        sys.exit(0)

    console.print()
    return working


def _build_research(config: AppConfig) -> tuple[JinaReader, GroundedSearch, PerplexitySearch]:
    research = config.research
    reader = JinaReader(
        research.jina_reader_url,
        api_key=os.environ.get(research.jina_api_key_env) or None,
        timeout=research.timeout_sec,
    )
    citations = PerplexitySearch(
        api_key=os.environ.get(research.perplexity_api_key_env, "").strip(),
        endpoint=research.perplexity_endpoint,
        model=research.perplexity_model,
        timeout=research.timeout_sec,
    )

    grounded: GroundedSearch = _UnconfiguredSearch()
    grounded_name = research.grounded_model
    if grounded_name and grounded_name in config.available_providers:
        model_cfg = config.models[grounded_name]
        if model_cfg.sdk == "gemini":
            grounded = GeminiSearch(model_cfg, config.prompts.product_research)
        else:
            logger.warning("Grounded research model '%s' is not a Gemini model", grounded_name)
    return reader, grounded, citations


def _ask_clarifying_questions(questions: list[str]) -> str:
    """Prompt for each question; returns the answered ones as a Q/A block."""
    print_clarifying_questions(questions, console)
    answered = []
    for question in questions:
        answer = click.prompt(question, default="", show_default=False).strip()
        if answer:
            answered.append(f"Q: {question}\nA: {answer}")
    return "\n\n".join(answered)


async def _run_single(
    decision: str,
    config: AppConfig,
    providers: dict[str, AIProvider],
    all_agents: list[Agent],
    output_dir: Path,
    *,
    context: str | None = None,
    agent_ids: list[str] | None = None,
    owner: str | None = None,
    save: bool = True,
    interactive: bool = True,
    proceed_unclarified: bool = True,
    slug_override: str | None = None,
) -> DebateOutcome | None:
    """Triage, research, and debate one decision. Returns None if the debate failed.

    Raises:
        ClarificationNeeded: triage still wants answers and
            ``proceed_unclarified`` is False. No debate turn has run.
    """
    selected = None
    if agent_ids:
        selected = find_agents(all_agents, agent_ids)
        if not selected:
            raise click.UsageError(f"None of the requested agents exist: {', '.join(agent_ids)}")

    triage_provider = _pick_provider(providers, config.defaults.triage_model, "Triage")
    reader, grounded, citations = _build_research(config)

    console.print(f"\n[bold cyan]Decision[/bold cyan]: [italic]{decision[:80]}{'...' if len(decision) > 80 else ''}[/italic]")
    try:
        with console.status("Evaluating the decision..."):
            prep = await prepare_debate(
                decision, context, triage_provider, config.prompts, reader, grounded, citations,
            )

        clarify_rounds = 0
        while prep.needs_clarification and interactive and clarify_rounds < config.defaults.max_clarify_rounds:
            answers = _ask_clarifying_questions(prep.clarifying_questions)
            context = build_debate_context(context, answers)
            clarify_rounds += 1
            with console.status("Re-evaluating with your answers..."):
                prep = await prepare_debate(
                    decision, context, triage_provider, config.prompts, reader, grounded, citations,
                )
    finally:
        await reader.aclose()
        await citations.aclose()

    if prep.needs_clarification:
        if not proceed_unclarified:
            raise ClarificationNeeded(prep.clarifying_questions)
        print_clarifying_questions(prep.clarifying_questions, console)
        console.print("[yellow]Debating without answers to these questions.[/yellow]")
        logger.info("Proceeding without further clarification")
        debate_context = context
    else:
        debate_context = prep.debate_context
    if prep.research_conducted:
        console.print(f"[dim]Research gathered for {len(prep.research_results)} task(s)[/dim]")

    orchestrator = DebateOrchestrator(
        _pick_provider(providers, config.defaults.agent_model, "Agent"),
        config.prompts,
        moderator=_pick_provider(providers, config.defaults.moderator_model, "Moderator"),
        agent_providers=providers,
        store=JsonDebateStore(config.defaults.store_dir) if save else None,
        agent_temperature=config.defaults.agent_temperature,
        moderator_temperature=config.defaults.moderator_temperature,
        synthesis_max_tokens=config.defaults.synthesis_max_tokens,
    )
    channel, task = orchestrator.start(
        decision,
        all_agents,
        owner_id=owner if save else None,
        enriched_context=debate_context,
        selected_agents=selected,
        intelligence_status=prep.triage.status,
        research_conducted=prep.research_conducted,
    )
    async for event in channel:
        render_event(event, console)
    outcome = await task

    if outcome is not None and save:
        saved_path = save_report(decision, outcome, output_dir, context=debate_context, slug_override=slug_override)
        console.print(f"\n[dim]Saved to: {saved_path}[/dim]")
    return outcome


async def _run_inbox(
    config: AppConfig,
    providers: dict[str, AIProvider],
    all_agents: list[Agent],
    inbox_dir: Path,
    archive_dir: Path,
    output_dir: Path,
    *,
    context_cli: str | None,
    agents_cli: list[str] | None,
    owner_cli: str | None,
    save: bool,
    agent_store: AgentStore | None = None,
) -> None:
    """Process all .md files in the inbox folder without prompting.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    Each file debates over the system roster plus its owner's custom agents.
    Files triage cannot decide on are archived with their questions instead.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            item = parse_file(file_path)
            owner = owner_cli or item.owner or config.defaults.owner
            outcome = await _run_single(
                item.decision,
                config,
                providers,
                await get_all_agents(all_agents, agent_store, owner),
                output_dir,
                context=context_cli if context_cli is not None else item.context,
                agent_ids=agents_cli if agents_cli is not None else item.agent_ids,
                owner=owner,
                save=save,
                interactive=False,
                proceed_unclarified=False,
                slug_override=file_path.stem,
            )
            if outcome is None:
                raise RuntimeError("debate did not complete")
            archived = archive_file(file_path, archive_dir)
            click.echo(f"Processed: {file_path.name} (archived: {archived.name})")
        except ClarificationNeeded as e:
            record_questions(file_path, e.questions)
            archived = archive_file(file_path, archive_dir, prefix=CLARIFY_PREFIX)
            click.echo(f"Needs answers: {file_path.name} (questions in {archived.name})")
        except Exception as e:
            logger.error("Failed: %s -- %s", file_path.name, e)
            archive_file(file_path, archive_dir, prefix=FAILED_PREFIX)


def _read_agent_file(path: Path) -> list[dict]:
    """Load custom agent definitions from a YAML or JSON file.

    The file holds one agent mapping, a list of them, or ``agents: [...]``.
    """
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise click.BadParameter(f"{path.name}: {exc}", param_hint="--add-agent") from exc
    if isinstance(raw, dict) and isinstance(raw.get("agents"), list):
        raw = raw["agents"]
    entries = raw if isinstance(raw, list) else [raw]
    if not entries or not all(isinstance(e, dict) for e in entries):
        raise click.BadParameter(f"{path.name} does not contain agent definitions", param_hint="--add-agent")
    return entries


async def _manage_agents(
    store: AgentStore,
    system_agents: list[Agent],
    owner: str,
    *,
    add_file: Path | None,
    remove_id: str | None,
) -> list[Agent]:
    """Apply --add-agent / --remove-agent, then return the merged roster."""
    if add_file is not None:
        created = await store.import_agents(
            owner, _read_agent_file(add_file), reserved_ids={a.id for a in system_agents},
        )
        for agent in created:
            console.print(f"[green]Added[/green] {agent.emoji} {escape(agent.name)} [dim]({agent.id})[/dim]")
    if remove_id:
        if any(a.id == remove_id for a in system_agents):
            raise StorageError(f"Cannot remove system agent: {remove_id}")
        await store.delete(owner, remove_id)
        console.print(f"[green]Removed[/green] {remove_id}")
    return await get_all_agents(system_agents, store, owner)


def _parse_agent_ids(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    return [part.strip() for part in raw.split(",") if part.strip()] or None


@click.command()
@click.argument("decision", required=False)
@click.option("--file", "decision_file", type=click.Path(exists=True), help="Read the decision from a .md file")
@click.option("--context", default=None, help="Extra background for the council")
@click.option("--agents", default=None, help="Comma-separated agent ids, overrides panel selection")
@click.option("--owner", default=None, help="Owner id debates are stored under (default: from config)")
@click.option("--output", "output_path", default=None, help="Report directory (default: from config)")
@click.option("--no-save", is_flag=True, default=False, help="Don't store the debate or write a report")
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False,
              help="Skip clarifying questions and debate with what is known")
@click.option("--history", "show_history", is_flag=True, default=False, help="List stored debates and exit")
@click.option("--search", "search_term", default=None, help="Search stored debates by decision text and exit")
@click.option("--list-agents", "list_agents", is_flag=True, default=False,
              help="List system and custom agents and exit")
@click.option("--add-agent", "add_agent_file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Add custom agents from a YAML/JSON file and exit")
@click.option("--remove-agent", "remove_agent_id", default=None, help="Delete one of your custom agents and exit")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md files in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    decision: str | None,
    decision_file: str | None,
    context: str | None,
    agents: str | None,
    owner: str | None,
    output_path: str | None,
    no_save: bool,
    assume_yes: bool,
    show_history: bool,
    search_term: str | None,
    list_agents: bool,
    add_agent_file: str | None,
    remove_agent_id: str | None,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """Decision Council -- a panel of AI agents debates your decision.

    \b
    Examples:
      council "Should I quit my job to start a bakery?"
      council "Buy the 14 inch laptop?" --context "Budget is $1500"
      council "Move to Berlin?" --agents risk,regret,opportunity --yes
      council --file decision.md
      council --history
      council --add-agent my_agents.yaml --owner alice
      council "Sell the house?" --agents risk,mom --owner alice
      council --inbox --inbox-dir ./my_queue
    """
    # Reconfigure stdout/stderr to UTF-8 on Windows so agent responses containing
    # emoji don't crash the ANSI render path.
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    effective_owner = owner or config.defaults.owner
    effective_output = Path(output_path) if output_path else config.defaults.output_dir

    if show_history or search_term:
        if not effective_owner:
            console.print("[bold red]Error:[/bold red] No owner id. Pass --owner or set defaults.owner.")
            sys.exit(1)
        store = JsonDebateStore(config.defaults.store_dir)
        try:
            if search_term:
                records = asyncio.run(store.search(effective_owner, search_term))
            else:
                records = asyncio.run(store.list_debates(effective_owner))
        except StorageError as exc:
            console.print(f"[bold red]Storage error:[/bold red] {exc}")
            sys.exit(1)
        if not records:
            click.echo("No debates found.")
            return
        print_history(records, console)
        return

    system_agents = load_agents(config.agents)
    if not system_agents:
        console.print("[bold red]Error:[/bold red] No valid agents configured in settings.yaml.")
        sys.exit(1)

    agent_store = JsonAgentStore(config.defaults.store_dir)
    manage_agents = bool(add_agent_file or remove_agent_id)
    if manage_agents and not effective_owner:
        console.print("[bold red]Error:[/bold red] No owner id. Pass --owner or set defaults.owner.")
        sys.exit(1)
    try:
        all_agents = asyncio.run(
            _manage_agents(
                agent_store,
                system_agents,
                effective_owner,
                add_file=Path(add_agent_file) if add_agent_file else None,
                remove_id=remove_agent_id,
            )
            if manage_agents
            else get_all_agents(system_agents, agent_store, effective_owner)
        )
    except StorageError as exc:
        console.print(f"[bold red]Agent error:[/bold red] {exc}")
        sys.exit(1)
    if manage_agents or list_agents:
        print_agents(all_agents, console)
        return

    all_providers = _build_all_providers(config)

    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    if not skip_health_check:
        all_providers = _check_and_filter_providers(all_providers, models_in_use(config, all_agents))

    agent_ids = _parse_agent_ids(agents)

    if use_inbox:
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config,
                all_providers,
                system_agents,
                inbox_dir,
                config.inbox.archive_dir,
                effective_output,
                context_cli=context,        # raw CLI value (None if not specified)
                agents_cli=agent_ids,
                owner_cli=owner,
                save=not no_save,
                agent_store=agent_store,
            )
        )
        return

    if decision_file:
        decision_text = Path(decision_file).read_text(encoding="utf-8").strip()
    elif decision:
        decision_text = decision.strip()
    else:
        decision_text = ""
    if not decision_text:
        console.print("[bold red]Error:[/bold red] Provide a DECISION argument, --file, or --inbox.")
        sys.exit(1)

    outcome = asyncio.run(
        _run_single(
            decision_text,
            config,
            all_providers,
            all_agents,
            effective_output,
            context=context,
            agent_ids=agent_ids,
            owner=effective_owner,
            save=not no_save,
            interactive=not assume_yes,
        )
    )
    if outcome is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
