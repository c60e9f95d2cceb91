"""Rich console rendering of the debate event stream and markdown report save."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council import events
from council.events import DebateEvent
from council.models import DebateOutcome, DebateRecord, DecisionOutput
from council.schemas import Agent

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

ROUND_LABELS = {1: "Initial Positions", 2: "Cross-Examination", 3: "Final Arguments"}

_RECOMMENDATION_STYLES = {
    "PROCEED": "bold green",
    "PROCEED_WITH_CAUTION": "bold yellow",
    "RECONSIDER": "bold dark_orange",
    "DO_NOT_PROCEED": "bold red",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def render_event(event: DebateEvent, out: Console = console) -> None:
    """Print one debate event. Streaming chunks are written inline."""
    data = event.data
    kind = event.event

    if kind == events.DEBATE_START:
        names = ", ".join(f"{a['emoji']} {a['name']}" for a in data["agents"])
        out.print(Rule("[bold cyan]Decision Council[/bold cyan]"))
        out.print(Text(f"Panel: {names}", style="dim"))
    elif kind == events.ROUND_START:
        label = ROUND_LABELS.get(data["round"], "")
        out.print(Rule(f"[bold cyan]Round {data['round']}: {label}[/bold cyan]"))
    elif kind == events.AGENT_START:
        out.print(f"\n{data['agent_emoji']} [bold]{escape(data['agent_name'])}[/bold]: ", end="")
    elif kind in (events.AGENT_STREAM, events.MODERATOR_STREAM):
        out.print(data["chunk"], end="", markup=False, highlight=False)
    elif kind in (events.AGENT_COMPLETE, events.MODERATOR_SYNTHESIS_COMPLETE):
        out.print()
    elif kind == events.MODERATOR_DECISION_START:
        out.print("\n[dim]Moderator is deciding whether to continue...[/dim]")
    elif kind == events.MODERATOR_DECISION:
        verdict = "Round 3 requested" if data["decision"] == "CONTINUE" else "Debate concluded"
        out.print(f"[bold magenta]Moderator:[/bold magenta] {verdict}. [italic]{escape(data['reasoning'])}[/italic]")
    elif kind == events.MODERATOR_SYNTHESIS_START:
        out.print(Rule("[bold green]Moderator Synthesis[/bold green]"))
    elif kind == events.DEBATE_COMPLETE:
        print_decision_output(data["output"], data["total_rounds"], out)
    elif kind == events.ERROR:
        out.print(f"\n[bold red]Debate failed:[/bold red] {escape(data['error'])}")


def print_decision_output(output: DecisionOutput, total_rounds: int, out: Console = console) -> None:
    """Print the final decision card: score, recommendation, consensus, blind spots."""
    style = _RECOMMENDATION_STYLES.get(output.recommendation, "bold")
    headline = Text.assemble(
        (f"{output.confidence_score}/100  ", "bold"),
        (output.recommendation.replace("_", " "), style),
        (f"   ({total_rounds} rounds)", "dim"),
    )
    out.print(Panel(headline, title="Decision Confidence", subtitle=output.recommended_action))

    consensus = Table(title="Agent Consensus", show_header=True, header_style="bold")
    consensus.add_column("Support", style="green")
    consensus.add_column("Conditional", style="yellow")
    consensus.add_column("Oppose", style="red")
    groups = output.agent_consensus
    consensus.add_row("\n".join(groups.support), "\n".join(groups.conditional), "\n".join(groups.oppose))
    out.print(consensus)

    if output.blind_spots:
        out.print("[bold]Blind spots[/bold]")
        for spot in output.blind_spots:
            out.print(f"  - {escape(spot)}")

    if output.key_insights:
        out.print("[bold]Key insights[/bold]")
        for insight in output.key_insights:
            out.print(f"  [bold]{escape(insight.agent_name)}:[/bold] {escape(insight.insight)}")


def print_clarifying_questions(questions: list[str], out: Console = console) -> None:
    out.print(Panel(
        Markdown("\n".join(f"{i}. {q}" for i, q in enumerate(questions, start=1))),
        title="A few questions before the debate",
        border_style="yellow",
    ))


def print_history(records: list[DebateRecord], out: Console = console) -> None:
    """Print stored debates as a table, newest first."""
    table = Table(title="Past debates", show_header=True, header_style="bold")
    table.add_column("Date", style="dim")
    table.add_column("Decision")
    table.add_column("Score", justify="right")
    table.add_column("Recommendation")
    table.add_column("ID", style="dim")
    for record in records:
        table.add_row(
            (record.created_at or "")[:16].replace("T", " "),
            record.decision[:60] + ("..." if len(record.decision) > 60 else ""),
            str(record.output.confidence_score),
            Text(record.output.recommendation, style=_RECOMMENDATION_STYLES.get(record.output.recommendation, "")),
            record.id or "",
        )
    out.print(table)


def print_agents(agents: list[Agent], out: Console = console) -> None:
    table = Table(title="Agents", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Role")
    table.add_column("Source")
    table.add_column("Model", style="dim")
    for agent in agents:
        table.add_row(
            agent.id,
            f"{agent.emoji} {escape(agent.name)}",
            escape(agent.role),
            "system" if agent.is_system_agent else "custom",
            agent.model or "",
        )
    out.print(table)


def save_report(
    decision: str,
    outcome: DebateOutcome,
    output_dir: Path,
    context: str | None = None,
    slug_override: str | None = None,
) -> Path:
    """Save the full debate transcript and decision card as a markdown file.

    Args:
        decision: The decision that was debated.
        outcome: The finished debate.
        output_dir: Directory to save the file in.
        context: Context the debate ran with (user context plus research).
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the decision text. Useful for inbox mode.

    Returns:
        Path to the saved file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(decision)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    result = outcome.output
    panel = list(dict.fromkeys(turn.agent_name for turn in outcome.history))

    lines: list[str] = [
        f"# Decision Council: {decision[:80]}",
        "",
        f"**Date:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Panel:** {', '.join(panel)}",
        f"**Rounds:** {outcome.total_rounds}",
        f"**Confidence:** {result.confidence_score}/100",
        f"**Recommendation:** {result.recommendation}",
        "",
        f"> {result.recommended_action}",
        "",
    ]
    if context:
        lines += ["## Context", "", context, ""]
    lines += ["---", ""]

    for round_number in range(1, outcome.total_rounds + 1):
        lines.append(f"## Round {round_number}: {ROUND_LABELS.get(round_number, '')}")
        lines.append("")
        for turn in outcome.history:
            if turn.round == round_number:
                lines.append(f"**{turn.agent_name}:** {turn.response}")
                lines.append("")

    lines += ["## Moderator Synthesis", "", outcome.synthesis, ""]

    consensus = result.agent_consensus
    lines += [
        "## Agent Consensus",
        "",
        f"- **Support:** {', '.join(consensus.support) or '-'}",
        f"- **Conditional:** {', '.join(consensus.conditional) or '-'}",
        f"- **Oppose:** {', '.join(consensus.oppose) or '-'}",
        "",
    ]
    if result.blind_spots:
        lines += ["## Blind Spots", "", *(f"- {spot}" for spot in result.blind_spots), ""]
    if result.key_insights:
        lines += ["## Key Insights", "", *(f"- **{k.agent_name}:** {k.insight}" for k in result.key_insights), ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate report saved to: %s", filepath)
    return filepath
