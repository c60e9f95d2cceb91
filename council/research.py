"""Research fan-out: run every triage research task concurrently, tolerating failures."""

import asyncio
import logging
import re

from council.models import ResearchResult
from council.providers.base import CitationSearch, GroundedSearch, PageReader
from council.schemas import ResearchTask

logger = logging.getLogger(__name__)

_URL_PATTERN = re.compile(r"https?://\S+")
UNKNOWN_TYPE_SUMMARY = "Unknown research type"


async def _research_one(
    task: ResearchTask,
    reader: PageReader,
    grounded: GroundedSearch,
    citations: CitationSearch,
) -> ResearchResult:
    """Run one task. Never raises — failures become a sentinel summary."""
    sources: list[str] = []
    try:
        if task.type == "url":
            match = _URL_PATTERN.search(task.query)
            url = match.group(0) if match else task.query
            summary = await reader.read(url)
            sources = [url]
        elif task.type == "product":
            summary = await grounded.summarize(task.query)
        elif task.type == "general":
            summary, sources = await citations.summarize(task.query)
        else:
            summary = UNKNOWN_TYPE_SUMMARY
    except Exception as exc:
        logger.warning("Research task failed for %r: %s", task.query, exc)
        summary = f"Research unavailable: {exc}"
        sources = []

    return ResearchResult(query=task.query, type=task.type, summary=summary, sources=sources)


async def conduct_research(
    tasks: list[ResearchTask],
    reader: PageReader,
    grounded: GroundedSearch,
    citations: CitationSearch,
) -> list[ResearchResult]:
    """Dispatch all tasks at once; results keep the input order."""
    logger.info("Researching %d task(s)", len(tasks))
    return list(await asyncio.gather(
        *(_research_one(task, reader, grounded, citations) for task in tasks)
    ))


def format_research_context(results: list[ResearchResult]) -> str:
    """Fold research results into one markdown block for the debate prompt."""
    if not results:
        return ""

    parts = ["\n\n## Research Findings:\n"]
    for index, result in enumerate(results, start=1):
        parts.append(f"### {index}. {result.query}")
        parts.append(result.summary)
        if result.sources:
            parts.append(f"*Sources: {', '.join(result.sources)}*")
        parts.append("")
    return "\n".join(parts)
