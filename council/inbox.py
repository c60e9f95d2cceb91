"""Inbox folder: queued decisions as markdown files, archived once debated."""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import frontmatter

logger = logging.getLogger(__name__)

FAILED_PREFIX = "FAILED_"
# Triage asked questions nobody was there to answer
CLARIFY_PREFIX = "CLARIFY_"


@dataclass
class InboxItem:
    """One queued decision. Frontmatter keys: context, agents, owner."""

    path: Path
    decision: str
    context: str | None = None
    agent_ids: list[str] | None = None
    owner: str | None = None


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, oldest first."""
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def _agent_ids(raw: object) -> list[str] | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        ids = [part.strip() for part in raw.split(",")]
    else:
        ids = [str(part).strip() for part in raw]
    return [i for i in ids if i] or None


def parse_file(file_path: Path) -> InboxItem:
    """Parse a decision file with optional YAML frontmatter.

    ``agents`` may be a comma-separated string or a YAML list of agent ids.

    Raises:
        ValueError: if the body (the decision text) is empty.
    """
    post = frontmatter.load(str(file_path))
    decision = post.content.strip()
    if not decision:
        raise ValueError(f"No decision text in {file_path.name}")

    meta = dict(post.metadata)
    context = meta.get("context")
    owner = meta.get("owner")
    return InboxItem(
        path=file_path,
        decision=decision,
        context=str(context).strip() if context else None,
        agent_ids=_agent_ids(meta.get("agents")),
        owner=str(owner) if owner else None,
    )


def record_questions(file_path: Path, questions: list[str]) -> None:
    """Write open clarifying questions into the file's frontmatter.

    The decision body is kept as is, so the file can be answered (via
    ``context``) and dropped back into the inbox.
    """
    post = frontmatter.load(str(file_path))
    post["clarifying_questions"] = list(questions)
    file_path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")


def archive_file(file_path: Path, archive_dir: Path, *, prefix: str = "") -> Path:
    """Move file to archive_dir with a timestamp prefix.

    Args:
        file_path: Source file to archive.
        archive_dir: Destination directory.
        prefix: Status marker put before the timestamp, e.g. FAILED_PREFIX.

    Returns:
        Path to the archived file.
    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    logger.debug("Archived %s -> %s", file_path.name, dest)
    return dest
