"""Persistence: finished debates and custom agents as JSON documents, grouped by owner."""

import asyncio
import json
import logging
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import asdict, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from council.models import AgentConsensus, AgentSnapshot, DebateRecord, DecisionOutput, KeyInsight
from council.schemas import Agent

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a debate or agent cannot be read or written."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _owner_dir(root: Path, owner_id: str) -> Path:
    if not owner_id or "/" in owner_id or "\\" in owner_id or owner_id in {".", ".."}:
        raise StorageError(f"Invalid owner id: {owner_id!r}")
    return root / owner_id


def output_from_dict(data: dict[str, Any]) -> DecisionOutput:
    return DecisionOutput(
        confidence_score=int(data["confidence_score"]),
        recommendation=data["recommendation"],
        blind_spots=list(data.get("blind_spots", [])),
        agent_consensus=AgentConsensus(**data.get("agent_consensus", {})),
        key_insights=[KeyInsight(**k) for k in data.get("key_insights", [])],
        recommended_action=data["recommended_action"],
    )


def record_from_dict(data: dict[str, Any]) -> DebateRecord:
    return DebateRecord(
        id=data.get("id"),
        decision=data["decision"],
        additional_context=data.get("additional_context"),
        intelligence_status=data.get("intelligence_status"),
        research_conducted=bool(data.get("research_conducted", False)),
        selected_agents=[AgentSnapshot(**a) for a in data.get("selected_agents", [])],
        total_rounds=int(data["total_rounds"]),
        output=output_from_dict(data["output"]),
        created_at=data.get("created_at"),
        updated_at=data.get("updated_at"),
    )


class DebateStore(ABC):
    """Narrow persistence interface used by the orchestrator and the CLI."""

    @abstractmethod
    async def save(self, owner_id: str, record: DebateRecord) -> DebateRecord:
        """Store a new debate; returns it with id and timestamps assigned."""
        ...

    @abstractmethod
    async def get(self, owner_id: str, debate_id: str) -> DebateRecord | None:
        ...

    @abstractmethod
    async def list_debates(self, owner_id: str, limit: int = 50) -> list[DebateRecord]:
        """Newest first."""
        ...

    @abstractmethod
    async def delete(self, owner_id: str, debate_id: str) -> None:
        ...

    @abstractmethod
    async def update_output(self, owner_id: str, debate_id: str, output: DecisionOutput) -> DebateRecord:
        ...

    async def search(self, owner_id: str, term: str, limit: int = 20) -> list[DebateRecord]:
        """Case-insensitive substring match on the decision text, newest first."""
        needle = term.lower()
        recent = await self.list_debates(owner_id, limit=100)
        return [r for r in recent if needle in r.decision.lower()][:limit]


class JsonDebateStore(DebateStore):
    """Stores ``<root>/<owner_id>/<debate_id>.json``.

    File I/O runs in a worker thread so callers on the event loop never block.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def _owner_dir(self, owner_id: str) -> Path:
        return _owner_dir(self._root, owner_id)

    def _path(self, owner_id: str, debate_id: str) -> Path:
        if not debate_id or not debate_id.isalnum():
            raise StorageError(f"Invalid debate id: {debate_id!r}")
        return self._owner_dir(owner_id) / f"{debate_id}.json"

    def _write(self, path: Path, record: DebateRecord) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(asdict(record), indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def _read(self, path: Path) -> DebateRecord:
        try:
            return record_from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    async def save(self, owner_id: str, record: DebateRecord) -> DebateRecord:
        now = _now()
        stored = replace(record, id=uuid.uuid4().hex, created_at=now, updated_at=now)
        await asyncio.to_thread(self._write, self._path(owner_id, stored.id), stored)
        logger.info("Debate %s saved for %s", stored.id, owner_id)
        return stored

    async def get(self, owner_id: str, debate_id: str) -> DebateRecord | None:
        path = self._path(owner_id, debate_id)
        if not path.exists():
            return None
        return await asyncio.to_thread(self._read, path)

    async def list_debates(self, owner_id: str, limit: int = 50) -> list[DebateRecord]:
        owner_dir = self._owner_dir(owner_id)
        if not owner_dir.exists():
            return []

        def _load_all() -> list[DebateRecord]:
            records = []
            for path in owner_dir.glob("*.json"):
                try:
                    records.append(self._read(path))
                except StorageError as exc:
                    logger.warning("Skipping unreadable debate: %s", exc)
            return records

        records = await asyncio.to_thread(_load_all)
        records.sort(key=lambda r: r.created_at or "", reverse=True)
        return records[:limit]

    async def delete(self, owner_id: str, debate_id: str) -> None:
        path = self._path(owner_id, debate_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as exc:
            raise StorageError(f"Debate not found: {debate_id}") from exc
        logger.info("Debate %s deleted for %s", debate_id, owner_id)

    async def update_output(self, owner_id: str, debate_id: str, output: DecisionOutput) -> DebateRecord:
        existing = await self.get(owner_id, debate_id)
        if existing is None:
            raise StorageError(f"Debate not found: {debate_id}")
        updated = replace(existing, output=output, updated_at=_now())
        await asyncio.to_thread(self._write, self._path(owner_id, debate_id), updated)
        return updated


# Set by the store, never taken from user input
_STORE_OWNED_FIELDS = {"id", "is_system_agent", "created_by", "is_public", "created_at", "updated_at"}
_AGENT_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,39}$")


def _snake_keys(entry: dict[str, Any]) -> dict[str, Any]:
    """Normalize camelCase roster keys (``systemPrompt``) to field names."""
    return {re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower(): value for key, value in entry.items()}


class AgentStore(ABC):
    """Custom personas owned by one user, kept apart from the system roster."""

    @abstractmethod
    async def list_agents(self, owner_id: str) -> list[Agent]:
        """Sorted by id."""
        ...

    @abstractmethod
    async def get(self, owner_id: str, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def import_agents(
        self, owner_id: str, entries: list[dict[str, Any]], reserved_ids: Iterable[str] = (),
    ) -> list[Agent]:
        """Validate every entry, then store them all. Nothing is written if one is invalid."""
        ...

    @abstractmethod
    async def update(self, owner_id: str, agent_id: str, updates: dict[str, Any]) -> Agent:
        ...

    @abstractmethod
    async def delete(self, owner_id: str, agent_id: str) -> None:
        ...

    async def create(self, owner_id: str, entry: dict[str, Any], reserved_ids: Iterable[str] = ()) -> Agent:
        [agent] = await self.import_agents(owner_id, [entry], reserved_ids)
        return agent


class JsonAgentStore(AgentStore):
    """Stores ``<root>/<owner_id>/agents/<agent_id>.json`` in roster (camelCase) form.

    An entry may name its own ``id``; it must be a lowercase slug not used by
    the system roster or another of the owner's agents. Entries without one
    get a generated id.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    def _agents_dir(self, owner_id: str) -> Path:
        return _owner_dir(self._root, owner_id) / "agents"

    def _path(self, owner_id: str, agent_id: str) -> Path:
        if not _AGENT_ID_RE.match(agent_id or ""):
            raise StorageError(f"Invalid agent id: {agent_id!r}")
        return self._agents_dir(owner_id) / f"{agent_id}.json"

    def _write(self, path: Path, agent: Agent) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(agent.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def _read(self, path: Path) -> Agent:
        try:
            return Agent.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    async def list_agents(self, owner_id: str) -> list[Agent]:
        agents_dir = self._agents_dir(owner_id)
        if not agents_dir.exists():
            return []

        def _load_all() -> list[Agent]:
            agents = []
            for path in agents_dir.glob("*.json"):
                try:
                    agents.append(self._read(path))
                except StorageError as exc:
                    logger.warning("Skipping unreadable agent: %s", exc)
            return agents

        agents = await asyncio.to_thread(_load_all)
        return sorted(agents, key=lambda a: a.id)

    async def get(self, owner_id: str, agent_id: str) -> Agent | None:
        path = self._path(owner_id, agent_id)
        if not path.exists():
            return None
        return await asyncio.to_thread(self._read, path)

    async def import_agents(
        self, owner_id: str, entries: list[dict[str, Any]], reserved_ids: Iterable[str] = (),
    ) -> list[Agent]:
        taken = set(reserved_ids) | {a.id for a in await self.list_agents(owner_id)}
        now = _now()
        agents: list[Agent] = []
        for entry in entries:
            fields = _snake_keys(entry)
            agent_id = str(fields.get("id") or uuid.uuid4().hex[:12])
            if not _AGENT_ID_RE.match(agent_id):
                raise StorageError(f"Invalid agent id: {agent_id!r}")
            if agent_id in taken:
                raise StorageError(f"Agent id already in use: {agent_id}")
            taken.add(agent_id)
            fields = {k: v for k, v in fields.items() if k not in _STORE_OWNED_FIELDS}
            try:
                agents.append(Agent.model_validate({
                    **fields,
                    "id": agent_id,
                    "is_system_agent": False,
                    "is_public": False,
                    "created_by": owner_id,
                    "created_at": now,
                    "updated_at": now,
                }))
            except ValidationError as exc:
                raise StorageError(f"Invalid agent data for {agent_id}: {exc}") from exc

        for agent in agents:
            await asyncio.to_thread(self._write, self._path(owner_id, agent.id), agent)
        logger.info("Stored %d custom agent(s) for %s", len(agents), owner_id)
        return agents

    async def update(self, owner_id: str, agent_id: str, updates: dict[str, Any]) -> Agent:
        existing = await self.get(owner_id, agent_id)
        if existing is None:
            raise StorageError(f"Agent not found: {agent_id}")
        changes = {k: v for k, v in _snake_keys(updates).items() if k not in _STORE_OWNED_FIELDS}
        try:
            updated = Agent.model_validate({**existing.model_dump(), **changes, "updated_at": _now()})
        except ValidationError as exc:
            raise StorageError(f"Invalid agent data for {agent_id}: {exc}") from exc
        await asyncio.to_thread(self._write, self._path(owner_id, agent_id), updated)
        return updated

    async def delete(self, owner_id: str, agent_id: str) -> None:
        path = self._path(owner_id, agent_id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as exc:
            raise StorageError(f"Agent not found: {agent_id}") from exc
        logger.info("Agent %s deleted for %s", agent_id, owner_id)
