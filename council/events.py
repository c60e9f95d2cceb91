"""Ordered debate event stream: one producer, any number of consumers."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

DEBATE_START = "debate-start"
ROUND_START = "round-start"
AGENT_START = "agent-start"
AGENT_STREAM = "agent-stream"
AGENT_COMPLETE = "agent-complete"
ROUND_COMPLETE = "round-complete"
MODERATOR_DECISION_START = "moderator-decision-start"
MODERATOR_DECISION = "moderator-decision"
MODERATOR_SYNTHESIS_START = "moderator-synthesis-start"
MODERATOR_STREAM = "moderator-stream"
MODERATOR_SYNTHESIS_COMPLETE = "moderator-synthesis-complete"
DEBATE_COMPLETE = "debate-complete"
ERROR = "error"

TERMINAL_EVENTS = frozenset({DEBATE_COMPLETE, ERROR})


@dataclass(frozen=True)
class DebateEvent:
    event: str
    data: dict[str, Any] = field(default_factory=dict)


_CLOSED = object()


class EventChannel:
    """Append-only event log with live fan-out.

    Every ``async for`` over the channel first replays events already sent,
    then follows new ones until the producer calls ``close()``.
    """

    def __init__(self) -> None:
        self._events: list[DebateEvent] = []
        self._subscribers: list[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def events(self) -> list[DebateEvent]:
        return list(self._events)

    def send(self, event: DebateEvent) -> None:
        if self._closed:
            raise RuntimeError(f"Cannot send {event.event!r} on a closed channel")
        self._events.append(event)
        for queue in self._subscribers:
            queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._subscribers:
            queue.put_nowait(_CLOSED)

    def subscribe(self) -> AsyncIterator[DebateEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        for event in self._events:
            queue.put_nowait(event)
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._subscribers.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[DebateEvent]:
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield item
        finally:
            if queue in self._subscribers:
                self._subscribers.remove(queue)

    def __aiter__(self) -> AsyncIterator[DebateEvent]:
        return self.subscribe()
