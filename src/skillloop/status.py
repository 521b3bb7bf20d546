"""
Coarse status notifications derived from the agent event stream.

``with_status`` wraps a raw stream and emits a ``status`` event only when
the ``(kind, tool_name)`` pair changes, so a burst of deltas produces one
"thinking" status instead of hundreds. Raw events always pass through.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from skillloop.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    MessageDeltaEvent,
    MessageEvent,
    StatusEvent,
    StatusKind,
    ThinkingDeltaEvent,
    ThinkingEvent,
    ToolEndEvent,
    ToolStartEvent,
)


def status_for_event(event: AgentEvent) -> StatusEvent | None:
    """The status an event implies, or None if it implies none."""
    match event:
        case MessageEvent() | MessageDeltaEvent() | ThinkingEvent() | ThinkingDeltaEvent():
            return StatusEvent(kind=StatusKind.THINKING)
        case ToolStartEvent(name=name):
            return StatusEvent(kind=StatusKind.CALLING_TOOL, tool_name=name)
        case ToolEndEvent(name=name):
            return StatusEvent(kind=StatusKind.TOOL_RESULT, tool_name=name)
        case ErrorEvent():
            return StatusEvent(kind=StatusKind.ERROR)
        case DoneEvent():
            return StatusEvent(kind=StatusKind.DONE)
    return None


class StatusDeduper:
    """Remembers the last emitted status key for one run."""

    def __init__(self) -> None:
        self.last: tuple[StatusKind, str | None] | None = None

    def observe(self, status: StatusEvent | None) -> StatusEvent | None:
        """Return ``status`` if its key differs from the last one emitted."""
        if status is None or status.key == self.last:
            return None
        self.last = status.key
        return status


async def with_status(events: AsyncIterator[AgentEvent]) -> AsyncIterator[AgentEvent]:
    """
    Interleave deduplicated status events into ``events``.

    A derived status is emitted before the event that caused it. Status
    events already in the stream (sent by a backend) go through the same
    deduplication.
    """
    deduper = StatusDeduper()
    try:
        async for event in events:
            if isinstance(event, StatusEvent):
                if deduper.observe(event) is not None:
                    yield event
                continue
            status = deduper.observe(status_for_event(event))
            if status is not None:
                yield status
            yield event
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
