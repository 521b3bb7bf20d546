"""
Event vocabulary shared by the loop, its backends and its callers.

Two closed unions live here:

``AgentEvent``
    What a caller observes from ``Agent.run``. Every run ends with exactly
    one ``DoneEvent``.

``GenerationEvent``
    What a generation backend yields for one step: text and reasoning
    deltas/finals, requested tool calls, and a terminal completed/failed
    marker. Backends may also yield ``StatusEvent`` and ``ArtifactEvent``,
    which flow straight through to the caller.

Each variant carries a ``type`` tag, so callers can either ``match`` on the
class or switch on ``event.type``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


class StatusKind(str, Enum):
    """Coarse-grained progress states."""

    THINKING = "thinking"
    CALLING_TOOL = "calling_tool"
    TOOL_RESULT = "tool_result"
    DONE = "done"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Agent events
# ---------------------------------------------------------------------------


@dataclass
class MessageEvent:
    """Final assistant text for a step."""

    content: str
    type: Literal["message"] = field(default="message", init=False)


@dataclass
class MessageDeltaEvent:
    """A streamed piece of assistant text."""

    delta: str
    type: Literal["message.delta"] = field(default="message.delta", init=False)


@dataclass
class ThinkingEvent:
    """Final reasoning summary for a step."""

    summary: str
    type: Literal["thinking"] = field(default="thinking", init=False)


@dataclass
class ThinkingDeltaEvent:
    """A streamed piece of reasoning summary."""

    delta: str
    type: Literal["thinking.delta"] = field(default="thinking.delta", init=False)


@dataclass
class StatusEvent:
    """Coarse progress notification."""

    kind: StatusKind
    tool_name: str | None = None
    label: str | None = None
    type: Literal["status"] = field(default="status", init=False)

    @property
    def key(self) -> tuple[StatusKind, str | None]:
        return (self.kind, self.tool_name)


@dataclass
class ToolStartEvent:
    """A tool or skill call is about to run."""

    name: str
    args: Any
    call_id: str | None = None
    is_skill: bool = False
    depth: int | None = None  # skills only
    input: Any = None  # validated SkillCallArgs, skills only
    type: Literal["tool.start"] = field(default="tool.start", init=False)


@dataclass
class ToolEndEvent:
    """A tool or skill call finished successfully."""

    name: str
    result: Any
    call_id: str | None = None
    is_skill: bool = False
    depth: int | None = None
    type: Literal["tool.end"] = field(default="tool.end", init=False)


@dataclass
class ArtifactEvent:
    """Named data produced along the way (files, images, tables)."""

    name: str
    data: Any
    type: Literal["artifact"] = field(default="artifact", init=False)


@dataclass
class ErrorEvent:
    """A failure. Fatal for backend errors, scoped to one call otherwise."""

    error: Exception
    type: Literal["error"] = field(default="error", init=False)


@dataclass
class DoneEvent:
    """Closes every run."""

    type: Literal["done"] = field(default="done", init=False)


AgentEvent = (
    MessageEvent
    | MessageDeltaEvent
    | ThinkingEvent
    | ThinkingDeltaEvent
    | StatusEvent
    | ToolStartEvent
    | ToolEndEvent
    | ArtifactEvent
    | ErrorEvent
    | DoneEvent
)


# ---------------------------------------------------------------------------
# Generation events (backend -> loop)
# ---------------------------------------------------------------------------


@dataclass
class TextDelta:
    delta: str
    type: Literal["text.delta"] = field(default="text.delta", init=False)


@dataclass
class TextFinal:
    text: str
    type: Literal["text.final"] = field(default="text.final", init=False)


@dataclass
class ReasoningDelta:
    delta: str
    type: Literal["reasoning.delta"] = field(default="reasoning.delta", init=False)


@dataclass
class ReasoningFinal:
    text: str
    type: Literal["reasoning.final"] = field(default="reasoning.final", init=False)


@dataclass
class ToolCallStart:
    """A complete call request. ``arguments`` is usually a JSON string."""

    name: str
    call_id: str | None = None
    arguments: Any = ""
    type: Literal["tool_call.start"] = field(default="tool_call.start", init=False)


@dataclass
class StreamFailed:
    error: Any
    type: Literal["stream.failed"] = field(default="stream.failed", init=False)


@dataclass
class StreamCompleted:
    type: Literal["stream.completed"] = field(default="stream.completed", init=False)


GenerationEvent = (
    TextDelta
    | TextFinal
    | ReasoningDelta
    | ReasoningFinal
    | ToolCallStart
    | StreamFailed
    | StreamCompleted
    | StatusEvent
    | ArtifactEvent
)


def event_to_dict(event: AgentEvent) -> dict[str, Any]:
    """Render an agent event as a JSON-friendly dict."""
    match event:
        case MessageEvent(content=content):
            return {"type": event.type, "content": content}
        case MessageDeltaEvent(delta=delta) | ThinkingDeltaEvent(delta=delta):
            return {"type": event.type, "delta": delta}
        case ThinkingEvent(summary=summary):
            return {"type": event.type, "summary": summary}
        case StatusEvent(kind=kind, tool_name=tool_name, label=label):
            data: dict[str, Any] = {"type": event.type, "kind": kind.value}
            if tool_name is not None:
                data["tool_name"] = tool_name
            if label is not None:
                data["label"] = label
            return data
        case ToolStartEvent():
            data = {"type": event.type, "name": event.name, "args": event.args}
            if event.call_id is not None:
                data["call_id"] = event.call_id
            if event.is_skill:
                data.update(is_skill=True, depth=event.depth, input=_input_to_dict(event.input))
            return data
        case ToolEndEvent():
            data = {"type": event.type, "name": event.name, "result": event.result}
            if event.call_id is not None:
                data["call_id"] = event.call_id
            if event.is_skill:
                data.update(is_skill=True, depth=event.depth)
            return data
        case ArtifactEvent(name=name, data=payload):
            return {"type": event.type, "name": name, "data": payload}
        case ErrorEvent(error=error):
            return {"type": event.type, "error": str(error)}
        case DoneEvent():
            return {"type": event.type}
    raise TypeError(f"Not an agent event: {event!r}")


def _input_to_dict(value: Any) -> Any:
    task = getattr(value, "task", None)
    if task is None:
        return value
    data: dict[str, Any] = {"task": task}
    history = getattr(value, "history", None)
    if history is not None:
        data["history"] = [m.to_dict() for m in history]
    return data
