"""
Per-step accumulation of a generation stream.

``apply_event`` folds one generation event into a ``LoopState`` and says
which agent events to re-emit right away. Tool call requests are collected
but not re-emitted: the orchestrator emits its own ``tool.start`` once it
knows whether the call targets a tool or a skill.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from skillloop.errors import backend_error
from skillloop.events import (
    AgentEvent,
    ArtifactEvent,
    GenerationEvent,
    MessageDeltaEvent,
    MessageEvent,
    ReasoningDelta,
    ReasoningFinal,
    StatusEvent,
    StreamCompleted,
    StreamFailed,
    TextDelta,
    TextFinal,
    ThinkingDeltaEvent,
    ThinkingEvent,
    ToolCallStart,
)
from skillloop.models import FunctionCall, FunctionCallOutput, Message, ToolCall

# Call id used for outputs of calls the backend sent without an id
FALLBACK_CALL_ID = "tool-call"


class StepOutcome(str, Enum):
    CONTINUE = "continue"
    STOP = "stop"


@dataclass
class LoopState:
    """Buffers for one step. Created per step, never persisted."""

    tool_calls: list[ToolCall] = field(default_factory=list)
    text_buffer: str = ""
    final_text: str | None = None
    reasoning_buffer: str = ""
    final_reasoning: str | None = None
    saw_message: bool = False
    saw_thinking: bool = False
    error: Exception | None = None  # set when the stream reported failure


@dataclass
class FoldResult:
    outcome: StepOutcome
    emit: list[AgentEvent] = field(default_factory=list)


def apply_event(state: LoopState, event: GenerationEvent) -> FoldResult:
    """Fold one generation event into ``state``."""
    match event:
        case TextDelta(delta=delta):
            state.text_buffer += delta
            return FoldResult(StepOutcome.CONTINUE, [MessageDeltaEvent(delta=delta)])
        case TextFinal(text=text):
            state.final_text = text
            state.saw_message = True
            return FoldResult(StepOutcome.CONTINUE, [MessageEvent(content=text)])
        case ReasoningDelta(delta=delta):
            state.reasoning_buffer += delta
            return FoldResult(StepOutcome.CONTINUE, [ThinkingDeltaEvent(delta=delta)])
        case ReasoningFinal(text=text):
            state.final_reasoning = text
            state.saw_thinking = True
            return FoldResult(StepOutcome.CONTINUE, [ThinkingEvent(summary=text)])
        case ToolCallStart(name=name, call_id=call_id, arguments=arguments):
            state.tool_calls.append(ToolCall(id=call_id, name=name, args=arguments))
            return FoldResult(StepOutcome.CONTINUE)
        case StatusEvent() | ArtifactEvent():
            return FoldResult(StepOutcome.CONTINUE, [event])
        case StreamCompleted():
            return FoldResult(StepOutcome.STOP)
        case StreamFailed(error=error):
            state.error = backend_error(error)
            return FoldResult(StepOutcome.STOP)
    return FoldResult(StepOutcome.CONTINUE)


def flush_thinking(state: LoopState) -> ThinkingEvent | None:
    """
    Synthesize a reasoning summary the backend never finalized.

    Returns ``None`` when a final reasoning event was already emitted or
    there was no reasoning at all.
    """
    if state.saw_thinking:
        return None
    summary = state.final_reasoning if state.final_reasoning is not None else state.reasoning_buffer
    return ThinkingEvent(summary=summary) if summary else None


def final_content(state: LoopState) -> str:
    """Prefer the explicit final text, fall back to the streamed deltas."""
    return state.final_text if state.final_text is not None else state.text_buffer


def serialize_output(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


def add_tool_call(messages: list[Message], call: ToolCall) -> None:
    """Record a requested call. Calls without an id are not recorded."""
    if not call.id:
        return
    if isinstance(call.args, str):
        arguments = call.args
    else:
        arguments = json.dumps(call.args if call.args is not None else {}, default=str)
    messages.append(FunctionCall(call_id=call.id, name=call.name, arguments=arguments))


def add_tool_output(messages: list[Message], call_id: str | None, output: Any) -> None:
    """Record the result of a call (or ``{"error": ...}``) under its id."""
    messages.append(
        FunctionCallOutput(call_id=call_id or FALLBACK_CALL_ID, output=serialize_output(output))
    )
