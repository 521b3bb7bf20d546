"""
Core data models for the agent loop.

Conversation messages, call requests, tools, skills and the run context are
plain dataclasses. ``to_dict`` on each message variant produces the
Responses-style item that generation backends send over the wire.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Generic, Literal, TypedDict, TypeVar

if TYPE_CHECKING:
    from skillloop.cancellation import CancelSignal

T = TypeVar("T")

TextRole = Literal["system", "user", "assistant"]


# ---------------------------------------------------------------------------
# Conversation messages
# ---------------------------------------------------------------------------


@dataclass
class TextMessage:
    """A system, user or assistant text message."""

    role: TextRole
    content: str

    @classmethod
    def system(cls, content: str) -> TextMessage:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> TextMessage:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> TextMessage:
        return cls(role="assistant", content=content)

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class FunctionCall:
    """A tool or skill invocation requested by the model."""

    call_id: str
    name: str
    arguments: str  # serialized JSON (or the raw string the model sent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function_call",
            "call_id": self.call_id,
            "name": self.name,
            "arguments": self.arguments,
        }


@dataclass
class FunctionCallOutput:
    """The serialized result (or error) of a call, keyed by its call id."""

    call_id: str
    output: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": self.output,
        }


Message = TextMessage | FunctionCall | FunctionCallOutput
MESSAGE_TYPES = (TextMessage, FunctionCall, FunctionCallOutput)


def message_from_dict(data: Message | Mapping[str, Any]) -> Message:
    """
    Build a message from its wire form.

    Message instances pass through untouched. Any other mapping that is not
    a function call item is read as a text message; history supplied to a
    skill is not validated beyond that.
    """
    if isinstance(data, MESSAGE_TYPES):
        return data
    kind = data.get("type")
    if kind == "function_call":
        return FunctionCall(
            call_id=str(data.get("call_id", "")),
            name=str(data.get("name", "")),
            arguments=str(data.get("arguments", "")),
        )
    if kind == "function_call_output":
        return FunctionCallOutput(
            call_id=str(data.get("call_id", "")),
            output=str(data.get("output", "")),
        )
    return TextMessage(role=data.get("role", "user"), content=str(data.get("content", "")))


# ---------------------------------------------------------------------------
# Calls, tools and skills
# ---------------------------------------------------------------------------


@dataclass
class ToolCall:
    """A call requested in one step. ``args`` may still be a JSON string."""

    name: str
    args: Any = None
    id: str | None = None


class ToolDefinition(TypedDict):
    """Function definition sent to the generation backend."""

    type: str
    name: str
    description: str | None
    parameters: dict[str, Any]
    strict: bool


ToolHandler = Callable[[Any, "RunContext"], Any]


@dataclass
class Tool:
    """
    A callable exposed to the model.

    ``handler(args, context)`` may be sync or async and may raise; failures
    are reported per call and never end the run.
    """

    name: str
    handler: ToolHandler
    description: str | None = None
    parameters: dict[str, Any] | None = None  # JSON schema

    def run(self, args: Any, context: RunContext) -> Any:
        return self.handler(args, context)

    def to_tool_definition(self) -> ToolDefinition:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters or {"type": "object"},
            "strict": True,
        }

    def format_for_list(self) -> str:
        desc = f"\nDescription: {self.description}" if self.description else ""
        return f"## Tool: {self.name}{desc}"


@dataclass
class Skill:
    """
    A prompt-defined sub-procedure invoked like a tool.

    The prompt is resolved from ``prompt_source`` at call time. Inside the
    skill only ``tools`` and ``allowed_skills`` are in scope.
    """

    name: str
    prompt_source: str | Path
    description: str | None = None
    allowed_skills: list[Skill] = field(default_factory=list)
    tools: list[Tool] = field(default_factory=list)

    def format_for_list(self) -> str:
        desc = f"\nDescription: {self.description}" if self.description else ""
        return f"## Skill: {self.name}{desc}"


@dataclass
class SkillCallArgs:
    """The only structured input a skill call may carry."""

    task: str
    history: list[Message] | None = None


# ---------------------------------------------------------------------------
# Run context and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunContext:
    """
    Capabilities handed to tools and skill prompt resolvers.

    ``values`` carries whatever the host environment supplies (storage,
    viewport, clients). The loop only ever swaps the ``signal``.
    """

    values: Mapping[str, Any] = field(default_factory=dict)
    signal: CancelSignal | None = None

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def with_signal(self, signal: CancelSignal | None) -> RunContext:
        return replace(self, signal=signal)


@dataclass
class Outcome(Generic[T]):
    """Success-or-error result of a fallible step."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: Exception) -> Outcome[T]:
        return cls(error=error)
