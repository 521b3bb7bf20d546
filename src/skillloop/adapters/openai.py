"""
OpenAI Responses API backend.

Requires the 'openai' extra: pip install skillloop[openai]
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

try:
    from openai import AsyncOpenAI  # type: ignore[import-not-found]
except ImportError:
    raise ImportError(
        "OpenAI backend requires the 'openai' package. "
        "Install with: pip install skillloop[openai]"
    )

from skillloop.adapters.base import GenerationBackend
from skillloop.cancellation import CancelSignal
from skillloop.events import (
    GenerationEvent,
    ReasoningDelta,
    StatusEvent,
    StatusKind,
    StreamCompleted,
    StreamFailed,
    TextDelta,
    ToolCallStart,
)
from skillloop.logging import get_logger
from skillloop.models import Message, ToolDefinition

logger = get_logger("adapters.openai")


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from an SDK model or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _output_item_text(item: Any) -> str:
    parts = _get(item, "content") or []
    text = []
    for part in parts:
        kind = _get(part, "type")
        if kind == "output_text":
            text.append(_get(part, "text") or "")
        elif kind == "refusal":
            text.append(_get(part, "refusal") or "")
    return "".join(text)


def _summary_text(item: Any) -> str:
    parts = _get(item, "summary") or []
    return "".join(_get(p, "text") or "" for p in parts if _get(p, "type") == "summary_text")


class _TextBuffer:
    """Accumulated text of one channel; turns snapshots into deltas."""

    def __init__(self) -> None:
        self.value = ""

    def append(self, delta: str) -> str:
        self.value += delta
        return delta

    def next_delta(self, snapshot: str) -> str:
        """The part of ``snapshot`` not seen yet (all of it if it diverged)."""
        if not snapshot:
            return ""
        delta = snapshot[len(self.value):] if snapshot.startswith(self.value) else snapshot
        self.value = snapshot
        return delta


class _PartBuffer:
    """Indexed content parts per output item."""

    def __init__(self) -> None:
        self._parts: dict[str, dict[int, str]] = {}

    def update(self, item_id: str | None, index: int | None, text: str | None) -> str:
        if not item_id or index is None:
            return ""
        parts = self._parts.setdefault(item_id, {})
        parts[index] = text or ""
        return "".join(parts[i] for i in sorted(parts))


class OpenAIResponsesBackend(GenerationBackend):
    """
    Streams steps from the OpenAI Responses API.

    Text and reasoning arrive as deltas only; the loop assembles final
    content from them. Each function call is reported once, when both its
    call id and its arguments are known.

    Example:
        from openai import AsyncOpenAI
        from skillloop import Agent
        from skillloop.adapters import OpenAIResponsesBackend

        backend = OpenAIResponsesBackend(client=AsyncOpenAI(), model="gpt-4.1-mini")
        agent = Agent(backend=backend)
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str = "gpt-4.1-mini",
        tool_choice: str | None = None,
        response_options: dict[str, Any] | None = None,
    ) -> None:
        self.client = client or AsyncOpenAI()
        self.model = model
        self.tool_choice = tool_choice
        self.response_options = response_options or {}

    def _build_params(
        self, messages: list[Message], tools: list[ToolDefinition]
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self.model,
            "input": [m.to_dict() for m in messages],
            "stream": True,
        }
        if tools:
            params["tools"] = tools
        tool_choice = self.tool_choice or ("auto" if tools else None)
        if tool_choice:
            params["tool_choice"] = tool_choice
        params.update(self.response_options)
        return params

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        signal: CancelSignal | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        stream = await self.client.responses.create(**self._build_params(messages, tools))

        text = _TextBuffer()
        summary = _TextBuffer()
        content_parts = _PartBuffer()
        summary_parts = _PartBuffer()
        arg_buffers: dict[str, str] = {}
        function_calls: dict[str, dict[str, Any]] = {}
        pending_calls: dict[str, dict[str, Any]] = {}
        emitted: set[str] = set()

        def tool_start(call_id: str | None, name: str | None, args: str) -> ToolCallStart | None:
            if not call_id or not name or call_id in emitted:
                return None
            emitted.add(call_id)
            return ToolCallStart(name=name, call_id=call_id, arguments=args)

        async for event in stream:
            if signal is not None and signal.cancelled:
                logger.debug("Stopping response stream: run cancelled")
                return

            kind = _get(event, "type")
            item_id = _get(event, "item_id")
            delta = ""
            thinking = ""
            start: ToolCallStart | None = None

            if kind in ("response.queued", "response.created", "response.in_progress"):
                yield StatusEvent(kind=StatusKind.THINKING)
            elif kind in ("response.output_text.delta", "response.refusal.delta"):
                delta = text.append(_get(event, "delta") or "")
            elif kind == "response.output_text.done":
                delta = text.next_delta(_get(event, "text") or "")
            elif kind == "response.refusal.done":
                delta = text.next_delta(_get(event, "refusal") or "")
            elif kind == "response.reasoning_summary_text.delta":
                thinking = summary.append(_get(event, "delta") or "")
            elif kind == "response.reasoning_summary_text.done":
                thinking = summary.next_delta(_get(event, "text") or "")
            elif kind in ("response.reasoning_summary_part.added", "response.reasoning_summary_part.done"):
                part = _get(event, "part")
                combined = summary_parts.update(item_id, _get(event, "summary_index"), _get(part, "text"))
                thinking = summary.next_delta(combined)
            elif kind in ("response.content_part.added", "response.content_part.done"):
                part = _get(event, "part")
                part_type = _get(part, "type")
                if part_type in ("output_text", "refusal"):
                    part_text = _get(part, "text" if part_type == "output_text" else "refusal")
                    combined = content_parts.update(item_id, _get(event, "content_index"), part_text)
                    delta = text.next_delta(combined)
            elif kind == "response.function_call_arguments.delta":
                key = item_id or ""
                arg_buffers[key] = arg_buffers.get(key, "") + (_get(event, "delta") or "")
            elif kind == "response.function_call_arguments.done":
                key = item_id or ""
                args = _get(event, "arguments")
                if args is None:
                    args = arg_buffers.get(key, "")
                stored = function_calls.get(key)
                if stored is not None and stored["call_id"] and stored["name"]:
                    start = tool_start(stored["call_id"], stored["name"], args)
                elif _get(event, "name"):
                    pending_calls[key] = {"name": _get(event, "name"), "args": args}
            elif kind in ("response.output_item.added", "response.output_item.done"):
                item = _get(event, "item")
                item_type = _get(item, "type")
                if item_type == "message":
                    delta = text.next_delta(_output_item_text(item))
                elif item_type == "reasoning":
                    thinking = summary.next_delta(_summary_text(item))
                elif item_type == "function_call":
                    key = _get(item, "id") or _get(item, "call_id")
                    if key:
                        call_id = _get(item, "call_id") or key
                        function_calls[key] = {"call_id": call_id, "name": _get(item, "name")}
                        pending = pending_calls.pop(key, None)
                        if pending is not None:
                            name, args = pending["name"], pending["args"]
                        else:
                            name, args = _get(item, "name"), _get(item, "arguments") or ""
                        if kind == "response.output_item.done":
                            start = tool_start(call_id, name, args)
            elif kind == "response.failed":
                response = _get(event, "response")
                error = _get(event, "error") or _get(response, "error")
                yield StreamFailed(error=_error_message(error) or "Response failed")
                return
            elif kind == "error":
                yield StreamFailed(error=_error_message(event) or "Response failed")
                return
            elif kind == "response.completed":
                yield StreamCompleted()
                return
            elif kind in (
                "response.reasoning_text.delta",
                "response.reasoning_text.done",
                "response.audio.delta",
                "response.audio.done",
            ):
                pass
            else:
                logger.debug("Unrecognized response event: %s", kind)

            if delta:
                yield TextDelta(delta=delta)
            if thinking:
                yield ReasoningDelta(delta=thinking)
            if start is not None:
                yield start

        yield StreamCompleted()


def _error_message(error: Any) -> str | None:
    if error is None:
        return None
    if isinstance(error, (str, Exception)):
        return str(error)
    message = _get(error, "message")
    if message:
        return str(message)
    nested = _get(error, "error")
    return _error_message(nested) if nested is not None and nested is not error else None
