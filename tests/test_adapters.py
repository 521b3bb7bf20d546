"""Tests for generation backends."""

from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from skillloop.adapters.base import AgentResponse, LLMAdapter
from skillloop.adapters.openai import OpenAIResponsesBackend
from skillloop.agent import Agent
from skillloop.cancellation import CancelController
from skillloop.events import (
    ReasoningDelta,
    StatusEvent,
    StatusKind,
    StreamCompleted,
    StreamFailed,
    TextDelta,
    TextFinal,
    ToolCallStart,
)
from skillloop.models import FunctionCallOutput, TextMessage, Tool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event(type: str, **fields: Any) -> SimpleNamespace:
    return SimpleNamespace(type=type, **fields)


async def _stream(events: list[Any]) -> AsyncIterator[Any]:
    for event in events:
        yield event


def _client(*responses: list[Any]) -> SimpleNamespace:
    """Fake OpenAI client; each ``responses.create`` call streams the next list."""
    create = AsyncMock(side_effect=[_stream(events) for events in responses])
    return SimpleNamespace(responses=SimpleNamespace(create=create))


async def _generate(backend: OpenAIResponsesBackend, signal=None, tools=None) -> list[Any]:
    messages = [TextMessage.system("base"), TextMessage.user("hi")]
    return [e async for e in backend.generate(messages, tools or [], signal)]


def _function_item(item_id: str, call_id: str, name: str, arguments: str = "") -> dict[str, Any]:
    return {"type": "function_call", "id": item_id, "call_id": call_id, "name": name, "arguments": arguments}


# ---------------------------------------------------------------------------
# LLMAdapter
# ---------------------------------------------------------------------------


class _FixedAdapter(LLMAdapter):
    def __init__(self, response: AgentResponse) -> None:
        self.response = response
        self.seen: list[Any] = []

    async def chat(self, messages, tools):
        self.seen.append((messages, tools))
        return self.response


class TestLLMAdapter:
    @pytest.mark.asyncio
    async def test_generate_replays_chat_response(self) -> None:
        adapter = _FixedAdapter(
            AgentResponse(
                content="working on it",
                tool_calls=[
                    {"id": "c1", "name": "add", "arguments": {"a": 1}},
                    {"id": "c2", "name": "noop", "arguments": "{}"},
                ],
            )
        )

        events = [e async for e in adapter.generate([TextMessage.user("hi")], [])]

        assert events == [
            TextFinal(text="working on it"),
            ToolCallStart(name="add", call_id="c1", arguments='{"a": 1}'),
            ToolCallStart(name="noop", call_id="c2", arguments="{}"),
            StreamCompleted(),
        ]

    @pytest.mark.asyncio
    async def test_drives_agent(self, config) -> None:
        adapter = _FixedAdapter(AgentResponse(content="hello"))
        agent = Agent(adapter, config=config)

        events = [e async for e in agent.run("hi")]

        assert [e.type for e in events] == ["message", "done"]
        assert adapter.seen[0][0][1] == TextMessage.user("hi")


# ---------------------------------------------------------------------------
# OpenAIResponsesBackend
# ---------------------------------------------------------------------------


class TestOpenAIRequest:
    @pytest.mark.asyncio
    async def test_params_with_tools(self) -> None:
        client = _client([_event("response.completed")])
        backend = OpenAIResponsesBackend(client=client, model="gpt-test", response_options={"store": False})
        tools = [{"type": "function", "name": "add", "description": None, "parameters": {"type": "object"}, "strict": True}]

        await _generate(backend, tools=tools)

        params = client.responses.create.call_args.kwargs
        assert params == {
            "model": "gpt-test",
            "input": [{"role": "system", "content": "base"}, {"role": "user", "content": "hi"}],
            "stream": True,
            "tools": tools,
            "tool_choice": "auto",
            "store": False,
        }

    @pytest.mark.asyncio
    async def test_params_without_tools(self) -> None:
        client = _client([_event("response.completed")])

        await _generate(OpenAIResponsesBackend(client=client))

        params = client.responses.create.call_args.kwargs
        assert "tools" not in params
        assert "tool_choice" not in params

    @pytest.mark.asyncio
    async def test_explicit_tool_choice(self) -> None:
        client = _client([_event("response.completed")])

        await _generate(OpenAIResponsesBackend(client=client, tool_choice="required"))

        assert client.responses.create.call_args.kwargs["tool_choice"] == "required"


class TestOpenAIStream:
    @pytest.mark.asyncio
    async def test_text_deltas(self) -> None:
        client = _client(
            [
                _event("response.created"),
                _event("response.output_text.delta", item_id="m1", delta="Hel"),
                _event("response.output_text.delta", item_id="m1", delta="lo"),
                _event("response.output_text.done", item_id="m1", text="Hello"),
                _event("response.completed"),
            ]
        )

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [
            StatusEvent(kind=StatusKind.THINKING),
            TextDelta(delta="Hel"),
            TextDelta(delta="lo"),
            StreamCompleted(),
        ]

    @pytest.mark.asyncio
    async def test_done_text_without_deltas(self) -> None:
        client = _client([_event("response.output_text.done", item_id="m1", text="Hi")])

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [TextDelta(delta="Hi"), StreamCompleted()]

    @pytest.mark.asyncio
    async def test_message_output_item(self) -> None:
        item = {"type": "message", "content": [{"type": "output_text", "text": "From item"}]}
        client = _client([_event("response.output_item.done", item=item), _event("response.completed")])

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [TextDelta(delta="From item"), StreamCompleted()]

    @pytest.mark.asyncio
    async def test_content_parts(self) -> None:
        client = _client(
            [
                _event("response.content_part.added", item_id="m1", content_index=0, part={"type": "output_text", "text": "A"}),
                _event("response.content_part.done", item_id="m1", content_index=0, part={"type": "output_text", "text": "AB"}),
                _event("response.completed"),
            ]
        )

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [TextDelta(delta="A"), TextDelta(delta="B"), StreamCompleted()]

    @pytest.mark.asyncio
    async def test_reasoning_summary(self) -> None:
        client = _client(
            [
                _event("response.reasoning_summary_text.delta", item_id="r1", delta="Think"),
                _event("response.reasoning_summary_text.done", item_id="r1", text="Thinking"),
                _event("response.completed"),
            ]
        )

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [ReasoningDelta(delta="Think"), ReasoningDelta(delta="ing"), StreamCompleted()]

    @pytest.mark.asyncio
    async def test_function_call_reported_once(self) -> None:
        client = _client(
            [
                _event("response.output_item.added", item=_function_item("fc_1", "call_1", "add")),
                _event("response.function_call_arguments.delta", item_id="fc_1", delta='{"a":'),
                _event("response.function_call_arguments.delta", item_id="fc_1", delta="1}"),
                _event("response.function_call_arguments.done", item_id="fc_1", arguments='{"a":1}'),
                _event("response.output_item.done", item=_function_item("fc_1", "call_1", "add", '{"a":1}')),
                _event("response.completed"),
            ]
        )

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [
            ToolCallStart(name="add", call_id="call_1", arguments='{"a":1}'),
            StreamCompleted(),
        ]

    @pytest.mark.asyncio
    async def test_arguments_before_item(self) -> None:
        client = _client(
            [
                _event("response.function_call_arguments.done", item_id="fc_2", name="add", arguments='{"b":2}'),
                _event("response.output_item.done", item=_function_item("fc_2", "call_2", "add")),
            ]
        )

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [
            ToolCallStart(name="add", call_id="call_2", arguments='{"b":2}'),
            StreamCompleted(),
        ]

    @pytest.mark.asyncio
    async def test_response_failed(self) -> None:
        failed = _event("response.failed", response=SimpleNamespace(error=SimpleNamespace(message="quota")))
        client = _client([failed, _event("response.output_text.delta", delta="late")])

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [StreamFailed(error="quota")]

    @pytest.mark.asyncio
    async def test_error_event(self) -> None:
        client = _client([_event("error", message="bad request")])

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [StreamFailed(error="bad request")]

    @pytest.mark.asyncio
    async def test_stops_when_cancelled(self) -> None:
        controller = CancelController()
        controller.cancel()
        client = _client([_event("response.output_text.delta", delta="x")])

        events = await _generate(OpenAIResponsesBackend(client=client), signal=controller.signal)

        assert events == []

    @pytest.mark.asyncio
    async def test_unrecognized_events_ignored(self) -> None:
        client = _client([_event("response.mystery"), _event("response.completed")])

        events = await _generate(OpenAIResponsesBackend(client=client))

        assert events == [StreamCompleted()]


class TestOpenAIWithAgent:
    @pytest.mark.asyncio
    async def test_tool_round_trip(self, config) -> None:
        client = _client(
            [
                _event("response.output_item.done", item=_function_item("fc_1", "call_1", "add", '{"a": 2, "b": 3}')),
                _event("response.completed"),
            ],
            [
                _event("response.output_text.delta", delta="It is 5."),
                _event("response.completed"),
            ],
        )
        tool = Tool(name="add", handler=lambda args, ctx: args["a"] + args["b"])
        agent = Agent(OpenAIResponsesBackend(client=client), tools=[tool], config=config)

        events = [e async for e in agent.run("2+3?")]

        assert [e.type for e in events] == ["tool.start", "tool.end", "message.delta", "message", "done"]
        assert events[3].content == "It is 5."
        second_input = client.responses.create.call_args_list[1].kwargs["input"]
        assert second_input[-2:] == [
            {"type": "function_call", "call_id": "call_1", "name": "add", "arguments": '{"a": 2, "b": 3}'},
            {"type": "function_call_output", "call_id": "call_1", "output": "5"},
        ]
        assert agent.history[3] == FunctionCallOutput(call_id="call_1", output="5")
