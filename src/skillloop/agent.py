"""
The agent loop and its caller-facing facade.

``AgentLoop.run`` drives one cycle: ask the backend for a step, fold the
stream, dispatch any requested tool/skill calls, and repeat until the
model answers without calls, the step budget runs out, the backend fails,
or the run is cancelled. Skill calls re-enter ``AgentLoop.run`` one level
deeper through ``SkillExpander``.

``Agent`` owns a conversation, supersedes its previous run on every new
``run()``, and closes every run with exactly one ``done`` event.

Example:
    agent = Agent(
        backend=OpenAIResponsesBackend(model="gpt-4.1-mini"),
        tools=[Tool(name="add", handler=lambda args, ctx: args["a"] + args["b"])],
        skills=[Skill(name="review", prompt_source="Review the code you are given.")],
    )
    async for event in agent.run("Add 2 and 3"):
        print(event_to_dict(event))
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from contextlib import aclosing
from typing import Any

from skillloop.adapters.base import GenerationBackend
from skillloop.cancellation import CancelSignal
from skillloop.config import LoopConfig
from skillloop.errors import backend_error, to_error
from skillloop.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    GenerationEvent,
    MessageEvent,
    ToolEndEvent,
    ToolStartEvent,
)
from skillloop.expander import SkillExpander, SkillRun
from skillloop.logging import get_logger
from skillloop.loop import (
    LoopState,
    StepOutcome,
    add_tool_call,
    add_tool_output,
    apply_event,
    final_content,
    flush_thinking,
    serialize_output,
)
from skillloop.models import Message, Outcome, RunContext, Skill, TextMessage, Tool, ToolCall
from skillloop.resolver import (
    CallResolver,
    SkillTarget,
    ToolTarget,
    build_tool_definitions,
    normalize_tool_args,
)
from skillloop.skills import (
    PromptResolver,
    build_skill_list_message,
    inline_prompt_resolver,
    with_system_after,
)
from skillloop.status import with_status
from skillloop.supersession import RunRegistry

logger = get_logger("agent")

GenerateFn = Callable[..., "AsyncIterator[GenerationEvent] | Awaitable[AsyncIterator[GenerationEvent]]"]


class AgentLoop:
    """
    Step/fold/dispatch cycle shared by the root run and every skill.

    Args:
        backend: A ``GenerationBackend`` or a bare ``generate`` callable
        config: Loop settings
        prompt_resolver: Resolves skill prompts at call time
    """

    def __init__(
        self,
        backend: GenerationBackend | GenerateFn,
        config: LoopConfig | None = None,
        prompt_resolver: PromptResolver = inline_prompt_resolver,
    ) -> None:
        self.config = config or LoopConfig()
        self._generate: GenerateFn = (
            backend.generate if isinstance(backend, GenerationBackend) else backend
        )
        self.expander = SkillExpander(self, self.config.system_prompt, prompt_resolver)

    async def run(
        self,
        messages: list[Message],
        context: RunContext,
        tools: list[Tool],
        skills: list[Skill],
        depth: int = 0,
        skill_list_message: Message | None = None,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run one cycle over ``messages``, appending to it in place.

        Args:
            messages: Conversation for this cycle
            context: Run context; its signal is checked between steps and calls
            tools: Tools in scope
            skills: Skills in scope
            depth: Nesting depth (0 = root)
            skill_list_message: Extra system message placed after the first
                system message on every backend call (root only)

        Yields:
            Agent events. The stream ends without a ``done`` event; closing
            the run is the caller's job.
        """
        signal = context.signal
        resolver = CallResolver(tools, skills, depth=depth, max_depth=self.config.max_depth)
        tool_definitions = build_tool_definitions(tools, skills)

        for step in range(self.config.max_steps):
            # --- cancellation check ---
            if _cancelled(signal):
                logger.debug("Run cancelled before step %d at depth %d", step, depth)
                return

            logger.debug("Step %d at depth %d (%d messages)", step, depth, len(messages))
            state = LoopState()
            prompt = with_system_after(messages, skill_list_message)

            try:
                stream = self._generate(prompt, tool_definitions, signal)
                if asyncio.iscoroutine(stream):
                    stream = await stream
                async with aclosing(_as_closable(stream)) as events:
                    async for gen_event in events:
                        folded = apply_event(state, gen_event)
                        for event in folded.emit:
                            yield event
                        if folded.outcome is StepOutcome.STOP:
                            break
            except Exception as e:
                state.error = backend_error(e)

            if state.error is not None:
                yield ErrorEvent(error=state.error)
                return

            thinking = flush_thinking(state)
            if thinking is not None:
                yield thinking

            if state.tool_calls:
                for call in state.tool_calls:
                    # --- cancellation check between calls ---
                    if _cancelled(signal):
                        logger.debug("Run cancelled before call %s", call.name)
                        return
                    async with aclosing(
                        self._dispatch(call, resolver, messages, context)
                    ) as dispatched:
                        async for event in dispatched:
                            yield event
                continue

            content = final_content(state)
            if content:
                messages.append(TextMessage.assistant(content))
                if not state.saw_message:
                    yield MessageEvent(content=content)
            return

        logger.info("Step budget of %d exhausted at depth %d", self.config.max_steps, depth)

    async def _dispatch(
        self,
        call: ToolCall,
        resolver: CallResolver,
        messages: list[Message],
        context: RunContext,
    ) -> AsyncIterator[AgentEvent]:
        """Resolve and run one call, recording it in ``messages``."""
        args = normalize_tool_args(call.args)
        add_tool_call(messages, call)

        resolved = resolver.resolve(call, args)
        if not resolved.ok:
            logger.warning("Call %s rejected: %s", call.name, resolved.error)
            yield ErrorEvent(error=resolved.error)
            add_tool_output(messages, call.id, {"error": str(resolved.error)})
            return

        target = resolved.value
        logger.debug("Dispatching %s %s (call id %s)", target.kind, call.name, call.id)

        if isinstance(target, SkillTarget):
            yield ToolStartEvent(
                name=call.name,
                args=args,
                call_id=call.id,
                is_skill=True,
                depth=target.depth,
                input=target.input,
            )
            run = SkillRun()
            async with aclosing(self.expander.expand(target, context, run)) as forwarded:
                async for event in forwarded:
                    yield event
            outcome = run.outcome or Outcome.success("")
        else:
            yield ToolStartEvent(name=call.name, args=args, call_id=call.id)
            outcome = await _run_tool(target, args, context)

        if outcome.ok:
            try:
                output = serialize_output(outcome.value)
            except (TypeError, ValueError) as e:
                outcome = Outcome.failure(e)

        if not outcome.ok:
            logger.warning("Call %s failed: %s", call.name, outcome.error)
            yield ErrorEvent(error=outcome.error)
            add_tool_output(messages, call.id, {"error": str(outcome.error)})
            return

        if isinstance(target, SkillTarget):
            yield ToolEndEvent(
                name=call.name,
                result=outcome.value,
                call_id=call.id,
                is_skill=True,
                depth=target.depth,
            )
        else:
            yield ToolEndEvent(name=call.name, result=outcome.value, call_id=call.id)
        add_tool_output(messages, call.id, output)


async def _run_tool(target: ToolTarget, args: Any, context: RunContext) -> Outcome[Any]:
    try:
        result = target.tool.run(args, context)
        if asyncio.iscoroutine(result) or asyncio.isfuture(result):
            result = await result
    except Exception as e:
        return Outcome.failure(to_error(e))
    return Outcome.success(result)


def _cancelled(signal: CancelSignal | None) -> bool:
    return signal is not None and signal.cancelled


async def _as_closable(stream: Any) -> AsyncIterator[GenerationEvent]:
    """Iterate any async iterable (or plain iterable) as a closable generator."""
    if hasattr(stream, "__aiter__"):
        try:
            async for event in stream:
                yield event
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
    else:
        for event in stream:
            yield event


# ---------------------------------------------------------------------------
# Caller-facing facade
# ---------------------------------------------------------------------------


class Agent:
    """
    A conversation driven by ``AgentLoop``.

    Args:
        backend: Generation backend (or bare ``generate`` callable)
        tools: Root tools
        skills: Root skills
        config: Loop settings (``LoopConfig.from_env()`` when omitted)
        context: Host capabilities handed to tools and prompt resolvers
        prompt_resolver: Resolves skill prompts at call time
        registry: Shared run registry; runs with the same ``session_id``
            supersede each other
        session_id: Conversation identity (random when omitted)
    """

    def __init__(
        self,
        backend: GenerationBackend | GenerateFn,
        tools: list[Tool] | None = None,
        skills: list[Skill] | None = None,
        config: LoopConfig | None = None,
        context: Mapping[str, Any] | None = None,
        prompt_resolver: PromptResolver = inline_prompt_resolver,
        registry: RunRegistry | None = None,
        session_id: str | None = None,
    ) -> None:
        self.config = config or LoopConfig.from_env()
        self.tools = list(tools or [])
        self.skills = list(skills or [])
        self.context = RunContext(values=dict(context or {}))
        self.registry = registry or RunRegistry()
        self.session_id = session_id or uuid.uuid4().hex
        self.loop = AgentLoop(backend, self.config, prompt_resolver)
        self._messages: list[Message] = [TextMessage.system(self.config.system_prompt)]

    @property
    def history(self) -> list[Message]:
        """A copy of the conversation so far."""
        return list(self._messages)

    def reset(self) -> None:
        """Drop everything but the base system prompt."""
        self._messages = [TextMessage.system(self.config.system_prompt)]

    def cancel(self, reason: Any = None) -> bool:
        """Cancel this conversation's active run, if any."""
        return self.registry.cancel(self.session_id, reason)

    async def run(
        self,
        user_input: str,
        signal: CancelSignal | None = None,
        *,
        statuses: bool = False,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run the conversation forward with ``user_input``.

        Any run still active for this session is cancelled first. The
        stream always ends with exactly one ``done`` event.

        Args:
            user_input: The user's message
            signal: Optional caller signal; cancelling it cancels this run
            statuses: Interleave deduplicated status events
        """
        events = self._run(user_input, signal)
        if statuses:
            events = with_status(events)
        async with aclosing(events) as stream:
            async for event in stream:
                yield event

    async def _run(self, user_input: str, signal: CancelSignal | None) -> AsyncIterator[AgentEvent]:
        controller = self.registry.start(self.session_id, parent=signal)
        context = self.context.with_signal(controller.signal)
        self._messages.append(TextMessage.user(user_input))
        try:
            async with aclosing(
                self.loop.run(
                    self._messages,
                    context,
                    tools=self.tools,
                    skills=self.skills,
                    depth=0,
                    skill_list_message=build_skill_list_message(self.skills),
                )
            ) as events:
                async for event in events:
                    yield event
        finally:
            self.registry.finish(self.session_id, controller)
        yield DoneEvent()
