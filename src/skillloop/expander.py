"""
Skill expansion: running a skill call as a nested agent cycle.

The child cycle starts from a fresh conversation (base system prompt, the
sanitized skill prompt, optional history, the task) and sees only the
skill's own tools and sub-skills. Its final message becomes the call's
return value. Only skill-tagged ``tool.start``/``tool.end`` events are
forwarded to the parent stream; everything else the child emits stays
inside the child.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import TYPE_CHECKING

from skillloop.cancellation import CancelController
from skillloop.events import AgentEvent, ErrorEvent, MessageEvent, ToolEndEvent, ToolStartEvent
from skillloop.logging import get_logger
from skillloop.models import Outcome, RunContext
from skillloop.resolver import SkillTarget
from skillloop.skills import (
    PromptResolver,
    build_skill_messages,
    build_skill_prompt,
    inline_prompt_resolver,
    resolve_skill_prompt,
)

if TYPE_CHECKING:
    from skillloop.agent import AgentLoop

logger = get_logger("expander")


@dataclass
class SkillRun:
    """Filled in by ``SkillExpander.expand`` once the child cycle ends."""

    outcome: Outcome[str] | None = None


class SkillExpander:
    """
    Expands skill calls for one ``AgentLoop``.

    Args:
        loop: Loop used to run child cycles
        base_prompt: Base agent system prompt placed first in every child
        prompt_resolver: Resolves a skill's prompt at call time
    """

    def __init__(
        self,
        loop: AgentLoop,
        base_prompt: str,
        prompt_resolver: PromptResolver = inline_prompt_resolver,
    ) -> None:
        self.loop = loop
        self.base_prompt = base_prompt
        self.prompt_resolver = prompt_resolver

    async def expand(
        self,
        target: SkillTarget,
        context: RunContext,
        run: SkillRun,
    ) -> AsyncIterator[AgentEvent]:
        """
        Run ``target`` as a child cycle, yielding the events to forward.

        ``run.outcome`` holds the child's final message on success, or the
        first error the child reported.
        """
        skill = target.skill

        resolved = await resolve_skill_prompt(skill, context, self.prompt_resolver)
        if not resolved.ok:
            logger.warning("Skill %s prompt failed: %s", skill.name, resolved.error)
            run.outcome = Outcome.failure(resolved.error)
            return

        prompt = build_skill_prompt(resolved.value, skill.allowed_skills)
        if not prompt.ok:
            logger.warning("Skill %s prompt failed: %s", skill.name, prompt.error)
            run.outcome = Outcome.failure(prompt.error)
            return

        messages = build_skill_messages(self.base_prompt, prompt.value, target.input)
        controller = CancelController(parent=context.signal)
        child_context = context.with_signal(controller.signal)
        result = ""

        logger.debug("Entering skill %s at depth %d", skill.name, target.depth)
        try:
            async with aclosing(
                self.loop.run(
                    messages,
                    child_context,
                    tools=skill.tools,
                    skills=skill.allowed_skills,
                    depth=target.depth,
                )
            ) as events:
                async for event in events:
                    match event:
                        case MessageEvent(content=content):
                            result = content
                        case ErrorEvent(error=error):
                            logger.debug("Skill %s failed in child cycle: %s", skill.name, error)
                            run.outcome = Outcome.failure(error)
                            return
                        case ToolStartEvent(is_skill=True) | ToolEndEvent(is_skill=True):
                            yield event
        finally:
            controller.detach()

        logger.debug("Leaving skill %s at depth %d", skill.name, target.depth)
        run.outcome = Outcome.success(result)
