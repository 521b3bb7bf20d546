"""
Skill prompt handling and child conversation construction.

Skill prompts are resolved when the skill is called, not when it is
registered, because resolution may depend on the run context. Prompts are
stripped of markup before they reach the model; a prompt that is empty after
stripping fails the call.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from pathlib import Path

from skillloop.errors import SkillPromptError
from skillloop.models import Message, Outcome, RunContext, Skill, SkillCallArgs, TextMessage

PromptResolver = Callable[[Skill, RunContext], "str | Awaitable[str]"]

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"</?[^>]+>")

SUGGESTION_NOTE = "treat it as a suggestion (not a requirement)."


def sanitize_prompt(prompt: str) -> str:
    """Drop script/style blocks and all remaining tags, then trim."""
    text = _SCRIPT_RE.sub("", prompt)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return text.strip()


def format_skills(title: str, skills: list[Skill]) -> str:
    """List skills by name and description only. Empty for no skills."""
    if not skills:
        return ""
    block = "\n\n".join(skill.format_for_list() for skill in skills)
    return f"\n# {title}\n{block}"


def build_skill_prompt(prompt: str, child_skills: list[Skill]) -> Outcome[str]:
    """Sanitize a resolved prompt and append the subskill listing."""
    sanitized = sanitize_prompt(prompt)
    if not sanitized:
        return Outcome.failure(SkillPromptError("Skill prompt is empty after sanitization."))
    subskills = format_skills("Subskills", child_skills)
    if not subskills:
        return Outcome.success(sanitized)
    return Outcome.success(
        "\n".join(
            [
                sanitized,
                "",
                "Call subskills when they help complete the task.",
                f"If the user mentions a subskill as `$name`, {SUGGESTION_NOTE}",
                subskills,
            ]
        )
    )


def build_skill_list_message(skills: list[Skill]) -> TextMessage | None:
    """The root-only system message announcing the registered skills."""
    block = format_skills("Skills", skills)
    if not block:
        return None
    return TextMessage.system(
        "\n".join(
            [
                "Call a skill tool when it matches the request.",
                f"If the user mentions a skill as `$name`, {SUGGESTION_NOTE}",
                block,
            ]
        )
    )


def build_skill_messages(base_prompt: str, skill_prompt: str, args: SkillCallArgs) -> list[Message]:
    """A fresh child conversation; nothing is inherited from the parent."""
    return [
        TextMessage.system(base_prompt),
        TextMessage.system(skill_prompt),
        *(args.history or []),
        TextMessage.user(args.task),
    ]


def with_system_after(messages: list[Message], extra: Message | None) -> list[Message]:
    """Return ``messages`` with ``extra`` placed right after the first system message."""
    if extra is None:
        return messages
    for index, message in enumerate(messages):
        if isinstance(message, TextMessage) and message.role == "system":
            return [*messages[: index + 1], extra, *messages[index + 1 :]]
    return [extra, *messages]


# ---------------------------------------------------------------------------
# Prompt resolution
# ---------------------------------------------------------------------------


def inline_prompt_resolver(skill: Skill, context: RunContext) -> str:
    """
    Default resolver: a ``Path`` source is read as UTF-8 text, a string
    source is the prompt itself.
    """
    source = skill.prompt_source
    if isinstance(source, Path):
        return source.read_text(encoding="utf-8")
    return source


async def resolve_skill_prompt(
    skill: Skill,
    context: RunContext,
    resolver: PromptResolver = inline_prompt_resolver,
) -> Outcome[str]:
    """Run ``resolver`` and reject empty or whitespace-only prompts."""
    try:
        prompt = resolver(skill, context)
        if asyncio.iscoroutine(prompt) or asyncio.isfuture(prompt):
            prompt = await prompt
    except Exception as e:
        return Outcome.failure(
            SkillPromptError(f"Skill prompt could not be resolved for {skill.name}: {e}")
        )
    if not isinstance(prompt, str) or not prompt.strip():
        return Outcome.failure(SkillPromptError(f"Skill prompt is empty for {skill.name}."))
    return Outcome.success(prompt)
