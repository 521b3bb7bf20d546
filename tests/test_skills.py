"""Tests for skill prompt handling and child conversation construction."""

from __future__ import annotations

from pathlib import Path

import pytest

from skillloop.errors import SkillPromptError
from skillloop.models import FunctionCall, RunContext, Skill, SkillCallArgs, TextMessage
from skillloop.skills import (
    build_skill_list_message,
    build_skill_messages,
    build_skill_prompt,
    format_skills,
    inline_prompt_resolver,
    resolve_skill_prompt,
    sanitize_prompt,
    with_system_after,
)


class TestSanitizePrompt:
    def test_strips_tags(self) -> None:
        assert sanitize_prompt("<p>Do <b>this</b></p>") == "Do this"

    def test_drops_script_and_style_blocks(self) -> None:
        prompt = "<style>p { color: red }</style>Keep<script>\nalert('x')\n</script> me"

        assert sanitize_prompt(prompt) == "Keep me"

    def test_case_insensitive_blocks(self) -> None:
        assert sanitize_prompt("<SCRIPT>x</SCRIPT>text") == "text"

    def test_trims(self) -> None:
        assert sanitize_prompt("  \n plain \n ") == "plain"

    @pytest.mark.parametrize(
        "prompt",
        [
            "<div>**Hello**</div><script>alert(1)</script>",
            "<style>b {}</style><p>Step <i>one</i></p>\n<p>Step two</p>",
            "  already plain  ",
        ],
    )
    def test_idempotent(self, prompt: str) -> None:
        once = sanitize_prompt(prompt)

        assert sanitize_prompt(once) == once


class TestFormatSkills:
    def test_empty(self) -> None:
        assert format_skills("Skills", []) == ""

    def test_listing(self) -> None:
        skills = [
            Skill(name="a", prompt_source="A.", description="First"),
            Skill(name="b", prompt_source="B."),
        ]

        assert format_skills("Skills", skills) == (
            "\n# Skills\n## Skill: a\nDescription: First\n\n## Skill: b"
        )


class TestBuildSkillPrompt:
    def test_without_subskills(self) -> None:
        result = build_skill_prompt("<h1>Review</h1> the diff", [])

        assert result.ok
        assert result.value == "Review the diff"

    def test_with_subskills(self) -> None:
        child = Skill(name="lint", prompt_source="Lint.", description="Run the linter")

        result = build_skill_prompt("Review the diff", [child])

        assert result.value.startswith("Review the diff\n\nCall subskills when they help")
        assert "`$name`" in result.value
        assert "treat it as a suggestion (not a requirement)." in result.value
        assert result.value.endswith("# Subskills\n## Skill: lint\nDescription: Run the linter")

    def test_empty_after_sanitation(self) -> None:
        result = build_skill_prompt("<script>only()</script><br/>", [])

        assert isinstance(result.error, SkillPromptError)
        assert str(result.error) == "Skill prompt is empty after sanitization."


class TestSkillListMessage:
    def test_none_without_skills(self) -> None:
        assert build_skill_list_message([]) is None

    def test_content(self) -> None:
        message = build_skill_list_message([Skill(name="a", prompt_source="A.", description="First")])

        assert message.role == "system"
        lines = message.content.split("\n")
        assert lines[0] == "Call a skill tool when it matches the request."
        assert "`$name`" in lines[1]
        assert "## Skill: a" in message.content
        # prompts are never listed
        assert "A." not in message.content


class TestBuildSkillMessages:
    def test_without_history(self) -> None:
        messages = build_skill_messages("base", "skill", SkillCallArgs(task="do it"))

        assert messages == [
            TextMessage.system("base"),
            TextMessage.system("skill"),
            TextMessage.user("do it"),
        ]

    def test_with_history(self) -> None:
        history = [TextMessage.user("earlier"), FunctionCall(call_id="x", name="n", arguments="{}")]

        messages = build_skill_messages("base", "skill", SkillCallArgs(task="t", history=history))

        assert messages[2:4] == history
        assert messages[-1] == TextMessage.user("t")


class TestWithSystemAfter:
    def test_inserted_after_first_system(self) -> None:
        messages = [TextMessage.system("base"), TextMessage.user("hi")]
        extra = TextMessage.system("skills")

        result = with_system_after(messages, extra)

        assert result == [TextMessage.system("base"), extra, TextMessage.user("hi")]
        assert messages == [TextMessage.system("base"), TextMessage.user("hi")]

    def test_prepended_without_system(self) -> None:
        extra = TextMessage.system("skills")

        assert with_system_after([TextMessage.user("hi")], extra) == [extra, TextMessage.user("hi")]

    def test_none_is_identity(self) -> None:
        messages = [TextMessage.user("hi")]

        assert with_system_after(messages, None) is messages


class TestResolveSkillPrompt:
    @pytest.mark.asyncio
    async def test_inline_string(self) -> None:
        result = await resolve_skill_prompt(Skill(name="s", prompt_source="Inline."), RunContext())

        assert result.value == "Inline."

    @pytest.mark.asyncio
    async def test_path_source(self, tmp_path: Path) -> None:
        prompt_file = tmp_path / "SKILL.md"
        prompt_file.write_text("# From file\nDo things.", encoding="utf-8")
        skill = Skill(name="s", prompt_source=prompt_file)

        assert inline_prompt_resolver(skill, RunContext()) == "# From file\nDo things."
        result = await resolve_skill_prompt(skill, RunContext())
        assert result.value == "# From file\nDo things."

    @pytest.mark.asyncio
    async def test_async_resolver(self) -> None:
        async def resolver(skill: Skill, ctx: RunContext) -> str:
            return f"{skill.name} for {ctx.get('user')}"

        result = await resolve_skill_prompt(
            Skill(name="s", prompt_source=""), RunContext(values={"user": "ana"}), resolver
        )

        assert result.value == "s for ana"

    @pytest.mark.asyncio
    async def test_empty_prompt(self) -> None:
        result = await resolve_skill_prompt(Skill(name="s", prompt_source="  "), RunContext())

        assert isinstance(result.error, SkillPromptError)

    @pytest.mark.asyncio
    async def test_resolver_failure(self) -> None:
        def resolver(skill: Skill, ctx: RunContext) -> str:
            raise FileNotFoundError("gone")

        result = await resolve_skill_prompt(Skill(name="s", prompt_source="x"), RunContext(), resolver)

        assert isinstance(result.error, SkillPromptError)
        assert "gone" in str(result.error)
