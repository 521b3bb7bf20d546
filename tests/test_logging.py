"""Tests for logging helpers."""

from __future__ import annotations

import io
import logging

import pytest

from skillloop.agent import Agent
from skillloop.events import StreamCompleted, TextFinal, ToolCallStart
from skillloop.logging import disable, enable, get_logger, set_level, setup_logging
from skillloop.supersession import RunRegistry


class TestLogging:
    def test_child_logger_names(self) -> None:
        assert get_logger("agent").name == "skillloop.agent"
        assert get_logger("skillloop.expander").name == "skillloop.expander"

    def test_setup_logging_writes_to_stream(self) -> None:
        stream = io.StringIO()
        setup_logging("DEBUG", format="%(name)s %(message)s", stream=stream)
        try:
            get_logger("agent").debug("Step %d at depth %d", 0, 1)
        finally:
            logging.getLogger("skillloop").handlers.clear()

        assert stream.getvalue() == "skillloop.agent Step 0 at depth 1\n"

    def test_set_level_and_disable(self) -> None:
        root = logging.getLogger("skillloop")
        set_level("warning")
        assert root.level == logging.WARNING

        disable()
        assert root.disabled
        enable()
        assert not root.disabled
        set_level("NOTSET")

    @pytest.mark.asyncio
    async def test_loop_logs_under_package_children(self, scripted, config, caplog) -> None:
        backend = scripted(
            [ToolCallStart(name="missing", call_id="c1", arguments="{}"), StreamCompleted()],
            [TextFinal(text="ok"), StreamCompleted()],
        )
        registry = RunRegistry()
        agent = Agent(backend, config=config, registry=registry, session_id="s")

        with caplog.at_level(logging.DEBUG, logger="skillloop"):
            events = [e async for e in agent.run("go")]
            registry.start("s")
            registry.start("s")

        assert events[-1].type == "done"
        by_logger = {(r.name, r.levelname) for r in caplog.records}
        assert ("skillloop.agent", "WARNING") in by_logger
        assert ("skillloop.agent", "DEBUG") in by_logger
        assert ("skillloop.supersession", "INFO") in by_logger
