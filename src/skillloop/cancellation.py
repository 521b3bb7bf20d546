"""
Cooperative cancellation for agent runs.

A ``CancelController`` owns a ``CancelSignal``. Signals are only observed at
check points (before each step and before each call in a batch); nothing is
interrupted mid-flight. A controller built from a parent signal is cancelled
whenever the parent is, which is how a root run's cancellation reaches tools
and nested skill cycles.

Example:
    controller = CancelController()
    child = CancelController(parent=controller.signal)

    controller.cancel("Superseded by a new request.")
    assert child.signal.cancelled
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from skillloop.errors import RunCancelledError

CancelListener = Callable[[Any], None]


class CancelSignal:
    """Read-only view of a cancellation state."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Any = None
        self._listeners: list[CancelListener] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, listener: CancelListener) -> Callable[[], None]:
        """
        Call ``listener(reason)`` once when the signal fires.

        Fires immediately if the signal is already cancelled. Returns a
        function that detaches the listener.
        """
        if self.cancelled:
            listener(self._reason)
            return lambda: None
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return remove

    def raise_if_cancelled(self) -> None:
        """Raise ``RunCancelledError`` if the signal has fired."""
        if self.cancelled:
            raise RunCancelledError(self._reason)

    async def wait(self) -> Any:
        """Wait until the signal fires and return the reason."""
        await self._event.wait()
        return self._reason

    def _fire(self, reason: Any) -> None:
        if self.cancelled:
            return
        self._reason = reason
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(reason)


class CancelController:
    """Owns a signal and the right to cancel it."""

    def __init__(self, parent: CancelSignal | None = None) -> None:
        self.signal = CancelSignal()
        self._detach: Callable[[], None] | None = None
        if parent is not None:
            self._detach = parent.add_listener(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self.signal.cancelled

    def cancel(self, reason: Any = None) -> None:
        """Fire the signal. Later calls keep the first reason."""
        self.signal._fire(reason if reason is not None else "Run cancelled")

    def detach(self) -> None:
        """Stop following the parent signal."""
        if self._detach is not None:
            self._detach()
            self._detach = None
