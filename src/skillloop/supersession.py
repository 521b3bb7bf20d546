"""
At most one active run per conversation.

Starting a run for a session id cancels whatever run is active for that id.
Only caller-initiated root runs register here; nested skill cycles follow
their parent's signal instead, so they cannot be superseded on their own.

Thread Safety:
    The registry is designed for single-threaded async usage. ``start``
    never awaits, so its check-and-set cannot interleave with another
    coroutine's.
"""

from __future__ import annotations

from typing import Any

from skillloop.cancellation import CancelController, CancelSignal
from skillloop.logging import get_logger

logger = get_logger("supersession")

SUPERSEDED_REASON = "Superseded by a new request."


class RunRegistry:
    """Maps a session id to the controller of its active run."""

    def __init__(self) -> None:
        self._active: dict[str, CancelController] = {}

    def start(self, session_id: str, parent: CancelSignal | None = None) -> CancelController:
        """
        Register a new run, cancelling the previous one for ``session_id``.

        Args:
            session_id: Conversation identity
            parent: Optional caller signal; the run is cancelled when it fires

        Returns:
            The controller for the new run
        """
        previous = self._active.get(session_id)
        if previous is not None:
            logger.info("Superseding active run for session %s", session_id)
            previous.cancel(SUPERSEDED_REASON)
        controller = CancelController(parent=parent)
        self._active[session_id] = controller
        return controller

    def finish(self, session_id: str, controller: CancelController) -> None:
        """Unregister ``controller`` if it is still the active one."""
        controller.detach()
        if self._active.get(session_id) is controller:
            del self._active[session_id]

    def get(self, session_id: str) -> CancelController | None:
        return self._active.get(session_id)

    def cancel(self, session_id: str, reason: Any = None) -> bool:
        """Cancel the active run for ``session_id``. Returns False if none."""
        controller = self._active.get(session_id)
        if controller is None:
            return False
        controller.cancel(reason)
        return True

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._active

    def __len__(self) -> int:
        return len(self._active)
