"""Terminal dispatcher — types chat text into the assistant's pane.

A send is two injections: the literal text, then a separate Enter. A newline
embedded in the payload does not reliably submit the line on every host
shell, so submission is always its own keystroke.

Key class: TerminalDispatcher.
"""

from __future__ import annotations

import logging

from .errors import BridgeError, DispatchFailed, NoPaneSelected, PaneGone, TerminalError
from .panes import PaneRegistry
from .terminal import KEY_ENTER, KEY_ESCAPE, TerminalBackend

logger = logging.getLogger(__name__)


class TerminalDispatcher:
    def __init__(self, registry: PaneRegistry, backend: TerminalBackend) -> None:
        self.registry = registry
        self.backend = backend

    def _live_pane(self) -> str:
        pane_id = self.registry.resolve()
        if pane_id is None:
            raise NoPaneSelected()
        # Re-check right before sending: the pane may close between
        # selection and use.
        if self.registry.find(pane_id, self.registry.list_panes()) is None:
            raise PaneGone(pane_id)
        return pane_id

    def send_text(self, payload: str) -> str:
        """Type payload into the pane and submit it. Returns the pane id."""
        pane_id = self._live_pane()
        try:
            self.backend.send_text(pane_id, payload)
            self.backend.send_key(pane_id, KEY_ENTER)
        except TerminalError as e:
            logger.error(f"Failed to send text to pane {pane_id}: {e}")
            raise DispatchFailed(str(e)) from e
        logger.info(f"Sent to pane {pane_id}: {payload[:50]!r}")
        return pane_id

    def send_escape(self) -> bool:
        """Send Escape to interrupt the assistant. Best effort."""
        try:
            pane_id = self._live_pane()
            self.backend.send_key(pane_id, KEY_ESCAPE)
        except BridgeError as e:
            logger.warning(f"Failed to send Escape: {e}")
            return False
        return True
