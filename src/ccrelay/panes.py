"""Pane registry — which pane the bridge types into.

Wraps the backend's pane listing and the persisted selection. The selection
is validated on every read: a pane closed out-of-band (the user closed the
terminal tab) clears the stored id instead of leaving text going nowhere.

Key class: PaneRegistry.
"""

from __future__ import annotations

import logging

from .errors import PaneNotFound, TerminalError
from .state import SessionState
from .terminal import Pane, TerminalBackend

logger = logging.getLogger(__name__)


class PaneRegistry:
    def __init__(
        self,
        backend: TerminalBackend,
        state: SessionState,
        override_pane_id: str | None = None,
    ) -> None:
        self.backend = backend
        self.state = state
        self.override_pane_id = override_pane_id

    def list_panes(self) -> list[Pane]:
        """Fresh pane listing; empty when the multiplexer is unreachable."""
        try:
            return self.backend.list_panes()
        except TerminalError as e:
            logger.error(f"Failed to list {self.backend.name} panes: {e}")
            return []

    @staticmethod
    def find(pane_id: str, panes: list[Pane]) -> Pane | None:
        return next((p for p in panes if p.id == str(pane_id)), None)

    def set_selected(self, pane_id: str) -> Pane:
        """Persist pane_id as the selection if it exists right now."""
        pane = self.find(pane_id, self.list_panes())
        if pane is None:
            raise PaneNotFound(pane_id)
        self.state.set_selected_pane_id(pane.id)
        return pane

    def get_selected(self) -> str | None:
        """The persisted selection, cleared if the pane no longer exists."""
        pane_id = self.state.selected_pane_id
        if pane_id is None:
            return None
        if self.find(pane_id, self.list_panes()) is None:
            logger.info(f"Selected pane {pane_id} no longer exists, clearing selection")
            self.state.clear_selected_pane_id()
            return None
        return pane_id

    def resolve(self) -> str | None:
        """Pane to send to: the validated selection, else the configured override."""
        return self.get_selected() or self.override_pane_id
