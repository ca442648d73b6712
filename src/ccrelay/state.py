"""Session state — the single piece of mutable state the bridge owns.

Tracks:
  - Active chat: where completion callbacks are delivered (persisted).
  - Selected pane: which terminal pane receives text (persisted).
  - Pending marker: a request is waiting for the assistant (persisted,
    expires after PENDING_TIMEOUT seconds).
  - Mute flag: completions are accepted but not delivered (memory only).

Persisted fields live in a StateStore. The file-backed store keeps one plain
text file per key; the bridge and the per-turn hook process share those files
without locking. The hook runs once per assistant turn and finishes quickly,
so the race window is accepted.

Key classes: StateStore (protocol), FileStateStore, SessionState.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .utils import atomic_write_text

logger = logging.getLogger(__name__)

CHAT_ID_KEY = "telegram_chat_id"
PANE_ID_KEY = "telegram_pane_id"
PENDING_KEY = "telegram_pending"

# A forwarded request older than this no longer counts as pending
PENDING_TIMEOUT = 10 * 60


class StateStore(Protocol):
    """Minimal key-value persistence. Absence of a key means unset."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self, key: str) -> None: ...


class FileStateStore:
    """StateStore backed by one plain-text file per key in a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / key

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"Failed to read state file {path}: {e}")
            return None
        return value or None

    def set(self, key: str, value: str) -> None:
        atomic_write_text(self._path(key), value)

    def clear(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


@dataclass
class SessionState:
    """Process-wide session state, passed to every component that needs it."""

    store: StateStore
    muted: bool = False
    pending_timeout: float = PENDING_TIMEOUT

    # --- Active chat ---

    @property
    def chat_id(self) -> int | None:
        raw = self.store.get(CHAT_ID_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning(f"Ignoring malformed chat id in state: {raw!r}")
            return None

    def set_chat_id(self, chat_id: int) -> None:
        if self.store.get(CHAT_ID_KEY) != str(chat_id):
            self.store.set(CHAT_ID_KEY, str(chat_id))

    # --- Selected pane ---

    @property
    def selected_pane_id(self) -> str | None:
        return self.store.get(PANE_ID_KEY)

    def set_selected_pane_id(self, pane_id: str) -> None:
        logger.info(f"Selected pane {pane_id}")
        self.store.set(PANE_ID_KEY, pane_id)

    def clear_selected_pane_id(self) -> None:
        self.store.clear(PANE_ID_KEY)

    # --- Pending marker ---

    def mark_pending(self, now: float | None = None) -> None:
        self.store.set(PENDING_KEY, f"{time.time() if now is None else now:.3f}")

    def clear_pending(self) -> None:
        self.store.clear(PENDING_KEY)

    def is_pending(self, now: float | None = None) -> bool:
        """True if a request was forwarded within the pending timeout."""
        raw = self.store.get(PENDING_KEY)
        if raw is None:
            return False
        try:
            created_at = float(raw)
        except ValueError:
            return False
        age = (time.time() if now is None else now) - created_at
        return age < self.pending_timeout
