"""Terminal multiplexer backends — the CLI calls that reach the assistant's pane.

A backend lists panes and injects text or single keystrokes into one of them.
Two implementations:
  - WezTermBackend: `wezterm cli list` / `wezterm cli send-text --no-paste`.
  - TmuxBackend: `tmux list-panes` / `tmux send-keys -l`.

Every call is a blocking subprocess.run issued as an argv list (no shell), so
quotes and other shell-reserved characters in the payload reach the pane
literally. Failures raise TerminalError with the CLI's stderr.

Key class: TerminalBackend (protocol); factory: create_backend().
"""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from .errors import TerminalError

logger = logging.getLogger(__name__)

KEY_ENTER = "enter"
KEY_ESCAPE = "escape"

_CLI_TIMEOUT = 10.0


@dataclass(frozen=True)
class Pane:
    """A live terminal pane as reported by the multiplexer."""

    id: str
    title: str = ""

    @property
    def display_title(self) -> str:
        return self.title or "(untitled)"


class TerminalBackend(Protocol):
    """Capability interface over a terminal multiplexer."""

    name: str

    def list_panes(self) -> list[Pane]: ...

    def send_text(self, pane_id: str, text: str) -> None: ...

    def send_key(self, pane_id: str, key: str) -> None: ...


def _run(args: list[str]) -> str:
    """Run a CLI command and return its stdout, raising TerminalError on failure."""
    try:
        result = subprocess.run(
            args, capture_output=True, text=True, timeout=_CLI_TIMEOUT, check=False
        )
    except FileNotFoundError as e:
        raise TerminalError(f"{args[0]} not found: is it installed and on PATH?") from e
    except subprocess.TimeoutExpired as e:
        raise TerminalError(f"{args[0]} timed out after {_CLI_TIMEOUT:.0f}s") from e
    if result.returncode != 0:
        detail = (result.stderr or "").strip() or f"exit status {result.returncode}"
        raise TerminalError(f"{' '.join(args[:3])} failed: {detail}")
    return result.stdout


class WezTermBackend:
    """WezTerm via `wezterm cli`."""

    name = "wezterm"
    _KEYS = {KEY_ENTER: "\r", KEY_ESCAPE: "\x1b"}

    def __init__(self, executable: str = "wezterm") -> None:
        self.executable = executable

    def list_panes(self) -> list[Pane]:
        output = _run([self.executable, "cli", "list", "--format", "json"])
        try:
            entries = json.loads(output or "[]")
        except json.JSONDecodeError as e:
            raise TerminalError(f"Unexpected output from wezterm cli list: {e}") from e
        return [
            Pane(id=str(entry["pane_id"]), title=entry.get("title") or "")
            for entry in entries
            if isinstance(entry, dict) and "pane_id" in entry
        ]

    def send_text(self, pane_id: str, text: str) -> None:
        # --no-paste: the program sees typed input, not a bracketed paste
        _run([self.executable, "cli", "send-text", "--pane-id", pane_id, "--no-paste", text])

    def send_key(self, pane_id: str, key: str) -> None:
        if key not in self._KEYS:
            raise TerminalError(f"Unsupported key: {key}")
        self.send_text(pane_id, self._KEYS[key])


class TmuxBackend:
    """tmux via `tmux list-panes` / `tmux send-keys`."""

    name = "tmux"
    _KEYS = {KEY_ENTER: "Enter", KEY_ESCAPE: "Escape"}

    def __init__(self, executable: str = "tmux") -> None:
        self.executable = executable

    def list_panes(self) -> list[Pane]:
        output = _run([self.executable, "list-panes", "-a", "-F", "#{pane_id}\t#{pane_title}"])
        panes = []
        for line in output.splitlines():
            if not line.strip():
                continue
            pane_id, _, title = line.partition("\t")
            panes.append(Pane(id=pane_id.strip(), title=title.strip()))
        return panes

    def send_text(self, pane_id: str, text: str) -> None:
        # -l sends the text literally instead of parsing key names
        _run([self.executable, "send-keys", "-t", pane_id, "-l", text])

    def send_key(self, pane_id: str, key: str) -> None:
        if key not in self._KEYS:
            raise TerminalError(f"Unsupported key: {key}")
        _run([self.executable, "send-keys", "-t", pane_id, self._KEYS[key]])


_BACKENDS: dict[str, type] = {
    WezTermBackend.name: WezTermBackend,
    TmuxBackend.name: TmuxBackend,
}


def create_backend(name: str) -> TerminalBackend:
    """Instantiate a backend by name ("wezterm" or "tmux")."""
    try:
        return _BACKENDS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown TERMINAL_BACKEND {name!r}, expected one of: {', '.join(sorted(_BACKENDS))}"
        ) from None
