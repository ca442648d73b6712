"""Tests for terminal — CLI invocations issued by the WezTerm and tmux backends."""

import json
import subprocess

import pytest

from ccrelay import terminal
from ccrelay.errors import TerminalError
from ccrelay.terminal import (
    KEY_ENTER,
    KEY_ESCAPE,
    Pane,
    TmuxBackend,
    WezTermBackend,
    create_backend,
)


class FakeRun:
    """Replaces subprocess.run, recording argv and returning canned output."""

    def __init__(self, stdout: str = "", returncode: int = 0, stderr: str = ""):
        self.stdout = stdout
        self.returncode = returncode
        self.stderr = stderr
        self.calls: list[list[str]] = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_run(monkeypatch) -> FakeRun:
    run = FakeRun()
    monkeypatch.setattr(terminal.subprocess, "run", run)
    return run


# ── WezTerm ──────────────────────────────────────────────────────────────


class TestWezTerm:
    def test_list_panes_parses_json(self, fake_run: FakeRun):
        fake_run.stdout = json.dumps(
            [
                {"window_id": 0, "pane_id": 3, "title": "shell"},
                {"window_id": 0, "pane_id": 4, "title": ""},
            ]
        )
        panes = WezTermBackend().list_panes()
        assert panes == [Pane("3", "shell"), Pane("4", "")]
        assert fake_run.calls == [["wezterm", "cli", "list", "--format", "json"]]

    def test_list_panes_bad_json(self, fake_run: FakeRun):
        fake_run.stdout = "not json"
        with pytest.raises(TerminalError):
            WezTermBackend().list_panes()

    def test_send_text_no_paste(self, fake_run: FakeRun):
        WezTermBackend().send_text("3", 'say "hi"')
        assert fake_run.calls == [
            ["wezterm", "cli", "send-text", "--pane-id", "3", "--no-paste", 'say "hi"']
        ]

    @pytest.mark.parametrize(("key", "char"), [(KEY_ENTER, "\r"), (KEY_ESCAPE, "\x1b")])
    def test_send_key(self, fake_run: FakeRun, key: str, char: str):
        WezTermBackend().send_key("3", key)
        assert fake_run.calls == [
            ["wezterm", "cli", "send-text", "--pane-id", "3", "--no-paste", char]
        ]

    def test_unsupported_key(self, fake_run: FakeRun):
        with pytest.raises(TerminalError):
            WezTermBackend().send_key("3", "f13")
        assert fake_run.calls == []

    def test_nonzero_exit_raises_with_stderr(self, fake_run: FakeRun):
        fake_run.returncode = 1
        fake_run.stderr = "pane 3 not found\n"
        with pytest.raises(TerminalError, match="pane 3 not found"):
            WezTermBackend().send_text("3", "x")

    def test_missing_binary(self, monkeypatch):
        def _raise(*args, **kwargs):
            raise FileNotFoundError("wezterm")

        monkeypatch.setattr(terminal.subprocess, "run", _raise)
        with pytest.raises(TerminalError, match="not found"):
            WezTermBackend().list_panes()


# ── tmux ─────────────────────────────────────────────────────────────────


class TestTmux:
    def test_list_panes(self, fake_run: FakeRun):
        fake_run.stdout = "%0\tbash\n%3\tclaude code\n\n"
        assert TmuxBackend().list_panes() == [Pane("%0", "bash"), Pane("%3", "claude code")]
        assert fake_run.calls[0][:3] == ["tmux", "list-panes", "-a"]

    def test_send_text_literal(self, fake_run: FakeRun):
        TmuxBackend().send_text("%3", "Enter")
        assert fake_run.calls == [["tmux", "send-keys", "-t", "%3", "-l", "Enter"]]

    @pytest.mark.parametrize(("key", "name"), [(KEY_ENTER, "Enter"), (KEY_ESCAPE, "Escape")])
    def test_send_key(self, fake_run: FakeRun, key: str, name: str):
        TmuxBackend().send_key("%3", key)
        assert fake_run.calls == [["tmux", "send-keys", "-t", "%3", name]]


# ── create_backend ───────────────────────────────────────────────────────


class TestCreateBackend:
    @pytest.mark.parametrize(("name", "cls"), [("wezterm", WezTermBackend), ("TMUX", TmuxBackend)])
    def test_known(self, name: str, cls: type):
        assert isinstance(create_backend(name), cls)

    def test_unknown(self):
        with pytest.raises(ValueError, match="screen"):
            create_backend("screen")

    def test_pane_display_title(self):
        assert Pane("1").display_title == "(untitled)"
        assert Pane("1", "vim").display_title == "vim"
