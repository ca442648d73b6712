"""Shared fakes and fixtures for ccrelay tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from ccrelay.dispatcher import TerminalDispatcher
from ccrelay.errors import TerminalError, UpstreamApiError
from ccrelay.panes import PaneRegistry
from ccrelay.router import CommandRouter
from ccrelay.server import Bridge
from ccrelay.state import FileStateStore, SessionState
from ccrelay.terminal import Pane
from ccrelay.typing_indicator import TypingIndicator

ALLOWED_CHAT = 111


@dataclass
class FakeBackend:
    """In-memory TerminalBackend recording every injection."""

    panes: list[Pane] = field(default_factory=list)
    calls: list[tuple[str, str, str]] = field(default_factory=list)
    list_error: str | None = None
    send_error: str | None = None
    name: str = "fake"

    def list_panes(self) -> list[Pane]:
        if self.list_error:
            raise TerminalError(self.list_error)
        return list(self.panes)

    def send_text(self, pane_id: str, text: str) -> None:
        if self.send_error:
            raise TerminalError(self.send_error)
        self.calls.append(("text", pane_id, text))

    def send_key(self, pane_id: str, key: str) -> None:
        if self.send_error:
            raise TerminalError(self.send_error)
        self.calls.append(("key", pane_id, key))


@dataclass
class FakeSender:
    """Stands in for TelegramSender; records outbound calls."""

    messages: list[tuple[int, str]] = field(default_factory=list)
    typing: list[int] = field(default_factory=list)
    command_sets: int = 0
    answered: list[str] = field(default_factory=list)
    fail_with: str | None = None

    async def send_html(self, chat_id: int, text: str) -> None:
        if self.fail_with:
            raise UpstreamApiError(self.fail_with)
        self.messages.append((chat_id, text))

    async def send_typing(self, chat_id: int) -> None:
        self.typing.append(chat_id)

    async def set_commands(self, commands=None) -> bool:
        self.command_sets += 1
        return True

    async def answer_callback(self, query_id: str) -> None:
        self.answered.append(query_id)

    @property
    def last_text(self) -> str:
        return self.messages[-1][1]


@pytest.fixture
def store(tmp_path) -> FileStateStore:
    return FileStateStore(tmp_path / "state")


@pytest.fixture
def state(store) -> SessionState:
    return SessionState(store)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(panes=[Pane("3", "shell")])


@pytest.fixture
def registry(backend, state) -> PaneRegistry:
    return PaneRegistry(backend, state)


@pytest.fixture
def dispatcher(registry, backend) -> TerminalDispatcher:
    return TerminalDispatcher(registry, backend)


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def typing_indicator(sender) -> TypingIndicator:
    return TypingIndicator(sender, interval=0.01)


@pytest.fixture
def router(state, registry, dispatcher, sender, typing_indicator) -> CommandRouter:
    return CommandRouter(state, registry, dispatcher, sender, typing_indicator, {ALLOWED_CHAT})


@pytest.fixture
def bridge(state, router, sender, typing_indicator) -> Bridge:
    return Bridge(state=state, router=router, sender=sender, typing=typing_indicator)

