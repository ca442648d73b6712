"""Error taxonomy for the bridge.

Every error carries a short message that is safe to show in the chat; the
router replies with ``str(error)`` verbatim.
"""


class BridgeError(Exception):
    """Base class for all bridge errors."""


class TerminalError(BridgeError):
    """A multiplexer CLI invocation failed (missing binary, non-zero exit)."""


class NoPaneSelected(BridgeError):
    def __init__(self) -> None:
        super().__init__("No pane selected. Use /panes and /setpane <id> first.")


class PaneNotFound(BridgeError):
    def __init__(self, pane_id: str) -> None:
        self.pane_id = pane_id
        super().__init__(f"Pane {pane_id} does not exist.")


class PaneGone(BridgeError):
    """The pane existed when selected but vanished before the send."""

    def __init__(self, pane_id: str) -> None:
        self.pane_id = pane_id
        super().__init__(f"Pane {pane_id} is no longer available. Use /panes to pick another.")


class DispatchFailed(BridgeError):
    """Text injection into the pane failed; message is the underlying error."""


class Unauthorized(BridgeError):
    def __init__(self, chat_id: int) -> None:
        self.chat_id = chat_id
        super().__init__(f"Chat {chat_id} is not authorized.")


class NoChatConfigured(BridgeError):
    def __init__(self) -> None:
        super().__init__("No chat ID configured. Send a message to the bot first.")


class UpstreamApiError(BridgeError):
    """The Telegram Bot API rejected a call."""
