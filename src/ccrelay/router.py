"""Command router — turns Telegram updates into state changes and pane input.

Handles the raw webhook envelope (a JSON dict):
  - message: slash commands are dispatched to cmd_* methods, anything else
    is typed into the selected pane.
  - callback_query: inline button presses (currently `resume:<session>`).

Every event is checked against the chat allow-list before anything else;
a rejected chat gets its own chat id back (so an operator can add it) and
no state is touched. Pane and dispatch errors are replied to the chat, never
raised to the server.

Key class: CommandRouter.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from .dispatcher import TerminalDispatcher
from .errors import BridgeError, PaneNotFound, Unauthorized, UpstreamApiError
from .markup import escape_html
from .panes import PaneRegistry
from .state import SessionState
from .telegram_sender import TelegramSender
from .typing_indicator import TypingIndicator

logger = logging.getLogger(__name__)

# Claude Code commands that open interactive UIs and cannot be driven from chat
BLOCKED_COMMANDS = ("/mcp", "/help", "/config", "/settings", "/model", "/vim", "/terminal-setup")

CB_RESUME = "resume:"

HELP_TEXT = (
    "<b>Claude Code Telegram Bridge</b>\n\n"
    "<b>Panes:</b>\n"
    "/panes - List terminal panes\n"
    "/setpane &lt;id&gt; - Select the active pane\n\n"
    "<b>Session:</b>\n"
    "/status - Show bridge status\n"
    "/stop - Interrupt Claude (Escape)\n"
    "/clear - Clear the conversation\n"
    "/resume - Resume a previous session\n"
    "/mute, /unmute - Pause or resume reply forwarding\n"
    "/refresh - Re-register bot commands\n\n"
    "<b>Usage:</b>\n"
    "Send any message to talk to Claude Code.\n\n"
    "<b>Note:</b> use /panes and /setpane to pick the pane running Claude first."
)

NO_PANE_TEXT = (
    "❌ No pane selected\n\n"
    "1. /panes - List panes\n"
    "2. /setpane &lt;id&gt; - Select the pane running Claude Code"
)


def is_blocked(text: str) -> bool:
    lowered = text.strip().lower()
    return any(lowered.startswith(cmd) for cmd in BLOCKED_COMMANDS)


class CommandRouter:
    def __init__(
        self,
        state: SessionState,
        registry: PaneRegistry,
        dispatcher: TerminalDispatcher,
        sender: TelegramSender,
        typing: TypingIndicator,
        allowed_chats: set[int],
    ) -> None:
        self.state = state
        self.registry = registry
        self.dispatcher = dispatcher
        self.sender = sender
        self.typing = typing
        self.allowed_chats = allowed_chats
        self._commands: dict[str, Callable[[int, str], Awaitable[None]]] = {
            "/start": self.cmd_help,
            "/help": self.cmd_help,
            "/panes": self.cmd_panes,
            "/setpane": self.cmd_setpane,
            "/status": self.cmd_status,
            "/stop": self.cmd_stop,
            "/clear": self.cmd_clear,
            "/resume": self.cmd_resume,
            "/mute": self.cmd_mute,
            "/unmute": self.cmd_unmute,
            "/refresh": self.cmd_refresh,
        }

    # --- Entry points ---

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Process one webhook update. Malformed envelopes raise."""
        message = update.get("message")
        if message is not None:
            await self.handle_message(int(message["chat"]["id"]), message.get("text") or "")

        query = update.get("callback_query")
        if query is not None:
            await self.handle_callback(
                int(query["message"]["chat"]["id"]), query.get("data") or "", str(query["id"])
            )

    async def handle_message(self, chat_id: int, text: str) -> None:
        try:
            self.authorize(chat_id)
        except Unauthorized as e:
            await self.reject(e)
            return

        self.state.set_chat_id(chat_id)

        if text.startswith("/"):
            command, _, args = text.partition(" ")
            command = command.split("@")[0].lower()  # strip bot mention
            await self.handle_command(chat_id, command, args.strip())
        elif text.strip():
            await self.handle_text(chat_id, text)

    async def handle_callback(self, chat_id: int, data: str, query_id: str) -> None:
        try:
            self.authorize(chat_id)
        except Unauthorized as e:
            await self.reject(e)
            return

        await self.sender.answer_callback(query_id)
        self.state.set_chat_id(chat_id)

        if data.startswith(CB_RESUME):
            session_id = data[len(CB_RESUME):]
            try:
                self.dispatcher.send_text(f"/resume {session_id}")
            except BridgeError as e:
                await self.reply(chat_id, f"❌ {escape_html(str(e))}")
                return
            await self.reply(chat_id, f"▶️ Resuming session {escape_html(session_id)}...")
        else:
            logger.debug(f"Ignoring callback data {data!r}")

    # --- Authorization ---

    def authorize(self, chat_id: int) -> None:
        if chat_id not in self.allowed_chats:
            raise Unauthorized(chat_id)

    async def reject(self, error: Unauthorized) -> None:
        logger.warning(f"Rejected unauthorized chat {error.chat_id}")
        await self.reply(
            error.chat_id,
            "⛔ You are not authorized to use this bot.\n\n"
            f"Your chat ID: <code>{error.chat_id}</code>",
        )

    # --- Replies ---

    async def reply(self, chat_id: int, text: str) -> None:
        try:
            await self.sender.send_html(chat_id, text)
        except UpstreamApiError as e:
            logger.error(f"Reply to {chat_id} not delivered: {e}")

    async def register_commands(self) -> bool:
        return await self.sender.set_commands()

    # --- Commands ---

    async def handle_command(self, chat_id: int, command: str, args: str) -> None:
        handler = self._commands.get(command)
        if handler is not None:
            await handler(chat_id, args)
        elif is_blocked(command):
            await self.reply(
                chat_id,
                f"⚠️ Command {escape_html(command)} requires interactive input "
                "and is not supported over Telegram.",
            )
        else:
            await self.reply(chat_id, f"Unknown command: {escape_html(command)}")

    async def cmd_help(self, chat_id: int, args: str) -> None:
        await self.reply(chat_id, HELP_TEXT)

    async def cmd_panes(self, chat_id: int, args: str) -> None:
        panes = self.registry.list_panes()
        if not panes:
            await self.reply(
                chat_id,
                f"❌ No {self.registry.backend.name} panes found\n\n"
                "Make sure the terminal is running.",
            )
            return

        current = self.registry.resolve()
        lines = ["<b>Terminal panes:</b>", ""]
        for pane in panes:
            marker = " ✅" if pane.id == current else ""
            lines.append(f"<b>{escape_html(pane.id)}</b>{marker} - {escape_html(pane.display_title)}")
        lines += ["", "Use /setpane &lt;id&gt; to select a pane"]
        if current is not None:
            lines += ["", f"Current selection: <b>{escape_html(current)}</b>"]
        await self.reply(chat_id, "\n".join(lines))

    async def cmd_setpane(self, chat_id: int, args: str) -> None:
        if not args:
            await self.reply(
                chat_id,
                "⚠️ Please give a pane ID\n\n"
                "Usage: /setpane &lt;id&gt;\nExample: /setpane 3\n\n"
                "Use /panes to list panes",
            )
            return

        pane_id = args.split()[0]
        try:
            pane = self.registry.set_selected(pane_id)
        except PaneNotFound as e:
            await self.reply(chat_id, f"❌ {escape_html(str(e))}\n\nUse /panes to list panes")
            return
        await self.reply(
            chat_id,
            f"✅ Selected pane <b>{escape_html(pane.id)}</b>\n"
            f"Title: {escape_html(pane.display_title)}\n\n"
            "You can send messages now!",
        )

    async def cmd_status(self, chat_id: int, args: str) -> None:
        panes = self.registry.list_panes()
        current = self.registry.resolve()
        mute_line = f"Muted: {'yes 🔇' if self.state.muted else 'no'}"

        if not panes:
            await self.reply(
                chat_id,
                f"⚠️ Cannot reach {self.registry.backend.name} (no panes listed)\n\n{mute_line}",
            )
        elif current is not None:
            pane = self.registry.find(current, panes)
            title = pane.display_title if pane else "(not listed)"
            await self.reply(
                chat_id,
                f"✅ Ready\n\nPane ID: <b>{escape_html(current)}</b>\n"
                f"Title: {escape_html(title)}\n{mute_line}",
            )
        else:
            await self.reply(
                chat_id,
                "❌ No pane selected\n\n"
                "Use /panes to list panes, then /setpane &lt;id&gt; to pick one\n"
                f"{mute_line}",
            )

    async def cmd_stop(self, chat_id: int, args: str) -> None:
        sent = self.dispatcher.send_escape()
        self.typing.stop()
        self.state.clear_pending()
        if sent:
            await self.reply(chat_id, "⏹ Interrupt sent")
        else:
            await self.reply(chat_id, "❌ Failed to send interrupt")

    async def _forward_slash(self, chat_id: int, command: str, ack: str) -> None:
        if self.registry.resolve() is None:
            await self.reply(chat_id, "❌ No pane selected")
            return
        try:
            self.dispatcher.send_text(command)
        except BridgeError as e:
            await self.reply(chat_id, f"❌ Error: {escape_html(str(e))}")
            return
        await self.reply(chat_id, ack)

    async def cmd_clear(self, chat_id: int, args: str) -> None:
        await self._forward_slash(chat_id, "/clear", "🗑 Conversation cleared")

    async def cmd_resume(self, chat_id: int, args: str) -> None:
        await self._forward_slash(chat_id, "/resume", "▶️ Resuming previous session...")

    async def cmd_mute(self, chat_id: int, args: str) -> None:
        self.state.muted = True
        logger.info("Muted completion delivery")
        await self.reply(chat_id, "🔇 Muted. Claude's replies will not be forwarded.")

    async def cmd_unmute(self, chat_id: int, args: str) -> None:
        self.state.muted = False
        logger.info("Unmuted completion delivery")
        await self.reply(chat_id, "🔊 Unmuted. Claude's replies will be forwarded again.")

    async def cmd_refresh(self, chat_id: int, args: str) -> None:
        if await self.register_commands():
            await self.reply(
                chat_id,
                "✅ Bot commands refreshed\n\n"
                "Leave and re-open the chat (or restart Telegram) to see them.",
            )
        else:
            await self.reply(chat_id, "❌ Failed to refresh bot commands")

    # --- Free text ---

    async def handle_text(self, chat_id: int, text: str) -> None:
        pane_id = self.registry.resolve()
        if pane_id is None:
            await self.reply(chat_id, NO_PANE_TEXT)
            return

        if is_blocked(text):
            await self.reply(
                chat_id, "⚠️ This command requires interactive input and is not supported over Telegram."
            )
            return

        self.state.mark_pending()
        self.typing.start(chat_id)
        try:
            self.dispatcher.send_text(text)
        except BridgeError as e:
            self.typing.stop()
            self.state.clear_pending()
            await self.reply(chat_id, f"❌ Error: {escape_html(str(e))}")
