"""Outbound Telegram helpers — the only place that talks to the Bot API.

Provides TelegramSender, a thin wrapper around python-telegram-bot's Bot:
  - send_html(): send with parse_mode=HTML, retrying once as plain text when
    Telegram cannot parse the markup. Any other rejection ends the attempt.
  - send_typing(), set_commands(), answer_callback(): best effort, failures
    are logged and swallowed.
"""

from __future__ import annotations

import logging
from typing import Sequence

from telegram import Bot, BotCommand, LinkPreviewOptions, Message
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest, TelegramError

from .errors import UpstreamApiError
from .markup import truncate

logger = logging.getLogger(__name__)

# Disable link previews in all messages to reduce visual noise
_NO_LINK_PREVIEW = LinkPreviewOptions(is_disabled=True)

BOT_COMMANDS: list[tuple[str, str]] = [
    ("panes", "List terminal panes"),
    ("setpane", "Select the active pane (e.g. /setpane 3)"),
    ("status", "Show bridge status"),
    ("stop", "Interrupt Claude (sends Escape)"),
    ("clear", "Clear the conversation"),
    ("resume", "Resume a previous session"),
    ("mute", "Stop forwarding Claude's replies"),
    ("unmute", "Resume forwarding Claude's replies"),
    ("refresh", "Re-register bot commands"),
    ("help", "Show help"),
]


def _is_parse_error(error: BadRequest) -> bool:
    return "can't parse entities" in error.message.lower()


class TelegramSender:
    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_html(self, chat_id: int, text: str) -> Message:
        """Send an HTML message, falling back to plain text on a parse error."""
        text = truncate(text)
        try:
            return await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.HTML,
                link_preview_options=_NO_LINK_PREVIEW,
            )
        except BadRequest as e:
            if not _is_parse_error(e):
                logger.error(f"Failed to send message to {chat_id}: {e}")
                raise UpstreamApiError(str(e)) from e
            logger.warning(f"HTML send to {chat_id} rejected ({e}), retrying as plain text")
        except TelegramError as e:
            logger.error(f"Failed to send message to {chat_id}: {e}")
            raise UpstreamApiError(str(e)) from e

        try:
            return await self.bot.send_message(
                chat_id=chat_id, text=text, link_preview_options=_NO_LINK_PREVIEW
            )
        except TelegramError as e:
            logger.error(f"Plain-text fallback to {chat_id} failed: {e}")
            raise UpstreamApiError(str(e)) from e

    async def send_typing(self, chat_id: int) -> None:
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except TelegramError as e:
            logger.debug(f"Failed to send typing action to {chat_id}: {e}")

    async def set_commands(self, commands: Sequence[tuple[str, str]] = BOT_COMMANDS) -> bool:
        try:
            await self.bot.set_my_commands([BotCommand(name, desc) for name, desc in commands])
        except TelegramError as e:
            logger.error(f"Failed to register bot commands: {e}")
            return False
        logger.info("Bot commands registered")
        return True

    async def answer_callback(self, query_id: str) -> None:
        try:
            await self.bot.answer_callback_query(callback_query_id=query_id)
        except TelegramError as e:
            logger.debug(f"Failed to answer callback query {query_id}: {e}")
