"""Typing indicator — keeps "typing…" visible while Claude is working.

Telegram clears a chat action after about five seconds, so it is re-sent on
an interval from a background asyncio task until stopped. The loop also ends
on its own once the pending timeout passes, so a turn whose hook never fires
does not leave the indicator running forever.
"""

from __future__ import annotations

import asyncio
import logging

from .state import PENDING_TIMEOUT
from .telegram_sender import TelegramSender

logger = logging.getLogger(__name__)

TYPING_INTERVAL = 5.0


class TypingIndicator:
    def __init__(
        self,
        sender: TelegramSender,
        interval: float = TYPING_INTERVAL,
        max_duration: float = PENDING_TIMEOUT,
    ) -> None:
        self.sender = sender
        self.interval = interval
        self.max_duration = max_duration
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, chat_id: int) -> None:
        """Start (or restart) the loop for chat_id. Must run inside the event loop."""
        self.stop()
        self._task = asyncio.create_task(self._loop(chat_id))

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _loop(self, chat_id: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration
        while loop.time() < deadline:
            await self.sender.send_typing(chat_id)
            await asyncio.sleep(self.interval)
        logger.info(f"Typing indicator for {chat_id} expired after {self.max_duration:.0f}s")
