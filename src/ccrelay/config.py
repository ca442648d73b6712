"""Application configuration — reads env vars into a Config object.

Loads TELEGRAM_BOT_TOKEN, ALLOWED_CHATS, the listen address, the terminal
backend and an optional fixed pane id from environment variables (with .env
support). .env loading priority: local .env (cwd) > $CCRELAY_DIR/.env
(default ~/.ccrelay).

The hook process must not construct a Config: it runs inside the terminal
pane, where the bot token is usually not set.

Key class: Config.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .utils import ccrelay_dir, state_dir

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3007
TERMINAL_BACKENDS = ("wezterm", "tmux")


def parse_allowed_chats(raw: str) -> set[int]:
    """Parse a comma-separated list of Telegram chat IDs.

    An empty string yields an empty set, which rejects every chat.
    """
    try:
        return {int(cid.strip()) for cid in raw.split(",") if cid.strip()}
    except ValueError as e:
        raise ValueError(
            f"ALLOWED_CHATS contains non-numeric value: {e}. "
            "Expected comma-separated Telegram chat IDs."
        ) from e


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        self.config_dir = ccrelay_dir()

        # load_dotenv default override=False means first-loaded wins
        local_env = Path(".env")
        global_env = self.config_dir / ".env"
        if local_env.is_file():
            load_dotenv(local_env)
            logger.debug("Loaded env from %s", local_env.resolve())
        if global_env.is_file():
            load_dotenv(global_env)
            logger.debug("Loaded env from %s", global_env)

        self.telegram_bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN") or ""
        if not self.telegram_bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        self.allowed_chats = parse_allowed_chats(os.getenv("ALLOWED_CHATS", ""))
        if not self.allowed_chats:
            logger.warning("ALLOWED_CHATS is empty, every chat will be rejected")

        try:
            self.port = int(os.getenv("PORT") or DEFAULT_PORT)
        except ValueError as e:
            raise ValueError(f"PORT must be an integer: {e}") from e
        self.host = os.getenv("HOST") or "0.0.0.0"

        # Optional fixed pane, used when nothing was picked with /setpane
        self.pane_id: str | None = os.getenv("PANE_ID") or None
        self.terminal_backend = (os.getenv("TERMINAL_BACKEND") or "wezterm").lower()
        if self.terminal_backend not in TERMINAL_BACKENDS:
            raise ValueError(
                f"Unknown TERMINAL_BACKEND {self.terminal_backend!r}, "
                f"expected one of: {', '.join(TERMINAL_BACKENDS)}"
            )

        self.webhook_secret = os.getenv("TELEGRAM_WEBHOOK_SECRET", "")

        # Flat state files shared with the hook process
        self.state_dir = state_dir()

        logger.debug(
            "Config initialized: token=%s..., allowed_chats=%d, port=%d, "
            "backend=%s, state_dir=%s",
            self.telegram_bot_token[:8],
            len(self.allowed_chats),
            self.port,
            self.terminal_backend,
            self.state_dir,
        )

    def is_chat_allowed(self, chat_id: int) -> bool:
        """Check if a chat is in the allowed list."""
        return chat_id in self.allowed_chats
