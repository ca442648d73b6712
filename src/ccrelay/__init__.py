"""ccrelay — relay a Telegram chat to Claude Code running in a terminal pane."""

__version__ = "0.1.0"
