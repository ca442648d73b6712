"""Transcript reader — finds Claude's last reply in a session JSONL file.

Claude Code appends one JSON record per line. Assistant records carry either
a plain string or a list of typed content blocks; only "text" blocks are
kept. Records that hold nothing but tool calls are skipped, so the result is
the last thing Claude actually said.

Key functions: find_last_assistant_text(), extract_last_assistant_message().
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

import aiofiles

logger = logging.getLogger(__name__)


def _is_assistant(entry: dict[str, Any]) -> bool:
    message = entry.get("message")
    role = message.get("role") if isinstance(message, dict) else None
    return entry.get("type") == "assistant" or role == "assistant"


def _text_of(entry: dict[str, Any]) -> str:
    message = entry.get("message")
    content = message.get("content") if isinstance(message, dict) else entry.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    parts = [
        block["text"]
        for block in content
        if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
    ]
    return "\n".join(parts)


def find_last_assistant_text(lines: Iterable[str]) -> str | None:
    """Return the text of the most recent assistant record, or None."""
    for line in reversed(list(lines)):
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict) or not _is_assistant(entry):
            continue
        text = _text_of(entry)
        if text:
            return text
    return None


async def extract_last_assistant_message(path: Path) -> str | None:
    """Read a transcript file and return Claude's last reply, or None."""
    if not path.exists():
        logger.warning(f"Transcript file not found: {path}")
        return None
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
    except OSError as e:
        logger.error(f"Error reading transcript {path}: {e}")
        return None
    return find_last_assistant_text(content.splitlines())
