"""Shared helpers — directory resolution and atomic file writes.

Kept free of config imports so the hook process can use it without a
bot token in its environment.
"""

import os
import tempfile
from pathlib import Path


def ccrelay_dir() -> Path:
    """Directory holding the user's .env (default ~/.ccrelay)."""
    return Path(os.getenv("CCRELAY_DIR", "") or Path.home() / ".ccrelay").expanduser()


def state_dir() -> Path:
    """Directory holding the flat state files shared with the hook.

    Defaults to ~/.claude so the files sit next to Claude Code's own state.
    """
    return Path(os.getenv("CCRELAY_STATE_DIR", "") or Path.home() / ".claude").expanduser()


def atomic_write_text(path: Path, text: str) -> None:
    """Write text to path via a temp file + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
