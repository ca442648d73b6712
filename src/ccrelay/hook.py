"""Hook subcommand — forwards Claude's reply to the bridge when a turn ends.

Called by Claude Code's Stop hook with the hook envelope on stdin. If a
Telegram request is pending, reads the session transcript, extracts the last
assistant message and POSTs it to the bridge's /hook endpoint. Also provides
`--install` to register the hook in ~/.claude/settings.json.

This module must NOT import config.py (which requires TELEGRAM_BOT_TOKEN),
since hooks run inside the terminal pane where bot env vars are not set.

Exit codes: 0 on success or a graceful no-op, 1 on malformed input, missing
fields, or a failed callback.

Key functions: hook_main() (CLI entry), run_hook(), _install_hook().
"""

import argparse
import asyncio
import json
import os
import shlex
import shutil
import sys
from pathlib import Path
from typing import Iterator

import httpx
from dotenv import load_dotenv

from .state import FileStateStore, SessionState
from .transcript import extract_last_assistant_message
from .utils import atomic_write_text, ccrelay_dir, state_dir

_CLAUDE_SETTINGS_FILE = Path.home() / ".claude" / "settings.json"

# Claude Code kills the hook after this many seconds; covers the callback timeout
_HOOK_TIMEOUT = 15
_CALLBACK_TIMEOUT = 10.0


def _stop_hook_commands(settings: dict) -> Iterator[str]:
    """Yield every command registered under hooks.Stop, skipping malformed entries."""
    for entry in settings.get("hooks", {}).get("Stop", []):
        if not isinstance(entry, dict):
            continue
        for hook in entry.get("hooks", []):
            if isinstance(hook, dict) and isinstance(hook.get("command"), str):
                yield hook["command"]


def _is_relay_command(command: str) -> bool:
    """True for `ccrelay hook`, with or without a (quoted) path to ccrelay."""
    try:
        argv = shlex.split(command)
    except ValueError:
        return False
    return len(argv) == 2 and Path(argv[0]).name == "ccrelay" and argv[1] == "hook"


def _hook_command() -> str:
    """The command Claude Code should run: this ccrelay, addressed absolutely when possible."""
    executable = shutil.which("ccrelay") or "ccrelay"
    return f"{shlex.quote(executable)} hook"


def _install_hook(settings_file: Path = _CLAUDE_SETTINGS_FILE) -> int:
    """Register `ccrelay hook` as a Stop hook in Claude's settings.json.

    Existing settings are preserved. Returns the process exit code.
    """
    settings: dict = {}
    if settings_file.exists():
        try:
            settings = json.loads(settings_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            print(f"Error reading {settings_file}: {e}", file=sys.stderr)
            return 1
        if not isinstance(settings, dict):
            print(f"Error reading {settings_file}: expected a JSON object", file=sys.stderr)
            return 1

    if any(_is_relay_command(cmd) for cmd in _stop_hook_commands(settings)):
        print(f"Stop hook already present in {settings_file}")
        return 0

    stop_hooks = settings.setdefault("hooks", {}).setdefault("Stop", [])
    stop_hooks.append({"hooks": [{"type": "command", "command": _hook_command(), "timeout": _HOOK_TIMEOUT}]})

    try:
        atomic_write_text(settings_file, json.dumps(settings, indent=2, ensure_ascii=False) + "\n")
    except OSError as e:
        print(f"Error writing {settings_file}: {e}", file=sys.stderr)
        return 1

    print(f"Stop hook registered in {settings_file}")
    return 0


def _bridge_url() -> str:
    url = os.getenv("BRIDGE_URL", "")
    if url:
        return url.rstrip("/")
    return f"http://localhost:{os.getenv('PORT') or 3007}"


async def _forward_completion(transcript_path: Path, cwd: str, session_id: str, bridge_url: str) -> int:
    """Extract the reply and POST it to the bridge. Returns the exit code."""
    message = await extract_last_assistant_message(transcript_path)
    if not message:
        print("No assistant message found in transcript", file=sys.stderr)

    payload = {"message": message or "", "cwd": cwd, "sessionId": session_id}
    try:
        async with httpx.AsyncClient(timeout=_CALLBACK_TIMEOUT) as client:
            response = await client.post(f"{bridge_url}/hook", json=payload)
    except httpx.HTTPError as e:
        print(f"Failed to reach bridge at {bridge_url}: {e}", file=sys.stderr)
        return 1

    if response.is_success:
        return 0
    print(f"Bridge error {response.status_code}: {response.text}", file=sys.stderr)
    return 1


def run_hook(raw: str) -> int:
    """Process one hook envelope. Returns the process exit code."""
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"Failed to parse hook input: {e}", file=sys.stderr)
        return 1
    if not isinstance(payload, dict):
        print("Hook input is not a JSON object", file=sys.stderr)
        return 1

    if payload.get("hook_event_name") != "Stop":
        return 0

    state = SessionState(FileStateStore(state_dir()))
    if not state.is_pending():
        print("No pending Telegram request, skipping", file=sys.stderr)
        return 0

    transcript_path = payload.get("transcript_path")
    if not transcript_path:
        print("No transcript_path in hook input", file=sys.stderr)
        return 1

    path = Path(transcript_path).expanduser()
    # Transcripts are named <session_id>.jsonl
    session_id = str(payload.get("session_id") or path.stem)

    return asyncio.run(
        _forward_completion(
            path,
            cwd=str(payload.get("cwd") or ""),
            session_id=session_id,
            bridge_url=_bridge_url(),
        )
    )


def hook_main() -> None:
    """Process a Claude Code hook event from stdin, or install the hook."""
    parser = argparse.ArgumentParser(
        prog="ccrelay hook",
        description="Claude Code Stop hook that forwards replies to Telegram",
    )
    parser.add_argument(
        "--install",
        action="store_true",
        help="Install the hook into ~/.claude/settings.json",
    )
    # Parse only known args to avoid conflicts with stdin JSON
    args, _ = parser.parse_known_args(sys.argv[2:])

    if args.install:
        sys.exit(_install_hook())

    # PORT / BRIDGE_URL may only be set in the bridge's .env
    global_env = ccrelay_dir() / ".env"
    if global_env.is_file():
        load_dotenv(global_env)

    sys.exit(run_hook(sys.stdin.read()))
