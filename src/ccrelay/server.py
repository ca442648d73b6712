"""HTTP server — Telegram webhook in, completion callbacks in, health probe.

Routes:
  POST /hook      completion callback from the hook process
  GET  /health    liveness + mute state
  POST /, /*      Telegram webhook updates

Everything runs on one asyncio loop. Pane operations are blocking
subprocess calls and stall the loop while they run; traffic is one person
chatting with one assistant, so requests are simply handled in arrival order.

Key functions: build_bridge(), create_app(), run_server().
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from aiohttp import web
from telegram import Bot

from .config import Config
from .dispatcher import TerminalDispatcher
from .errors import NoChatConfigured, UpstreamApiError
from .markup import escape_html, markdown_to_html
from .panes import PaneRegistry
from .router import CommandRouter
from .state import FileStateStore, SessionState
from .telegram_sender import TelegramSender
from .terminal import create_backend
from .typing_indicator import TypingIndicator

logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


@dataclass
class Bridge:
    """The wired components shared by all request handlers."""

    state: SessionState
    router: CommandRouter
    sender: TelegramSender
    typing: TypingIndicator
    webhook_secret: str = ""
    bot: Bot | None = None


BRIDGE_KEY = web.AppKey("bridge", Bridge)


def build_bridge(config: Config) -> Bridge:
    """Composition root: build every component from configuration."""
    bot = Bot(config.telegram_bot_token)
    sender = TelegramSender(bot)
    state = SessionState(FileStateStore(config.state_dir))
    backend = create_backend(config.terminal_backend)
    registry = PaneRegistry(backend, state, override_pane_id=config.pane_id)
    dispatcher = TerminalDispatcher(registry, backend)
    typing = TypingIndicator(sender)
    router = CommandRouter(state, registry, dispatcher, sender, typing, config.allowed_chats)
    return Bridge(
        state=state,
        router=router,
        sender=sender,
        typing=typing,
        webhook_secret=config.webhook_secret,
        bot=bot,
    )


def format_completion(message: str, cwd: str, session_id: str) -> str:
    """Header line naming the project and session, then the converted reply."""
    header = f"📂 <code>{escape_html(cwd or '?')}</code> · <code>{escape_html(session_id[:8] or '?')}</code>"
    return f"{header}\n\n{markdown_to_html(message)}"


async def handle_webhook(request: web.Request) -> web.Response:
    """Handle a Telegram webhook update."""
    bridge = request.app[BRIDGE_KEY]
    if bridge.webhook_secret and request.headers.get(SECRET_HEADER) != bridge.webhook_secret:
        logger.warning("Webhook request with missing or wrong secret token")
        return web.Response(status=403, text="Forbidden")

    try:
        update = await request.json()
        await bridge.router.handle_update(update)
    except Exception as e:
        # Telegram retries on non-2xx, so report instead of crashing
        logger.exception("Webhook error")
        return web.Response(status=500, text=f"Internal Server Error: {e}")
    return web.Response(text="OK")


async def handle_hook(request: web.Request) -> web.Response:
    """Handle POST /hook from the completion hook process."""
    bridge = request.app[BRIDGE_KEY]
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"ok": False, "error": "Invalid JSON"}, status=400)
    if not isinstance(data, dict):
        return web.json_response({"ok": False, "error": "Expected a JSON object"}, status=400)

    message = str(data.get("message") or "")
    cwd = str(data.get("cwd") or "")
    session_id = str(data.get("sessionId") or "")

    # The turn is over whatever happens next
    bridge.typing.stop()
    bridge.state.clear_pending()

    if bridge.state.muted:
        logger.info("Completion received while muted, not forwarding")
        return web.json_response({"ok": True, "muted": True})
    if not message.strip():
        return web.json_response({"ok": True, "empty": True})

    chat_id = bridge.state.chat_id
    if chat_id is None:
        error = NoChatConfigured()
        logger.error(str(error))
        return web.json_response({"ok": False, "error": str(error)}, status=400)

    try:
        await bridge.sender.send_html(chat_id, format_completion(message, cwd, session_id))
    except UpstreamApiError as e:
        return web.json_response({"ok": False, "error": str(e)}, status=500)

    logger.info(f"Forwarded completion to chat {chat_id} (session={session_id[:8]}, cwd={cwd})")
    return web.json_response({"ok": True})


async def handle_health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    bridge = request.app[BRIDGE_KEY]
    return web.json_response({"ok": True, "muted": bridge.state.muted})


async def _on_startup(app: web.Application) -> None:
    bridge = app[BRIDGE_KEY]
    if bridge.bot is not None:
        await bridge.bot.initialize()
    await bridge.router.register_commands()


async def _on_cleanup(app: web.Application) -> None:
    bridge = app[BRIDGE_KEY]
    bridge.typing.stop()
    if bridge.bot is not None:
        await bridge.bot.shutdown()


def create_app(bridge: Bridge) -> web.Application:
    """Create the aiohttp application around an already wired Bridge."""
    app = web.Application()
    app[BRIDGE_KEY] = bridge

    app.router.add_get("/health", handle_health)
    app.router.add_post("/hook", handle_hook)
    app.router.add_post("/", handle_webhook)
    # Any other path is treated as the webhook too
    app.router.add_post("/{tail:.*}", handle_webhook)

    if bridge.bot is not None:
        app.on_startup.append(_on_startup)
        app.on_cleanup.append(_on_cleanup)
    return app


def run_server(config: Config) -> None:
    """Build the bridge and serve until interrupted."""
    app = create_app(build_bridge(config))
    logger.info(f"Claude Code Telegram bridge listening on {config.host}:{config.port}")
    logger.info(
        "Register the webhook with: curl "
        "'https://api.telegram.org/bot<TOKEN>/setWebhook?url=<PUBLIC_URL>'"
    )
    web.run_app(app, host=config.host, port=config.port, print=None)
