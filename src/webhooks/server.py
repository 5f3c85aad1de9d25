"""Lightweight async HTTP server for receiving Telegram webhook pushes.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop alongside
the python-telegram-bot Application in the same event loop. Updates are
queued on the Application and processed by its own update fetcher, so
the HTTP response goes back to Telegram before any handler runs.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web
from telegram import Update
from telegram.ext import Application

from src.bot.session import get_store
from src.config import settings
from src.llm.client import get_client

logger = logging.getLogger(__name__)

TELEGRAM_APP = web.AppKey("telegram_app", Application)


async def _handle_update(request: web.Request) -> web.Response:
    """POST /webhook/<token>: queue a Telegram update."""
    token = request.match_info["token"]
    if not settings.bot_token or token != settings.bot_token:
        logger.warning("Webhook rejected: token mismatch")
        return web.json_response({"error": "not found"}, status=404)

    try:
        payload: dict[str, Any] = await request.json()
    except Exception:
        logger.warning("Webhook bad request: invalid JSON")
        return web.json_response({"error": "invalid JSON"}, status=400)

    application = request.app[TELEGRAM_APP]
    try:
        update = Update.de_json(payload, application.bot)
        await application.update_queue.put(update)
    except Exception:
        logger.warning("Webhook bad request: payload is not a Telegram update")
        return web.json_response({"error": "invalid update"}, status=400)

    return web.json_response({"ok": True})


async def _status(request: web.Request) -> web.Response:
    """GET /: liveness and pool status."""
    ledger = get_client().ledger
    return web.json_response({
        "status": "ok",
        "bot": settings.bot_name,
        "sessions": len(get_store()),
        "keys_available": ledger.usable_count(),
        "keys_total": len(ledger),
    })


def _create_web_app(application: Application) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[TELEGRAM_APP] = application
    app.router.add_get("/", _status)
    app.router.add_post("/webhook/{token}", _handle_update)
    return app


class WebhookServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, application: Application, port: int | None = None) -> None:
        self.application = application
        self.port = port or settings.port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for Telegram pushes."""
        app = _create_web_app(self.application)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Webhook server listening on port %d", self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Webhook server stopped")
