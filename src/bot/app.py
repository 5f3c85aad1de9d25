"""Telegram application factory and runners."""

from __future__ import annotations

import asyncio
import logging

from telegram import Update
from telegram.ext import Application, CommandHandler, MessageHandler, filters

from src.bot.handlers import (
    handle_clear,
    handle_help,
    handle_language,
    handle_message,
    handle_non_text,
    handle_start,
    handle_status,
)
from src.bot.sweeper import start_sweeper
from src.config import settings
from src.llm.client import get_client
from src.llm.prompt import persona_text

logger = logging.getLogger(__name__)

# Module-level reference so post_shutdown can cancel it.
_sweeper_task: asyncio.Task | None = None


async def _post_init(app: Application) -> None:
    """Called once the Application is initialized (event loop running)."""
    global _sweeper_task  # noqa: PLW0603
    get_client()
    persona_text()
    _sweeper_task = start_sweeper()


async def _post_shutdown(app: Application) -> None:
    """Called during graceful shutdown."""
    global _sweeper_task  # noqa: PLW0603
    if _sweeper_task is not None:
        _sweeper_task.cancel()
        _sweeper_task = None


def create_app() -> Application:
    """Build and configure the Telegram application."""
    app = Application.builder().token(settings.bot_token).concurrent_updates(True).build()

    app.add_handler(CommandHandler("start", handle_start))
    app.add_handler(CommandHandler("help", handle_help))
    app.add_handler(CommandHandler("clear", handle_clear))
    app.add_handler(CommandHandler("language", handle_language))
    app.add_handler(CommandHandler("status", handle_status))
    app.add_handler(
        MessageHandler(filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND, handle_message)
    )
    app.add_handler(
        MessageHandler(
            filters.UpdateType.MESSAGE & ~filters.TEXT & ~filters.StatusUpdate.ALL,
            handle_non_text,
        )
    )

    app.post_init = _post_init
    app.post_shutdown = _post_shutdown

    return app


def run_polling() -> None:
    """Long-poll Telegram for updates until interrupted."""
    app = create_app()
    app.run_polling(allowed_updates=Update.ALL_TYPES)


async def run_webhook() -> None:
    """Register the webhook with Telegram and serve it until cancelled."""
    from src.webhooks.server import WebhookServer

    app = create_app()
    server = WebhookServer(app)
    webhook_url = f"{settings.webhook_url.rstrip('/')}/webhook/{settings.bot_token}"

    async with app:
        await app.start()
        await _post_init(app)
        await server.start()
        try:
            await app.bot.set_webhook(webhook_url, allowed_updates=Update.ALL_TYPES)
            logger.info("Webhook set successfully")
        except Exception:
            logger.exception("Failed to set webhook")

        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()
            await _post_shutdown(app)
            await app.stop()
