"""ChatWME bot entry point."""

import asyncio
import logging
import sys

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
# httpx logs every request URL at INFO, and Gemini URLs carry the API key
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration and start the bot in webhook or polling mode."""
    missing = settings.missing_required()
    if missing:
        for name in missing:
            logger.error("%s is required", name)
        sys.exit(1)

    keys = settings.get_gemini_keys()
    logger.info("Starting %s with %d Gemini key(s)...", settings.bot_name, len(keys))

    from src.bot.app import run_polling, run_webhook

    if settings.webhook_enabled:
        logger.info("Webhook mode on port %d", settings.port)
        try:
            asyncio.run(run_webhook())
        except KeyboardInterrupt:
            logger.info("Stopped")
    else:
        logger.info("Polling mode")
        run_polling()


if __name__ == "__main__":
    main()
