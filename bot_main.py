# bot_main.py
"""
Telegram bot entry point. Talks to the backend's legacy idea -> plan routes.

Needs BOT_TOKEN; BACKEND_URL defaults to http://localhost:3001.
"""

import logging
import sys

from vibe_assistant.backend_client import BackendClient
from vibe_assistant.settings import Settings, configure_logging
from vibe_assistant.telegram_handlers import build_application

logger = logging.getLogger("vibe_assistant")


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    if not settings.bot_token:
        logger.error("BOT_TOKEN is not set")
        sys.exit(1)

    application = build_application(settings.bot_token, BackendClient(settings.backend_url))
    logger.info("Telegram bot starting, backend URL: %s", settings.backend_url)
    # run_polling handles SIGINT / SIGTERM and shuts the application down
    application.run_polling()


if __name__ == "__main__":
    main()
