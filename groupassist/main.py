# groupassist/main.py
# GroupAssist: Telegram Group Assistant
# Copyright (C) 2025 Yael Demedetskaya <yaelkroy@gmail.com>
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
import logging
from typing import Optional

from telegram import Update
from telegram.ext import Application
from telegram.request import HTTPXRequest

from groupassist import config
from groupassist.app import GroupAssistApplication
from groupassist.utils.logging_config import setup_logging

logger: Optional[logging.Logger] = None


def build_application() -> GroupAssistApplication:
    request = HTTPXRequest(
        connect_timeout=config.TELEGRAM_CONNECT_TIMEOUT,
        read_timeout=config.TELEGRAM_READ_TIMEOUT,
        write_timeout=config.TELEGRAM_WRITE_TIMEOUT,
        pool_timeout=config.TELEGRAM_POOL_TIMEOUT,
    )
    ptb_app = (
        Application.builder()
        .token(config.TELEGRAM_BOT_TOKEN)
        .request(request)
        # each update is handled independently; deletion waits must not block others
        .concurrent_updates(True)
        .build()
    )
    assistant = GroupAssistApplication(ptb_app)
    ptb_app.post_init = assistant.post_init
    ptb_app.post_shutdown = assistant.post_shutdown
    assistant.register_handlers()
    return assistant


def main() -> None:
    global logger
    setup_logging()
    logger = logging.getLogger(__name__)

    if not config.TELEGRAM_BOT_TOKEN:
        logger.critical("FATAL: GROUPASSIST_BOT_TOKEN missing. Bot cannot start.")
        return

    try:
        logger.info("Initializing Telegram PTB Application...")
        assistant = build_application()
        ptb_app = assistant.ptb_application

        if config.WEBHOOK_URL:
            webhook_url = f"{config.WEBHOOK_URL.rstrip('/')}/{config.WEBHOOK_PATH}"
            if not config.WEBHOOK_SECRET_TOKEN:
                logger.warning("GROUPASSIST_WEBHOOK_SECRET_TOKEN is not set; webhook requests are not authenticated.")
            logger.info(f"Starting GroupAssist webhook on {config.LISTEN_ADDRESS}:{config.LISTEN_PORT} for {webhook_url}...")
            ptb_app.run_webhook(
                listen=config.LISTEN_ADDRESS,
                port=config.LISTEN_PORT,
                url_path=config.WEBHOOK_PATH,
                webhook_url=webhook_url,
                secret_token=config.WEBHOOK_SECRET_TOKEN,
                allowed_updates=[Update.MESSAGE],
            )
        else:
            logger.info("Starting GroupAssist polling...")
            ptb_app.run_polling(allowed_updates=[Update.MESSAGE])

        logger.info("GroupAssist has stopped.")
    except Exception as e:
        logger.critical(f"Unrecoverable error during bot setup or run: {e}", exc_info=True)


if __name__ == '__main__':
    main()
