# groupassist/core/telegram_handlers.py
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
from typing import Optional, TYPE_CHECKING

from telegram import Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from groupassist.core.disposition import Disposition
from groupassist.modules.message_classifier import parse_message

if TYPE_CHECKING:
    from groupassist.config import BotSettings
    from groupassist.core.dispatcher import DispatchController
    from groupassist.core.intent_handlers.command_handler import CommandHandler
    from groupassist.core.messenger import MessengerClient

logger = logging.getLogger(__name__)


class TelegramHandlerService:
    def __init__(self,
                 application: Application,
                 settings: 'BotSettings',
                 dispatcher: 'DispatchController',
                 command_handler: 'CommandHandler',
                 messenger: 'MessengerClient'):
        logger.info("TelegramHandlerService __init__ STARTING")
        self.application = application
        self.settings = settings
        self.dispatcher = dispatcher
        self.command_handler = command_handler
        self.messenger = messenger
        logger.info("TelegramHandlerService __init__ COMPLETED")

    def register_all_handlers(self) -> None:
        # commands are matched by the classifier, so one handler covers every new message
        self.application.add_handler(
            MessageHandler(filters.UpdateType.MESSAGE & ~filters.StatusUpdate.ALL, self.handle_message)
        )
        self.application.add_error_handler(self.error_handler)
        logger.info("Message and error handlers registered.")

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> Optional[Disposition]:
        message = update.message
        if message is None or message.from_user is None:
            return None
        inbound = parse_message(message, self.settings.bot_name)
        return await self.dispatcher.dispatch(inbound)

    async def push_default_commands(self) -> None:
        """Publishes the command menu."""
        await self.messenger.set_commands(self.command_handler.bot_commands())

    async def error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error(f'Update "{update}" caused error "{context.error}"', exc_info=context.error)
        where = ""
        if isinstance(update, Update) and update.effective_chat:
            where = f" in chat {update.effective_chat.id}"
        await self.messenger.notify_maintainers(
            f"⚠️ Error while handling an update{where}:\n{type(context.error).__name__}: {context.error}"
        )
