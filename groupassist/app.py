# groupassist/app.py
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

# -------------------------------------------------------------------------------
# Future Improvements:
# - Replace the poll-wait deletion with PTB's JobQueue once redelivery-safe.
# -------------------------------------------------------------------------------
import asyncio
import logging
from typing import Optional

from telegram.ext import Application

from groupassist import config
from groupassist.config import BotSettings
from groupassist.core.dispatcher import DispatchController
from groupassist.core.intent_handlers.command_handler import CommandHandler
from groupassist.core.intent_handlers.private_handler import PrivateChatHandler
from groupassist.core.intent_handlers.question_handler import QuestionHandler
from groupassist.core.intent_handlers.search_handler import SearchHandler
from groupassist.core.llm_services import ChatCompletionClient
from groupassist.core.messenger import MessengerClient
from groupassist.core.telegram_handlers import TelegramHandlerService
from groupassist.modules.access_control import AccessControl
from groupassist.modules.context_store import ConversationContextStore, LastReplyTracker
from groupassist.modules.cooldown_gate import CooldownGate
from groupassist.modules.deletion_scheduler import DeferredDeletionScheduler, Sleep
from groupassist.modules.media_service import MediaService
from groupassist.modules.message_classifier import MessageClassifier
from groupassist.modules.prompt_store import PromptStore
from groupassist.utils.clock import Clock, now_ms
from groupassist.utils.database import Storage, open_storage

logger = logging.getLogger(__name__)


class GroupAssistApplication:
    def __init__(self,
                 ptb_application: Application,
                 settings: Optional[BotSettings] = None,
                 storage: Optional[Storage] = None,
                 completion_client: Optional[ChatCompletionClient] = None,
                 clock: Clock = now_ms,
                 sleep: Sleep = asyncio.sleep):
        logger.info("GroupAssistApplication initializing...")
        self.ptb_application = ptb_application
        self.settings = settings or BotSettings.from_env()
        self.storage = storage or open_storage(config.DATABASE_URL)

        # Initialize core services
        self.messenger = MessengerClient(ptb_application.bot, self.settings.maintainer_user_ids)
        self.completion_client = completion_client or ChatCompletionClient(
            api_key=config.AI_API_KEY,
            base_url=config.AI_BASE_URL,
            default_model=self.settings.model_name,
            timeout=config.AI_REQUEST_TIMEOUT,
        )

        # Initialize functional modules
        self.access_control = AccessControl(
            self.storage.bot_config,
            user_whitelist_key=self.settings.user_whitelist_key,
            group_whitelist_key=self.settings.group_whitelist_key,
            user_blacklist_key=self.settings.user_blacklist_key,
        )
        self.cooldown_gate = CooldownGate(
            self.storage.cooldown, self.access_control, self.settings.cooldown_duration,
            key_prefix="cooldown", clock=clock,
        )
        self.search_cooldown_gate = CooldownGate(
            self.storage.cooldown, self.access_control, self.settings.search_cooldown_duration,
            key_prefix="cooldown:search", clock=clock,
        )
        self.context_store = ConversationContextStore(
            self.storage.context, self.storage.image_data, max_length=self.settings.max_context_length
        )
        self.last_reply_tracker = LastReplyTracker(self.storage.bot_message_ids)
        self.prompt_store = PromptStore(self.storage.system_init)
        self.media_service = MediaService(ptb_application.bot, self.storage.image_data)
        self.scheduler = DeferredDeletionScheduler(
            self.storage.task_queue,
            self.messenger,
            delay_ms=self.settings.deletion_delay_ms,
            poll_interval_ms=self.settings.deletion_poll_interval_ms,
            max_wait_ms=self.settings.deletion_max_wait_ms,
            clock=clock,
            sleep=sleep,
        )
        self.classifier = MessageClassifier(self.access_control, self.last_reply_tracker, self.settings)

        # Intent handlers
        self.search_handler = SearchHandler(
            settings=self.settings,
            completion_client=self.completion_client,
            search_cooldown=self.search_cooldown_gate,
            prompt_store=self.prompt_store,
            messenger=self.messenger,
            scheduler=self.scheduler,
        )
        self.command_handler = CommandHandler(
            settings=self.settings,
            access_control=self.access_control,
            context_store=self.context_store,
            messenger=self.messenger,
            scheduler=self.scheduler,
            search_handler=self.search_handler,
        )
        self.question_handler = QuestionHandler(
            settings=self.settings,
            completion_client=self.completion_client,
            cooldown_gate=self.cooldown_gate,
            context_store=self.context_store,
            last_reply_tracker=self.last_reply_tracker,
            media_service=self.media_service,
            prompt_store=self.prompt_store,
            messenger=self.messenger,
            scheduler=self.scheduler,
        )
        self.private_handler = PrivateChatHandler(self.settings, self.messenger)
        self.dispatcher = DispatchController(
            classifier=self.classifier,
            command_handler=self.command_handler,
            question_handler=self.question_handler,
            private_handler=self.private_handler,
            messenger=self.messenger,
        )

        self.handler_service = TelegramHandlerService(
            application=self.ptb_application,
            settings=self.settings,
            dispatcher=self.dispatcher,
            command_handler=self.command_handler,
            messenger=self.messenger,
        )
        logger.info("GroupAssistApplication initialized.")

    def register_handlers(self) -> None:
        logger.info("GroupAssistApplication: Registering handlers...")
        self.handler_service.register_all_handlers()

    async def post_init(self, application: Application) -> None:
        """Fill in the bot identity from Telegram and publish the command menu."""
        me = await application.bot.get_me()
        if not self.settings.bot_name:
            self.settings.bot_name = me.username
        if self.settings.bot_id is None:
            self.settings.bot_id = me.id
        logger.info(f"Running as @{self.settings.bot_name} (id {self.settings.bot_id}).")
        await self.handler_service.push_default_commands()

    async def post_shutdown(self, application: Application) -> None:
        await self.completion_client.close()
