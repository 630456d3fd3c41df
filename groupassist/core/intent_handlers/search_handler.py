# groupassist/core/intent_handlers/search_handler.py
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
from typing import TYPE_CHECKING

from groupassist.core import replies
from groupassist.core.disposition import Disposition
from groupassist.core.llm_services import CompletionError
from groupassist.modules.deletion_scheduler import DeletionMode
from groupassist.modules.message_classifier import CommandMessage

if TYPE_CHECKING:
    from groupassist.config import BotSettings
    from groupassist.core.llm_services import ChatCompletionClient
    from groupassist.core.messenger import MessengerClient
    from groupassist.modules.cooldown_gate import CooldownGate
    from groupassist.modules.deletion_scheduler import DeferredDeletionScheduler
    from groupassist.modules.prompt_store import PromptStore

logger = logging.getLogger(__name__)


class SearchHandler:
    """``/search@bot query``: one-shot answer from the search model, on its own cooldown track."""

    def __init__(self,
                 settings: 'BotSettings',
                 completion_client: 'ChatCompletionClient',
                 search_cooldown: 'CooldownGate',
                 prompt_store: 'PromptStore',
                 messenger: 'MessengerClient',
                 scheduler: 'DeferredDeletionScheduler'):
        self.settings = settings
        self.completion_client = completion_client
        self.search_cooldown = search_cooldown
        self.prompt_store = prompt_store
        self.messenger = messenger
        self.scheduler = scheduler

    async def handle(self, message: CommandMessage) -> Disposition:
        header = message.header
        query = " ".join(message.args).strip()
        if not query:
            await self.messenger.send(header.chat_id, replies.SEARCH_USAGE.format(bot_name=self.settings.bot_name),
                                      reply_to_id=header.message_id)
            return Disposition.HANDLED

        if await self.search_cooldown.is_in_cooldown(header.chat_id, header.user_id):
            seconds = await self.search_cooldown.remaining_seconds(header.chat_id)
            logger.info(f"Search in {header.chat_id} refused, {seconds}s of cooldown left.")
            await self.scheduler.reply_and_cleanup(
                header.chat_id, replies.SEARCH_COOLDOWN_NOTICE.format(seconds=seconds),
                header.message_id, DeletionMode.REPLY_ONLY,
            )
            return Disposition.HANDLED

        await self.messenger.send_typing(header.chat_id)
        messages = [await self.prompt_store.search_system_message(), {"role": "user", "content": query}]
        try:
            answer = await self.completion_client.complete(messages, self.settings.search_model_name)
        except CompletionError as e:
            logger.error(f"Search for {header.user_id} in {header.chat_id} failed: {e}")
            await self.messenger.send(header.chat_id, replies.AI_FAILURE, reply_to_id=header.message_id)
            return Disposition.ERROR

        await self.messenger.send_markdown(header.chat_id, answer, reply_to_id=header.message_id)
        await self.search_cooldown.record_request(header.chat_id)
        return Disposition.HANDLED
