# groupassist/core/dispatcher.py
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
# ==================================================================================================
# === GroupAssist Dispatch ===
# ==================================================================================================
# Single entry point for one inbound message: classify, then hand over to the handler for the
# intent. Every path ends in a Disposition. ConfigurationError is not caught here; it reaches
# the PTB error handler.
# ==================================================================================================

import logging
from typing import TYPE_CHECKING

from groupassist.core import replies
from groupassist.core.disposition import Disposition
from groupassist.modules.message_classifier import CommandMessage, InboundMessage, Intent

if TYPE_CHECKING:
    from groupassist.core.intent_handlers.command_handler import CommandHandler
    from groupassist.core.intent_handlers.private_handler import PrivateChatHandler
    from groupassist.core.intent_handlers.question_handler import QuestionHandler
    from groupassist.core.messenger import MessengerClient
    from groupassist.modules.message_classifier import MessageClassifier

logger = logging.getLogger(__name__)


class DispatchController:
    def __init__(self,
                 classifier: 'MessageClassifier',
                 command_handler: 'CommandHandler',
                 question_handler: 'QuestionHandler',
                 private_handler: 'PrivateChatHandler',
                 messenger: 'MessengerClient'):
        self.classifier = classifier
        self.command_handler = command_handler
        self.question_handler = question_handler
        self.private_handler = private_handler
        self.messenger = messenger

    async def dispatch(self, message: InboundMessage) -> Disposition:
        header = message.header
        intent = await self.classifier.classify(message)

        if intent == Intent.DENIED:
            await self.messenger.send(header.chat_id, replies.DENIED, reply_to_id=header.message_id)
            disposition = Disposition.DENIED
        elif intent == Intent.PRIVATE_MESSAGE:
            disposition = await self.private_handler.handle(message)
        elif intent == Intent.COMMAND and isinstance(message, CommandMessage):
            disposition = await self.command_handler.handle(message)
        elif intent == Intent.UNSUPPORTED:
            await self.messenger.send(header.chat_id, replies.UNSUPPORTED_CONTENT, reply_to_id=header.message_id)
            disposition = Disposition.HANDLED
        elif intent == Intent.REPLY_QUESTION:
            disposition = await self.question_handler.answer_reply_question(message)
        elif intent in (Intent.MENTION_QUESTION, Intent.CONTINUATION):
            disposition = await self.question_handler.answer_with_context(message)
        elif intent == Intent.PLAIN_MESSAGE:
            disposition = await self.question_handler.remember(message)
        else:
            disposition = Disposition.IGNORED

        logger.info(f"Message {header.message_id} in {header.chat_id}: {intent.value} -> {disposition.value}.")
        return disposition
