# groupassist/core/intent_handlers/private_handler.py
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
from typing import Sequence, TYPE_CHECKING

from groupassist.core import replies
from groupassist.core.disposition import Disposition
from groupassist.modules.message_classifier import InboundMessage, message_text

if TYPE_CHECKING:
    from groupassist.config import BotSettings
    from groupassist.core.messenger import MessengerClient

logger = logging.getLogger(__name__)


class PrivateChatHandler:
    """Private chats are a feedback channel: messages go to the maintainers, never to the model."""

    def __init__(self, settings: 'BotSettings', messenger: 'MessengerClient'):
        self.settings = settings
        self.messenger = messenger

    @property
    def maintainer_user_ids(self) -> Sequence[int]:
        return self.settings.maintainer_user_ids

    def _command_name(self, message: InboundMessage) -> str:
        text = message_text(message).strip()
        if not text.startswith("/"):
            return ""
        return text.split()[0][1:].partition("@")[0].lower()

    async def handle(self, message: InboundMessage) -> Disposition:
        header = message.header
        command = self._command_name(message)
        if command == "start":
            await self.messenger.send(header.chat_id, replies.PRIVATE_INTRO, reply_to_id=header.message_id)
            await self.messenger.set_menu_button(header.chat_id)
            return Disposition.HANDLED
        if command:
            logger.info(f"Ignoring private command /{command} from {header.user_id}.")
            return Disposition.IGNORED

        if not self.maintainer_user_ids:
            logger.info(f"Private message from {header.user_id} dropped: no maintainers configured.")
            return Disposition.IGNORED
        for maintainer_id in self.maintainer_user_ids:
            if maintainer_id == header.user_id:
                continue
            result = await self.messenger.forward(maintainer_id, header.chat_id, header.message_id)
            if result.ok:
                logger.info(f"Forwarded private message {header.message_id} from {header.user_name or header.user_id} to {maintainer_id}.")
        return Disposition.HANDLED
