# groupassist/core/intent_handlers/command_handler.py
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
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from telegram import BotCommand

from groupassist.core import replies
from groupassist.core.disposition import Disposition
from groupassist.modules.deletion_scheduler import DeletionMode
from groupassist.modules.message_classifier import CommandMessage

if TYPE_CHECKING:
    from groupassist.config import BotSettings
    from groupassist.core.intent_handlers.search_handler import SearchHandler
    from groupassist.core.messenger import MessengerClient
    from groupassist.modules.access_control import AccessControl
    from groupassist.modules.context_store import ConversationContextStore
    from groupassist.modules.deletion_scheduler import DeferredDeletionScheduler

logger = logging.getLogger(__name__)

CommandCallback = Callable[[CommandMessage], Awaitable[Disposition]]


@dataclass(frozen=True)
class CommandSpec:
    name: str
    description: str
    # open to everyone in a whitelisted group; otherwise user-whitelist only
    broadly_usable: bool
    callback: CommandCallback


class CommandHandler:
    def __init__(self,
                 settings: 'BotSettings',
                 access_control: 'AccessControl',
                 context_store: 'ConversationContextStore',
                 messenger: 'MessengerClient',
                 scheduler: 'DeferredDeletionScheduler',
                 search_handler: 'SearchHandler'):
        logger.info("CommandHandler __init__ STARTING")
        self.settings = settings
        self.access_control = access_control
        self.context_store = context_store
        self.messenger = messenger
        self.scheduler = scheduler
        self.search_handler = search_handler
        self.commands: Dict[str, CommandSpec] = {}
        self._register_all_commands()
        logger.info("CommandHandler __init__ COMPLETED")

    def _register(self, name: str, description: str, broadly_usable: bool, callback: CommandCallback) -> None:
        self.commands[name] = CommandSpec(name, description, broadly_usable, callback)

    def _register_all_commands(self) -> None:
        self._register("start", "Introduction and usage", True, self.start_command)
        self._register("help", "List available commands", True, self.help_command)
        self._register("search", "Ask the search assistant", True, self.search_handler.handle)
        self._register("clear_user_context", "Forget your conversation in this group", True, self.clear_user_context_command)
        self._register("whitelist_group", "Whitelist this group (whitelisted users)", False, self.whitelist_group_command)
        self._register("unwhitelist_group", "Remove this group from the whitelist (whitelisted users)", False, self.unwhitelist_group_command)
        self._register("ban", "Blacklist a user by id (whitelisted users)", False, self.ban_command)
        self._register("uban", "Remove a user from the blacklist (whitelisted users)", False, self.unban_command)
        self._register("whitelist_user", "Whitelist a user by id (whitelisted users)", False, self.whitelist_user_command)
        self._register("unwhitelist_user", "Remove a user from the whitelist (whitelisted users)", False, self.unwhitelist_user_command)

    def bot_commands(self) -> List[BotCommand]:
        return [BotCommand(entry.name, entry.description) for entry in self.commands.values()]

    async def handle(self, message: CommandMessage) -> Disposition:
        header = message.header
        entry = self.commands.get(message.command)
        # unknown commands get the same gate as administrative ones
        broadly_usable = entry.broadly_usable if entry else False
        if not await self.access_control.can_use_command(broadly_usable, header.user_id, header.chat_id):
            logger.info(f"User {header.user_id} may not use /{message.command} in {header.chat_id}.")
            await self._reply_and_cleanup(message, replies.NO_PERMISSION)
            return Disposition.DENIED
        if entry is None:
            logger.info(f"Unknown command /{message.command} from {header.user_id}.")
            await self._reply_and_cleanup(message, replies.UNKNOWN_COMMAND.format(bot_name=self.settings.bot_name))
            return Disposition.HANDLED
        logger.info(f"Running /{entry.name} for user {header.user_id} in {header.chat_id}.")
        return await entry.callback(message)

    async def _reply_and_cleanup(self, message: CommandMessage, text: str) -> None:
        await self.scheduler.reply_and_cleanup(
            message.header.chat_id, text, message.header.message_id, DeletionMode.COMMAND_CLEANUP
        )

    async def _reply(self, message: CommandMessage, text: str) -> Disposition:
        result = await self.messenger.send(message.header.chat_id, text, reply_to_id=message.header.message_id)
        return Disposition.HANDLED if result.ok else Disposition.ERROR

    async def start_command(self, message: CommandMessage) -> Disposition:
        text = replies.GROUP_INTRO.format(model_name=self.settings.model_name, bot_name=self.settings.bot_name)
        return await self._reply(message, text)

    async def help_command(self, message: CommandMessage) -> Disposition:
        lines = [
            f"<code>/{entry.name}@{self.settings.bot_name}</code> - {entry.description}"
            for entry in self.commands.values()
        ]
        return await self._reply(message, replies.HELP_HEADER + "\n".join(lines))

    async def clear_user_context_command(self, message: CommandMessage) -> Disposition:
        header = message.header
        ok = await self.context_store.clear(header.chat_id, header.user_id)
        await self._reply_and_cleanup(message, replies.CONTEXT_CLEARED if ok else replies.STORAGE_FAILURE)
        return Disposition.HANDLED

    async def _mutate_list(self, message: CommandMessage, list_key: str, entity_id: int,
                           add: bool, success_text: str) -> Disposition:
        if add:
            ok = await self.access_control.add(list_key, entity_id)
        else:
            ok = await self.access_control.remove(list_key, entity_id)
        await self._reply_and_cleanup(message, success_text if ok else replies.STORAGE_FAILURE)
        return Disposition.HANDLED

    async def whitelist_group_command(self, message: CommandMessage) -> Disposition:
        return await self._mutate_list(message, self.access_control.group_whitelist_key,
                                       message.header.chat_id, True, replies.GROUP_WHITELISTED)

    async def unwhitelist_group_command(self, message: CommandMessage) -> Disposition:
        return await self._mutate_list(message, self.access_control.group_whitelist_key,
                                       message.header.chat_id, False, replies.GROUP_UNWHITELISTED)

    def _target_user_id(self, message: CommandMessage) -> Optional[int]:
        if not message.args:
            return None
        try:
            return int(message.args[0])
        except ValueError:
            return None

    async def _user_list_command(self, message: CommandMessage, list_key: str, add: bool, success_text: str) -> Disposition:
        target = self._target_user_id(message)
        if target is None:
            usage = replies.USER_ID_USAGE.format(command=message.command, bot_name=self.settings.bot_name)
            return await self._reply(message, usage)
        return await self._mutate_list(message, list_key, target, add, success_text.format(user_id=target))

    async def ban_command(self, message: CommandMessage) -> Disposition:
        return await self._user_list_command(message, self.access_control.user_blacklist_key, True, replies.USER_BANNED)

    async def unban_command(self, message: CommandMessage) -> Disposition:
        return await self._user_list_command(message, self.access_control.user_blacklist_key, False, replies.USER_UNBANNED)

    async def whitelist_user_command(self, message: CommandMessage) -> Disposition:
        return await self._user_list_command(message, self.access_control.user_whitelist_key, True, replies.USER_WHITELISTED)

    async def unwhitelist_user_command(self, message: CommandMessage) -> Disposition:
        return await self._user_list_command(message, self.access_control.user_whitelist_key, False, replies.USER_UNWHITELISTED)
