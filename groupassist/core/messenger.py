# groupassist/core/messenger.py
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
# === GroupAssist Messenger Client ===
# ==================================================================================================
# Thin layer over telegram.Bot returning result objects instead of raising, so handlers can
# carry on after a failed send or delete. HTML sends that Telegram rejects are retried once as
# plain text; if that fails too, maintainers are told.
# ==================================================================================================

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from telegram import Bot, BotCommand, BotCommandScopeDefault, MenuButtonCommands, ReplyParameters
from telegram.constants import ChatAction, ParseMode
from telegram.error import TelegramError

from groupassist.utils.formatter import html_to_plain_text, markdown_to_telegram_html
from groupassist.utils.text_splitter import split_text_into_chunks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResult:
    ok: bool
    message_id: Optional[int] = None
    error: Optional[str] = None


class MessengerClient:
    def __init__(self, bot: Bot, maintainer_user_ids: Sequence[int] = ()):
        self.bot = bot
        self.maintainer_user_ids = tuple(maintainer_user_ids)

    async def _send_once(self, chat_id: int, text: str, reply_to_id: Optional[int],
                         parse_mode: Optional[str]) -> ApiResult:
        reply_parameters = None
        if reply_to_id is not None:
            reply_parameters = ReplyParameters(message_id=reply_to_id, allow_sending_without_reply=True)
        try:
            message = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_parameters=reply_parameters,
            )
        except TelegramError as e:
            return ApiResult(ok=False, error=str(e))
        return ApiResult(ok=True, message_id=message.message_id)

    async def send(self, chat_id: int, text: str, reply_to_id: Optional[int] = None,
                   parse_mode: Optional[str] = ParseMode.HTML, notify_on_failure: bool = True) -> ApiResult:
        result = await self._send_once(chat_id, text, reply_to_id, parse_mode)
        if result.ok or parse_mode is None:
            if not result.ok:
                logger.error(f"Sending message to {chat_id} failed: {result.error}")
            return result

        logger.warning(f"Sending {parse_mode} message to {chat_id} failed ({result.error}); retrying as plain text.")
        fallback = await self._send_once(chat_id, html_to_plain_text(text), reply_to_id, None)
        if fallback.ok:
            return fallback

        logger.error(f"Plain-text fallback to {chat_id} failed as well: {fallback.error}")
        if notify_on_failure:
            await self.notify_maintainers(
                f"Failed to deliver a message to chat {chat_id}.\n"
                f"{parse_mode} error: {result.error}\nPlain text error: {fallback.error}"
            )
        return fallback

    async def send_chunks(self, chat_id: int, chunks: Iterable[str], reply_to_id: Optional[int] = None,
                          parse_mode: Optional[str] = ParseMode.HTML) -> List[ApiResult]:
        """Send *chunks* in order, the first one as a reply to *reply_to_id*."""
        results = []
        for index, chunk in enumerate(chunks):
            results.append(await self.send(chat_id, chunk, reply_to_id if index == 0 else None, parse_mode))
        return results

    async def send_markdown(self, chat_id: int, text: str, reply_to_id: Optional[int] = None) -> List[ApiResult]:
        """Send a model answer: split into chunks, each rendered as Telegram HTML."""
        chunks = [markdown_to_telegram_html(chunk) for chunk in split_text_into_chunks(text)]
        return await self.send_chunks(chat_id, chunks, reply_to_id)

    async def edit(self, chat_id: int, message_id: int, text: str,
                   parse_mode: Optional[str] = ParseMode.HTML) -> ApiResult:
        try:
            await self.bot.edit_message_text(text=text, chat_id=chat_id, message_id=message_id, parse_mode=parse_mode)
        except TelegramError as e:
            if parse_mode is None:
                logger.error(f"Editing message {message_id} in {chat_id} failed: {e}")
                return ApiResult(ok=False, error=str(e))
            logger.warning(f"Editing message {message_id} in {chat_id} as {parse_mode} failed ({e}); retrying as plain text.")
            return await self.edit(chat_id, message_id, html_to_plain_text(text), parse_mode=None)
        return ApiResult(ok=True, message_id=message_id)

    async def send_typing(self, chat_id: int) -> None:
        try:
            await self.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except TelegramError as e:
            logger.debug(f"Typing indicator for {chat_id} failed: {e}")

    async def delete(self, chat_id: int, message_id: int) -> ApiResult:
        try:
            await self.bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as e:
            logger.warning(f"Deleting message {message_id} in {chat_id} failed: {e}")
            return ApiResult(ok=False, error=str(e))
        logger.debug(f"Deleted message {message_id} in {chat_id}.")
        return ApiResult(ok=True, message_id=message_id)

    async def forward(self, target_chat_id: int, source_chat_id: int, message_id: int) -> ApiResult:
        try:
            message = await self.bot.forward_message(
                chat_id=target_chat_id, from_chat_id=source_chat_id, message_id=message_id
            )
        except TelegramError as e:
            logger.error(f"Forwarding message {message_id} from {source_chat_id} to {target_chat_id} failed: {e}")
            return ApiResult(ok=False, error=str(e))
        return ApiResult(ok=True, message_id=message.message_id)

    async def set_commands(self, commands: Sequence[BotCommand]) -> ApiResult:
        try:
            await self.bot.set_my_commands(list(commands), scope=BotCommandScopeDefault())
        except TelegramError as e:
            logger.error(f"Publishing the command menu failed: {e}")
            return ApiResult(ok=False, error=str(e))
        return ApiResult(ok=True)

    async def set_menu_button(self, chat_id: int) -> ApiResult:
        try:
            await self.bot.set_chat_menu_button(chat_id=chat_id, menu_button=MenuButtonCommands())
        except TelegramError as e:
            logger.warning(f"Setting the menu button for {chat_id} failed: {e}")
            return ApiResult(ok=False, error=str(e))
        return ApiResult(ok=True)

    async def notify_maintainers(self, text: str) -> None:
        if not self.maintainer_user_ids:
            logger.debug("No maintainers configured; skipping notification.")
            return
        for maintainer_id in self.maintainer_user_ids:
            result = await self._send_once(maintainer_id, text[:4000], None, None)
            if not result.ok:
                logger.error(f"Could not notify maintainer {maintainer_id}: {result.error}")
