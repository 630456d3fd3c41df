# groupassist/modules/message_classifier.py
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
# === GroupAssist Message Classifier ===
# ==================================================================================================
# Turns a PTB Message into one of the inbound message variants and assigns it exactly one
# handling path. Rules are evaluated in priority order, first match wins:
#   blacklisted sender > private chat > addressed command > bot mention > continuation > plain.
# Mentions, continuations and plain messages are only handled in whitelisted groups.
# ==================================================================================================

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from telegram import Message, MessageEntity
from telegram.constants import ChatType

from groupassist.config import BotSettings
from groupassist.modules.access_control import AccessControl
from groupassist.modules.context_store import LastReplyTracker
from groupassist.utils.message_utils import get_entities, get_text

logger = logging.getLogger(__name__)

TEXT_DOCUMENT_EXTENSIONS = (".txt", ".md", ".csv", ".json", ".log")
MAX_DOCUMENT_BYTES = 1024 * 1024


@dataclass(frozen=True)
class RepliedMessage:
    message_id: int
    from_user_id: Optional[int] = None
    text: str = ""
    photo_file_id: Optional[str] = None


@dataclass(frozen=True)
class MessageHeader:
    chat_id: int
    chat_type: str
    user_id: int
    message_id: int
    # lower-cased "@username" strings taken from mention entities
    mentions: Tuple[str, ...] = ()
    reply_to: Optional[RepliedMessage] = None
    user_name: str = ""

    @property
    def is_private(self) -> bool:
        return self.chat_type == ChatType.PRIVATE


@dataclass(frozen=True)
class TextMessage:
    header: MessageHeader
    text: str


@dataclass(frozen=True)
class PhotoMessage:
    header: MessageHeader
    file_id: str
    caption: str = ""


@dataclass(frozen=True)
class DocumentMessage:
    header: MessageHeader
    file_id: str
    file_name: str = ""
    mime_type: Optional[str] = None
    file_size: Optional[int] = None
    caption: str = ""

    @property
    def supported(self) -> bool:
        if self.file_size is not None and self.file_size > MAX_DOCUMENT_BYTES:
            return False
        if self.mime_type and self.mime_type.startswith("text/"):
            return True
        return os.path.splitext(self.file_name or "")[1].lower() in TEXT_DOCUMENT_EXTENSIONS


@dataclass(frozen=True)
class CommandMessage:
    header: MessageHeader
    command: str
    args: Tuple[str, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class OtherMessage:
    """Stickers, voice notes, videos and other media the bot cannot read.

    ``caption`` keeps any text that came with the media.
    """
    header: MessageHeader
    caption: str = ""


InboundMessage = Union[TextMessage, PhotoMessage, DocumentMessage, CommandMessage, OtherMessage]


def message_text(message: InboundMessage) -> str:
    if isinstance(message, (TextMessage, CommandMessage)):
        return message.text
    if isinstance(message, (PhotoMessage, DocumentMessage, OtherMessage)):
        return message.caption
    return ""


def extract_command(message: Message, bot_name: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    """Return ``(name, args)`` for the first bot command addressed to ``@bot_name``.

    ``/clear_user_context@MyBot`` yields ``("clear_user_context", ())``. A command
    without the ``@bot_name`` suffix, or addressed to another bot, yields ``None``.
    """
    entities = get_entities(message, [MessageEntity.BOT_COMMAND])
    if not entities or not bot_name:
        return None
    entity = min(entities, key=lambda e: e.offset)
    span = entities[entity]
    name, sep, target = span[1:].partition("@")
    if not sep or target.lower() != bot_name.lower():
        logger.debug(f"Command '{span}' is not addressed to @{bot_name}.")
        return None
    full_text = get_text(message) or ""
    # entity offsets count UTF-16 code units, so locate the span in the decoded text instead
    start = full_text.find(span)
    rest = full_text[start + len(span):] if start >= 0 else ""
    return name.lower(), tuple(rest.split())


def _mentions(message: Message) -> Tuple[str, ...]:
    found = []
    for entity, text in get_entities(message, [MessageEntity.MENTION, MessageEntity.TEXT_MENTION]).items():
        if entity.type == MessageEntity.MENTION:
            found.append(text.lower())
        elif entity.user is not None and entity.user.username:
            found.append(f"@{entity.user.username.lower()}")
    return tuple(found)


def _replied(message: Message) -> Optional[RepliedMessage]:
    replied = message.reply_to_message
    # inside forum topics every message "replies" to the topic's service message
    if replied is None or replied.forum_topic_created is not None:
        return None
    return RepliedMessage(
        message_id=replied.message_id,
        from_user_id=replied.from_user.id if replied.from_user else None,
        text=get_text(replied) or "",
        photo_file_id=replied.photo[-1].file_id if replied.photo else None,
    )


def parse_message(message: Message, bot_name: str) -> InboundMessage:
    """Build the inbound variant for a PTB *message*."""
    user = message.from_user
    header = MessageHeader(
        chat_id=message.chat.id,
        chat_type=message.chat.type,
        user_id=user.id if user else 0,
        message_id=message.message_id,
        mentions=_mentions(message),
        reply_to=_replied(message),
        user_name=(user.full_name if user else ""),
    )
    text = get_text(message) or ""

    command = extract_command(message, bot_name)
    if command is not None:
        return CommandMessage(header=header, command=command[0], args=command[1], text=text)
    if message.photo:
        return PhotoMessage(header=header, file_id=message.photo[-1].file_id, caption=text)
    if message.document:
        doc = message.document
        return DocumentMessage(
            header=header,
            file_id=doc.file_id,
            file_name=doc.file_name or "",
            mime_type=doc.mime_type,
            file_size=doc.file_size,
            caption=text,
        )
    if message.text:
        return TextMessage(header=header, text=text)
    return OtherMessage(header=header, caption=text)


class Intent(Enum):
    DENIED = "denied"
    PRIVATE_MESSAGE = "private_message"
    COMMAND = "command"
    UNSUPPORTED = "unsupported"
    REPLY_QUESTION = "reply_question"
    MENTION_QUESTION = "mention_question"
    CONTINUATION = "continuation"
    PLAIN_MESSAGE = "plain_message"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ClassificationSnapshot:
    """State read from storage that classification depends on."""
    sender_blacklisted: bool = False
    group_whitelisted: bool = False
    last_bot_message_id: Optional[int] = None


def has_supported_content(message: InboundMessage) -> bool:
    if isinstance(message, PhotoMessage):
        return True
    if isinstance(message, DocumentMessage):
        return message.supported
    if isinstance(message, OtherMessage):
        return False
    return bool(message_text(message).strip())


def classify_message(message: InboundMessage, snapshot: ClassificationSnapshot,
                     bot_name: str, bot_id: Optional[int] = None) -> Intent:
    header = message.header
    if snapshot.sender_blacklisted:
        return Intent.DENIED
    if header.is_private:
        return Intent.PRIVATE_MESSAGE
    if isinstance(message, CommandMessage):
        return Intent.COMMAND

    if bot_name and f"@{bot_name.lower()}" in header.mentions:
        if not has_supported_content(message):
            return Intent.UNSUPPORTED
        if not snapshot.group_whitelisted:
            return Intent.IGNORED
        if header.reply_to is not None:
            return Intent.REPLY_QUESTION
        return Intent.MENTION_QUESTION

    if not snapshot.group_whitelisted:
        return Intent.IGNORED

    replied = header.reply_to
    if (replied is not None
            and snapshot.last_bot_message_id is not None
            and replied.message_id == snapshot.last_bot_message_id
            and (bot_id is None or replied.from_user_id == bot_id)):
        return Intent.CONTINUATION
    return Intent.PLAIN_MESSAGE


class MessageClassifier:
    def __init__(self, access_control: AccessControl, last_reply_tracker: LastReplyTracker,
                 settings: BotSettings):
        self.access_control = access_control
        self.last_reply_tracker = last_reply_tracker
        self.settings = settings

    async def snapshot(self, message: InboundMessage) -> ClassificationSnapshot:
        header = message.header
        if await self.access_control.is_blacklisted(header.user_id):
            return ClassificationSnapshot(sender_blacklisted=True)
        if header.is_private:
            return ClassificationSnapshot()
        return ClassificationSnapshot(
            group_whitelisted=await self.access_control.is_group_whitelisted(header.chat_id),
            last_bot_message_id=await self.last_reply_tracker.get(header.chat_id, header.user_id),
        )

    async def classify(self, message: InboundMessage) -> Intent:
        snapshot = await self.snapshot(message)
        intent = classify_message(message, snapshot, self.settings.bot_name, self.settings.bot_id)
        logger.info(f"Message {message.header.message_id} in chat {message.header.chat_id} "
                    f"from {message.header.user_id} classified as {intent.value}.")
        return intent
