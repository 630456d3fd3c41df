# groupassist/utils/message_utils.py
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

"""Helper utilities for working with Telegram messages."""

from __future__ import annotations

from typing import Any, Dict
import re

from telegram import MessageEntity


def get_text(message: Any) -> str | None:
    """Return text or caption from a Telegram *message*.

    Photos and documents carry their textual content in the ``caption``
    field rather than ``text``.  This helper consolidates both attributes so
    handlers can process any user supplied text without worrying about the
    underlying message type.
    """

    if message is None:
        return None

    text = getattr(message, "text", None)
    caption = getattr(message, "caption", None)
    return text or caption


def get_entities(message: Any, types: list[str]) -> Dict[MessageEntity, str]:
    """Entities of the given *types* from text or caption, mapped to their text.

    PTB's ``parse_entities`` takes care of the UTF-16 offsets Telegram uses.
    """
    if message is None:
        return {}
    if getattr(message, "text", None):
        return message.parse_entities(types)
    if getattr(message, "caption", None):
        return message.parse_caption_entities(types)
    return {}


def strip_bot_mention(text: str | None, bot_name: str) -> str:
    """Remove every ``@bot_name`` mention (case-insensitive) from *text*."""
    if not text:
        return ""
    if not bot_name:
        return text.strip()
    pattern = re.compile(rf"@{re.escape(bot_name)}\b", re.IGNORECASE)
    cleaned = pattern.sub("", text)
    return re.sub(r"[ \t]{2,}", " ", cleaned).strip()
