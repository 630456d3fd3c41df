# groupassist/modules/media_service.py
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
"""Photo and document handling for questions.

Photos that become part of a conversation are stored in the blob store and
referenced by key; reply questions inline the replied-to photo directly.
"""

import base64
import logging
from typing import Any, Dict, Iterable, List, Optional

from telegram import Bot
from telegram.error import TelegramError

from groupassist.modules.context_store import IMAGE_KEY_PREFIX, ContextEntry
from groupassist.modules.message_classifier import DocumentMessage
from groupassist.utils.database import BlobStore

logger = logging.getLogger(__name__)


def image_blob_key(group_id: int, user_id: int, message_id: int) -> str:
    return f"{IMAGE_KEY_PREFIX}{group_id}_{user_id}_{message_id}"


def to_data_url(data: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(data).decode("ascii")


def user_entry(text: str, image_url: Optional[str] = None) -> ContextEntry:
    """A user turn: plain string content, or text plus one image part."""
    if image_url is None:
        return {"role": "user", "content": text}
    return {
        "role": "user",
        "content": [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ],
    }


class MediaService:
    def __init__(self, bot: Bot, blob_store: BlobStore):
        self.bot = bot
        self.blob_store = blob_store

    async def download(self, file_id: str) -> Optional[bytes]:
        try:
            telegram_file = await self.bot.get_file(file_id)
            data = await telegram_file.download_as_bytearray()
        except TelegramError as e:
            logger.error(f"Downloading file {file_id} failed: {e}")
            return None
        return bytes(data)

    async def store_photo(self, group_id: int, user_id: int, message_id: int, file_id: str) -> Optional[str]:
        """Download a photo into the blob store and return its key."""
        data = await self.download(file_id)
        if data is None:
            return None
        key = image_blob_key(group_id, user_id, message_id)
        if not await self.blob_store.put(key, data):
            return None
        logger.info(f"Stored image '{key}' ({len(data)} bytes).")
        return key

    async def photo_data_url(self, file_id: str) -> Optional[str]:
        data = await self.download(file_id)
        return to_data_url(data) if data is not None else None

    async def document_text(self, document: DocumentMessage) -> Optional[str]:
        if not document.supported:
            return None
        data = await self.download(document.file_id)
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    async def discard(self, keys: Iterable[str]) -> None:
        """Drop stored images that never made it into a context."""
        for key in keys:
            if await self.blob_store.delete(key):
                logger.info(f"Discarded image '{key}'.")

    async def resolve_images(self, entries: List[ContextEntry]) -> List[Dict[str, Any]]:
        """Copy *entries* with stored image keys replaced by data URLs.

        A key whose blob is gone becomes a text placeholder so the rest of the
        history can still be sent.
        """
        resolved: List[Dict[str, Any]] = []
        for entry in entries:
            content = entry.get("content")
            if not isinstance(content, list):
                resolved.append(dict(entry))
                continue
            parts = []
            for part in content:
                url = (part.get("image_url") or {}).get("url") if part.get("type") == "image_url" else None
                if isinstance(url, str) and url.startswith(IMAGE_KEY_PREFIX):
                    data = await self.blob_store.get(url)
                    if data is None:
                        logger.warning(f"Image '{url}' referenced by context is missing.")
                        parts.append({"type": "text", "text": f"(image unavailable: {url})"})
                        continue
                    parts.append({"type": "image_url", "image_url": {"url": to_data_url(data)}})
                else:
                    parts.append(part)
            resolved.append({**entry, "content": parts})
        return resolved
