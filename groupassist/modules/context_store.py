# groupassist/modules/context_store.py
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
"""Per (group, user) conversation history and the bot's last reply id.

History entries follow the chat-completion message shape::

    {"role": "user", "content": "text"}
    {"role": "user", "content": [{"type": "text", "text": "..."},
                                 {"type": "image_url", "image_url": {"url": "image_base64_..."}}]}

Image parts hold a key into the blob store rather than the image itself.
When history rotates, blobs no longer referenced by the stored sequence are
deleted.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from groupassist.utils.database import BlobStore, KeyValueStore

logger = logging.getLogger(__name__)

IMAGE_KEY_PREFIX = "image_base64_"
DEFAULT_MAX_CONTEXT_LENGTH = 10

ContextEntry = Dict[str, Any]


def image_keys(entries: Iterable[ContextEntry]) -> Set[str]:
    """Collect blob keys referenced by image parts of *entries*."""
    keys: Set[str] = set()
    for entry in entries:
        content = entry.get("content") if isinstance(entry, dict) else None
        if not isinstance(content, list):
            continue
        for part in content:
            if not isinstance(part, dict) or part.get("type") != "image_url":
                continue
            url = (part.get("image_url") or {}).get("url")
            if isinstance(url, str) and url.startswith(IMAGE_KEY_PREFIX):
                keys.add(url)
    return keys


class ConversationContextStore:
    def __init__(self, store: KeyValueStore, blob_store: BlobStore,
                 max_length: int = DEFAULT_MAX_CONTEXT_LENGTH):
        self.store = store
        self.blob_store = blob_store
        self.max_length = max_length

    @staticmethod
    def _key(group_id: int, user_id: int) -> str:
        return f"context:{group_id}:{user_id}"

    async def get(self, group_id: int, user_id: int) -> List[ContextEntry]:
        raw = await self.store.get(self._key(group_id, user_id))
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Context for {group_id}:{user_id} is not a list; starting fresh.")
            return []
        return raw

    async def append(self, group_id: int, user_id: int, new_entries: List[ContextEntry],
                     max_length: Optional[int] = None) -> bool:
        limit = self.max_length if max_length is None else max_length
        previous = await self.get(group_id, user_id)
        new_entries = list(new_entries)
        updated = previous + new_entries
        if len(updated) > limit:
            updated = updated[len(updated) - limit:] if limit > 0 else []

        ok = await self.store.put(self._key(group_id, user_id), updated)
        if not ok:
            logger.error(f"Failed to store context for {group_id}:{user_id}; keeping its images.")
            # the previous history is still stored, only images new to this call are unreferenced
            await self._delete_orphans(image_keys(new_entries) - image_keys(previous))
            return False
        # new entries evicted in the same call never got stored, so their images count too
        await self._delete_orphans(image_keys(previous + new_entries) - image_keys(updated))
        logger.debug(f"Context for {group_id}:{user_id} now holds {len(updated)} entries.")
        return True

    async def clear(self, group_id: int, user_id: int) -> bool:
        previous = await self.get(group_id, user_id)
        if not await self.store.put(self._key(group_id, user_id), []):
            logger.error(f"Failed to clear context for user {user_id} in group {group_id}.")
            return False
        await self._delete_orphans(image_keys(previous))
        logger.info(f"Cleared context for user {user_id} in group {group_id}.")
        return True

    async def _delete_orphans(self, keys: Set[str]) -> None:
        for key in sorted(keys):
            try:
                deleted = await self.blob_store.delete(key)
            except Exception as e:
                logger.error(f"Error deleting orphaned image '{key}': {e}", exc_info=True)
                continue
            if deleted:
                logger.info(f"Deleted orphaned image '{key}'.")
            else:
                logger.warning(f"Could not delete orphaned image '{key}'.")


class LastReplyTracker:
    """Id of the bot's most recent reply to each (group, user) pair."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _key(group_id: int, user_id: int) -> str:
        return f"last_bot_message_id:{group_id}:{user_id}"

    async def get(self, group_id: int, user_id: int) -> Optional[int]:
        raw = await self.store.get(self._key(group_id, user_id))
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    async def record(self, group_id: int, user_id: int, message_id: int) -> bool:
        return await self.store.put(self._key(group_id, user_id), int(message_id))
