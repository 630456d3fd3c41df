# groupassist/modules/access_control.py
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
"""User whitelist, group whitelist and user blacklist.

Each list is a JSON array of integer ids stored under a single key of the
``bot_config`` namespace. Lists are created on first write and reading a
missing or unreadable list yields an empty set.
"""

import logging
from typing import List, Set

from groupassist.utils.database import KeyValueStore

logger = logging.getLogger(__name__)


class AccessControl:
    def __init__(self,
                 store: KeyValueStore,
                 user_whitelist_key: str = "user_whitelist",
                 group_whitelist_key: str = "group_whitelist",
                 user_blacklist_key: str = "user_blacklist"):
        self.store = store
        self.user_whitelist_key = user_whitelist_key
        self.group_whitelist_key = group_whitelist_key
        self.user_blacklist_key = user_blacklist_key

    async def _load(self, list_key: str) -> List[int]:
        raw = await self.store.get(list_key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning(f"Access list '{list_key}' is not a JSON array; treating it as empty.")
            return []
        ids: List[int] = []
        for item in raw:
            try:
                value = int(item)
            except (TypeError, ValueError):
                logger.warning(f"Skipping non-integer entry {item!r} in access list '{list_key}'.")
                continue
            if value not in ids:
                ids.append(value)
        return ids

    async def members(self, list_key: str) -> Set[int]:
        return set(await self._load(list_key))

    async def contains(self, list_key: str, entity_id: int) -> bool:
        return int(entity_id) in await self.members(list_key)

    async def add(self, list_key: str, entity_id: int) -> bool:
        """Adds *entity_id* to the list. Adding a present id is a successful no-op."""
        ids = await self._load(list_key)
        entity_id = int(entity_id)
        if entity_id in ids:
            logger.info(f"{entity_id} already in '{list_key}'.")
            return True
        ids.append(entity_id)
        ok = await self.store.put(list_key, ids)
        if ok:
            logger.info(f"Added {entity_id} to '{list_key}'.")
        return ok

    async def remove(self, list_key: str, entity_id: int) -> bool:
        """Removes *entity_id* from the list. Removing an absent id is a successful no-op."""
        ids = await self._load(list_key)
        entity_id = int(entity_id)
        if entity_id not in ids:
            logger.info(f"{entity_id} not in '{list_key}', nothing to remove.")
            return True
        ids.remove(entity_id)
        ok = await self.store.put(list_key, ids)
        if ok:
            logger.info(f"Removed {entity_id} from '{list_key}'.")
        return ok

    async def is_user_whitelisted(self, user_id: int) -> bool:
        return await self.contains(self.user_whitelist_key, user_id)

    async def is_group_whitelisted(self, group_id: int) -> bool:
        return await self.contains(self.group_whitelist_key, group_id)

    async def is_blacklisted(self, user_id: int) -> bool:
        return await self.contains(self.user_blacklist_key, user_id)

    async def can_use_command(self, broadly_usable: bool, user_id: int, group_id: int) -> bool:
        """Broadly usable commands are open to everyone in a whitelisted group.
        Everything else, and any command outside a whitelisted group, needs
        user-whitelist membership."""
        if broadly_usable and await self.is_group_whitelisted(group_id):
            return True
        return await self.is_user_whitelisted(user_id)
