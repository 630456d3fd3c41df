# groupassist/modules/cooldown_gate.py
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
"""Per-group request cooldowns.

Two independent instances run in the bot: the general question track
(``cooldown:{group}``) and the search track (``cooldown:search:{group}``).
"""

import logging
import math
import re
from typing import Optional

from groupassist.modules.access_control import AccessControl
from groupassist.utils.clock import Clock, now_ms
from groupassist.utils.database import KeyValueStore

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$", re.IGNORECASE)
_UNIT_MS = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000}


def parse_duration_ms(duration: Optional[str]) -> int:
    """Parse a compact duration like ``1.5m``, ``3m`` or ``90s`` to milliseconds.

    A bare number is read as seconds. Missing or malformed input yields ``0``,
    which disables the cooldown.
    """
    if duration is None:
        return 0
    match = _DURATION_RE.match(str(duration))
    if not match:
        logger.warning(f"Invalid cooldown duration {duration!r}; cooldown disabled.")
        return 0
    value = float(match.group(1))
    unit = (match.group(2) or "s").lower()
    return int(value * _UNIT_MS[unit])


class CooldownGate:
    def __init__(self,
                 store: KeyValueStore,
                 access_control: AccessControl,
                 duration: Optional[str],
                 key_prefix: str = "cooldown",
                 clock: Clock = now_ms):
        self.store = store
        self.access_control = access_control
        self.duration_ms = parse_duration_ms(duration)
        self.key_prefix = key_prefix
        self.clock = clock

    def _key(self, group_id: int) -> str:
        return f"{self.key_prefix}:{group_id}"

    async def last_request_timestamp(self, group_id: int) -> Optional[int]:
        raw = await self.store.get(self._key(group_id))
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Unreadable cooldown timestamp {raw!r} for group {group_id}; ignoring.")
            return None

    async def is_in_cooldown(self, group_id: int, user_id: int) -> bool:
        if await self.access_control.is_user_whitelisted(user_id):
            return False
        if self.duration_ms <= 0:
            return False
        last = await self.last_request_timestamp(group_id)
        if last is None:
            return False
        return self.clock() - last < self.duration_ms

    async def remaining_seconds(self, group_id: int) -> int:
        """Seconds left until the group may ask again, never less than 1."""
        last = await self.last_request_timestamp(group_id)
        if last is None:
            return 1
        remaining_ms = self.duration_ms - (self.clock() - last)
        return max(1, math.ceil(remaining_ms / 1000))

    async def record_request(self, group_id: int) -> bool:
        return await self.store.put(self._key(group_id), self.clock())
