# groupassist/modules/prompt_store.py
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
"""System prompts kept in the ``system_init`` namespace so they can change without a deploy."""

import logging
from typing import Dict

from groupassist import config
from groupassist.utils.database import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant in a Telegram group chat. Answer in the language of the "
    "question, be concise and use Markdown for formatting."
)
DEFAULT_SEARCH_PROMPT = (
    "You are a research assistant. Answer the query with up-to-date, factual information, "
    "cite sources as Markdown links where you can and keep the answer short."
)


class PromptStore:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def _text(self, key: str) -> str:
        value = await self.store.get(key)
        if value is None:
            return ""
        if not isinstance(value, str):
            logger.warning(f"Prompt '{key}' is not a string; ignoring it.")
            return ""
        return value.strip()

    async def system_message(self) -> Dict[str, str]:
        prompt = await self._text(config.SYSTEM_PROMPT_KEY) or DEFAULT_SYSTEM_PROMPT
        knowledge = await self._text(config.KNOWLEDGE_BASE_KEY)
        if knowledge:
            prompt = f"{prompt}\n\n{knowledge}"
        return {"role": "system", "content": prompt}

    async def search_system_message(self) -> Dict[str, str]:
        prompt = await self._text(config.SEARCH_SYSTEM_PROMPT_KEY) or DEFAULT_SEARCH_PROMPT
        return {"role": "system", "content": prompt}
