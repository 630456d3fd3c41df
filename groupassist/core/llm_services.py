# groupassist/core/llm_services.py
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
# === GroupAssist Chat Completion Client ===
# ==================================================================================================
# Non-streaming chat completions against any OpenAI-compatible endpoint (the Gemini
# OpenAI-compatible API by default). Missing credentials raise ConfigurationError; upstream
# failures and empty answers raise CompletionError, which callers turn into an apology.
# ==================================================================================================

import logging
import time
from typing import Any, Dict, List, Optional

import httpx
import openai

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Required configuration (API key, base URL) is missing."""


class CompletionError(RuntimeError):
    """The completion call failed or returned no content."""


class ChatCompletionClient:
    def __init__(self,
                 api_key: Optional[str],
                 base_url: Optional[str],
                 default_model: str,
                 timeout: float = 60.0,
                 client: Optional[openai.AsyncOpenAI] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.timeout = timeout
        self._client = client
        if client is None and not (api_key and base_url):
            logger.warning("AI API key or base URL not provided. Questions will fail until configured.")

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise ConfigurationError("AI API key is not configured (GROUPASSIST_AI_API_KEY).")
        if not self.base_url:
            raise ConfigurationError("AI base URL is not configured (GROUPASSIST_AI_BASE_URL).")
        self._client = openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            http_client=httpx.AsyncClient(timeout=self.timeout),
        )
        logger.info("OpenAI-compatible AsyncClient initialized successfully.")
        return self._client

    async def complete(self, messages: List[Dict[str, Any]], model_name: Optional[str] = None) -> str:
        client = self._get_client()
        model = model_name or self.default_model
        logger.info(f"Calling chat completion (model: {model}) with {len(messages)} messages.")
        logger.debug(f"Completion messages: {messages}")
        start = time.perf_counter()
        try:
            completion = await client.chat.completions.create(model=model, messages=messages)
        except openai.OpenAIError as e:
            logger.error(f"Chat completion call failed (model: {model}): {e}")
            raise CompletionError(str(e)) from e
        latency = time.perf_counter() - start

        content = None
        if completion.choices and completion.choices[0].message:
            content = completion.choices[0].message.content
        if not content or not content.strip():
            logger.warning(f"Chat completion returned no content (model: {model}).")
            raise CompletionError("Model returned empty content.")
        logger.info(f"Chat completion succeeded in {latency:.2f}s ({len(content)} chars).")
        return content.strip()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
