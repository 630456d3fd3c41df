# groupassist/config.py
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
# === GroupAssist Configuration ===
# ==================================================================================================
# Central configuration for tokens, model names, storage, cooldowns and webhook settings.
# Everything is read from environment variables; BotSettings bundles the values the
# dispatch layer needs so they can be passed around (and built directly in tests).
# ==================================================================================================

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Environment variable {name}={raw!r} is not an integer; using {default}.")
        return default


def _id_list_env(name: str) -> Tuple[int, ...]:
    ids = []
    for part in os.getenv(name, "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            logger.warning(f"Ignoring non-numeric id {part!r} in {name}.")
    return tuple(ids)


# --- Core Bot Settings ---
TELEGRAM_BOT_TOKEN = os.getenv('GROUPASSIST_BOT_TOKEN')
# Username without the leading '@'; resolved from get_me() at startup when empty.
TELEGRAM_BOT_NAME = os.getenv('GROUPASSIST_BOT_NAME', '').lstrip('@')
TELEGRAM_BOT_ID = _int_env('GROUPASSIST_BOT_ID', None)
MAINTAINER_USER_IDS = _id_list_env('GROUPASSIST_MAINTAINER_USER_IDS')

# --- Chat Completion API (OpenAI-compatible endpoint) ---
AI_API_KEY = os.getenv('GROUPASSIST_AI_API_KEY')
AI_BASE_URL = os.getenv('GROUPASSIST_AI_BASE_URL')
DEFAULT_MODEL_NAME = os.getenv('GROUPASSIST_MODEL_NAME', 'gemini-2.0-flash')
SEARCH_MODEL_NAME = os.getenv('GROUPASSIST_SEARCH_MODEL_NAME') or DEFAULT_MODEL_NAME
AI_REQUEST_TIMEOUT = float(os.getenv('GROUPASSIST_AI_REQUEST_TIMEOUT', '60'))

# --- Rate limiting and context ---
COOLDOWN_DURATION = os.getenv('GROUPASSIST_COOLDOWN_DURATION', '1.5m')
SEARCH_COOLDOWN_DURATION = os.getenv('GROUPASSIST_SEARCH_COOLDOWN_DURATION', '3m')
MAX_CONTEXT_LENGTH = _int_env('GROUPASSIST_MAX_CONTEXT_LENGTH', 10)

# --- Deferred message deletion ---
DELETION_DELAY_MS = _int_env('GROUPASSIST_DELETION_DELAY_MS', 3000)
DELETION_POLL_INTERVAL_MS = _int_env('GROUPASSIST_DELETION_POLL_INTERVAL_MS', 1000)
DELETION_MAX_WAIT_MS = _int_env('GROUPASSIST_DELETION_MAX_WAIT_MS', 30000)

# --- Access list keys (bot_config namespace) ---
USER_WHITELIST_KEY = os.getenv('GROUPASSIST_USER_WHITELIST_KEY', 'user_whitelist')
GROUP_WHITELIST_KEY = os.getenv('GROUPASSIST_GROUP_WHITELIST_KEY', 'group_whitelist')
USER_BLACKLIST_KEY = os.getenv('GROUPASSIST_USER_BLACKLIST_KEY', 'user_blacklist')

# --- Prompt keys (system_init namespace) ---
SYSTEM_PROMPT_KEY = 'system_prompt'
KNOWLEDGE_BASE_KEY = 'knowledge_base'
SEARCH_SYSTEM_PROMPT_KEY = 'search_system_prompt'

# --- Storage ---
DATABASE_URL = os.getenv('GROUPASSIST_DATABASE_URL', 'sqlite:///groupassist.db')

# --- Webhook / transport ---
WEBHOOK_URL = os.getenv('GROUPASSIST_WEBHOOK_URL')
WEBHOOK_SECRET_TOKEN = os.getenv('GROUPASSIST_WEBHOOK_SECRET_TOKEN') or None
WEBHOOK_PATH = os.getenv('GROUPASSIST_WEBHOOK_PATH', 'webhook')
LISTEN_ADDRESS = os.getenv('GROUPASSIST_LISTEN_ADDRESS', '0.0.0.0')
LISTEN_PORT = _int_env('GROUPASSIST_LISTEN_PORT', 8443)

# Telegram HTTP timeouts (seconds)
TELEGRAM_CONNECT_TIMEOUT = float(os.getenv('GROUPASSIST_TELEGRAM_CONNECT_TIMEOUT', '10'))
TELEGRAM_READ_TIMEOUT = float(os.getenv('GROUPASSIST_TELEGRAM_READ_TIMEOUT', '30'))
TELEGRAM_WRITE_TIMEOUT = float(os.getenv('GROUPASSIST_TELEGRAM_WRITE_TIMEOUT', '30'))
TELEGRAM_POOL_TIMEOUT = float(os.getenv('GROUPASSIST_TELEGRAM_POOL_TIMEOUT', '10'))

LOG_FILE_NAME = os.getenv('GROUPASSIST_LOG_FILE', 'bot_activity.log')


@dataclass
class BotSettings:
    """Per-process settings handed to the dispatch layer."""

    bot_name: str
    bot_id: Optional[int] = None
    model_name: str = DEFAULT_MODEL_NAME
    search_model_name: str = SEARCH_MODEL_NAME
    cooldown_duration: str = COOLDOWN_DURATION
    search_cooldown_duration: str = SEARCH_COOLDOWN_DURATION
    max_context_length: int = 10
    maintainer_user_ids: Tuple[int, ...] = field(default_factory=tuple)
    user_whitelist_key: str = USER_WHITELIST_KEY
    group_whitelist_key: str = GROUP_WHITELIST_KEY
    user_blacklist_key: str = USER_BLACKLIST_KEY
    deletion_delay_ms: int = 3000
    deletion_poll_interval_ms: int = 1000
    deletion_max_wait_ms: int = 30000

    @classmethod
    def from_env(cls) -> "BotSettings":
        return cls(
            bot_name=TELEGRAM_BOT_NAME,
            bot_id=TELEGRAM_BOT_ID,
            model_name=DEFAULT_MODEL_NAME,
            search_model_name=SEARCH_MODEL_NAME,
            cooldown_duration=COOLDOWN_DURATION,
            search_cooldown_duration=SEARCH_COOLDOWN_DURATION,
            max_context_length=MAX_CONTEXT_LENGTH,
            maintainer_user_ids=MAINTAINER_USER_IDS,
            user_whitelist_key=USER_WHITELIST_KEY,
            group_whitelist_key=GROUP_WHITELIST_KEY,
            user_blacklist_key=USER_BLACKLIST_KEY,
            deletion_delay_ms=DELETION_DELAY_MS,
            deletion_poll_interval_ms=DELETION_POLL_INTERVAL_MS,
            deletion_max_wait_ms=DELETION_MAX_WAIT_MS,
        )
