# groupassist/modules/deletion_scheduler.py
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
# === GroupAssist Deferred Deletion ===
# ==================================================================================================
# "Delete these messages in a few seconds" for command replies and cooldown notices.
# A task record is written to the task_queue namespace, then the creating coroutine polls it:
#   Scheduled (record present, not ready) -> Ready (record present, now >= ready_at) -> Consumed.
# A missing record means some other execution already consumed the task, so polling stops
# without side effects. Duplicate deliveries of the same update therefore delete at most once.
# ==================================================================================================

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from groupassist.utils.clock import Clock, now_ms
from groupassist.utils.database import KeyValueStore

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class DeletionMode(str, Enum):
    # delete the triggering command and the bot reply
    COMMAND_CLEANUP = "command_cleanup"
    # delete only the bot reply (cooldown notices), the user's message stays
    REPLY_ONLY = "reply_only"


class TaskOutcome(Enum):
    CONSUMED = "consumed"
    ALREADY_CONSUMED = "already_consumed"
    GAVE_UP = "gave_up"


@dataclass(frozen=True)
class DeletionTask:
    chat_id: int
    command_message_id: int
    bot_reply_message_id: int
    ready_at: int
    mode: DeletionMode = DeletionMode.COMMAND_CLEANUP

    @property
    def key(self) -> str:
        return task_key(self.chat_id, self.command_message_id, self.bot_reply_message_id)

    def to_record(self) -> Dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "commandMessageId": self.command_message_id,
            "botReplyMessageId": self.bot_reply_message_id,
            "readyAt": self.ready_at,
            "mode": self.mode.value,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "DeletionTask":
        return cls(
            chat_id=int(record["chatId"]),
            command_message_id=int(record["commandMessageId"]),
            bot_reply_message_id=int(record["botReplyMessageId"]),
            ready_at=int(record["readyAt"]),
            mode=DeletionMode(record.get("mode", DeletionMode.COMMAND_CLEANUP.value)),
        )


def task_key(chat_id: int, command_message_id: int, bot_reply_message_id: int) -> str:
    return f"delete_message:{chat_id}:{command_message_id}:{bot_reply_message_id}"


class DeferredDeletionScheduler:
    def __init__(self,
                 store: KeyValueStore,
                 messenger: Any,
                 delay_ms: int = 3000,
                 poll_interval_ms: int = 1000,
                 max_wait_ms: int = 30000,
                 clock: Clock = now_ms,
                 sleep: Sleep = asyncio.sleep):
        self.store = store
        self.messenger = messenger
        self.delay_ms = delay_ms
        self.poll_interval_ms = poll_interval_ms
        self.max_wait_ms = max_wait_ms
        self.clock = clock
        self.sleep = sleep

    async def schedule(self, chat_id: int, command_message_id: int, bot_reply_message_id: int,
                       mode: DeletionMode = DeletionMode.COMMAND_CLEANUP) -> Optional[DeletionTask]:
        task = DeletionTask(
            chat_id=chat_id,
            command_message_id=command_message_id,
            bot_reply_message_id=bot_reply_message_id,
            ready_at=self.clock() + self.delay_ms,
            mode=mode,
        )
        if not await self.store.put(task.key, task.to_record()):
            logger.error(f"Could not store deletion task {task.key}; messages will stay.")
            return None
        logger.info(f"Scheduled deletion task {task.key} ({mode.value}) ready at {task.ready_at}.")
        return task

    async def _load(self, key: str) -> Optional[DeletionTask]:
        record = await self.store.get(key)
        if record is None:
            return None
        try:
            return DeletionTask.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed deletion task {key}: {e}")
            return None

    async def run(self, key: str) -> TaskOutcome:
        """Poll the task at *key* until it is ready, then consume it."""
        deadline = self.clock() + self.delay_ms + self.max_wait_ms
        while True:
            task = await self._load(key)
            if task is None:
                logger.info(f"Deletion task {key} already consumed; stopping.")
                return TaskOutcome.ALREADY_CONSUMED
            now = self.clock()
            if now >= task.ready_at:
                # re-check right before acting so a concurrent consumer wins cleanly
                if await self.store.get(key) is None:
                    logger.info(f"Deletion task {key} consumed concurrently; stopping.")
                    return TaskOutcome.ALREADY_CONSUMED
                await self._execute(task)
                return TaskOutcome.CONSUMED
            if now >= deadline:
                logger.warning(f"Deletion task {key} not ready after {self.max_wait_ms} ms; leaving it.")
                return TaskOutcome.GAVE_UP
            await self.sleep(self.poll_interval_ms / 1000)

    async def schedule_and_run(self, chat_id: int, command_message_id: int, bot_reply_message_id: int,
                               mode: DeletionMode = DeletionMode.COMMAND_CLEANUP) -> Optional[TaskOutcome]:
        task = await self.schedule(chat_id, command_message_id, bot_reply_message_id, mode)
        if task is None:
            return None
        return await self.run(task.key)

    async def reply_and_cleanup(self, chat_id: int, text: str, trigger_message_id: int,
                                mode: DeletionMode = DeletionMode.COMMAND_CLEANUP) -> Optional[TaskOutcome]:
        """Reply to *trigger_message_id* and remove the reply (and, for commands, the trigger) later."""
        result = await self.messenger.send(chat_id, text, reply_to_id=trigger_message_id)
        if not result.ok or result.message_id is None:
            return None
        return await self.schedule_and_run(chat_id, trigger_message_id, result.message_id, mode)

    async def _execute(self, task: DeletionTask) -> None:
        if task.mode == DeletionMode.COMMAND_CLEANUP:
            result = await self.messenger.delete(task.chat_id, task.command_message_id)
            if not result.ok:
                logger.warning(f"Could not delete command message {task.command_message_id} "
                               f"in {task.chat_id}: {result.error}")
        result = await self.messenger.delete(task.chat_id, task.bot_reply_message_id)
        if not result.ok:
            logger.warning(f"Could not delete bot reply {task.bot_reply_message_id} "
                           f"in {task.chat_id}: {result.error}")
        await self.store.delete(task.key)
        logger.info(f"Deletion task {task.key} consumed.")
