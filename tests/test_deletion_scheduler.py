import asyncio
import logging

from telegram.error import BadRequest

from groupassist.core.messenger import MessengerClient
from groupassist.modules.deletion_scheduler import (
    DeferredDeletionScheduler,
    DeletionMode,
    DeletionTask,
    TaskOutcome,
    task_key,
)
from groupassist.utils.database import InMemoryKeyValueStore

from conftest import FakeBot, FakeClock, GROUP_ID


class VanishingStore(InMemoryKeyValueStore):
    """Simulates another worker consuming the task between two reads."""

    def __init__(self, vanish_on_read: int):
        super().__init__("task_queue")
        self.reads = 0
        self.vanish_on_read = vanish_on_read

    async def get(self, key):
        self.reads += 1
        if self.reads == self.vanish_on_read:
            await self.delete(key)
        return await super().get(key)


def make_scheduler(store=None, bot=None, **kwargs):
    clock = FakeClock()
    bot = bot or FakeBot()
    scheduler = DeferredDeletionScheduler(
        store or InMemoryKeyValueStore("task_queue"),
        MessengerClient(bot),
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )
    return scheduler, bot, clock


def test_task_record_layout():
    task = DeletionTask(chat_id=GROUP_ID, command_message_id=10, bot_reply_message_id=11, ready_at=5)
    assert task.key == f"delete_message:{GROUP_ID}:10:11"
    assert task.to_record() == {
        "chatId": GROUP_ID,
        "commandMessageId": 10,
        "botReplyMessageId": 11,
        "readyAt": 5,
        "mode": "command_cleanup",
    }
    assert DeletionTask.from_record(task.to_record()) == task


def test_task_becomes_ready_after_delay_and_deletes_both_messages():
    scheduler, bot, clock = make_scheduler()
    start = clock.now
    outcome = asyncio.run(scheduler.schedule_and_run(GROUP_ID, 10, 11))
    assert outcome == TaskOutcome.CONSUMED
    assert bot.deleted == [(GROUP_ID, 10), (GROUP_ID, 11)]
    assert clock.now - start == 3000
    assert clock.sleeps == [1.0, 1.0, 1.0]
    assert asyncio.run(scheduler.store.get(task_key(GROUP_ID, 10, 11))) is None


def test_reply_only_mode_keeps_the_user_message():
    scheduler, bot, _ = make_scheduler()
    asyncio.run(scheduler.schedule_and_run(GROUP_ID, 10, 11, DeletionMode.REPLY_ONLY))
    assert bot.deleted == [(GROUP_ID, 11)]


def test_already_consumed_task_has_no_side_effects():
    scheduler, bot, _ = make_scheduler()
    outcome = asyncio.run(scheduler.run(task_key(GROUP_ID, 10, 11)))
    assert outcome == TaskOutcome.ALREADY_CONSUMED
    assert bot.deleted == []


def test_task_consumed_between_poll_and_action_is_not_repeated():
    # reads: 1..3 while waiting, 4 sees it ready, 5 is the final re-check
    store = VanishingStore(vanish_on_read=5)
    scheduler, bot, _ = make_scheduler(store=store)
    outcome = asyncio.run(scheduler.schedule_and_run(GROUP_ID, 10, 11))
    assert outcome == TaskOutcome.ALREADY_CONSUMED
    assert bot.deleted == []


def test_task_vanishing_while_waiting_stops_polling():
    store = VanishingStore(vanish_on_read=2)
    scheduler, bot, clock = make_scheduler(store=store)
    outcome = asyncio.run(scheduler.schedule_and_run(GROUP_ID, 10, 11))
    assert outcome == TaskOutcome.ALREADY_CONSUMED
    assert clock.sleeps == [1.0]
    assert bot.deleted == []


def test_failed_delete_still_consumes_the_task(caplog):
    bot = FakeBot()
    bot.delete_errors[10] = BadRequest("Message to delete not found")
    scheduler, _, _ = make_scheduler(bot=bot)
    with caplog.at_level(logging.WARNING):
        outcome = asyncio.run(scheduler.schedule_and_run(GROUP_ID, 10, 11))
    assert outcome == TaskOutcome.CONSUMED
    assert bot.deleted == [(GROUP_ID, 11)]
    assert asyncio.run(scheduler.store.get(task_key(GROUP_ID, 10, 11))) is None
    assert "Message to delete not found" in caplog.text


def test_task_that_never_becomes_ready_is_abandoned():
    scheduler, bot, clock = make_scheduler(max_wait_ms=5000)
    task = DeletionTask(chat_id=GROUP_ID, command_message_id=10, bot_reply_message_id=11,
                        ready_at=clock.now + 3_600_000)
    asyncio.run(scheduler.store.put(task.key, task.to_record()))
    outcome = asyncio.run(scheduler.run(task.key))
    assert outcome == TaskOutcome.GAVE_UP
    assert len(clock.sleeps) == 8
    assert bot.deleted == []
    assert asyncio.run(scheduler.store.get(task.key)) is not None


def test_reply_and_cleanup_replies_to_trigger_then_deletes():
    scheduler, bot, _ = make_scheduler()
    outcome = asyncio.run(scheduler.reply_and_cleanup(GROUP_ID, "Done.", trigger_message_id=10))
    assert outcome == TaskOutcome.CONSUMED
    reply = bot.sent[0]
    assert reply.reply_to == 10
    assert bot.deleted == [(GROUP_ID, 10), (GROUP_ID, reply.message_id)]


def test_reply_and_cleanup_skips_scheduling_when_send_fails():
    bot = FakeBot()
    bot.send_errors = [BadRequest("chat not found"), BadRequest("chat not found")]
    scheduler, _, _ = make_scheduler(bot=bot)
    assert asyncio.run(scheduler.reply_and_cleanup(GROUP_ID, "Done.", trigger_message_id=10)) is None
    assert bot.deleted == []
    assert asyncio.run(scheduler.store.get(task_key(GROUP_ID, 10, 5001))) is None
