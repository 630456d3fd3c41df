import os
import sys
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from groupassist.app import GroupAssistApplication
from groupassist.config import BotSettings
from groupassist.core.llm_services import CompletionError
from groupassist.modules.message_classifier import (
    CommandMessage,
    MessageHeader,
    PhotoMessage,
    RepliedMessage,
    TextMessage,
)
from groupassist.utils.database import open_memory_storage

BOT_NAME = "AssistBot"
BOT_ID = 999
GROUP_ID = -1001
START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock whose sleep advances time instead of waiting."""

    def __init__(self, now: int = START_MS):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += int(seconds * 1000)


class FakeBot:
    """Records Bot API calls made through MessengerClient and MediaService."""

    def __init__(self):
        self.sent: List[SimpleNamespace] = []
        self.deleted: List[tuple] = []
        self.forwarded: List[tuple] = []
        self.edited: List[SimpleNamespace] = []
        self.commands: List[Any] = []
        self.menu_buttons: List[int] = []
        self.files: Dict[str, bytes] = {}
        self.send_errors: List[Exception] = []
        self.edit_errors: List[Exception] = []
        self.delete_errors: Dict[int, Exception] = {}
        self._next_id = 5000

    async def send_message(self, chat_id, text, parse_mode=None, reply_parameters=None):
        if self.send_errors:
            raise self.send_errors.pop(0)
        self._next_id += 1
        self.sent.append(SimpleNamespace(
            chat_id=chat_id,
            text=text,
            parse_mode=parse_mode,
            reply_to=reply_parameters.message_id if reply_parameters else None,
            message_id=self._next_id,
        ))
        return SimpleNamespace(message_id=self._next_id)

    async def edit_message_text(self, text, chat_id, message_id, parse_mode=None):
        if self.edit_errors:
            raise self.edit_errors.pop(0)
        self.edited.append(SimpleNamespace(chat_id=chat_id, message_id=message_id, text=text, parse_mode=parse_mode))
        return True

    async def delete_message(self, chat_id, message_id):
        if message_id in self.delete_errors:
            raise self.delete_errors[message_id]
        self.deleted.append((chat_id, message_id))
        return True

    async def forward_message(self, chat_id, from_chat_id, message_id):
        self.forwarded.append((chat_id, from_chat_id, message_id))
        self._next_id += 1
        return SimpleNamespace(message_id=self._next_id)

    async def send_chat_action(self, chat_id, action):
        return True

    async def set_my_commands(self, commands, scope=None):
        self.commands = list(commands)
        return True

    async def set_chat_menu_button(self, chat_id, menu_button):
        self.menu_buttons.append(chat_id)
        return True

    async def get_file(self, file_id):
        data = self.files.get(file_id, b"\xff\xd8jpeg-bytes")

        async def download_as_bytearray():
            return bytearray(data)

        return SimpleNamespace(download_as_bytearray=download_as_bytearray)


class ScriptedCompletion:
    """Stands in for ChatCompletionClient: returns queued answers or raises CompletionError."""

    def __init__(self, answers: Optional[List[Any]] = None):
        self.answers = list(answers or [])
        self.calls: List[SimpleNamespace] = []

    async def complete(self, messages, model_name=None):
        self.calls.append(SimpleNamespace(messages=messages, model_name=model_name))
        answer = self.answers.pop(0) if self.answers else "Hello there!"
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def close(self):
        return None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    return open_memory_storage()


@pytest.fixture
def settings():
    return BotSettings(
        bot_name=BOT_NAME,
        bot_id=BOT_ID,
        model_name="test-model",
        search_model_name="test-search-model",
        cooldown_duration="90s",
        search_cooldown_duration="3m",
        max_context_length=10,
        maintainer_user_ids=(42,),
    )


@pytest.fixture
def harness(clock, storage, settings):
    bot = FakeBot()
    completion = ScriptedCompletion()
    assistant = GroupAssistApplication(
        SimpleNamespace(bot=bot),
        settings=settings,
        storage=storage,
        completion_client=completion,
        clock=clock,
        sleep=clock.sleep,
    )
    return SimpleNamespace(
        assistant=assistant,
        dispatcher=assistant.dispatcher,
        bot=bot,
        completion=completion,
        clock=clock,
        storage=storage,
        settings=settings,
    )


def header(user_id=7, chat_id=GROUP_ID, message_id=100, mentions=(), reply_to=None, chat_type="supergroup"):
    return MessageHeader(
        chat_id=chat_id,
        chat_type=chat_type,
        user_id=user_id,
        message_id=message_id,
        mentions=tuple(m.lower() for m in mentions),
        reply_to=reply_to,
    )


def text_message(text, mention=False, **kwargs):
    mentions = (f"@{BOT_NAME}",) if mention else ()
    return TextMessage(header=header(mentions=mentions, **kwargs), text=text)


def photo_message(caption="", file_id="photo-1", mention=False, **kwargs):
    mentions = (f"@{BOT_NAME}",) if mention else ()
    return PhotoMessage(header=header(mentions=mentions, **kwargs), file_id=file_id, caption=caption)


def command_message(command, *args, **kwargs):
    text = " ".join((f"/{command}@{BOT_NAME}",) + args)
    return CommandMessage(header=header(**kwargs), command=command, args=tuple(args), text=text)


def replied(message_id, from_user_id=None, text="", photo_file_id=None):
    return RepliedMessage(message_id=message_id, from_user_id=from_user_id, text=text, photo_file_id=photo_file_id)


def completion_failure(reason="upstream 500"):
    return CompletionError(reason)
