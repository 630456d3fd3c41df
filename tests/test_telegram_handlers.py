import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from telegram import Chat, Message, MessageEntity, Update, User
from telegram.constants import ChatType

from groupassist.core.disposition import Disposition

from conftest import BOT_ID, GROUP_ID


def update_with_text(text, entities=()):
    message = Message(
        message_id=321,
        date=datetime.now(timezone.utc),
        chat=Chat(id=GROUP_ID, type=ChatType.SUPERGROUP),
        from_user=User(id=7, first_name="Ada", is_bot=False),
        text=text,
        entities=list(entities),
    )
    return Update(update_id=1, message=message)


def test_handle_message_parses_and_dispatches(harness):
    asyncio.run(harness.assistant.access_control.add("group_whitelist", GROUP_ID))
    text = "@AssistBot hello"
    update = update_with_text(text, [MessageEntity(type=MessageEntity.MENTION, offset=0, length=10)])
    disposition = asyncio.run(harness.assistant.handler_service.handle_message(update, SimpleNamespace()))
    assert disposition == Disposition.HANDLED
    assert harness.bot.sent[0].reply_to == 321
    assert harness.completion.calls[0].messages[-1] == {"role": "user", "content": "hello"}


def test_handle_message_ignores_updates_without_message(harness):
    update = Update(update_id=2)
    assert asyncio.run(harness.assistant.handler_service.handle_message(update, SimpleNamespace())) is None


def test_error_handler_logs_and_notifies_maintainers(harness, caplog):
    context = SimpleNamespace(error=RuntimeError("database is locked"))
    asyncio.run(harness.assistant.handler_service.error_handler(update_with_text("hi"), context))
    assert "database is locked" in caplog.text
    notice = harness.bot.sent[0]
    assert notice.chat_id == 42
    assert str(GROUP_ID) in notice.text
    assert "RuntimeError" in notice.text


def test_post_init_fills_identity_and_publishes_commands(harness):
    harness.settings.bot_name = ""
    harness.settings.bot_id = None
    harness.bot.get_me = AsyncMock(return_value=SimpleNamespace(username="AssistBot", id=BOT_ID))
    asyncio.run(harness.assistant.post_init(SimpleNamespace(bot=harness.bot)))
    assert harness.settings.bot_name == "AssistBot"
    assert harness.settings.bot_id == BOT_ID
    names = [command.command for command in harness.bot.commands]
    assert names[:4] == ["start", "help", "search", "clear_user_context"]
    assert "uban" in names


def test_register_handlers_adds_message_and_error_handlers(harness):
    application = SimpleNamespace(add_handler=MagicMock(), add_error_handler=MagicMock())
    harness.assistant.handler_service.application = application
    harness.assistant.register_handlers()
    assert application.add_handler.call_count == 1
    application.add_error_handler.assert_called_once_with(harness.assistant.handler_service.error_handler)
