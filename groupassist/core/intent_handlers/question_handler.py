# groupassist/core/intent_handlers/question_handler.py
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
# === GroupAssist Question Handling ===
# ==================================================================================================
# Mention questions and continuations run with the stored (group, user) history. Reply questions
# are one-shot: the quoted message and the new one form a single prompt and nothing is stored.
# Plain messages in whitelisted groups are only remembered.
# A question that reaches the model ends, on success, with: reply sent, last reply id stored,
# context appended, cooldown recorded. On failure only the apology is sent.
# ==================================================================================================

import logging
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from groupassist.core import replies
from groupassist.core.disposition import Disposition
from groupassist.core.llm_services import CompletionError
from groupassist.modules.context_store import ContextEntry, image_keys
from groupassist.modules.deletion_scheduler import DeletionMode
from groupassist.modules.media_service import user_entry
from groupassist.modules.message_classifier import (
    DocumentMessage,
    InboundMessage,
    MessageHeader,
    PhotoMessage,
    has_supported_content,
    message_text,
)
from groupassist.utils.message_utils import strip_bot_mention

if TYPE_CHECKING:
    from groupassist.config import BotSettings
    from groupassist.core.llm_services import ChatCompletionClient
    from groupassist.core.messenger import MessengerClient
    from groupassist.modules.context_store import ConversationContextStore, LastReplyTracker
    from groupassist.modules.cooldown_gate import CooldownGate
    from groupassist.modules.deletion_scheduler import DeferredDeletionScheduler
    from groupassist.modules.media_service import MediaService
    from groupassist.modules.prompt_store import PromptStore

logger = logging.getLogger(__name__)


class QuestionHandler:
    def __init__(self,
                 settings: 'BotSettings',
                 completion_client: 'ChatCompletionClient',
                 cooldown_gate: 'CooldownGate',
                 context_store: 'ConversationContextStore',
                 last_reply_tracker: 'LastReplyTracker',
                 media_service: 'MediaService',
                 prompt_store: 'PromptStore',
                 messenger: 'MessengerClient',
                 scheduler: 'DeferredDeletionScheduler'):
        logger.info("QuestionHandler __init__ STARTING")
        self.settings = settings
        self.completion_client = completion_client
        self.cooldown_gate = cooldown_gate
        self.context_store = context_store
        self.last_reply_tracker = last_reply_tracker
        self.media_service = media_service
        self.prompt_store = prompt_store
        self.messenger = messenger
        self.scheduler = scheduler
        logger.info("QuestionHandler __init__ COMPLETED")

    async def _cooldown_notice(self, header: MessageHeader) -> Disposition:
        seconds = await self.cooldown_gate.remaining_seconds(header.chat_id)
        logger.info(f"Group {header.chat_id} in cooldown, {seconds}s left; user {header.user_id} told to wait.")
        await self.scheduler.reply_and_cleanup(
            header.chat_id, replies.COOLDOWN_NOTICE.format(seconds=seconds),
            header.message_id, DeletionMode.REPLY_ONLY,
        )
        return Disposition.HANDLED

    async def _build_turn(self, message: InboundMessage, store_images: bool
                          ) -> Tuple[Optional[ContextEntry], Optional[ContextEntry]]:
        """Return ``(entry to remember, entry to send)`` for the user's message.

        The two differ for documents: the file text is sent but only a marker
        is remembered. Either is ``None`` when the message has nothing to ask.
        """
        if not has_supported_content(message):
            # media the bot cannot read is never asked about, whatever its caption
            return None, None
        header = message.header
        text = strip_bot_mention(message_text(message), self.settings.bot_name)

        if isinstance(message, PhotoMessage):
            if store_images:
                image = await self.media_service.store_photo(header.chat_id, header.user_id,
                                                              header.message_id, message.file_id)
            else:
                image = await self.media_service.photo_data_url(message.file_id)
            if image is not None:
                entry = user_entry(text, image)
                return entry, entry

        if isinstance(message, DocumentMessage) and message.supported:
            document = await self.media_service.document_text(message)
            if document is not None:
                marker = f"[file: {message.file_name or 'document'}]"
                remembered = user_entry(f"{text}\n{marker}".strip())
                sent = user_entry(f"{text}\n\n{marker}\n{document}".strip())
                return remembered, sent

        if not text:
            return None, None
        entry = user_entry(text)
        return entry, entry

    async def _ask(self, header: MessageHeader, messages: List[Dict[str, Any]]) -> Optional[str]:
        """Call the model and send its answer. Returns the answer, or None after an apology."""
        await self.messenger.send_typing(header.chat_id)
        try:
            answer = await self.completion_client.complete(messages, self.settings.model_name)
        except CompletionError as e:
            logger.error(f"Question from {header.user_id} in {header.chat_id} failed: {e}")
            await self.messenger.send(header.chat_id, replies.AI_FAILURE, reply_to_id=header.message_id)
            return None
        results = await self.messenger.send_markdown(header.chat_id, answer, reply_to_id=header.message_id)
        sent_ids = [r.message_id for r in results if r.ok and r.message_id is not None]
        if sent_ids:
            # continuations are detected by replies to the last chunk
            await self.last_reply_tracker.record(header.chat_id, header.user_id, sent_ids[-1])
        else:
            logger.error(f"Answer for {header.user_id} in {header.chat_id} could not be delivered.")
        return answer

    async def answer_with_context(self, message: InboundMessage) -> Disposition:
        header = message.header
        if await self.cooldown_gate.is_in_cooldown(header.chat_id, header.user_id):
            return await self._cooldown_notice(header)

        remembered, sent = await self._build_turn(message, store_images=True)
        if sent is None:
            await self.messenger.send(header.chat_id, replies.EMPTY_QUESTION, reply_to_id=header.message_id)
            return Disposition.HANDLED

        history = await self.context_store.get(header.chat_id, header.user_id)
        messages = [await self.prompt_store.system_message()]
        messages += await self.media_service.resolve_images(history + [sent])
        logger.info(f"Answering {header.user_id} in {header.chat_id} with {len(history)} context entries.")

        answer = await self._ask(header, messages)
        if answer is None:
            await self.media_service.discard(image_keys([remembered]))
            return Disposition.ERROR

        await self.context_store.append(
            header.chat_id, header.user_id,
            [remembered, {"role": "assistant", "content": answer}],
        )
        await self.cooldown_gate.record_request(header.chat_id)
        return Disposition.HANDLED

    async def answer_reply_question(self, message: InboundMessage) -> Disposition:
        header = message.header
        replied = header.reply_to
        if await self.cooldown_gate.is_in_cooldown(header.chat_id, header.user_id):
            return await self._cooldown_notice(header)

        _, sent = await self._build_turn(message, store_images=False)
        parts: List[Dict[str, Any]] = []
        if replied is not None and replied.text:
            parts.append({"type": "text", "text": f"Quoted message:\n{replied.text}"})
        if replied is not None and replied.photo_file_id:
            image = await self.media_service.photo_data_url(replied.photo_file_id)
            if image is not None:
                parts.append({"type": "text", "text": "Quoted image:"})
                parts.append({"type": "image_url", "image_url": {"url": image}})
        if sent is not None:
            content = sent["content"]
            if isinstance(content, list):
                parts.extend(content)
            else:
                parts.append({"type": "text", "text": f"Question:\n{content}"})
        if not parts:
            await self.messenger.send(header.chat_id, replies.EMPTY_QUESTION, reply_to_id=header.message_id)
            return Disposition.HANDLED

        messages = [await self.prompt_store.system_message(), {"role": "user", "content": parts}]
        logger.info(f"Answering reply question from {header.user_id} in {header.chat_id}.")
        if await self._ask(header, messages) is None:
            return Disposition.ERROR
        await self.cooldown_gate.record_request(header.chat_id)
        return Disposition.HANDLED

    async def remember(self, message: InboundMessage) -> Disposition:
        """Store a plain group message as context for later questions, without replying."""
        if isinstance(message, DocumentMessage):
            return Disposition.IGNORED
        header = message.header
        remembered, _ = await self._build_turn(message, store_images=True)
        if remembered is None:
            return Disposition.IGNORED
        await self.context_store.append(header.chat_id, header.user_id, [remembered])
        return Disposition.HANDLED
