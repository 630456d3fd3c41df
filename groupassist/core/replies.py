# groupassist/core/replies.py
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
"""User-facing texts. All of them are sent with HTML parse mode."""

DENIED = "😅 Sorry! You are not allowed to use this bot."
NO_PERMISSION = "🚫 Sorry, you do not have permission to use this command."
UNKNOWN_COMMAND = "🤖 Unknown command. Send <code>/help@{bot_name}</code> to see what I can do."
UNSUPPORTED_CONTENT = (
    "😅 I can only read text, photos and text documents "
    "(<code>.txt</code>, <code>.md</code>, <code>.csv</code>, <code>.json</code>, <code>.log</code>)."
)
EMPTY_QUESTION = "🤔 What would you like to ask? Mention me together with your question."
AI_FAILURE = "😵 Sorry, I could not get an answer right now. Please try again later."

COOLDOWN_NOTICE = "⏳ This group is cooling down. Please try again in {seconds} seconds."
SEARCH_COOLDOWN_NOTICE = "⏳ Search is cooling down. Please try again in {seconds} seconds."
SEARCH_USAGE = "🔍 Usage: <code>/search@{bot_name} your query</code>"

CONTEXT_CLEARED = "✅ Your conversation context has been cleared."
GROUP_WHITELISTED = "✅ This group has been added to the whitelist."
GROUP_UNWHITELISTED = "✅ This group has been removed from the whitelist."
USER_BANNED = "✅ User <code>{user_id}</code> has been added to the blacklist."
USER_UNBANNED = "✅ User <code>{user_id}</code> has been removed from the blacklist."
USER_WHITELISTED = "✅ User <code>{user_id}</code> has been added to the whitelist."
USER_UNWHITELISTED = "✅ User <code>{user_id}</code> has been removed from the whitelist."
USER_ID_USAGE = "ℹ️ Usage: <code>/{command}@{bot_name} USER_ID</code>"
STORAGE_FAILURE = "❌ Could not save the change. Please try again later."

GROUP_INTRO = (
    "👋 Hi everyone! I am a group assistant backed by a generative AI model.\n\n"
    "🤖 Model: <code>{model_name}</code>\n\n"
    "✨ <b>What I can do</b>\n"
    "1. 💬 <b>Conversations</b>: mention <code>@{bot_name}</code> with a question, I remember recent turns.\n"
    "2. 🖼️ <b>Images</b>: attach a photo to your question.\n"
    "3. 📄 <b>Text files</b>: attach a .txt, .md, .csv, .json or .log file.\n"
    "4. 🗣️ <b>Follow-ups</b>: reply to my last answer to keep talking.\n"
    "5. 📝 <b>Quoting</b>: reply to any message and mention me to ask about it.\n"
    "6. 🔍 <b>Search</b>: <code>/search@{bot_name} query</code>\n"
    "7. 🧹 <b>Reset</b>: <code>/clear_user_context@{bot_name}</code> forgets our conversation.\n\n"
    "⏱️ Questions are rate limited per group.\n"
    "📮 Feedback about the bot: send me a private message."
)
PRIVATE_INTRO = (
    "👋 Hi! I answer questions in the groups I am added to.\n\n"
    "Messages you send me here are forwarded to the maintainers, "
    "so feel free to leave feedback about the bot."
)
HELP_HEADER = "🤖 Available commands:\n\n"
