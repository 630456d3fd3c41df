# groupassist/utils/formatter.py
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
"""Conversion of model Markdown into the HTML subset Telegram accepts."""

from __future__ import annotations

import html
import re
from typing import List

_FENCE_RE = re.compile(r"```[ \t]*([\w+#.-]*)[ \t]*\n?(.*?)```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_LINK_RE = re.compile(r"\[([^\]\n]+)\]\((https?://[^)\s]+)\)")
_HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__", re.DOTALL)
_ITALIC_RE = re.compile(r"(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])|(?<![\w_])_(?!\s)([^_\n]+?)(?<!\s)_(?![\w_])")
_STRIKE_RE = re.compile(r"~~(.+?)~~", re.DOTALL)
_SPOILER_RE = re.compile(r"\|\|(.+?)\|\|", re.DOTALL)
_BULLET_RE = re.compile(r"^(\s*)[*-]\s+", re.MULTILINE)
_TAG_RE = re.compile(r"<[^>]+>")

_PLACEHOLDER = "\x00{}\x00"


def markdown_to_telegram_html(text: str | None) -> str:
    """Render Markdown produced by the model as Telegram HTML.

    Code spans and blocks are escaped and protected first so that Markdown
    markers inside code are left alone. Everything else is HTML-escaped before
    inline markup is converted to tags.
    """
    if not text:
        return ""

    protected: List[str] = []

    def protect(fragment: str) -> str:
        protected.append(fragment)
        return _PLACEHOLDER.format(len(protected) - 1)

    def fence(match: re.Match[str]) -> str:
        lang, body = match.group(1), match.group(2).rstrip("\n")
        body = html.escape(body, quote=False)
        if lang:
            return protect(f'<pre><code class="language-{html.escape(lang)}">{body}</code></pre>')
        return protect(f"<pre>{body}</pre>")

    text = _FENCE_RE.sub(fence, text)
    text = _INLINE_CODE_RE.sub(lambda m: protect(f"<code>{html.escape(m.group(1), quote=False)}</code>"), text)
    text = _LINK_RE.sub(
        lambda m: protect(f'<a href="{html.escape(m.group(2))}">{html.escape(m.group(1), quote=False)}</a>'),
        text,
    )

    text = html.escape(text, quote=False)
    text = _HEADING_RE.sub(r"<b>\1</b>", text)
    text = _BOLD_RE.sub(lambda m: f"<b>{m.group(1) or m.group(2)}</b>", text)
    text = _STRIKE_RE.sub(r"<s>\1</s>", text)
    text = _SPOILER_RE.sub(r"<tg-spoiler>\1</tg-spoiler>", text)
    text = _BULLET_RE.sub(r"\1• ", text)
    text = _ITALIC_RE.sub(lambda m: f"<i>{m.group(1) or m.group(2)}</i>", text)
    text = _blockquotes(text)

    # later fragments can contain earlier placeholders, e.g. inline code inside link text
    for index, fragment in reversed(list(enumerate(protected))):
        text = text.replace(_PLACEHOLDER.format(index), fragment)
    return text.strip()


def _blockquotes(text: str) -> str:
    # "&gt;" because the text is already escaped at this point
    out: List[str] = []
    quote: List[str] = []
    for line in text.split("\n"):
        if line.startswith("&gt; ") or line == "&gt;":
            quote.append(line[5:])
            continue
        if quote:
            out.append("<blockquote>" + "\n".join(quote) + "</blockquote>")
            quote = []
        out.append(line)
    if quote:
        out.append("<blockquote>" + "\n".join(quote) + "</blockquote>")
    return "\n".join(out)


def html_to_plain_text(text: str | None) -> str:
    """Strip tags and unescape entities; used when Telegram rejects the HTML."""
    if not text:
        return ""
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.IGNORECASE)
    return html.unescape(_TAG_RE.sub("", text))
