# groupassist/utils/text_splitter.py
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
"""Splitting of long model replies into Telegram-sized messages."""

from __future__ import annotations

from typing import List
import re

# Telegram allows 4096 characters; the margin leaves room for the HTML tags
# added when each chunk is formatted.
MAX_REPLY_CHUNK_LENGTH = 4000


def split_text_into_chunks(text: str, max_chunk_size: int = MAX_REPLY_CHUNK_LENGTH) -> List[str]:
    """Split *text* into chunks of at most *max_chunk_size* characters.

    Lines are kept whole where possible, then words; a single word longer
    than the limit is hard split. Fenced code blocks are closed at the end of
    a chunk and reopened at the start of the next so each chunk renders on
    its own.
    """
    if not text:
        return []
    if len(text) <= max_chunk_size:
        return [text]

    chunks: List[str] = []
    current = ""
    for token in re.split(r"(\s+)", text):
        if len(current) + len(token) <= max_chunk_size:
            current += token
            continue
        if current.strip():
            chunks.append(current.rstrip())
        current = token.lstrip()
        while len(current) > max_chunk_size:
            chunks.append(current[:max_chunk_size])
            current = current[max_chunk_size:]
    if current.strip():
        chunks.append(current.rstrip())
    return _balance_code_fences(chunks)


def _balance_code_fences(chunks: List[str]) -> List[str]:
    balanced: List[str] = []
    carry_open = False
    for chunk in chunks:
        if carry_open:
            chunk = "```\n" + chunk
        carry_open = chunk.count("```") % 2 == 1
        if carry_open:
            chunk = chunk + "\n```"
        balanced.append(chunk)
    return balanced
