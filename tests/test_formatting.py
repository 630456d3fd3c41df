from groupassist.utils.formatter import html_to_plain_text, markdown_to_telegram_html
from groupassist.utils.message_utils import get_text, strip_bot_mention
from groupassist.utils.text_splitter import split_text_into_chunks

from types import SimpleNamespace


def test_markdown_inline_markup():
    assert markdown_to_telegram_html("**bold** and *it* and ~~gone~~") == "<b>bold</b> and <i>it</i> and <s>gone</s>"


def test_markdown_escapes_html_outside_code():
    assert markdown_to_telegram_html("1 < 2 & 3 > 2") == "1 &lt; 2 &amp; 3 &gt; 2"


def test_code_is_escaped_and_left_unformatted():
    rendered = markdown_to_telegram_html("Run `a<b **x**`:\n```python\nprint('<hi>')\n```")
    assert "<code>a&lt;b **x**</code>" in rendered
    assert "<pre><code class=\"language-python\">print('&lt;hi&gt;')</code></pre>" in rendered


def test_links_headings_and_bullets():
    rendered = markdown_to_telegram_html("## Title\n- one\n- [docs](https://example.org/a)")
    assert rendered == '<b>Title</b>\n• one\n• <a href="https://example.org/a">docs</a>'


def test_inline_code_inside_link_text():
    rendered = markdown_to_telegram_html("See [`pip install`](https://pip.pypa.io) first")
    assert rendered == 'See <a href="https://pip.pypa.io"><code>pip install</code></a> first'
    assert "\x00" not in rendered


def test_blockquote():
    assert markdown_to_telegram_html("> quoted\nafter") == "<blockquote>quoted</blockquote>\nafter"


def test_html_to_plain_text():
    assert html_to_plain_text("<b>a</b><br/>b &lt;c&gt;") == "a\nb <c>"
    assert html_to_plain_text(None) == ""


def test_short_text_is_a_single_chunk():
    assert split_text_into_chunks("hello") == ["hello"]
    assert split_text_into_chunks("") == []


def test_long_text_splits_on_whitespace():
    text = " ".join(f"w{i:03d}" for i in range(100))
    chunks = split_text_into_chunks(text, max_chunk_size=50)
    assert all(len(c) <= 50 for c in chunks)
    assert " ".join(chunks).split() == text.split()


def test_overlong_word_is_hard_split():
    assert split_text_into_chunks("x" * 25, max_chunk_size=10) == ["x" * 10, "x" * 10, "x" * 5]


def test_code_fence_is_reopened_in_next_chunk():
    text = "```\n" + "\n".join(f"line {i}" for i in range(20)) + "\n```"
    chunks = split_text_into_chunks(text, max_chunk_size=60)
    assert len(chunks) > 1
    assert all(c.count("```") % 2 == 0 for c in chunks)
    assert chunks[1].startswith("```\n")


def test_strip_bot_mention_is_case_insensitive():
    assert strip_bot_mention("@assistbot  what   is up?", "AssistBot") == "what is up?"
    assert strip_bot_mention("hi @AssistBot2", "AssistBot") == "hi @AssistBot2"
    assert strip_bot_mention(None, "AssistBot") == ""


def test_get_text_prefers_text_then_caption():
    assert get_text(SimpleNamespace(text="t", caption="c")) == "t"
    assert get_text(SimpleNamespace(text=None, caption="c")) == "c"
    assert get_text(None) is None
