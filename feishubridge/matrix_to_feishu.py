"""Conversion of Matrix message content into Feishu-compatible payloads."""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

_HTML_FORMAT_TAGS = ("b", "i", "u", "s", "code", "pre")

_MATRIX_MENTION = re.compile(r"@([a-zA-Z0-9._%+-]+):[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
_HTML_LINK = re.compile(r'<a[^>]+href="([^"]+)"[^>]*>([^<]+)</a>')
_HTML_IMAGE = re.compile(r'<img[^>]+src="([^"]+)"[^>]+alt="([^"]*)"[^>]*>')
_HTML_CODE = re.compile(r"<code[^>]*>([^<]+)</code>")
_HTML_PRE = re.compile(r"<pre[^>]*>([^<]+)</pre>")

_HTML_REPLACEMENTS = (
    ("<p>", ""),
    ("</p>", "\n"),
    ("<br>", "\n"),
    ("<br/>", "\n"),
    ("<div>", ""),
    ("</div>", "\n"),
    ("<span>", ""),
    ("</span>", ""),
    ("<strong>", ""),
    ("</strong>", ""),
    ("<em>", ""),
    ("</em>", ""),
    ("<b>", ""),
    ("</b>", ""),
    ("<i>", ""),
    ("</i>", ""),
    ("<u>", ""),
    ("</u>", ""),
    ("<s>", ""),
    ("</s>", ""),
    ("<del>", ""),
    ("</del>", ""),
)

_EMOTICONS = (
    ("😊", "[微笑]"),
    ("😄", "[哈哈]"),
    ("👍", "[赞]"),
    ("🤝", "[握手]"),
    ("🙏", "[抱拳]"),
    ("💪", "[加油]"),
    ("🎉", "[庆祝]"),
    ("💐", "[鲜花]"),
    ("❤️", "[爱心]"),
    ("🔥", "[强]"),
)


class MessageType(Enum):
    """Kinds of message the bridge carries."""

    TEXT = "text"
    MARKDOWN = "markdown"
    RICH_TEXT = "rich_text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    CARD = "card"


_PLACEHOLDER_LABELS = {
    MessageType.IMAGE: "Image",
    MessageType.VIDEO: "Video",
    MessageType.AUDIO: "Audio",
    MessageType.FILE: "File",
    MessageType.CARD: "Card",
}


def format_matrix_to_feishu(msg_type: MessageType | str, content: str) -> str:
    """Render Matrix message content as the text sent to Feishu."""
    kind = MessageType(msg_type)
    if kind is MessageType.TEXT:
        return convert_matrix_text_to_feishu(content)
    if kind is MessageType.MARKDOWN:
        return convert_matrix_markdown_to_feishu(content)
    if kind is MessageType.RICH_TEXT:
        return create_feishu_rich_text(content)
    return f"[{_PLACEHOLDER_LABELS[kind]}: {content}]"


def convert_matrix_text_to_feishu(content: str) -> str:
    """Strip inline HTML, simplify emphasis and shorten Matrix mentions."""
    converted = content
    for tag in _HTML_FORMAT_TAGS:
        converted = converted.replace(f"<{tag}>", "").replace(f"</{tag}>", "")
    converted = converted.replace("**", "*").replace("__", "*").replace(":", "")
    return extract_matrix_mentions(converted)


def convert_matrix_markdown_to_feishu(content: str) -> str:
    """Flatten Markdown syntax into plain Feishu text."""
    converted = content
    for old, new in (
        ("# ", ""),
        ("## ", ""),
        ("### ", ""),
        ("- ", "• "),
        ("* ", "• "),
        ("**", ""),
        ("__", ""),
        ("`", ""),
    ):
        converted = converted.replace(old, new)
    return convert_matrix_text_to_feishu(converted)


def _rich_text_segments(token: str) -> list[dict[str, str]]:
    if token.startswith("@") and len(token) > 1:
        head = {"tag": "at", "user_name": token.lstrip("@")}
    elif token.startswith(("http://", "https://")):
        head = {"tag": "a", "text": token, "href": token}
    else:
        head = {"tag": "text", "text": token}
    return [head, {"tag": "text", "text": " "}]


def create_feishu_rich_text(content: str) -> str:
    """Build a Feishu ``post`` payload with mentions and links picked out."""
    row = [segment for token in content.split() for segment in _rich_text_segments(token)]
    if not row:
        row = [{"tag": "text", "text": content}]
    payload = {"zh_cn": {"title": "", "content": [row]}}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, sort_keys=True)


def extract_matrix_mentions(content: str) -> str:
    """Replace full Matrix user ids (``@user:server.tld``) with ``@user``."""
    return _MATRIX_MENTION.sub(r"@\1", content)


def _lines(text: str) -> list[str]:
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def convert_matrix_html_to_feishu(html: str) -> str:
    """Reduce Matrix HTML to plain text suitable for Feishu."""
    result = html
    for old, new in _HTML_REPLACEMENTS:
        result = result.replace(old, new)
    result = _HTML_LINK.sub(r"\2 (\1)", result)
    result = _HTML_IMAGE.sub(r"[Image: \2]", result)
    result = _HTML_CODE.sub(r"`\1`", result)
    result = _HTML_PRE.sub("```\n\\1\n```", result)
    result = "\n".join(line.strip() for line in _lines(result))
    return convert_matrix_text_to_feishu(result)


def convert_matrix_emoticons(content: str) -> str:
    """Replace common Unicode emoji with Feishu emoticon codes."""
    for emoji, code in _EMOTICONS:
        content = content.replace(emoji, code)
    return content


def create_feishu_text_message(content: str) -> dict[str, Any]:
    """A Feishu ``text`` message body."""
    return {"text": content}


def create_feishu_card_message(title: str, content: str) -> dict[str, Any]:
    """A Feishu interactive card with a plain title and a Markdown body."""
    return {
        "card": {
            "config": {"wide_screen_mode": True},
            "elements": [
                {
                    "tag": "div",
                    "text": {"content": content, "tag": "lark_md"},
                }
            ],
            "header": {"title": {"content": title, "tag": "plain_text"}},
        }
    }