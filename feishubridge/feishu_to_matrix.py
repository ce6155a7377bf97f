"""Conversion of Feishu message content for delivery to Matrix.

Rich text is taken in its JSON form: a mapping whose ``content`` is a list of
elements, each with a ``segment_type`` and a ``content`` mapping that may hold
``text``, ``link`` or ``mention`` (``user_id``, ``chat_id``, ``name``).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

_EMOTICONS = (
    ("[微笑]", "😊"),
    ("[哈哈]", "😄"),
    ("[赞]", "👍"),
    ("[握手]", "🤝"),
    ("[抱拳]", "🙏"),
    ("[加油]", "💪"),
    ("[庆祝]", "🎉"),
    ("[鲜花]", "💐"),
    ("[爱心]", "❤️"),
    ("[强]", "💪"),
)


def convert_feishu_content_to_matrix_html(content: str) -> str:
    """Highlight ``@`` and ``#`` markers and wrap the result for Matrix."""
    html = content.replace("@", '<font color="#2e8b57">@</font>')
    html = html.replace("#", '<font color="#ff6347">#</font>')
    return f"<message>{html}</message>"


def _segments(rich_text: Mapping[str, Any], segment_type: str) -> Iterator[Mapping[str, Any]]:
    for element in rich_text.get("content") or ():
        if element.get("segment_type") == segment_type:
            yield element.get("content") or {}


def extract_mentions_from_rich_text(rich_text: Mapping[str, Any]) -> list[str]:
    """User ids of every mention segment that names a user."""
    mentions = []
    for content in _segments(rich_text, "mention"):
        mention = content.get("mention")
        if mention and mention.get("user_id") is not None:
            mentions.append(mention["user_id"])
    return mentions


def extract_links_from_rich_text(rich_text: Mapping[str, Any]) -> list[str]:
    """Targets of every link segment."""
    return [
        content["link"]
        for content in _segments(rich_text, "link")
        if content.get("link") is not None
    ]


def convert_feishu_emoticons(content: str) -> str:
    """Replace Feishu emoticon codes with Unicode emoji."""
    for code, emoji in _EMOTICONS:
        content = content.replace(code, emoji)
    return content