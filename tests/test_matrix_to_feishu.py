import json

import pytest

from feishubridge.matrix_to_feishu import (
    MessageType,
    convert_matrix_emoticons,
    convert_matrix_html_to_feishu,
    convert_matrix_markdown_to_feishu,
    convert_matrix_text_to_feishu,
    create_feishu_card_message,
    create_feishu_rich_text,
    create_feishu_text_message,
    extract_matrix_mentions,
    format_matrix_to_feishu,
)


def test_convert_matrix_text_to_feishu_strips_html_and_mentions():
    converted = convert_matrix_text_to_feishu("<b>@alice:example.com</b> says <i>hello</i>")
    assert "@alice" in converted
    assert "<b>" not in converted
    assert ":example.com" not in converted


def test_convert_matrix_text_simplifies_emphasis():
    assert convert_matrix_text_to_feishu("**bold** __under__") == "*bold* *under*"


def test_create_feishu_rich_text_extracts_mentions_and_links():
    parsed = json.loads(create_feishu_rich_text("@alice check https://example.com"))
    row = parsed["zh_cn"]["content"][0]
    tags = [item["tag"] for item in row]
    assert "at" in tags
    assert "a" in tags


def test_create_feishu_rich_text_structure():
    parsed = json.loads(create_feishu_rich_text("@@bob hi"))
    assert parsed["zh_cn"]["title"] == ""
    assert parsed["zh_cn"]["content"][0] == [
        {"tag": "at", "user_name": "bob"},
        {"tag": "text", "text": " "},
        {"tag": "text", "text": "hi"},
        {"tag": "text", "text": " "},
    ]


def test_create_feishu_rich_text_is_compact_with_sorted_keys():
    assert create_feishu_rich_text("hi") == (
        '{"zh_cn":{"content":[[{"tag":"text","text":"hi"},'
        '{"tag":"text","text":" "}]],"title":""}}'
    )


def test_create_feishu_rich_text_blank_content_keeps_original():
    parsed = json.loads(create_feishu_rich_text("   "))
    assert parsed["zh_cn"]["content"][0] == [{"tag": "text", "text": "   "}]


def test_lone_at_sign_is_plain_text():
    parsed = json.loads(create_feishu_rich_text("@"))
    assert parsed["zh_cn"]["content"][0][0] == {"tag": "text", "text": "@"}


def test_convert_matrix_html_to_feishu_keeps_link_text_and_url():
    html = '<p>Hello <a href="https://example.com">example</a></p>'
    assert "example (https//example.com)" in convert_matrix_html_to_feishu(html)


def test_convert_matrix_html_trims_lines_and_images():
    html = '<div>  one  </div><img src="mxc/x" alt="cat">'
    assert convert_matrix_html_to_feishu(html) == "one\n[Image cat]"


def test_convert_matrix_html_code_block():
    assert convert_matrix_html_to_feishu('<pre class="x">let a</pre>') == "```\nlet a\n```"


def test_extract_matrix_mentions_normalizes_matrix_user_ids():
    mentions = extract_matrix_mentions("ping @bob:example.com and @carol:example.net")
    assert mentions == "ping @bob and @carol"


def test_convert_matrix_emoticons_maps_common_unicode():
    assert convert_matrix_emoticons("Great 😊 👍") == "Great [微笑] [赞]"


def test_convert_matrix_emoticons_heart_and_fire():
    assert convert_matrix_emoticons("❤️🔥") == "[爱心][强]"


def test_markdown_conversion():
    assert convert_matrix_markdown_to_feishu("- item `code`") == "• item code"


def test_markdown_heading_order():
    assert convert_matrix_markdown_to_feishu("## Title") == "#Title"


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (MessageType.IMAGE, "[Image: pic]"),
        (MessageType.VIDEO, "[Video: pic]"),
        (MessageType.AUDIO, "[Audio: pic]"),
        (MessageType.FILE, "[File: pic]"),
        (MessageType.CARD, "[Card: pic]"),
        ("text", "pic"),
    ],
)
def test_format_matrix_to_feishu_placeholders(kind, expected):
    assert format_matrix_to_feishu(kind, "pic") == expected


def test_format_matrix_to_feishu_rich_text_is_json():
    parsed = json.loads(format_matrix_to_feishu(MessageType.RICH_TEXT, "hi"))
    assert parsed["zh_cn"]["content"][0][0] == {"tag": "text", "text": "hi"}


def test_format_matrix_to_feishu_unknown_type():
    with pytest.raises(ValueError):
        format_matrix_to_feishu("sticker", "x")


def test_message_builders():
    assert create_feishu_text_message("hi") == {"text": "hi"}
    card = create_feishu_card_message("T", "body")
    assert card["card"]["header"]["title"] == {"content": "T", "tag": "plain_text"}
    assert card["card"]["elements"][0]["text"] == {"content": "body", "tag": "lark_md"}
    assert card["card"]["config"] == {"wide_screen_mode": True}