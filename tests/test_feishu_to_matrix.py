from feishubridge.feishu_to_matrix import (
    convert_feishu_content_to_matrix_html,
    convert_feishu_emoticons,
    extract_links_from_rich_text,
    extract_mentions_from_rich_text,
)

RICH = {
    "title": None,
    "content": [
        {
            "segment_type": "mention",
            "content": {
                "text": None,
                "link": None,
                "mention": {"user_id": "ou_123", "chat_id": None, "name": "alice"},
                "image": None,
            },
        },
        {
            "segment_type": "link",
            "content": {
                "text": None,
                "link": "https://example.com",
                "mention": None,
                "image": None,
            },
        },
    ],
}


def test_extract_mentions_and_links_from_rich_text():
    assert extract_mentions_from_rich_text(RICH) == ["ou_123"]
    assert extract_links_from_rich_text(RICH) == ["https://example.com"]


def test_mentions_without_user_id_are_skipped():
    rich = {
        "content": [
            {"segment_type": "mention", "content": {"mention": {"chat_id": "oc_1", "name": "g"}}},
            {"segment_type": "text", "content": {"text": "hi"}},
        ]
    }
    assert extract_mentions_from_rich_text(rich) == []
    assert extract_links_from_rich_text(rich) == []


def test_convert_feishu_emoticons_to_unicode():
    assert convert_feishu_emoticons("[微笑] [赞]") == "😊 👍"


def test_convert_feishu_emoticons_strong_and_heart():
    assert convert_feishu_emoticons("[强][爱心][加油]") == "💪❤️💪"


def test_convert_feishu_content_hash():
    assert convert_feishu_content_to_matrix_html("a#b") == (
        '<message>a<font color="<font color="#ff6347">#</font>ff6347">#</font>b</message>'
    )


def test_convert_feishu_content_plain_is_wrapped():
    assert convert_feishu_content_to_matrix_html("hello") == "<message>hello</message>"


def test_convert_feishu_content_mention_is_highlighted():
    result = convert_feishu_content_to_matrix_html("@bob")
    assert result.startswith("<message><font color=")
    assert result.endswith("@</font>bob</message>")
    assert result.count("@") == 1