import re

import pytest

from feishubridge.util import (
    FeishuApiErrorFields,
    TtlCache,
    UidGenerator,
    build_trace_id,
    parse_feishu_api_error,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _localpart(mxid):
    return mxid[1:].split(":", 1)[0]


def test_generate_mxid_plain_id():
    gen = UidGenerator()
    assert gen.generate_mxid("ou_abc", "example.com") == "@feishu_ou_abc:example.com"


def test_generate_mxid_is_cached_and_stable():
    gen = UidGenerator()
    first = gen.generate_mxid("ou_abc", "example.com")
    second = gen.generate_mxid("ou_abc", "example.com")
    assert first == second
    other_domain = gen.generate_mxid("ou_abc", "example.org")
    assert _localpart(other_domain) == _localpart(first)
    assert other_domain.endswith(":example.org")


def test_generate_mxid_replaces_invalid_characters():
    gen = UidGenerator()
    localpart = _localpart(gen.generate_mxid("a b@c!d", "example.com"))
    assert re.fullmatch(r"[a-zA-Z0-9._-]+", localpart)
    assert localpart.startswith("feishu_")


def test_generate_mxid_numeric_prefix():
    gen = UidGenerator()
    localpart = _localpart(gen.generate_mxid("12345", "example.com"))
    rest = localpart[len("feishu_"):]
    assert rest.startswith("user_")
    assert rest.endswith("12345")


def test_generate_mxid_empty_becomes_unknown():
    gen = UidGenerator()
    assert _localpart(gen.generate_mxid("___", "example.com")) == "feishu_unknown"
    assert _localpart(gen.generate_mxid("", "example.com")) == "feishu_unknown"


def test_generate_mxid_truncates_long_ids():
    gen = UidGenerator()
    localpart = _localpart(gen.generate_mxid("x" * 200, "example.com"))
    assert len(localpart) == len("feishu_") + 64


def test_is_feishu_mxid():
    gen = UidGenerator()
    assert gen.is_feishu_mxid(gen.generate_mxid("ou_1", "example.com"))
    assert not gen.is_feishu_mxid("@alice:example.com")


def test_ttl_cache_get_and_expiry():
    clock = FakeClock()
    cache = TtlCache(10.0, 4, clock=clock)
    cache.insert("k", "v")
    assert cache.get("k") == "v"
    clock.now = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_ttl_cache_missing_key():
    cache = TtlCache(10.0, 4, clock=FakeClock())
    assert cache.get("missing") is None


def test_ttl_cache_evicts_oldest_when_full():
    clock = FakeClock()
    cache = TtlCache(10.0, 2, clock=clock)
    cache.insert("a", 1)
    clock.now = 1.0
    cache.insert("b", 2)
    clock.now = 2.0
    cache.insert("c", 3)
    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_ttl_cache_minimum_capacity_is_one():
    cache = TtlCache(10.0, 0, clock=FakeClock())
    cache.insert("a", 1)
    cache.insert("b", 2)
    assert len(cache) == 1
    assert cache.get("b") == 2


def test_ttl_cache_invalidate():
    cache = TtlCache(10.0, 4, clock=FakeClock())
    cache.insert("a", 1)
    cache.invalidate("a")
    cache.invalidate("never-there")
    assert cache.get("a") is None


def test_parse_feishu_api_error_with_fields():
    err = RuntimeError("feishu api error code=99991663, msg=token invalid retryable=true")
    fields = parse_feishu_api_error("send_message", err)
    assert fields == FeishuApiErrorFields(
        api="send_message", code="99991663", msg="token", retryable=True
    )


def test_parse_feishu_api_error_quoted_and_case_insensitive():
    fields = parse_feishu_api_error("api", 'code="230002" retryable=TRUE}')
    assert fields.code == "230002"
    assert fields.retryable is True


def test_parse_feishu_api_error_without_fields():
    message = "connection reset"
    fields = parse_feishu_api_error("api", ValueError(message))
    assert fields.code == "unknown"
    assert fields.msg == message
    assert fields.retryable is False


def test_parse_feishu_api_error_empty_value_falls_back():
    fields = parse_feishu_api_error("api", "code=, retryable=no")
    assert fields.code == "unknown"
    assert fields.retryable is False


def test_build_trace_id_shape_and_determinism():
    trace = build_trace_id("matrix_to_feishu", "$event", "om_1")
    assert trace.startswith("matrix_to_feishu-")
    suffix = trace[len("matrix_to_feishu-"):]
    assert re.fullmatch(r"[0-9a-f]{16}", suffix)
    assert trace == build_trace_id("matrix_to_feishu", "$event", "om_1")


def test_build_trace_id_none_equals_empty():
    assert build_trace_id("flow", None, None) == build_trace_id("flow", "", "")


@pytest.mark.parametrize(
    "other",
    [("flow", "$a", "om_2"), ("flow", "$b", "om_1"), ("other", "$a", "om_1")],
)
def test_build_trace_id_depends_on_inputs(other):
    assert build_trace_id("flow", "$a", "om_1") != build_trace_id(*other)
    assert build_trace_id(*other).startswith(other[0] + "-")