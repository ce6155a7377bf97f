"""Identifier generation, a small TTL cache and Feishu API error parsing."""

from __future__ import annotations

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MAX_LOCALPART_LEN = 64
_INVALID_USERNAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


class UidGenerator:
    """Maps Feishu user ids onto stable Matrix user ids for puppets."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}

    def generate_mxid(self, feishu_id: str, domain: str) -> str:
        """Return the puppet MXID for ``feishu_id`` on ``domain``."""
        localpart = self._cache.get(feishu_id)
        if localpart is None:
            localpart = f"feishu_{self._sanitize_username(feishu_id)}"
            self._cache[feishu_id] = localpart
        return f"@{localpart}:{domain}"

    @staticmethod
    def _sanitize_username(username: str) -> str:
        result = _INVALID_USERNAME_CHARS.sub("_", username)
        result = result.strip("_").strip(".")
        if result and result[0].isdigit():
            result = f"user_{result}"
        result = result[:_MAX_LOCALPART_LEN]
        return result or "unknown"

    def is_feishu_mxid(self, mxid: str) -> bool:
        """Whether ``mxid`` belongs to a puppet created by this generator."""
        return mxid.startswith("@feishu_")


@dataclass(frozen=True)
class FeishuApiErrorFields:
    """Structured fields pulled out of a Feishu API error message."""

    api: str
    code: str
    msg: str
    retryable: bool


@dataclass
class _TtlEntry(Generic[V]):
    value: V
    expires_at: float


class TtlCache(Generic[K, V]):
    """A bounded mapping whose entries expire ``ttl`` seconds after insertion."""

    def __init__(
        self,
        ttl: float,
        max_entries: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[K, _TtlEntry[V]] = {}
        self._ttl = ttl
        self._max_entries = max(max_entries, 1)
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        """Return the live value for ``key``, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is not None and self._clock() < entry.expires_at:
            return entry.value
        self._entries.pop(key, None)
        return None

    def insert(self, key: K, value: V) -> None:
        """Store ``value``, evicting the entry closest to expiry when full."""
        if len(self._entries) >= self._max_entries:
            self._remove_oldest_entry()
        self._entries[key] = _TtlEntry(value, self._clock() + self._ttl)

    def invalidate(self, key: K) -> None:
        """Forget ``key`` if present."""
        self._entries.pop(key, None)

    def _remove_oldest_entry(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda k: self._entries[k].expires_at)
        del self._entries[oldest]


def _capture_error_field(message: str, marker: str) -> str | None:
    start = message.find(marker)
    if start < 0:
        return None
    trimmed = message[start + len(marker):].lstrip()
    match = re.search(r"[ ,}]", trimmed)
    end = match.start() if match else len(trimmed)
    raw = trimmed[:end].strip('"').strip()
    return raw or None


def parse_feishu_api_error(api: str, err: object) -> FeishuApiErrorFields:
    """Extract ``code=``, ``msg=`` and ``retryable=`` fields from an error."""
    message = str(err)
    code = _capture_error_field(message, "code=") or "unknown"
    msg = _capture_error_field(message, "msg=") or message
    retryable_raw = _capture_error_field(message, "retryable=")
    retryable = retryable_raw is not None and retryable_raw.lower() == "true"
    return FeishuApiErrorFields(api=api, code=code, msg=msg, retryable=retryable)


def build_trace_id(
    flow: str,
    matrix_event_id: str | None = None,
    feishu_message_id: str | None = None,
) -> str:
    """Build a deterministic trace id for a bridge flow and its event ids."""
    hasher = hashlib.sha256()
    hasher.update(flow.encode())
    hasher.update((matrix_event_id or "").encode())
    hasher.update((feishu_message_id or "").encode())
    return f"{flow}-{hasher.hexdigest()[:16]}"