"""Request and response models for the provisioning API, with the logic behind them."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

DEFAULT_CLEANUP_LIMIT = 200


def _load_object(body: Mapping[str, Any] | str | bytes) -> Mapping[str, Any]:
    if isinstance(body, (str, bytes, bytearray)):
        body = json.loads(body)
    if not isinstance(body, Mapping):
        raise ValueError("request body must be a JSON object")
    return body


def _required_str(data: Mapping[str, Any], name: str) -> str:
    if name not in data:
        raise ValueError(f"missing field `{name}`")
    value = data[name]
    if not isinstance(value, str):
        raise ValueError(f"field `{name}` must be a string")
    return value


def _optional_str(data: Mapping[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"field `{name}` must be a string")
    return value


def _optional_int(data: Mapping[str, Any], name: str) -> int | None:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field `{name}` must be an integer")
    return value


def _optional_bool(data: Mapping[str, Any], name: str) -> bool | None:
    value = data.get(name)
    if value is not None and not isinstance(value, bool):
        raise ValueError(f"field `{name}` must be a boolean")
    return value


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item[name]
    return getattr(item, name)


@dataclass(frozen=True)
class BridgeRequest:
    """A request to bridge a Matrix room with a Feishu chat."""

    matrix_room_id: str
    feishu_chat_id: str
    requestor: str


@dataclass(frozen=True)
class BridgeResponse:
    """Outcome of a bridge create or delete call."""

    success: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}


@dataclass(frozen=True)
class DeadLetterStatusSummary:
    """Dead-letter counts by status."""

    pending: int
    failed: int
    replayed: int
    total: int

    def to_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "failed": self.failed,
            "replayed": self.replayed,
            "total": self.total,
        }


@dataclass(frozen=True)
class ReplayDeadLetterFailure:
    """A dead letter that could not be replayed, and why."""

    id: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "error": self.error}


@dataclass(frozen=True)
class ReplayDeadLettersResult:
    """Summary of a batch replay."""

    requested: int
    replayed: int
    failures: list[ReplayDeadLetterFailure] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def status_code(self) -> int:
        """HTTP status the API answers with: 200 when all replays succeeded, else 400."""
        return 200 if self.success else 400

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "requested": self.requested,
            "replayed": self.replayed,
            "failed": self.failed,
            "failures": [failure.to_dict() for failure in self.failures],
        }


@dataclass(frozen=True)
class DeadLetterCleanupRequest:
    """A normalised dead-letter cleanup request."""

    status: str | None = None
    older_than_hours: int | None = None
    limit: int = DEFAULT_CLEANUP_LIMIT
    dry_run: bool = False


@dataclass(frozen=True)
class DeadLetterCleanupResponse:
    """Outcome of a dead-letter cleanup, real or dry run."""

    success: bool
    status: str | None
    older_than_hours: int | None
    limit: int
    dry_run: bool
    matched: int
    deleted: int
    candidate_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "status": self.status,
            "older_than_hours": self.older_than_hours,
            "limit": self.limit,
            "dry_run": self.dry_run,
            "matched": self.matched,
            "deleted": self.deleted,
            "candidate_ids": list(self.candidate_ids),
        }


def parse_bridge_request(body: Mapping[str, Any] | str | bytes) -> BridgeRequest:
    """Parse a bridge request body; raise ``ValueError`` if it is malformed."""
    data = _load_object(body)
    return BridgeRequest(
        matrix_room_id=_required_str(data, "matrix_room_id"),
        feishu_chat_id=_required_str(data, "feishu_chat_id"),
        requestor=_required_str(data, "requestor"),
    )


def parse_cleanup_request(body: Mapping[str, Any] | str | bytes) -> DeadLetterCleanupRequest:
    """Parse and normalise a cleanup body; raise ``ValueError`` if it is malformed.

    Non-positive ``older_than_hours`` is dropped, ``limit`` defaults to 200 and is
    at least 1, and ``dry_run`` defaults to false.
    """
    data = _load_object(body)
    status = _optional_str(data, "status")
    older_than_hours = _optional_int(data, "older_than_hours")
    if older_than_hours is not None and older_than_hours <= 0:
        older_than_hours = None
    limit = _optional_int(data, "limit")
    dry_run = _optional_bool(data, "dry_run")
    return DeadLetterCleanupRequest(
        status=status,
        older_than_hours=older_than_hours,
        limit=max(DEFAULT_CLEANUP_LIMIT if limit is None else limit, 1),
        dry_run=bool(dry_run),
    )


def cleanup_boundary(older_than_hours: int | None, now: datetime) -> datetime | None:
    """The instant before which dead letters count as old, or ``None`` for no bound."""
    if older_than_hours is None or older_than_hours <= 0:
        return None
    return now - timedelta(hours=older_than_hours)


def select_cleanup_candidates(
    items: Iterable[Any], older_than: datetime | None
) -> list[int]:
    """Ids of dead letters last updated before ``older_than`` (all when ``None``).

    Items may be mappings or objects with ``id`` and ``updated_at``.
    """
    return [
        _field(item, "id")
        for item in items
        if older_than is None or _field(item, "updated_at") < older_than
    ]


def replay_batch(ids: Iterable[int], replay: Callable[[int], Any]) -> ReplayDeadLettersResult:
    """Replay each id in order, collecting failures instead of stopping on them."""
    requested = 0
    replayed = 0
    failures: list[ReplayDeadLetterFailure] = []
    for dead_letter_id in ids:
        requested += 1
        try:
            replay(dead_letter_id)
        except Exception as err:  # noqa: BLE001 - every failure is reported back
            failures.append(ReplayDeadLetterFailure(id=dead_letter_id, error=str(err)))
        else:
            replayed += 1
    return ReplayDeadLettersResult(requested=requested, replayed=replayed, failures=failures)