"""Token scopes and request identity for the provisioning API."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "
_ACTOR_TOKEN_SUFFIX_LEN = 6


class AuthScope(Enum):
    """Access levels; each level includes the ones below it."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"

    @property
    def rank(self) -> int:
        return _SCOPE_RANK[self]


_SCOPE_RANK = {AuthScope.READ: 1, AuthScope.WRITE: 2, AuthScope.DELETE: 3}


@dataclass(frozen=True)
class AuthContext:
    """Who made an authorised request, and with what scope."""

    actor: str
    actor_source: str
    request_id: str
    scope: AuthScope


class AuthError(Exception):
    """A request lacked a token or carried one that does not grant the scope."""

    status_code = 401

    def __init__(self, message: str, required_scope: AuthScope, request_id: str) -> None:
        super().__init__(message)
        self.message = message
        self.required_scope = required_scope
        self.request_id = request_id


def _header(headers: Mapping[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _trimmed_header(headers: Mapping[str, str], name: str) -> str | None:
    value = _header(headers, name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _query_int(query: Mapping[str, str], name: str) -> int | None:
    raw = query.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def scope_satisfies(granted: AuthScope, required: AuthScope) -> bool:
    """Whether ``granted`` is at least as strong as ``required``."""
    return granted.rank >= required.rank


def extract_access_token(
    headers: Mapping[str, str], query: Mapping[str, str]
) -> str | None:
    """Token from a ``Bearer`` Authorization header, else ``access_token`` query."""
    auth_header = _header(headers, "Authorization")
    if auth_header is not None and auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX):].strip()
    return query.get("access_token")


def resolve_actor(headers: Mapping[str, str], token: str) -> str:
    """The ``X-Actor`` header, or a label built from the token's tail."""
    actor = _trimmed_header(headers, "X-Actor")
    if actor is not None:
        return actor
    return f"token:{token[-_ACTOR_TOKEN_SUFFIX_LEN:]}"


def resolve_request_id(headers: Mapping[str, str]) -> str:
    """The ``X-Request-Id`` header, or a fresh random UUID."""
    request_id = _trimmed_header(headers, "X-Request-Id")
    if request_id is not None:
        return request_id
    return str(uuid.uuid4())


def resolve_actor_source(headers: Mapping[str, str], scope: AuthScope) -> str:
    """Where the request came from: explicit source, client IP, or token scope."""
    actor_source = _trimmed_header(headers, "X-Actor-Source")
    if actor_source is not None:
        return actor_source
    for name in ("X-Forwarded-For", "X-Real-Ip"):
        address = _trimmed_header(headers, name)
        if address is not None:
            return f"ip:{address}"
    return f"token_scope:{scope.value}"


def normalized_pagination(
    query: Mapping[str, str], default_limit: int
) -> tuple[int, int]:
    """``(limit, offset)`` from the query, clamped to ``limit >= 1``, ``offset >= 0``."""
    limit = _query_int(query, "limit")
    offset = _query_int(query, "offset")
    return (
        max(limit, 1) if limit is not None else max(default_limit, 1),
        max(offset, 0) if offset is not None else 0,
    )


@dataclass(frozen=True)
class ProvisioningAuth:
    """Checks provisioning requests against the read, write and delete tokens."""

    read_token: str
    write_token: str
    delete_token: str

    def scope_for_token(self, token: str) -> AuthScope | None:
        """The strongest scope ``token`` grants, or ``None`` if it grants none."""
        if token == self.delete_token:
            return AuthScope.DELETE
        if token == self.write_token:
            return AuthScope.WRITE
        if token == self.read_token:
            return AuthScope.READ
        return None

    def authorize(
        self,
        headers: Mapping[str, str],
        query: Mapping[str, str],
        required_scope: AuthScope,
    ) -> AuthContext:
        """Return the caller's context or raise :class:`AuthError`."""
        request_id = resolve_request_id(headers)
        token = extract_access_token(headers, query)
        if token is None:
            logger.warning(
                "Provisioning request missing auth token "
                "(required_scope=%s, request_id=%s)",
                required_scope.value,
                request_id,
            )
            raise AuthError("missing authorization token", required_scope, request_id)

        granted = self.scope_for_token(token)
        if granted is None or not scope_satisfies(granted, required_scope):
            logger.warning(
                "Provisioning request token mismatch (required_scope=%s, request_id=%s)",
                required_scope.value,
                request_id,
            )
            raise AuthError("invalid authorization token", required_scope, request_id)

        return AuthContext(
            actor=resolve_actor(headers, token),
            actor_source=resolve_actor_source(headers, granted),
            request_id=request_id,
            scope=granted,
        )