"""Client for the bridge's admin (provisioning) HTTP API."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

import requests

from feishubridge.auth import AuthScope

_ENV_PREFIX = "MATRIX_BRIDGE_FEISHU_PROVISIONING_"

_SCOPE_ENV_ORDER: dict[AuthScope, tuple[str, ...]] = {
    AuthScope.READ: ("READ_TOKEN", "WRITE_TOKEN", "DELETE_TOKEN", "ADMIN_TOKEN", "TOKEN"),
    AuthScope.WRITE: ("WRITE_TOKEN", "DELETE_TOKEN", "ADMIN_TOKEN", "TOKEN"),
    AuthScope.DELETE: ("DELETE_TOKEN", "ADMIN_TOKEN", "WRITE_TOKEN", "TOKEN"),
}


class AdminApiError(Exception):
    """An admin API call could not be made or returned a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def env_token_for_scope(
    scope: AuthScope, environ: Mapping[str, str] | None = None
) -> str | None:
    """The first provisioning token set in the environment that can grant ``scope``."""
    env = os.environ if environ is None else environ
    for suffix in _SCOPE_ENV_ORDER[AuthScope(scope)]:
        value = env.get(f"{_ENV_PREFIX}{suffix}")
        if value is not None:
            return value
    return None


def resolve_admin_access(
    default_base: str,
    fallback_token: str,
    admin_api: str | None = None,
    token: str | None = None,
    scope: AuthScope = AuthScope.READ,
    environ: Mapping[str, str] | None = None,
) -> tuple[str, str]:
    """Pick the admin API base URL and bearer token for a command.

    An explicit ``admin_api`` wins over ``default_base``; an explicit ``token``
    wins over the scope's environment variables, which win over ``fallback_token``.
    """
    base = admin_api if admin_api is not None else default_base
    chosen = token
    if chosen is None:
        chosen = env_token_for_scope(scope, environ)
    if chosen is None:
        chosen = fallback_token
    return base.rstrip("/"), chosen


def _status_text(status_code: int) -> str:
    try:
        return f"{status_code} {HTTPStatus(status_code).phrase}"
    except ValueError:
        return str(status_code)


def decode_api_response(status_code: int, body: str) -> Any:
    """Decode an API body as JSON, raising :class:`AdminApiError` on failure status.

    An empty body decodes to ``{}``; a body that is not JSON to ``{"raw": body}``.
    """
    if not body.strip():
        payload: Any = {}
    else:
        try:
            payload = json.loads(body)
        except ValueError:
            payload = {"raw": body}

    if not 200 <= status_code < 300:
        rendered = json.dumps(
            payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False
        )
        raise AdminApiError(
            f"API request failed: status={_status_text(status_code)} payload={rendered}",
            status_code=status_code,
            payload=payload,
        )
    return payload


class AdminClient:
    """Calls the admin API with a bearer token and returns decoded JSON."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._session = session or requests.Session()
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    def _get(self, url: str) -> Any:
        try:
            response = self._session.get(url, headers=self._headers(), timeout=self._timeout)
        except requests.RequestException as err:
            raise AdminApiError(f"GET request failed: {url}") from err
        return decode_api_response(response.status_code, response.text)

    def _post(self, url: str, body: Mapping[str, Any]) -> Any:
        try:
            response = self._session.post(
                url, headers=self._headers(), json=dict(body), timeout=self._timeout
            )
        except requests.RequestException as err:
            raise AdminApiError(f"POST request failed: {url}") from err
        return decode_api_response(response.status_code, response.text)

    def status(self) -> Any:
        """Runtime status of the bridge."""
        return self._get(f"{self.base_url}/status")

    def mappings(self, limit: int = 100, offset: int = 0) -> Any:
        """A page of Matrix <-> Feishu room mappings."""
        return self._get(
            f"{self.base_url}/mappings?limit={max(limit, 1)}&offset={max(offset, 0)}"
        )

    def replay(
        self,
        dead_letter_id: int | None = None,
        status: str | None = None,
        limit: int = 20,
    ) -> Any:
        """Replay one dead letter by id, or a batch filtered by status."""
        if dead_letter_id is not None:
            return self._post(f"{self.base_url}/dead-letters/{dead_letter_id}/replay", {})
        return self._post(
            f"{self.base_url}/dead-letters/replay",
            {"status": status, "limit": max(limit, 1)},
        )

    def cleanup_dead_letters(
        self,
        status: str | None = None,
        older_than_hours: int | None = None,
        limit: int = 200,
        dry_run: bool = False,
    ) -> Any:
        """Delete (or with ``dry_run`` only list) dead letters by status and age."""
        return self._post(
            f"{self.base_url}/dead-letters/cleanup",
            {
                "status": status,
                "older_than_hours": older_than_hours,
                "limit": max(limit, 1),
                "dry_run": dry_run,
            },
        )