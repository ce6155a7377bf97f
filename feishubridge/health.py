"""Payloads served by the health and readiness endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def health_payload() -> dict[str, Any]:
    """Liveness body: status and the current UTC time in RFC 3339."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def ready_payload() -> dict[str, Any]:
    """Readiness body."""
    return {"ready": True}