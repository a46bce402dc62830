"""Public payload helpers shared by services and the websocket API."""

from __future__ import annotations

from typing import Any

from .models import UserState
from .sync import SyncStatus, format_time_since


def public_status(status: SyncStatus) -> dict[str, Any]:
    return {
        "state": status.state,
        "is_syncing": status.is_syncing,
        "last_synced_at": status.last_synced_at.isoformat() if status.last_synced_at else None,
        "time_since_sync": format_time_since(status.last_synced_at),
        "error": status.error,
    }


def public_state(state: UserState | None, *, status: SyncStatus | None = None) -> dict[str, Any]:
    """Return a stable public payload for the UI."""
    payload = state.as_dict() if isinstance(state, UserState) else {}
    if status is not None:
        payload["sync"] = public_status(status)
    return payload
