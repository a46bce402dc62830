"""Diagnostics support for Training Sync.

This file is picked up by Home Assistant automatically when present.
"""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_API_KEY, CONF_REMOTE_URL, CONF_USER_ID, DOMAIN
from .version import INTEGRATION_VERSION
from .ws_state import public_status

_REDACTED_KEYS = (CONF_API_KEY, CONF_USER_ID)


def _redact(value: Any) -> Any:
    if value is None:
        return None
    raw = str(value)
    if not raw:
        return ""
    if len(raw) <= 4:
        return "***"
    return f"{raw[:2]}***{raw[-2:]}"


def _redacted(mapping: Any) -> dict[str, Any]:
    out = dict(mapping or {})
    for key in _REDACTED_KEYS:
        if key in out:
            out[key] = _redact(out.get(key))
    return out


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant,
    entry: ConfigEntry,
) -> dict[str, Any]:
    """Return diagnostics for a config entry (with sensitive data redacted)."""
    coordinator = hass.data.get(DOMAIN, {}).get(entry.entry_id)

    payload: dict[str, Any] = {
        "entry": {
            "entry_id": entry.entry_id,
            "title": entry.title,
            "version": entry.version,
            "integration_version": INTEGRATION_VERSION,
            "data": _redacted(entry.data),
            "options": _redacted(entry.options),
        },
        "runtime": {
            "remote_configured": bool(
                (entry.options.get(CONF_REMOTE_URL) or entry.data.get(CONF_REMOTE_URL) or "").strip()
            ),
        },
    }

    if coordinator is not None:
        data = coordinator.data
        payload["coordinator"] = {
            "last_update_success": bool(getattr(coordinator, "last_update_success", False)),
            "last_exception": repr(getattr(coordinator, "last_exception", None)),
            "signed_in": coordinator.signed_in,
            "sync_enabled": coordinator.sync_enabled,
            "device_id": await coordinator.store.async_get_device_id(),
            "sync": public_status(coordinator.sync.status),
            "pending_push": coordinator.sync.has_pending_push,
            # Counts only; workout data is personal.
            "counts": {
                "custom_trainings": len(data.custom_trainings) if data is not None else 0,
                "training_history": len(data.training_history) if data is not None else 0,
            },
        }

    return payload
