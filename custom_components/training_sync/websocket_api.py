"""Websocket API for Training Sync."""

from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant.components import websocket_api
from homeassistant.core import HomeAssistant, callback

from .const import DOMAIN
from .exceptions import TrainingSyncError
from .ws_state import public_state, public_status


@websocket_api.websocket_command(
    {
        vol.Required("type"): "training_sync/get_state",
        vol.Required("entry_id"): str,
    }
)
@callback
def ws_get_state(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    entry_id = msg["entry_id"]
    coordinator = hass.data.get(DOMAIN, {}).get(entry_id)
    if coordinator is None:
        connection.send_error(msg["id"], "entry_not_found", f"No entry found for entry_id={entry_id}")
        return
    connection.send_result(msg["id"], public_state(coordinator.data, status=coordinator.sync.status))


@websocket_api.websocket_command(
    {
        vol.Required("type"): "training_sync/subscribe_status",
        vol.Required("entry_id"): str,
    }
)
@callback
def ws_subscribe_status(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    """Stream sync status changes (idle/syncing/error) to the settings UI."""
    entry_id = msg["entry_id"]
    coordinator = hass.data.get(DOMAIN, {}).get(entry_id)
    if coordinator is None:
        connection.send_error(msg["id"], "entry_not_found", f"No entry found for entry_id={entry_id}")
        return

    @callback
    def _forward_status() -> None:
        connection.send_message(websocket_api.event_message(msg["id"], public_status(coordinator.sync.status)))

    connection.subscriptions[msg["id"]] = coordinator.sync.async_add_listener(_forward_status)
    connection.send_result(msg["id"])
    _forward_status()


@websocket_api.websocket_command(
    {
        vol.Required("type"): "training_sync/sync_now",
        vol.Required("entry_id"): str,
    }
)
@websocket_api.async_response
async def ws_sync_now(
    hass: HomeAssistant,
    connection: websocket_api.ActiveConnection,
    msg: dict[str, Any],
) -> None:
    entry_id = msg["entry_id"]
    coordinator = hass.data.get(DOMAIN, {}).get(entry_id)
    if coordinator is None:
        connection.send_error(msg["id"], "entry_not_found", f"No entry found for entry_id={entry_id}")
        return
    try:
        state = await coordinator.async_sync_now()
    except TrainingSyncError as err:
        connection.send_error(msg["id"], "sync_failed", str(err))
        return
    connection.send_result(msg["id"], public_state(state, status=coordinator.sync.status))


def async_register(hass: HomeAssistant) -> None:
    websocket_api.async_register_command(hass, ws_get_state)
    websocket_api.async_register_command(hass, ws_subscribe_status)
    websocket_api.async_register_command(hass, ws_sync_now)
