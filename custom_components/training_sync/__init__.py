"""Training Sync integration."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EVENT_HOMEASSISTANT_STARTED, EVENT_HOMEASSISTANT_STOP
from homeassistant.core import Event, HomeAssistant

from .const import DOMAIN, PLATFORMS
from .coordinator import TrainingSyncCoordinator
from .services import async_register as async_register_services
from .websocket_api import async_register as async_register_ws

_LOGGER = logging.getLogger(__name__)


def _register_lifecycle_triggers(*, hass: HomeAssistant, entry: ConfigEntry, coordinator: TrainingSyncCoordinator) -> None:
    """Hook sync into Home Assistant's start/stop.

    An entry set up while Home Assistant is already running means the user just
    signed in (new entry or options change), so it gets the full login sync.
    At boot the entry was signed in before, so startup only pulls.
    """

    async def _on_started(_event: Event) -> None:
        await coordinator.async_sync_on_foreground()

    async def _on_stop(_event: Event) -> None:
        await coordinator.async_sync_before_exit()

    if hass.is_running:
        entry.async_create_background_task(
            hass,
            coordinator.async_sync_after_login(),
            f"{DOMAIN}_login_sync_{entry.entry_id}",
        )
    else:
        entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STARTED, _on_started))

    entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, _on_stop))


async def _async_register_domain_resources(hass: HomeAssistant) -> None:
    """Register domain-wide resources once."""
    hass.data.setdefault(DOMAIN, {})

    if not hass.data[DOMAIN].get("ws_registered"):
        async_register_ws(hass)
        hass.data[DOMAIN]["ws_registered"] = True

    if not hass.data[DOMAIN].get("services_registered"):
        await async_register_services(hass)
        hass.data[DOMAIN]["services_registered"] = True


async def async_setup(hass: HomeAssistant, _config: dict[str, Any]) -> bool:
    """Set up domain-level resources."""
    await _async_register_domain_resources(hass)
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up from a config entry."""
    await _async_register_domain_resources(hass)

    coordinator = TrainingSyncCoordinator(hass, entry)
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = coordinator
    _register_lifecycle_triggers(hass=hass, entry=entry, coordinator=coordinator)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))
    _LOGGER.debug("Setup complete for entry_id=%s (signed_in=%s)", entry.entry_id, coordinator.signed_in)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        coordinator: TrainingSyncCoordinator | None = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
        if coordinator is not None:
            await coordinator.async_shutdown_sync()
    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update (sign in/out, remote change) by reloading."""
    await hass.config_entries.async_reload(entry.entry_id)
