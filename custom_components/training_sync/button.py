"""Button platform for Training Sync."""

from __future__ import annotations

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import TrainingSyncCoordinator
from .entity import device_info_from_entry


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    coordinator: TrainingSyncCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([SyncNowButton(entry, coordinator)])


class SyncNowButton(CoordinatorEntity[TrainingSyncCoordinator], ButtonEntity):
    """Pull, merge and push the user's data right away."""

    _attr_has_entity_name = True
    _attr_name = "Sync now"
    _attr_icon = "mdi:cloud-refresh"
    _attr_translation_key = "sync_now"

    def __init__(self, entry: ConfigEntry, coordinator: TrainingSyncCoordinator) -> None:
        super().__init__(coordinator)
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_sync_now"
        self._attr_device_info = device_info_from_entry(entry)

    @property
    def available(self) -> bool:
        return super().available and self.coordinator.signed_in and not self.coordinator.sync.status.is_syncing

    async def async_press(self) -> None:
        # Sync errors are HomeAssistantError subclasses and surface in the UI as-is.
        await self.coordinator.async_sync_now()
