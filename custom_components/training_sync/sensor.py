"""Sensor platform for Training Sync."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN, STATUS_CHOICES
from .coordinator import TrainingSyncCoordinator
from .entity import device_info_from_entry
from .sync import format_time_since


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    coordinator: TrainingSyncCoordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(
        [
            SyncStatusSensor(entry, coordinator),
            LastSyncedSensor(entry, coordinator),
            CompletedWorkoutsSensor(entry, coordinator),
        ]
    )


class _TrainingSyncSensor(CoordinatorEntity[TrainingSyncCoordinator], SensorEntity):
    _attr_has_entity_name = True

    def __init__(self, entry: ConfigEntry, coordinator: TrainingSyncCoordinator, key: str) -> None:
        super().__init__(coordinator)
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_{key}"
        self._attr_translation_key = key
        self._attr_device_info = device_info_from_entry(entry)


class SyncStatusSensor(_TrainingSyncSensor):
    """idle | syncing | error, with the time since the last successful sync."""

    _attr_name = "Sync status"
    _attr_icon = "mdi:cloud-sync"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = STATUS_CHOICES

    def __init__(self, entry: ConfigEntry, coordinator: TrainingSyncCoordinator) -> None:
        super().__init__(entry, coordinator, "sync_status")

    @property
    def native_value(self) -> str:
        return self.coordinator.sync.status.state

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        status = self.coordinator.sync.status
        return {
            "signed_in": self.coordinator.signed_in,
            "sync_enabled": self.coordinator.sync_enabled,
            "is_syncing": status.is_syncing,
            "error": status.error,
            "time_since_sync": format_time_since(status.last_synced_at),
            "pending_push": self.coordinator.sync.has_pending_push,
        }


class LastSyncedSensor(_TrainingSyncSensor):
    _attr_name = "Last synced"
    _attr_icon = "mdi:cloud-check"
    _attr_device_class = SensorDeviceClass.TIMESTAMP

    def __init__(self, entry: ConfigEntry, coordinator: TrainingSyncCoordinator) -> None:
        super().__init__(entry, coordinator, "last_synced")

    @property
    def native_value(self) -> datetime | None:
        return self.coordinator.sync.status.last_synced_at


class CompletedWorkoutsSensor(_TrainingSyncSensor):
    _attr_name = "Completed workouts"
    _attr_icon = "mdi:human-handsup"

    def __init__(self, entry: ConfigEntry, coordinator: TrainingSyncCoordinator) -> None:
        super().__init__(entry, coordinator, "completed_workouts")

    @property
    def native_value(self) -> int:
        data = self.coordinator.data
        return len(data.training_history) if data is not None else 0

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data
        if data is None or not data.training_history:
            return {"custom_trainings": len(data.custom_trainings) if data is not None else 0}
        last = data.training_history[-1]
        return {
            "custom_trainings": len(data.custom_trainings),
            "last_workout": last.training_name,
            "last_workout_date": last.date,
        }
