"""Local record store for Training Sync (.storage).

State model (schema v2), one record per logical key:
- settings: user preferences (None until first saved)
- trainingHistory: completed workouts, append-only
- customTrainings: user-authored workouts
- language: UI language code
- updated_at: last local write

The device id lives in its own install-wide store so every config entry on
this Home Assistant instance reports the same one.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import DOMAIN, STORAGE_KEY, STORAGE_VERSION
from .models import (
    DEFAULT_LANGUAGE,
    CustomTraining,
    TrainingHistoryEntry,
    UserSettings,
    UserState,
    migrate_settings,
    now_iso,
    parse_custom_trainings,
    parse_training_history,
)

_LOGGER = logging.getLogger(__name__)

_DEVICE_STORAGE_VERSION = 1
_DEVICE_STORAGE_KEY = f"{DOMAIN}.device"


class _TrainingSyncStorage(Store[dict[str, Any]]):
    """Store with schema migration for data written by older versions."""

    async def _async_migrate_func(
        self,
        old_major_version: int,
        old_minor_version: int,
        old_data: dict[str, Any],
    ) -> dict[str, Any]:
        data = dict(old_data or {})
        if old_major_version < 2:
            # v1 kept settings with the legacy isSynced flag.
            if isinstance(data.get("settings"), dict):
                data["settings"] = migrate_settings(data["settings"], old_major_version)
        _LOGGER.debug("Migrated local storage from v%s to v%s", old_major_version, STORAGE_VERSION)
        return data


class TrainingSyncStore:
    """Per-config-entry storage wrapper."""

    def __init__(self, hass: HomeAssistant, entry_id: str) -> None:
        self._store = _TrainingSyncStorage(hass, STORAGE_VERSION, f"{STORAGE_KEY}_{entry_id}")
        self._device_store: Store[dict[str, Any]] = Store(hass, _DEVICE_STORAGE_VERSION, _DEVICE_STORAGE_KEY)
        self._data: dict[str, Any] | None = None
        self._device_id: str | None = None

    async def _async_data(self) -> dict[str, Any]:
        if self._data is None:
            loaded = await self._store.async_load()
            self._data = loaded if isinstance(loaded, dict) else {}
            self._data.setdefault("settings", None)
            self._data.setdefault("trainingHistory", [])
            self._data.setdefault("customTrainings", [])
            self._data.setdefault("language", None)
        return self._data

    async def _async_put(self, key: str, value: Any) -> None:
        data = await self._async_data()
        data[key] = value
        data["updated_at"] = now_iso()
        await self._store.async_save(data)

    async def async_get_settings(self) -> UserSettings | None:
        raw = (await self._async_data()).get("settings")
        return UserSettings.from_dict(raw) if isinstance(raw, dict) else None

    async def async_save_settings(self, settings: UserSettings) -> None:
        await self._async_put("settings", settings.as_dict())

    async def async_get_training_history(self) -> list[TrainingHistoryEntry]:
        return parse_training_history((await self._async_data()).get("trainingHistory"))

    async def async_save_training_history(self, history: list[TrainingHistoryEntry]) -> None:
        await self._async_put("trainingHistory", [h.as_dict() for h in history])

    async def async_get_custom_trainings(self) -> list[CustomTraining]:
        return parse_custom_trainings((await self._async_data()).get("customTrainings"))

    async def async_save_custom_trainings(self, trainings: list[CustomTraining]) -> None:
        await self._async_put("customTrainings", [t.as_dict() for t in trainings])

    async def async_get_language(self) -> str | None:
        value = (await self._async_data()).get("language")
        return str(value) if value else None

    async def async_save_language(self, language: str) -> None:
        await self._async_put("language", str(language))

    async def async_get_device_id(self) -> str:
        """Return this installation's device id, creating it on first use."""
        if self._device_id:
            return self._device_id
        loaded = await self._device_store.async_load()
        device_id = str(loaded.get("device_id") or "").strip() if isinstance(loaded, dict) else ""
        if not device_id:
            device_id = str(uuid4())
            await self._device_store.async_save({"device_id": device_id, "created_at": now_iso()})
            _LOGGER.debug("Generated device id %s", device_id)
        self._device_id = device_id
        return device_id

    async def async_load_state(self) -> UserState:
        """Load the full user state, falling back to defaults for missing records."""
        settings = await self.async_get_settings() or UserSettings()
        language = await self.async_get_language() or settings.language or DEFAULT_LANGUAGE
        return UserState(
            settings=settings,
            custom_trainings=await self.async_get_custom_trainings(),
            training_history=await self.async_get_training_history(),
            language=language,
        )

    async def async_save_state(self, state: UserState) -> None:
        """Write every record in one storage flush."""
        data = await self._async_data()
        data["settings"] = state.settings.as_dict()
        data["customTrainings"] = [t.as_dict() for t in state.custom_trainings]
        data["trainingHistory"] = [h.as_dict() for h in state.training_history]
        data["language"] = state.language
        data["updated_at"] = now_iso()
        await self._store.async_save(data)
