"""Services for Training Sync."""

from __future__ import annotations

from typing import Any

import voluptuous as vol

from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse

from .const import DOMAIN, UNIT_SYSTEM_CHOICES
from .models import (
    CustomTraining,
    Exercise,
    HistoryExercise,
    TrainingHistoryEntry,
    new_id,
    now_iso,
)
from .ws_state import public_state

SERVICE_SYNC_NOW = "sync_now"
SERVICE_GET_STATE = "get_state"
SERVICE_UPDATE_SETTINGS = "update_settings"
SERVICE_SET_LANGUAGE = "set_language"
SERVICE_ADD_HISTORY_ENTRY = "add_history_entry"
SERVICE_ADD_CUSTOM_TRAINING = "add_custom_training"
SERVICE_DELETE_CUSTOM_TRAINING = "delete_custom_training"

# Service field -> stored settings key.
_SETTINGS_FIELDS = {
    "user_name": "userName",
    "height": "height",
    "weight": "weight",
    "date_of_birth": "dateOfBirth",
    "keep_screen_on": "keepScreenOn",
    "unit_system": "unitSystem",
    "reminder_enabled": "reminderEnabled",
    "reminder_days": "reminderDays",
    "reminder_time": "reminderTime",
    "tts_enabled": "ttsEnabled",
    "pause_between_exercises": "pauseBetweenExercises",
    "cloud_sync_enabled": "cloudSyncEnabled",
}

_ENTRY_SCHEMA = vol.Schema({vol.Required("entry_id"): str})
_UPDATE_SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Required("entry_id"): str,
        vol.Optional("user_name"): str,
        vol.Optional("height"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("weight"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("date_of_birth"): str,
        vol.Optional("keep_screen_on"): bool,
        vol.Optional("unit_system"): vol.In(UNIT_SYSTEM_CHOICES),
        vol.Optional("reminder_enabled"): bool,
        vol.Optional("reminder_days"): [vol.All(vol.Coerce(int), vol.Range(min=0, max=6))],
        vol.Optional("reminder_time"): vol.Match(r"^\d{2}:\d{2}$"),
        vol.Optional("tts_enabled"): bool,
        vol.Optional("pause_between_exercises"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("cloud_sync_enabled"): bool,
    }
)
_SET_LANGUAGE_SCHEMA = vol.Schema(
    {
        vol.Required("entry_id"): str,
        vol.Required("language"): vol.All(str, vol.Length(min=2, max=8)),
    }
)
_HISTORY_EXERCISE_SCHEMA = vol.Schema(
    {
        vol.Required("exercise_id"): str,
        vol.Required("exercise_name"): str,
        vol.Required("duration"): vol.All(vol.Coerce(int), vol.Range(min=0)),
    }
)
_ADD_HISTORY_ENTRY_SCHEMA = vol.Schema(
    {
        vol.Required("entry_id"): str,
        vol.Optional("id"): str,
        vol.Required("training_id"): str,
        vol.Required("training_name"): str,
        vol.Optional("date"): str,
        vol.Optional("exercises", default=[]): [_HISTORY_EXERCISE_SCHEMA],
    }
)
_EXERCISE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): str,
        vol.Required("name"): str,
        vol.Optional("description", default=""): str,
        vol.Optional("default_duration", default=30): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("animation_url"): str,
    }
)
_ADD_CUSTOM_TRAINING_SCHEMA = vol.Schema(
    {
        vol.Required("entry_id"): str,
        vol.Optional("id"): str,
        vol.Required("name"): vol.All(str, vol.Length(min=1)),
        vol.Optional("description"): str,
        vol.Optional("exercises", default=[]): [_EXERCISE_SCHEMA],
    }
)
_DELETE_CUSTOM_TRAINING_SCHEMA = vol.Schema({vol.Required("entry_id"): str, vol.Required("training_id"): str})


def _history_entry_from_call(data: dict[str, Any]) -> TrainingHistoryEntry:
    return TrainingHistoryEntry(
        id=str(data.get("id") or "").strip() or new_id("history"),
        training_id=str(data["training_id"]),
        training_name=str(data["training_name"]).strip(),
        date=str(data.get("date") or "").strip() or now_iso(),
        exercises=[
            HistoryExercise(
                exercise_id=str(ex["exercise_id"]),
                exercise_name=str(ex["exercise_name"]),
                duration=int(ex["duration"]),
            )
            for ex in data.get("exercises") or []
        ],
    )


def _custom_training_from_call(data: dict[str, Any]) -> CustomTraining:
    # A fresh createdAt lets an edit win the merge on other devices.
    return CustomTraining(
        id=str(data.get("id") or "").strip() or new_id("custom"),
        name=str(data["name"]).strip(),
        description=str(data["description"]).strip() if data.get("description") else None,
        created_at=now_iso(),
        exercises=[
            Exercise(
                id=str(ex["id"]),
                name=str(ex["name"]),
                description=str(ex.get("description") or ""),
                default_duration=int(ex.get("default_duration") or 0),
                animation_url=str(ex["animation_url"]) if ex.get("animation_url") else None,
            )
            for ex in data.get("exercises") or []
        ],
    )


async def async_register(hass: HomeAssistant) -> None:
    async def _coordinator_for_entry(entry_id: str):
        return hass.data.get(DOMAIN, {}).get(entry_id)

    async def _async_sync_now(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        state = await coordinator.async_sync_now()
        return {"ok": True, "entry_id": entry_id, "state": public_state(state, status=coordinator.sync.status)}

    async def _async_get_state(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        return {
            "ok": True,
            "entry_id": entry_id,
            "state": public_state(coordinator.data, status=coordinator.sync.status),
        }

    async def _async_update_settings(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        changes = {key: call.data[field] for field, key in _SETTINGS_FIELDS.items() if field in call.data}
        state = await coordinator.async_update_settings(changes)
        return {"ok": True, "entry_id": entry_id, "settings": state.settings.as_dict()}

    async def _async_set_language(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        state = await coordinator.async_set_language(str(call.data["language"]))
        return {"ok": True, "entry_id": entry_id, "language": state.language}

    async def _async_add_history_entry(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        entry = _history_entry_from_call(dict(call.data))
        state = await coordinator.async_add_history_entry(entry)
        return {"ok": True, "entry_id": entry_id, "history_id": entry.id, "count": len(state.training_history)}

    async def _async_add_custom_training(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        training = _custom_training_from_call(dict(call.data))
        state = await coordinator.async_add_custom_training(training)
        return {
            "ok": True,
            "entry_id": entry_id,
            "training": training.as_dict(),
            "count": len(state.custom_trainings),
        }

    async def _async_delete_custom_training(call: ServiceCall) -> ServiceResponse:
        entry_id = str(call.data["entry_id"])
        coordinator = await _coordinator_for_entry(entry_id)
        if coordinator is None:
            return {"ok": False, "error": "entry_not_found"}
        training_id = str(call.data["training_id"]).strip()
        state = await coordinator.async_delete_custom_training(training_id)
        return {"ok": True, "entry_id": entry_id, "count": len(state.custom_trainings)}

    services = [
        (SERVICE_SYNC_NOW, _async_sync_now, _ENTRY_SCHEMA),
        (SERVICE_GET_STATE, _async_get_state, _ENTRY_SCHEMA),
        (SERVICE_UPDATE_SETTINGS, _async_update_settings, _UPDATE_SETTINGS_SCHEMA),
        (SERVICE_SET_LANGUAGE, _async_set_language, _SET_LANGUAGE_SCHEMA),
        (SERVICE_ADD_HISTORY_ENTRY, _async_add_history_entry, _ADD_HISTORY_ENTRY_SCHEMA),
        (SERVICE_ADD_CUSTOM_TRAINING, _async_add_custom_training, _ADD_CUSTOM_TRAINING_SCHEMA),
        (SERVICE_DELETE_CUSTOM_TRAINING, _async_delete_custom_training, _DELETE_CUSTOM_TRAINING_SCHEMA),
    ]
    for name, handler, schema in services:
        if hass.services.has_service(DOMAIN, name):
            continue
        hass.services.async_register(
            DOMAIN,
            name,
            handler,
            schema=schema,
            supports_response=SupportsResponse.OPTIONAL,
        )
