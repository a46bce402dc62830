from __future__ import annotations

from custom_components.training_sync.const import SCHEMA_VERSION
from custom_components.training_sync.models import (
    CloudDocument,
    UserSettings,
    UserState,
    migrate_document,
    parse_timestamp,
)


def _legacy_document() -> dict:
    # Shape written by app versions that predate sync bookkeeping.
    return {
        "userId": "u1",
        "deviceId": "phone",
        "lastSyncedAt": "2024-05-01T12:00:00.000Z",
        "language": "ru",
        "settings": {
            "userName": "Ann",
            "height": 168,
            "weight": 61,
            "unitSystem": "metric",
            "reminderDays": [1, 3, 5],
            "reminderTime": "07:30",
            "isSynced": True,
        },
        "customTrainings": [
            {
                "id": "t1",
                "name": "Desk break",
                "createdAt": "2024-04-01T00:00:00.000Z",
                "exercises": [{"id": "e1", "name": "Neck roll", "description": "Slow", "defaultDuration": 40}],
            }
        ],
        "trainingHistory": [
            {
                "id": "h1",
                "trainingId": "t1",
                "trainingName": "Desk break",
                "date": "2024-04-02T09:00:00.000Z",
                "exercises": [{"exerciseId": "e1", "exerciseName": "Neck roll", "duration": 38}],
            }
        ],
    }


def test_legacy_document_is_migrated_to_current_schema() -> None:
    doc = CloudDocument.from_dict(_legacy_document())

    assert doc.schema_version == SCHEMA_VERSION
    assert doc.user_id == "u1"
    assert doc.device_id == "phone"
    assert doc.state.language == "ru"
    assert doc.state.settings.user_name == "Ann"
    assert doc.state.settings.reminder_days == [1, 3, 5]
    assert doc.state.settings.last_synced_at is None
    assert doc.state.settings.cloud_sync_enabled is True
    assert "isSynced" not in doc.state.settings.as_dict()
    assert doc.state.custom_trainings[0].exercises[0].default_duration == 40
    assert doc.state.training_history[0].exercises[0].duration == 38


def test_migration_does_not_mutate_input() -> None:
    raw = _legacy_document()

    migrate_document(raw)

    assert raw["settings"]["isSynced"] is True
    assert "schemaVersion" not in raw


def test_document_from_newer_schema_keeps_unknown_fields() -> None:
    raw = _legacy_document()
    raw["schemaVersion"] = SCHEMA_VERSION + 1
    raw["settings"]["hapticsEnabled"] = True

    doc = CloudDocument.from_dict(raw)

    assert doc.schema_version == SCHEMA_VERSION + 1
    assert doc.state.settings.extra["hapticsEnabled"] is True
    assert doc.state.settings.as_dict()["hapticsEnabled"] is True


def test_state_round_trip_keeps_wire_shape() -> None:
    raw = migrate_document(_legacy_document())

    state = UserState.from_dict(raw)
    again = UserState.from_dict(state.as_dict())

    assert again == state
    assert state.as_dict()["customTrainings"][0]["createdAt"] == "2024-04-01T00:00:00.000Z"
    assert "description" not in state.as_dict()["customTrainings"][0]


def test_malformed_and_duplicate_items_are_dropped() -> None:
    state = UserState.from_dict(
        {
            "trainingHistory": [
                {"id": "h1", "trainingName": "first"},
                {"id": "h1", "trainingName": "duplicate"},
                {"trainingName": "no id"},
                "not a dict",
            ],
            "customTrainings": None,
        }
    )

    assert [h.training_name for h in state.training_history] == ["first"]
    assert state.custom_trainings == []


def test_settings_defaults_and_invalid_values() -> None:
    settings = UserSettings.from_dict({"unitSystem": "furlongs", "height": "tall", "reminderDays": [0, 7, 3, 3]})

    assert settings.unit_system == "metric"
    assert settings.height == 170
    assert settings.reminder_days == [0, 3]
    assert settings.pause_between_exercises == 10


def test_settings_updated_applies_camel_case_changes() -> None:
    settings = UserSettings(user_name="A", weight=70)

    changed = settings.updated({"weight": 72, "ttsEnabled": True})

    assert changed.weight == 72
    assert changed.tts_enabled is True
    assert changed.user_name == "A"
    assert settings.weight == 70


def test_parse_timestamp_handles_naive_and_garbage() -> None:
    naive = parse_timestamp("2024-01-01T00:00:00")

    assert naive is not None and naive.tzinfo is not None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_settings_flags_only_trust_real_booleans() -> None:
    settings = UserSettings.from_dict(
        {"keepScreenOn": "false", "ttsEnabled": 1, "cloudSyncEnabled": "no", "reminderEnabled": True}
    )

    assert settings.keep_screen_on is False
    assert settings.tts_enabled is True
    assert settings.cloud_sync_enabled is True
    assert settings.reminder_enabled is True
