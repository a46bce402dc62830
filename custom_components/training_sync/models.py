"""Typed shapes for synced user data.

Wire format (schema v2) follows the JSON the mobile app has always written:
camelCase keys, ISO-8601 timestamps. Versions:
- v1 (unversioned): settings carried ``isSynced`` and had no sync bookkeeping.
- v2: ``isSynced`` dropped, ``lastSyncedAt``/``cloudSyncEnabled`` added to
  settings, ``schemaVersion`` stamped on every document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from homeassistant.util import dt as dt_util

from .const import SCHEMA_VERSION, UNIT_SYSTEM_CHOICES

_LOGGER = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None for anything unusable."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = dt_util.parse_datetime(value.strip())
    except (ValueError, TypeError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _bool(value: Any, default: bool) -> bool:
    # Strings such as "false" are not trusted.
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return default


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True)
class UserSettings:
    """User preferences. Replaced as a whole by sync, never field-merged."""

    user_name: str = ""
    height: int = 170
    weight: int = 70
    date_of_birth: str = ""
    keep_screen_on: bool = False
    language: str = DEFAULT_LANGUAGE
    unit_system: str = "metric"
    reminder_enabled: bool = False
    reminder_days: list[int] = field(default_factory=list)
    reminder_time: str = "09:00"
    tts_enabled: bool = False
    pause_between_exercises: int = 10
    last_synced_at: str | None = None
    cloud_sync_enabled: bool = True
    # Keys written by newer app versions we do not know about yet.
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Any) -> UserSettings:
        if not isinstance(raw, dict):
            return cls()
        known = set(_SETTINGS_KEYS.values())
        unit_system = str(raw.get("unitSystem") or "metric").lower()
        if unit_system not in UNIT_SYSTEM_CHOICES:
            unit_system = "metric"
        days: list[int] = []
        for d in raw.get("reminderDays") or []:
            di = _int(d, -1)
            if 0 <= di <= 6 and di not in days:
                days.append(di)
        return cls(
            user_name=str(raw.get("userName") or ""),
            height=_int(raw.get("height"), 170),
            weight=_int(raw.get("weight"), 70),
            date_of_birth=str(raw.get("dateOfBirth") or ""),
            keep_screen_on=_bool(raw.get("keepScreenOn"), False),
            language=str(raw.get("language") or DEFAULT_LANGUAGE),
            unit_system=unit_system,
            reminder_enabled=_bool(raw.get("reminderEnabled"), False),
            reminder_days=days,
            reminder_time=str(raw.get("reminderTime") or "09:00"),
            tts_enabled=_bool(raw.get("ttsEnabled"), False),
            pause_between_exercises=max(0, _int(raw.get("pauseBetweenExercises"), 10)),
            last_synced_at=_optional_str(raw.get("lastSyncedAt")),
            cloud_sync_enabled=_bool(raw.get("cloudSyncEnabled"), True),
            extra={k: v for k, v in raw.items() if k not in known},
        )

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        for attr, key in _SETTINGS_KEYS.items():
            value = getattr(self, attr)
            out[key] = list(value) if isinstance(value, list) else value
        return out

    def updated(self, changes: dict[str, Any]) -> UserSettings:
        """Return a copy with camelCase ``changes`` applied."""
        merged = self.as_dict()
        merged.update(changes)
        return UserSettings.from_dict(merged)


_SETTINGS_KEYS = {
    "user_name": "userName",
    "height": "height",
    "weight": "weight",
    "date_of_birth": "dateOfBirth",
    "keep_screen_on": "keepScreenOn",
    "language": "language",
    "unit_system": "unitSystem",
    "reminder_enabled": "reminderEnabled",
    "reminder_days": "reminderDays",
    "reminder_time": "reminderTime",
    "tts_enabled": "ttsEnabled",
    "pause_between_exercises": "pauseBetweenExercises",
    "last_synced_at": "lastSyncedAt",
    "cloud_sync_enabled": "cloudSyncEnabled",
}


@dataclass(frozen=True)
class Exercise:
    id: str
    name: str
    description: str = ""
    default_duration: int = 30
    animation_url: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Exercise:
        return cls(
            id=str(raw.get("id") or "").strip(),
            name=str(raw.get("name") or "").strip(),
            description=str(raw.get("description") or ""),
            default_duration=max(0, _int(raw.get("defaultDuration"), 30)),
            animation_url=_optional_str(raw.get("animationUrl")),
        )

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "defaultDuration": self.default_duration,
        }
        if self.animation_url is not None:
            out["animationUrl"] = self.animation_url
        return out


@dataclass(frozen=True)
class CustomTraining:
    """A user-authored workout. The id never changes once created."""

    id: str
    name: str
    exercises: list[Exercise] = field(default_factory=list)
    created_at: str = ""
    description: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CustomTraining:
        exercises = [Exercise.from_dict(e) for e in raw.get("exercises") or [] if isinstance(e, dict)]
        return cls(
            id=str(raw.get("id") or "").strip(),
            name=str(raw.get("name") or "").strip(),
            exercises=exercises,
            created_at=str(raw.get("createdAt") or "").strip(),
            description=_optional_str(raw.get("description")),
        )

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "exercises": [e.as_dict() for e in self.exercises],
            "createdAt": self.created_at,
        }
        if self.description is not None:
            out["description"] = self.description
        return out


@dataclass(frozen=True)
class HistoryExercise:
    exercise_id: str
    exercise_name: str
    duration: int

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> HistoryExercise:
        return cls(
            exercise_id=str(raw.get("exerciseId") or ""),
            exercise_name=str(raw.get("exerciseName") or ""),
            duration=max(0, _int(raw.get("duration"), 0)),
        )

    def as_dict(self) -> dict[str, Any]:
        return {"exerciseId": self.exercise_id, "exerciseName": self.exercise_name, "duration": self.duration}


@dataclass(frozen=True)
class TrainingHistoryEntry:
    """A completed workout. The name is a snapshot, decoupled from the live training."""

    id: str
    training_id: str
    training_name: str
    date: str
    exercises: list[HistoryExercise] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TrainingHistoryEntry:
        exercises = [HistoryExercise.from_dict(e) for e in raw.get("exercises") or [] if isinstance(e, dict)]
        return cls(
            id=str(raw.get("id") or "").strip(),
            training_id=str(raw.get("trainingId") or ""),
            training_name=str(raw.get("trainingName") or ""),
            date=str(raw.get("date") or ""),
            exercises=exercises,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "trainingId": self.training_id,
            "trainingName": self.training_name,
            "date": self.date,
            "exercises": [e.as_dict() for e in self.exercises],
        }


def parse_custom_trainings(items: Any) -> list[CustomTraining]:
    """Parse a raw list, dropping malformed items and repeated ids (first one wins)."""
    out: list[CustomTraining] = []
    seen: set[str] = set()
    for raw in items if isinstance(items, list) else []:
        if not isinstance(raw, dict):
            continue
        training = CustomTraining.from_dict(raw)
        if not training.id or training.id in seen:
            continue
        seen.add(training.id)
        out.append(training)
    return out


def parse_training_history(items: Any) -> list[TrainingHistoryEntry]:
    out: list[TrainingHistoryEntry] = []
    seen: set[str] = set()
    for raw in items if isinstance(items, list) else []:
        if not isinstance(raw, dict):
            continue
        entry = TrainingHistoryEntry.from_dict(raw)
        if not entry.id or entry.id in seen:
            continue
        seen.add(entry.id)
        out.append(entry)
    return out


@dataclass(frozen=True)
class UserState:
    """Everything that syncs for one user."""

    settings: UserSettings = field(default_factory=UserSettings)
    custom_trainings: list[CustomTraining] = field(default_factory=list)
    training_history: list[TrainingHistoryEntry] = field(default_factory=list)
    language: str = DEFAULT_LANGUAGE

    @classmethod
    def from_dict(cls, raw: Any, *, default_language: str = DEFAULT_LANGUAGE) -> UserState:
        if not isinstance(raw, dict):
            return cls(language=default_language)
        return cls(
            settings=UserSettings.from_dict(raw.get("settings")),
            custom_trainings=parse_custom_trainings(raw.get("customTrainings")),
            training_history=parse_training_history(raw.get("trainingHistory")),
            language=str(raw.get("language") or default_language),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "settings": self.settings.as_dict(),
            "customTrainings": [t.as_dict() for t in self.custom_trainings],
            "trainingHistory": [h.as_dict() for h in self.training_history],
            "language": self.language,
        }

    def with_changes(self, **changes: Any) -> UserState:
        return replace(self, **changes)


@dataclass(frozen=True)
class CloudDocument:
    """Remote projection of a UserState plus sync metadata."""

    user_id: str
    state: UserState
    device_id: str = ""
    last_synced_at: str | None = None
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CloudDocument:
        migrated = migrate_document(raw)
        return cls(
            user_id=str(migrated.get("userId") or ""),
            # An empty remote language means "not set" and must not override local.
            state=UserState.from_dict(migrated, default_language=""),
            device_id=str(migrated.get("deviceId") or ""),
            last_synced_at=_optional_str(migrated.get("lastSyncedAt")),
            schema_version=_int(migrated.get("schemaVersion"), SCHEMA_VERSION),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            **self.state.as_dict(),
            "lastSyncedAt": self.last_synced_at,
            "deviceId": self.device_id,
            "schemaVersion": self.schema_version,
        }


def migrate_settings(raw: Any, from_version: int) -> dict[str, Any]:
    settings = dict(raw) if isinstance(raw, dict) else {}
    if from_version < 2:
        settings.pop("isSynced", None)
        settings.setdefault("lastSyncedAt", None)
        settings.setdefault("cloudSyncEnabled", True)
    return settings


def migrate_document(raw: Any) -> dict[str, Any]:
    """Bring a raw (remote or local) document up to the current schema."""
    doc = dict(raw) if isinstance(raw, dict) else {}
    version = _int(doc.get("schemaVersion"), 1)
    if version > SCHEMA_VERSION:
        _LOGGER.warning(
            "Document schema v%s is newer than supported v%s; unknown fields are kept as-is",
            version,
            SCHEMA_VERSION,
        )
        return doc
    if version < SCHEMA_VERSION:
        doc["settings"] = migrate_settings(doc.get("settings"), version)
        doc["schemaVersion"] = SCHEMA_VERSION
    return doc
