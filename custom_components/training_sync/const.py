"""Constants for Training Sync integration."""

from __future__ import annotations

from homeassistant.const import Platform

DOMAIN = "training_sync"

PLATFORMS: list[Platform] = [
    Platform.BUTTON,
    Platform.SENSOR,
]

CONF_NAME = "name"
CONF_USER_ID = "user_id"
CONF_REMOTE_URL = "remote_url"
CONF_API_KEY = "api_key"

DEFAULT_NAME = "Training Sync"
DEFAULT_REMOTE_URL = ""

STORAGE_VERSION = 2
STORAGE_KEY = DOMAIN

# Remote document schema; migrations live in models.py.
SCHEMA_VERSION = 2

DEBOUNCE_SECONDS = 0.5
PUSH_TIMEOUT_SECONDS = 10.0
EXIT_PUSH_TIMEOUT_SECONDS = 3.0
MAX_PUSH_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0

STATUS_IDLE = "idle"
STATUS_SYNCING = "syncing"
STATUS_ERROR = "error"
STATUS_CHOICES = [STATUS_IDLE, STATUS_SYNCING, STATUS_ERROR]

UNIT_SYSTEM_CHOICES = ["metric", "imperial"]
