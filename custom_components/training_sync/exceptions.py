"""Errors raised by the Training Sync engine."""

from __future__ import annotations

from homeassistant.exceptions import HomeAssistantError


class TrainingSyncError(HomeAssistantError):
    """Base class for sync failures."""


class RemoteUnavailable(TrainingSyncError):
    """The remote document store could not be reached or answered with an error."""


class SyncTimeout(TrainingSyncError):
    """A single remote attempt did not finish within its time budget."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Sync attempt timed out after {timeout:g}s")
        self.timeout = timeout


class SyncFailed(TrainingSyncError):
    """Every attempt of a debounced push failed."""

    def __init__(self, *, attempts: int) -> None:
        super().__init__(f"Sync failed after {attempts} attempts")
        self.attempts = attempts


class NotAuthenticated(TrainingSyncError):
    """A sync was requested without a signed-in user."""

    def __init__(self) -> None:
        super().__init__("Not signed in")
