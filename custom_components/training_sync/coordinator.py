"""Coordinator for Training Sync.

Holds the live user state, commits every mutation to local storage first and
then hands it to the sync orchestrator. Remote sync is opportunistic: nothing
here ever waits on the network before a local write.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .const import CONF_API_KEY, CONF_REMOTE_URL, CONF_USER_ID, DOMAIN
from .exceptions import NotAuthenticated, TrainingSyncError
from .merge import rebase
from .models import CustomTraining, TrainingHistoryEntry, UserState, now_iso
from .remote import RestDocumentStore
from .storage import TrainingSyncStore
from .sync import SyncOrchestrator

_LOGGER = logging.getLogger(__name__)


class TrainingSyncCoordinator(DataUpdateCoordinator[UserState]):
    """Owns the in-memory user state for one config entry."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.entry = entry
        self.store = TrainingSyncStore(hass, entry.entry_id)
        remote = RestDocumentStore(
            async_get_clientsession(hass),
            self._option(CONF_REMOTE_URL),
            self._option(CONF_API_KEY),
        )
        self.sync = SyncOrchestrator(remote, self.store)

        super().__init__(
            hass,
            logger=_LOGGER,
            name=f"{DOMAIN}_{entry.entry_id}",
            config_entry=entry,
            # Sync runs on lifecycle events and mutations only, never on a timer.
            update_interval=None,
        )
        self._remove_status_listener = self.sync.async_add_listener(self._handle_status_update)

    def _option(self, key: str) -> str:
        return str(self.entry.options.get(key, self.entry.data.get(key, "")) or "").strip()

    @property
    def user_id(self) -> str:
        """Opaque id of the signed-in user, empty when signed out."""
        return self._option(CONF_USER_ID)

    @property
    def signed_in(self) -> bool:
        return bool(self.user_id)

    def _sync_enabled(self, state: UserState | None = None) -> bool:
        state = state or self.data
        return self.signed_in and state is not None and state.settings.cloud_sync_enabled

    @property
    def sync_enabled(self) -> bool:
        return self._sync_enabled()

    async def _async_update_data(self) -> UserState:
        # Local storage is the source of truth for the live state.
        return await self.store.async_load_state()

    @callback
    def _handle_status_update(self) -> None:
        self.async_update_listeners()

    # -- lifecycle triggers -------------------------------------------------

    def _current_state(self) -> UserState:
        return self.data

    async def _async_adopt(self, merged: UserState, snapshot: UserState, *, pushed: bool) -> UserState:
        """Publish a sync result without losing edits made while it was in flight.

        ``pushed`` means ``merged`` came from pull and merge, which already saved
        it locally and wrote it back to the remote store when it changed.
        """
        if self.data is snapshot:
            self.async_set_updated_data(merged)
            if not pushed:
                await self.store.async_save_state(merged)
            return merged
        state = rebase(merged, snapshot, self.data)
        if pushed:
            # The write-back missed the edits made meanwhile.
            self._apply_local(state)
        else:
            self.async_set_updated_data(state)
        await self.store.async_save_state(state)
        return state

    async def _async_pull_and_merge(self) -> UserState:
        snapshot = self.data
        merged = await self.sync.async_pull_and_merge(self.user_id, snapshot, current=self._current_state)
        return await self._async_adopt(merged, snapshot, pushed=True)

    async def async_sync_after_login(self) -> None:
        """Bidirectional sync once a user is signed in. Failures are logged, not raised."""
        if not self.sync_enabled:
            return
        try:
            await self._async_pull_and_merge()
        except TrainingSyncError as err:
            _LOGGER.warning("Sync after login failed for entry_id=%s: %s", self.entry.entry_id, err)

    async def async_sync_on_foreground(self) -> None:
        """Pick up changes made on other devices without re-announcing local state."""
        if not self.sync_enabled:
            return
        snapshot = self.data
        try:
            result = await self.sync.async_pull_only(self.user_id, snapshot)
        except TrainingSyncError as err:
            _LOGGER.warning("Foreground sync failed for entry_id=%s: %s", self.entry.entry_id, err)
            return
        if not result.should_update:
            return
        await self._async_adopt(result.state, snapshot, pushed=False)

    async def async_sync_before_exit(self) -> None:
        if self.sync_enabled:
            await self.sync.async_push_before_exit(self.user_id, self.data)

    async def async_sync_now(self) -> UserState:
        """User-initiated sync. Raises on failure so the caller can report it."""
        if not self.signed_in:
            raise NotAuthenticated
        return await self._async_pull_and_merge()

    async def async_shutdown_sync(self) -> None:
        """Flush to remote and drop pending work before the entry goes away."""
        await self.async_sync_before_exit()
        await self.sync.async_shutdown()
        self._remove_status_listener()

    # -- local mutations ----------------------------------------------------

    @callback
    def _handle_push_done(self, future: asyncio.Future[None]) -> None:
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            # Status already reports the failure; local data stays as written.
            _LOGGER.error("Could not push local changes for entry_id=%s: %s", self.entry.entry_id, err)

    def _apply_local(self, state: UserState) -> UserState:
        self.async_set_updated_data(state)
        if self._sync_enabled(state):
            future = self.sync.push_debounced(self.user_id, state)
            future.add_done_callback(self._handle_push_done)
        return state

    async def async_update_settings(self, changes: dict[str, Any]) -> UserState:
        """Apply camelCase setting changes; stamps the edit time for last-write-wins."""
        settings = self.data.settings.updated({**changes, "lastSyncedAt": now_iso()})
        await self.store.async_save_settings(settings)
        return self._apply_local(self.data.with_changes(settings=settings))

    async def async_set_language(self, language: str) -> UserState:
        language = str(language).strip()
        await self.store.async_save_language(language)
        return self._apply_local(self.data.with_changes(language=language))

    async def async_add_history_entry(self, entry: TrainingHistoryEntry) -> UserState:
        history = self.data.training_history
        if any(h.id == entry.id for h in history):
            # History entries never change once recorded.
            return self.data
        history = [*history, entry]
        await self.store.async_save_training_history(history)
        return self._apply_local(self.data.with_changes(training_history=history))

    async def async_add_custom_training(self, training: CustomTraining) -> UserState:
        trainings = list(self.data.custom_trainings)
        for i, existing in enumerate(trainings):
            if existing.id == training.id:
                trainings[i] = training
                break
        else:
            trainings.append(training)
        await self.store.async_save_custom_trainings(trainings)
        return self._apply_local(self.data.with_changes(custom_trainings=trainings))

    async def async_delete_custom_training(self, training_id: str) -> UserState:
        trainings = [t for t in self.data.custom_trainings if t.id != training_id]
        if len(trainings) == len(self.data.custom_trainings):
            return self.data
        await self.store.async_save_custom_trainings(trainings)
        return self._apply_local(self.data.with_changes(custom_trainings=trainings))
