"""Sync orchestration between the local record store and the remote document store.

Protocols:
- pull and merge (login, "sync now"): fetch, reconcile, write back to remote
  when something changed or the remote document is new, persist locally
- pull only (foreground): fetch and reconcile, no writes
- debounced push (every local mutation): coalesce bursts into one write,
  retry with exponential backoff
- push before exit (background/stop): one short attempt, never raises

Timeouts stop waiting for a remote call but never cancel it, so a slow write
may still land after a retry has started. Writes are full-document upserts,
so the duplicate is harmless.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Protocol

from homeassistant.core import CALLBACK_TYPE
from homeassistant.util import dt as dt_util

from .const import (
    DEBOUNCE_SECONDS,
    EXIT_PUSH_TIMEOUT_SECONDS,
    MAX_PUSH_ATTEMPTS,
    PUSH_TIMEOUT_SECONDS,
    RETRY_DELAY_SECONDS,
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_SYNCING,
)
from .exceptions import NotAuthenticated, RemoteUnavailable, SyncFailed, SyncTimeout, TrainingSyncError
from .merge import MergeResult, rebase, reconcile
from .models import CloudDocument, UserState
from .remote import RemoteDocumentStore

_LOGGER = logging.getLogger(__name__)


class LocalRecordStore(Protocol):
    async def async_get_device_id(self) -> str: ...

    async def async_save_state(self, state: UserState) -> None: ...


@dataclass(frozen=True)
class SyncStatus:
    state: str = STATUS_IDLE
    last_synced_at: datetime | None = None
    error: str | None = None

    @property
    def is_syncing(self) -> bool:
        return self.state == STATUS_SYNCING


def format_time_since(last_synced_at: datetime | None, now: datetime | None = None) -> str:
    """Human readable age of the last sync, bucketed like the app's settings screen."""
    if last_synced_at is None:
        return "never"
    now = now or dt_util.utcnow()
    seconds = int((now - last_synced_at).total_seconds())
    if seconds < 10:
        return "just now"
    if seconds < 60:
        return f"{seconds} seconds ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    return f"{hours // 24} days ago"


class SyncOrchestrator:
    """Drives remote reads and writes around the merge engine for one signed-in session."""

    def __init__(
        self,
        remote: RemoteDocumentStore,
        local_store: LocalRecordStore,
        *,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        push_timeout: float = PUSH_TIMEOUT_SECONDS,
        exit_timeout: float = EXIT_PUSH_TIMEOUT_SECONDS,
        max_attempts: int = MAX_PUSH_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        self._remote = remote
        self._local = local_store
        self._debounce_seconds = debounce_seconds
        self._push_timeout = push_timeout
        self._exit_timeout = exit_timeout
        self._max_attempts = max(1, int(max_attempts))
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._now = now

        # At most one pending debounced push.
        self._timer: asyncio.TimerHandle | None = None
        self._pending: tuple[str, UserState] | None = None
        self._waiters: list[asyncio.Future[None]] = []

        self._in_flight = 0
        self._tasks: set[asyncio.Future[Any]] = set()
        self._status = SyncStatus()
        self._listeners: list[CALLBACK_TYPE] = []

    # -- status -------------------------------------------------------------

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def has_pending_push(self) -> bool:
        return self._timer is not None

    def async_add_listener(self, update_callback: CALLBACK_TYPE) -> Callable[[], None]:
        """Listen for status changes. Returns a function that removes the listener."""
        self._listeners.append(update_callback)

        def remove_listener() -> None:
            if update_callback in self._listeners:
                self._listeners.remove(update_callback)

        return remove_listener

    def _set_status(self, status: SyncStatus) -> None:
        if status == self._status:
            return
        self._status = status
        for update_callback in list(self._listeners):
            update_callback()

    def _begin(self) -> None:
        self._in_flight += 1
        self._set_status(replace(self._status, state=STATUS_SYNCING))

    def _end(self, *, synced: bool = False, error: BaseException | None = None) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        last = self._now() if synced else self._status.last_synced_at
        if error is not None:
            message: str | None = str(error) or type(error).__name__
        elif synced:
            message = None
        else:
            message = self._status.error
        if self._in_flight:
            state = STATUS_SYNCING
        else:
            state = STATUS_ERROR if message else STATUS_IDLE
        self._set_status(SyncStatus(state=state, last_synced_at=last, error=message))

    # -- remote primitives --------------------------------------------------

    def _track(self, task: asyncio.Future[Any]) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._forget)

    def _forget(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            _LOGGER.debug("Detached remote call finished with %r", err)

    async def _async_fetch(self, user_id: str) -> CloudDocument | None:
        try:
            raw = await asyncio.wait_for(self._remote.async_get(user_id), self._push_timeout)
        except RemoteUnavailable:
            raise
        except TimeoutError as err:
            raise RemoteUnavailable(f"Remote store did not answer within {self._push_timeout:g}s") from err
        except Exception as err:  # noqa: BLE001
            raise RemoteUnavailable(f"Remote fetch failed: {err}") from err
        if raw is None:
            return None
        return CloudDocument.from_dict(raw)

    async def _async_build_document(self, user_id: str, state: UserState) -> CloudDocument:
        return CloudDocument(
            user_id=user_id,
            state=state,
            device_id=await self._local.async_get_device_id(),
            last_synced_at=self._now().isoformat(),
        )

    async def _async_push_once(self, document: CloudDocument, timeout: float) -> None:
        """One write attempt: Sending -> Success | TimedOut | Failed."""
        task = asyncio.ensure_future(self._remote.async_upsert_merge(document.user_id, document.as_dict()))
        self._track(task)
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except TimeoutError as err:
            raise SyncTimeout(timeout) from err
        except TrainingSyncError:
            raise
        except Exception as err:  # noqa: BLE001
            raise RemoteUnavailable(f"Remote write failed: {err}") from err

    async def _async_push_with_retry(self, document: CloudDocument) -> None:
        last_error: TrainingSyncError | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                await self._async_push_once(document, self._push_timeout)
            except TrainingSyncError as err:
                last_error = err
                _LOGGER.warning(
                    "Push attempt %s/%s for user %s failed: %s",
                    attempt,
                    self._max_attempts,
                    document.user_id,
                    err,
                )
                if attempt < self._max_attempts:
                    await self._sleep(self._retry_delay * 2 ** (attempt - 1))
                continue
            _LOGGER.debug("Pushed state for user %s on attempt %s", document.user_id, attempt)
            return
        raise SyncFailed(attempts=self._max_attempts) from last_error

    # -- protocols ----------------------------------------------------------

    async def async_pull_and_merge(
        self,
        user_id: str,
        local: UserState,
        *,
        current: Callable[[], UserState] | None = None,
    ) -> UserState:
        """Bidirectional sync used after login and for "sync now".

        ``current`` returns the live local state. Anything committed locally
        while the remote round trip was in flight is folded into the result
        before it is saved, so local records never shrink.
        """
        if not user_id:
            raise NotAuthenticated
        self._begin()
        try:
            remote = await self._async_fetch(user_id)
            result = reconcile(local, remote)
            if result.should_update or remote is None:
                document = await self._async_build_document(user_id, result.state)
                await self._async_push_once(document, self._push_timeout)
            state = result.state
            if current is not None:
                state = rebase(state, local, current())
            await self._local.async_save_state(state)
        except Exception as err:
            self._end(error=err)
            raise
        self._end(synced=True)
        _LOGGER.debug(
            "Pull and merge for user %s done (first sync=%s, changed=%s)",
            user_id,
            remote is None,
            result.should_update,
        )
        return state

    async def async_pull_only(self, user_id: str, local: UserState) -> MergeResult:
        """Absorb remote changes without writing anywhere; the caller decides what to apply."""
        if not user_id:
            raise NotAuthenticated
        self._begin()
        try:
            remote = await self._async_fetch(user_id)
        except Exception as err:
            self._end(error=err)
            raise
        self._end(synced=True)
        return reconcile(local, remote)

    def push_debounced(self, user_id: str, state: UserState) -> asyncio.Future[None]:
        """Schedule a push of ``state`` once no new call arrived for the debounce window.

        Must be called from the event loop. Every caller whose request was
        coalesced into the same write gets that write's outcome.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        if not user_id:
            future.set_result(None)
            return future
        if self._timer is not None:
            self._timer.cancel()
            _LOGGER.debug("Debounced push rescheduled")
        self._pending = (user_id, state)
        self._waiters.append(future)
        self._timer = loop.call_later(self._debounce_seconds, self._fire_debounced)
        return future

    def _fire_debounced(self) -> None:
        self._timer = None
        if self._pending is None:
            return
        user_id, state = self._pending
        self._pending = None
        waiters, self._waiters = self._waiters, []
        task = asyncio.get_running_loop().create_task(self._async_run_debounced(user_id, state, waiters))
        self._track(task)

    async def _async_run_debounced(
        self, user_id: str, state: UserState, waiters: list[asyncio.Future[None]]
    ) -> None:
        self._begin()
        try:
            document = await self._async_build_document(user_id, state)
            await self._async_push_with_retry(document)
        except asyncio.CancelledError:
            self._end()
            for waiter in waiters:
                waiter.cancel()
            raise
        except Exception as err:  # noqa: BLE001
            self._end(error=err)
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(err)
            return
        self._end(synced=True)
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def async_push_before_exit(self, user_id: str, state: UserState) -> None:
        """Single short push while going to background; failures are only logged."""
        if not user_id:
            return
        self._begin()
        try:
            document = await self._async_build_document(user_id, state)
            await self._async_push_once(document, self._exit_timeout)
        except Exception as err:  # noqa: BLE001
            _LOGGER.warning("Push before exit failed for user %s: %s", user_id, err)
            self._end()
            return
        self._end(synced=True)

    def cancel_pending(self) -> None:
        """Drop a push still waiting in its debounce window."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            waiter.cancel()

    async def async_shutdown(self) -> None:
        """Stop all sync work for this session, including pushes already retrying."""
        self.cancel_pending()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            _LOGGER.debug("Cancelled %s in-flight sync task(s)", len(tasks))
