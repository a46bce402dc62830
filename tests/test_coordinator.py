from __future__ import annotations

import asyncio
import copy
import logging
from types import SimpleNamespace

import pytest

from custom_components.training_sync.const import CONF_USER_ID, STATUS_ERROR
from custom_components.training_sync.coordinator import TrainingSyncCoordinator
from custom_components.training_sync.exceptions import NotAuthenticated
from custom_components.training_sync.models import (
    CustomTraining,
    TrainingHistoryEntry,
    UserSettings,
    UserState,
)
from custom_components.training_sync.sync import SyncOrchestrator


class FakeStore:
    """Keeps records in their stored (wire) form."""

    def __init__(self, state: UserState | None = None) -> None:
        self.records: dict = copy.deepcopy((state or UserState()).as_dict())
        self.full_saves = 0

    async def async_get_device_id(self) -> str:
        return "device-1"

    async def async_save_settings(self, settings: UserSettings) -> None:
        self.records["settings"] = settings.as_dict()

    async def async_save_language(self, language: str) -> None:
        self.records["language"] = language

    async def async_save_training_history(self, history: list[TrainingHistoryEntry]) -> None:
        self.records["trainingHistory"] = [h.as_dict() for h in history]

    async def async_save_custom_trainings(self, trainings: list[CustomTraining]) -> None:
        self.records["customTrainings"] = [t.as_dict() for t in trainings]

    async def async_save_state(self, state: UserState) -> None:
        self.full_saves += 1
        self.records = copy.deepcopy(state.as_dict())

    def history_ids(self) -> list[str]:
        return [h["id"] for h in self.records["trainingHistory"]]


class FakeRemote:
    def __init__(self, docs: dict | None = None, *, fail_writes: int = 0, fail_reads: bool = False) -> None:
        self.docs: dict[str, dict] = copy.deepcopy(docs or {})
        self.fail_writes = fail_writes
        self.fail_reads = fail_reads
        self.writes: list[dict] = []
        self.gate: asyncio.Event | None = None

    async def async_get(self, user_id: str) -> dict | None:
        if self.fail_reads:
            raise ConnectionError("offline")
        doc = copy.deepcopy(self.docs.get(user_id))
        if self.gate is not None:
            await self.gate.wait()
        return doc

    async def async_upsert_merge(self, user_id: str, document: dict) -> None:
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise ConnectionError("503 from store")
        self.writes.append(copy.deepcopy(document))
        self.docs[user_id] = {**self.docs.get(user_id, {}), **copy.deepcopy(document)}


class RecordingSync:
    """Captures what the store held at the moment each push was scheduled."""

    def __init__(self, store: FakeStore) -> None:
        self.store = store
        self.pushed: list[tuple[str, UserState, dict]] = []

    def push_debounced(self, user_id: str, state: UserState) -> asyncio.Future[None]:
        self.pushed.append((user_id, state, copy.deepcopy(self.store.records)))
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future


async def _no_sleep(_delay: float) -> None:
    return None


def _orchestrator(remote: FakeRemote, store: FakeStore) -> SyncOrchestrator:
    return SyncOrchestrator(remote, store, debounce_seconds=0, sleep=_no_sleep)


def _coordinator(store: FakeStore, sync, *, user_id: str = "u1", state: UserState | None = None):
    # Built without a running Home Assistant; only the store and sync seams are wired.
    coordinator = object.__new__(TrainingSyncCoordinator)
    coordinator.entry = SimpleNamespace(entry_id="entry-1", options={CONF_USER_ID: user_id}, data={})
    coordinator.store = store
    coordinator.sync = sync
    coordinator.data = state or UserState()
    coordinator._remove_status_listener = lambda: None
    coordinator.async_set_updated_data = lambda data: setattr(coordinator, "data", data)
    return coordinator


def _entry(hid: str) -> TrainingHistoryEntry:
    return TrainingHistoryEntry(id=hid, training_id="t1", training_name="Hamstrings", date="2024-05-30T07:00:00Z")


def _state(*history_ids: str) -> UserState:
    return UserState(
        settings=UserSettings(user_name="A", last_synced_at="2024-05-01T00:00:00Z"),
        training_history=[_entry(h) for h in history_ids],
    )


def _remote_doc(*history_ids: str) -> dict:
    return {"u1": {"userId": "u1", **_state(*history_ids).as_dict()}}


def test_mutations_save_locally_before_scheduling_push() -> None:
    store = FakeStore()
    sync = RecordingSync(store)
    coordinator = _coordinator(store, sync)

    async def _run() -> None:
        await coordinator.async_add_history_entry(_entry("h1"))
        await coordinator.async_set_language("de")
        await coordinator.async_update_settings({"weight": 72})
        await coordinator.async_add_custom_training(
            CustomTraining(id="t1", name="Desk break", created_at="2024-05-01T00:00:00Z")
        )
        await coordinator.async_delete_custom_training("t1")

    asyncio.run(_run())

    assert [user_id for user_id, _, _ in sync.pushed] == ["u1"] * 5
    assert [h["id"] for h in sync.pushed[0][2]["trainingHistory"]] == ["h1"]
    assert sync.pushed[1][2]["language"] == "de"
    assert sync.pushed[2][2]["settings"]["weight"] == 72
    assert sync.pushed[2][1].settings.last_synced_at is not None
    assert [t["id"] for t in sync.pushed[3][2]["customTrainings"]] == ["t1"]
    assert sync.pushed[4][1].custom_trainings == []
    assert coordinator.data.language == "de"
    assert coordinator.data.settings.weight == 72


def test_mutations_stay_local_when_signed_out_or_sync_disabled() -> None:
    store = FakeStore()
    sync = RecordingSync(store)
    signed_out = _coordinator(store, sync, user_id="")
    disabled = _coordinator(store, sync, state=UserState(settings=UserSettings(cloud_sync_enabled=False)))

    async def _run() -> None:
        await signed_out.async_add_history_entry(_entry("h1"))
        await disabled.async_set_language("fr")

    asyncio.run(_run())

    assert sync.pushed == []
    assert store.history_ids() == ["h1"]
    assert store.records["language"] == "fr"


def test_recording_an_existing_history_id_changes_nothing() -> None:
    store = FakeStore(_state("h1"))
    sync = RecordingSync(store)
    coordinator = _coordinator(store, sync, state=_state("h1"))
    before = coordinator.data

    asyncio.run(coordinator.async_add_history_entry(_entry("h1")))

    assert coordinator.data is before
    assert sync.pushed == []


def test_failed_push_reports_error_and_keeps_local_data(caplog: pytest.LogCaptureFixture) -> None:
    store = FakeStore()
    remote = FakeRemote(fail_writes=10)
    coordinator = _coordinator(store, _orchestrator(remote, store))

    async def _run() -> None:
        await coordinator.async_add_history_entry(_entry("h1"))
        await asyncio.sleep(0.05)

    with caplog.at_level(logging.ERROR):
        asyncio.run(_run())

    assert coordinator.sync.status.state == STATUS_ERROR
    assert [h.id for h in coordinator.data.training_history] == ["h1"]
    assert store.history_ids() == ["h1"]
    assert "Could not push local changes" in caplog.text


def test_foreground_applies_remote_changes_without_writing_back() -> None:
    store = FakeStore(_state("h1"))
    remote = FakeRemote(_remote_doc("h1", "r1"))
    coordinator = _coordinator(store, _orchestrator(remote, store), state=_state("h1"))

    asyncio.run(coordinator.async_sync_on_foreground())

    assert [h.id for h in coordinator.data.training_history] == ["h1", "r1"]
    assert store.history_ids() == ["h1", "r1"]
    assert remote.writes == []


def test_foreground_leaves_local_state_alone_when_nothing_changed() -> None:
    store = FakeStore(_state("h1"))
    remote = FakeRemote(_remote_doc("h1"))
    coordinator = _coordinator(store, _orchestrator(remote, store), state=_state("h1"))
    before = coordinator.data

    asyncio.run(coordinator.async_sync_on_foreground())

    assert coordinator.data is before
    assert store.full_saves == 0


def test_login_sync_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    store = FakeStore(_state("h1"))
    remote = FakeRemote(fail_reads=True)
    coordinator = _coordinator(store, _orchestrator(remote, store), state=_state("h1"))
    before = coordinator.data

    with caplog.at_level(logging.WARNING):
        asyncio.run(coordinator.async_sync_after_login())

    assert coordinator.data is before
    assert "Sync after login failed" in caplog.text


def test_sync_now_requires_sign_in() -> None:
    store = FakeStore()
    coordinator = _coordinator(store, _orchestrator(FakeRemote(), store), user_id="")

    with pytest.raises(NotAuthenticated):
        asyncio.run(coordinator.async_sync_now())


def test_sync_now_keeps_history_recorded_while_fetching() -> None:
    store = FakeStore(_state("h1"))
    remote = FakeRemote(_remote_doc("r1"))
    coordinator = _coordinator(store, _orchestrator(remote, store), state=_state("h1"))

    async def _run() -> None:
        remote.gate = asyncio.Event()
        sync_now = asyncio.create_task(coordinator.async_sync_now())
        await asyncio.sleep(0.01)
        await coordinator.async_add_history_entry(_entry("h2"))
        remote.gate.set()
        await sync_now
        # Let the follow-up push land.
        await asyncio.sleep(0.05)

    asyncio.run(_run())

    assert [h.id for h in coordinator.data.training_history] == ["h1", "h2", "r1"]
    assert store.history_ids() == ["h1", "h2", "r1"]
    assert [h["id"] for h in remote.docs["u1"]["trainingHistory"]] == ["h1", "h2", "r1"]


def test_shutdown_stops_pending_pushes() -> None:
    store = FakeStore()
    remote = FakeRemote()
    coordinator = _coordinator(store, SyncOrchestrator(remote, store, debounce_seconds=60, sleep=_no_sleep))

    async def _run() -> None:
        await coordinator.async_add_history_entry(_entry("h1"))
        assert coordinator.sync.has_pending_push
        await coordinator.async_shutdown_sync()

    asyncio.run(_run())

    assert not coordinator.sync.has_pending_push
    # Only the exit push went out.
    assert len(remote.writes) == 1
    assert [h["id"] for h in remote.writes[0]["trainingHistory"]] == ["h1"]
