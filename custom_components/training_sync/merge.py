"""Reconcile local user data with the remote copy.

Pure functions only; the orchestrator in sync.py does all I/O.

Rules:
- settings: whole-object last-write-wins on ``settings.lastSyncedAt``
- training history: append-only union by id
- custom trainings: union by id, remote replaces local only when its
  ``createdAt`` is strictly later
- language: remote wins when non-empty

``rebase`` replays the same rules when local data moved on while a merge was
in flight.
"""

from __future__ import annotations

from typing import NamedTuple

from .models import (
    CloudDocument,
    CustomTraining,
    TrainingHistoryEntry,
    UserSettings,
    UserState,
    parse_timestamp,
)


class MergeResult(NamedTuple):
    state: UserState
    should_update: bool


def _is_strictly_later(candidate: str | None, current: str | None) -> bool:
    """True when ``candidate`` is a later instant than ``current``.

    Malformed values never win.
    """
    cand = parse_timestamp(candidate)
    cur = parse_timestamp(current)
    if cand is None or cur is None:
        return False
    return cand > cur


def merge_settings(local: UserSettings, remote: UserSettings) -> UserSettings:
    local_ts = local.last_synced_at
    remote_ts = remote.last_synced_at
    if remote_ts and local_ts:
        return remote if _is_strictly_later(remote_ts, local_ts) else local
    if remote_ts:
        # Remote-only timestamp wins, unless it cannot be read.
        return remote if parse_timestamp(remote_ts) is not None else local
    return local


def merge_history(
    local: list[TrainingHistoryEntry], remote: list[TrainingHistoryEntry]
) -> list[TrainingHistoryEntry]:
    merged = list(local)
    seen = {h.id for h in local}
    for entry in remote:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        merged.append(entry)
    return merged


def merge_custom_trainings(local: list[CustomTraining], remote: list[CustomTraining]) -> list[CustomTraining]:
    merged = list(local)
    index = {t.id: i for i, t in enumerate(merged)}
    for training in remote:
        pos = index.get(training.id)
        if pos is None:
            index[training.id] = len(merged)
            merged.append(training)
        elif _is_strictly_later(training.created_at, merged[pos].created_at):
            merged[pos] = training
    return merged


def reconcile(local: UserState, remote: CloudDocument | None) -> MergeResult:
    """Merge ``remote`` into ``local``; ``should_update`` flags a changed result."""
    if remote is None:
        return MergeResult(local, False)

    cloud = remote.state
    merged = UserState(
        settings=merge_settings(local.settings, cloud.settings),
        custom_trainings=merge_custom_trainings(local.custom_trainings, cloud.custom_trainings),
        training_history=merge_history(local.training_history, cloud.training_history),
        language=cloud.language.strip() or local.language,
    )
    return MergeResult(merged, merged != local)


def rebase(merged: UserState, snapshot: UserState, latest: UserState) -> UserState:
    """Fold local changes made after ``snapshot`` was taken into ``merged``.

    ``merged`` was computed from ``snapshot``; ``latest`` is the live local
    state once the remote round trip is over. Records committed in between
    must survive, so history and custom trainings are unioned again and
    settings go through last-write-wins. A language picked meanwhile wins.
    """
    if latest == snapshot:
        return merged
    state = reconcile(latest, CloudDocument(user_id="", state=merged)).state
    if latest.language != snapshot.language:
        state = state.with_changes(language=latest.language)
    return state
