"""Journal persistence and revert tests."""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from reelname.state import (
    JOURNAL_VERSION,
    EntryNotFoundError,
    EntryStatus,
    JournalStore,
    NoActiveEntriesError,
    RevertError,
    RevertPreconditionError,
    StateEntry,
    StateError,
)


def _store(tmp_path: Path) -> JournalStore:
    return JournalStore(tmp_path / "journal" / "state.json")


def _applied(tmp_path: Path, store: JournalStore, original: str, new: str) -> StateEntry:
    """Simulate an applied rename: the file lives at ``new`` and is journaled."""
    new_path = tmp_path / new
    new_path.parent.mkdir(parents=True, exist_ok=True)
    new_path.write_bytes(b"video")
    return store.record(tmp_path / original, new_path)


def test_missing_journal_loads_empty_state(tmp_path: Path) -> None:
    state = _store(tmp_path).load()

    assert state.version == JOURNAL_VERSION
    assert state.entries == []


def test_record_round_trips_through_disk(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = store.record(tmp_path / "a.mkv", tmp_path / "A.mkv")

    reloaded = JournalStore(store.path).get_by_id(entry.id)

    assert reloaded.original_name == "a.mkv"
    assert reloaded.new_path == str(tmp_path / "A.mkv")
    assert reloaded.status == EntryStatus.ACTIVE
    assert json.loads(store.path.read_text(encoding="utf-8"))["version"] == "1.0"


def test_save_leaves_no_temporary_files(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.record(tmp_path / "a.mkv", tmp_path / "A.mkv")
    store.record(tmp_path / "b.mkv", tmp_path / "B.mkv")

    assert sorted(path.name for path in store.path.parent.iterdir()) == ["state.json"]


def test_failed_save_keeps_previous_journal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    store.record(tmp_path / "a.mkv", tmp_path / "A.mkv")
    before = store.path.read_text(encoding="utf-8")

    def _fail(*_: object) -> None:
        raise OSError("read-only file system")

    monkeypatch.setattr(os, "replace", _fail)
    with pytest.raises(StateError):
        store.record(tmp_path / "b.mkv", tmp_path / "B.mkv")
    monkeypatch.undo()

    assert store.path.read_text(encoding="utf-8") == before
    assert sorted(path.name for path in store.path.parent.iterdir()) == ["state.json"]


def test_invalid_journal_raises_state_error(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StateError):
        store.load()


def test_unsupported_version_raises_state_error(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({"version": "2.0", "entries": []}), encoding="utf-8")

    with pytest.raises(StateError, match="version"):
        store.load()


def test_get_last_active_uses_latest_timestamp(tmp_path: Path) -> None:
    store = _store(tmp_path)
    now = datetime.now(timezone.utc)
    newest = StateEntry(
        timestamp=now,
        original_path="/x/b.mkv",
        new_path="/x/B.mkv",
        original_name="b.mkv",
        new_name="B.mkv",
    )
    store.append(newest)
    store.append(
        StateEntry(
            timestamp=now - timedelta(hours=1),
            original_path="/x/a.mkv",
            new_path="/x/A.mkv",
            original_name="a.mkv",
            new_name="A.mkv",
        )
    )

    assert store.get_last_active().id == newest.id
    assert len(store.get_all_active()) == 2


def test_unknown_entry_raises(tmp_path: Path) -> None:
    with pytest.raises(EntryNotFoundError):
        _store(tmp_path).revert("nope")


def test_revert_restores_original_and_marks_entry(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = _applied(tmp_path, store, "tv/Show.S01E01.mkv", "tv/Show - S01E01 - Pilot.mkv")

    outcome = store.revert_last()

    assert outcome.reverted
    assert outcome.warning is None
    assert (tmp_path / "tv" / "Show.S01E01.mkv").exists()
    assert not (tmp_path / "tv" / "Show - S01E01 - Pilot.mkv").exists()
    reloaded = store.get_by_id(entry.id)
    assert reloaded.reverted is True
    assert reloaded.reverted_at is not None
    with pytest.raises(NoActiveEntriesError):
        store.revert_last()


def test_second_revert_is_refused(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = _applied(tmp_path, store, "a.mkv", "A.mkv")

    store.revert(entry.id)
    with pytest.raises(RevertPreconditionError, match="already been reverted"):
        store.revert(entry.id)


def test_revert_refuses_occupied_original_path(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = _applied(tmp_path, store, "a.mkv", "A.mkv")
    (tmp_path / "a.mkv").write_bytes(b"newcomer")

    with pytest.raises(RevertPreconditionError):
        store.revert(entry.id)

    assert (tmp_path / "A.mkv").exists()
    assert (tmp_path / "a.mkv").read_bytes() == b"newcomer"
    assert store.get_by_id(entry.id).status == EntryStatus.ACTIVE


def test_revert_refuses_missing_renamed_file(tmp_path: Path) -> None:
    store = _store(tmp_path)
    entry = store.record(tmp_path / "a.mkv", tmp_path / "A.mkv")

    with pytest.raises(RevertPreconditionError, match="no longer exists"):
        store.revert(entry.id)


def test_filesystem_failure_raises_revert_error(tmp_path: Path) -> None:
    class _FailingRenamer:
        def rename(self, old_path: Path, new_path: Path) -> None:
            raise OSError("device busy")

    store = _store(tmp_path)
    entry = _applied(tmp_path, store, "a.mkv", "A.mkv")
    failing = JournalStore(store.path, renamer=_FailingRenamer())

    with pytest.raises(RevertError) as excinfo:
        failing.revert(entry.id)

    assert not isinstance(excinfo.value, RevertPreconditionError)
    assert store.get_by_id(entry.id).status == EntryStatus.ACTIVE


def test_stale_journal_is_reported_as_warning(tmp_path: Path) -> None:
    class _StaleJournal(JournalStore):
        def mark_reverted(self, entry_id: str) -> StateEntry:
            raise StateError("journal is read-only")

    store = _StaleJournal(tmp_path / "state.json")
    entry = _applied(tmp_path, store, "a.mkv", "A.mkv")

    outcome = store.revert(entry.id)

    assert outcome.reverted
    assert outcome.warning is not None
    assert "read-only" in outcome.warning
    assert (tmp_path / "a.mkv").exists()
    assert store.get_by_id(entry.id).status == EntryStatus.ACTIVE


def test_revert_all_continues_past_failures(tmp_path: Path) -> None:
    store = _store(tmp_path)
    first = _applied(tmp_path, store, "a.mkv", "A.mkv")
    missing = store.record(tmp_path / "b.mkv", tmp_path / "B.mkv")
    third = _applied(tmp_path, store, "c.mkv", "C.mkv")

    result = store.revert_all()

    assert result.succeeded == 2
    assert result.failed == 1
    by_id = {outcome.entry_id: outcome for outcome in result.outcomes}
    assert by_id[first.id].reverted and by_id[third.id].reverted
    assert not by_id[missing.id].reverted
    assert by_id[missing.id].error is not None
    assert [entry.id for entry in store.get_all_active()] == [missing.id]


def test_revert_all_with_empty_journal(tmp_path: Path) -> None:
    result = _store(tmp_path).revert_all()

    assert result.outcomes == []
    assert result.succeeded == 0
    assert result.failed == 0
