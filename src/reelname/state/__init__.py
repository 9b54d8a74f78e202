"""Rename journal persistence and revert for reelname.

The journal is a single JSON document rewritten in full after every change.
It assumes a single writer: concurrent processes must serialize access
themselves, for example with a file lock around apply and revert.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from reelname.fs import FileRenamer, Renamer
from reelname.media.models import Metadata

from .errors import (
    EntryNotFoundError,
    NoActiveEntriesError,
    RevertError,
    RevertPreconditionError,
    StateError,
)
from .models import JOURNAL_VERSION, EntryStatus, JournalState, StateEntry

LOGGER = logging.getLogger(__name__)

DEFAULT_JOURNAL_PATH = Path("~/.reelname/state.json")
SUPPORTED_MAJOR_VERSION = JOURNAL_VERSION.split(".")[0]


@dataclass(slots=True)
class RevertOutcome:
    """Result of reverting one journal entry.

    Attributes:
        entry_id: Identifier of the journal entry.
        original_path: Location the file was (or would have been) moved back to.
        new_path: Location the file was moved from.
        reverted: Whether the file was moved back.
        error: Reason the revert was refused or failed.
        warning: Set when the file was restored but the journal could not be
            updated, leaving the entry marked active.
    """

    entry_id: str
    original_path: str
    new_path: str
    reverted: bool
    error: Optional[str] = None
    warning: Optional[str] = None


@dataclass(slots=True)
class RevertBatchResult:
    """Per-entry breakdown of a batch revert."""

    outcomes: List[RevertOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.reverted)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.reverted)

    @property
    def warnings(self) -> List[str]:
        return [outcome.warning for outcome in self.outcomes if outcome.warning]


class JournalStore:
    """Persist applied renames and undo them."""

    def __init__(self, path: Path | None = None, *, renamer: Renamer | None = None) -> None:
        """Initialize the store.

        Args:
            path: Journal file location; defaults to ``~/.reelname/state.json``.
            renamer: Filesystem capability used to move files back on revert.
        """
        self._path = (path or DEFAULT_JOURNAL_PATH).expanduser()
        self._renamer = renamer or FileRenamer()

    @property
    def path(self) -> Path:
        """Return the journal file location."""
        return self._path

    def load(self) -> JournalState:
        """Read the journal.

        Returns:
            JournalState: Stored journal, or an empty one when no file exists yet.

        Raises:
            StateError: If the file cannot be read, parsed, or has an unsupported version.
        """
        if not self._path.exists():
            return JournalState()

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise StateError(f"Cannot read journal {self._path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StateError(f"Invalid journal data in {self._path}: {exc}") from exc

        try:
            state = JournalState.model_validate(data)
        except ValidationError as exc:
            raise StateError(f"Invalid journal data in {self._path}: {exc}") from exc

        if state.version.split(".")[0] != SUPPORTED_MAJOR_VERSION:
            raise StateError(
                f"Unsupported journal version {state.version!r} (expected {JOURNAL_VERSION})"
            )
        return state

    def save(self, state: JournalState) -> None:
        """Atomically replace the journal with ``state``.

        The document is written to a temporary file beside the journal and
        moved into place, so readers never observe a partial write.

        Raises:
            StateError: If the journal cannot be written.
        """
        payload = state.model_dump_json(indent=2)
        temp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_name, self._path)
        except OSError as exc:
            if temp_name is not None and os.path.exists(temp_name):
                os.unlink(temp_name)
            raise StateError(f"Cannot write journal {self._path}: {exc}") from exc

    def append(self, entry: StateEntry) -> StateEntry:
        """Add ``entry`` to the journal and persist it."""
        state = self.load()
        state.entries.append(entry)
        self.save(state)
        LOGGER.debug("Journaled rename %s: %s -> %s", entry.id, entry.original_name, entry.new_name)
        return entry

    def record(
        self,
        original_path: Path,
        new_path: Path,
        media_info: Optional[Metadata] = None,
    ) -> StateEntry:
        """Journal a rename of ``original_path`` to ``new_path``."""
        return self.append(
            StateEntry(
                original_path=str(original_path),
                new_path=str(new_path),
                original_name=original_path.name,
                new_name=new_path.name,
                media_info=media_info,
            )
        )

    def entries(self) -> List[StateEntry]:
        return list(self.load().entries)

    def get_by_id(self, entry_id: str) -> StateEntry:
        """Return the entry with ``entry_id``.

        Raises:
            EntryNotFoundError: If no such entry exists.
        """
        for entry in self.load().entries:
            if entry.id == entry_id:
                return entry
        raise EntryNotFoundError(f"Journal entry {entry_id} not found")

    def get_all_active(self) -> List[StateEntry]:
        """Return every entry that has not been reverted."""
        return [entry for entry in self.load().entries if entry.status == EntryStatus.ACTIVE]

    def get_last_active(self) -> StateEntry:
        """Return the most recent active entry.

        Raises:
            NoActiveEntriesError: If every entry has been reverted.
        """
        active = self.get_all_active()
        if not active:
            raise NoActiveEntriesError("No active entries found")
        last = active[0]
        for entry in active[1:]:
            if entry.timestamp >= last.timestamp:
                last = entry
        return last

    def mark_reverted(self, entry_id: str) -> StateEntry:
        """Flag ``entry_id`` as reverted and persist the journal.

        Raises:
            EntryNotFoundError: If no such entry exists.
            StateError: If the journal cannot be written.
        """
        state = self.load()
        for entry in state.entries:
            if entry.id == entry_id:
                entry.reverted = True
                entry.reverted_at = datetime.now(timezone.utc)
                self.save(state)
                LOGGER.debug("Marked journal entry %s as reverted", entry_id)
                return entry
        raise EntryNotFoundError(f"Journal entry {entry_id} not found")

    def revert(self, entry_id: str) -> RevertOutcome:
        """Move the file of ``entry_id`` back to its original path.

        The entry must be active, its file must exist at the new path, and
        nothing may occupy the original path; otherwise nothing is touched.
        When the file is restored but the journal cannot be updated, the
        outcome carries a warning instead of raising.

        Raises:
            EntryNotFoundError: If no such entry exists.
            RevertPreconditionError: If a precondition does not hold.
            RevertError: If the file could not be moved back.
        """
        entry = self.get_by_id(entry_id)
        original = Path(entry.original_path)
        current = Path(entry.new_path)

        if entry.status == EntryStatus.REVERTED:
            raise RevertPreconditionError(f"Entry {entry_id} has already been reverted")
        if not os.path.lexists(current):
            raise RevertPreconditionError(f"File no longer exists at {current}")
        if os.path.lexists(original):
            raise RevertPreconditionError(f"Cannot revert: a file already exists at {original}")

        try:
            self._renamer.rename(current, original)
        except OSError as exc:
            raise RevertError(f"Failed to move {current} back to {original}: {exc}") from exc
        LOGGER.info("Reverted %s -> %s", current, original)

        outcome = RevertOutcome(
            entry_id=entry.id,
            original_path=entry.original_path,
            new_path=entry.new_path,
            reverted=True,
        )
        try:
            self.mark_reverted(entry.id)
        except StateError as exc:
            LOGGER.warning("File restored but journal entry %s is stale: %s", entry.id, exc)
            outcome.warning = f"file restored but journal not updated: {exc}"
        return outcome

    def revert_last(self) -> RevertOutcome:
        """Revert the most recent active entry.

        Raises:
            NoActiveEntriesError: If there is nothing left to revert.
        """
        return self.revert(self.get_last_active().id)

    def revert_all(self) -> RevertBatchResult:
        """Revert every active entry, newest first, continuing past failures."""
        active = sorted(self.get_all_active(), key=lambda entry: entry.timestamp, reverse=True)
        result = RevertBatchResult()
        for entry in active:
            try:
                result.outcomes.append(self.revert(entry.id))
            except StateError as exc:
                LOGGER.warning("Could not revert entry %s: %s", entry.id, exc)
                result.outcomes.append(
                    RevertOutcome(
                        entry_id=entry.id,
                        original_path=entry.original_path,
                        new_path=entry.new_path,
                        reverted=False,
                        error=str(exc),
                    )
                )
        LOGGER.info("Reverted %d of %d active entries", result.succeeded, len(active))
        return result


__all__ = [
    "DEFAULT_JOURNAL_PATH",
    "JOURNAL_VERSION",
    "EntryNotFoundError",
    "EntryStatus",
    "JournalState",
    "JournalStore",
    "NoActiveEntriesError",
    "RevertBatchResult",
    "RevertError",
    "RevertOutcome",
    "RevertPreconditionError",
    "StateEntry",
    "StateError",
]
