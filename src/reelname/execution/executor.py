"""Execute rename plans against the filesystem."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional

from reelname.fs import FileRenamer, Renamer
from reelname.media.models import Metadata
from reelname.planning.models import Plan
from reelname.state import JournalStore, StateError

from .models import ApplyError, ApplyResult, ApplyWarning

LOGGER = logging.getLogger(__name__)


class ApplyExecutor:
    """Rename the eligible changes of a plan and journal each success."""

    def __init__(self, renamer: Renamer, journal: Optional[JournalStore] = None) -> None:
        """Initialize the executor.

        Args:
            renamer: Filesystem capability performing each rename.
            journal: Store recording applied renames; ``None`` disables journaling.
        """
        self._renamer = renamer
        self._journal = journal

    @classmethod
    def default(cls, journal_path: Path | None = None) -> "ApplyExecutor":
        """Build an executor backed by the real filesystem and journal."""
        renamer = FileRenamer()
        return cls(renamer, JournalStore(journal_path, renamer=renamer))

    def apply(
        self,
        plan: Plan,
        *,
        dry_run: bool = False,
        media_info: Optional[Mapping[Path, Metadata]] = None,
    ) -> ApplyResult:
        """Apply ``plan`` in change order.

        A change is applied only when its action is ``rename`` and no
        unresolved conflict is attached to it. A failing rename is recorded
        and the remaining changes still run. A rename that succeeds but cannot
        be journaled is reported as a warning, not an error.

        Args:
            plan: Plan to apply.
            dry_run: Report eligible changes without touching the disk.
            media_info: Optional metadata snapshots keyed by source path.

        Returns:
            ApplyResult: Applied, failed, skipped changes and warnings.
        """
        result = ApplyResult(dry_run=dry_run)
        snapshots = media_info or {}

        for change in plan.changes:
            if not change.is_eligible:
                result.skipped.append(change)
                continue

            source = change.before.path
            target = change.after.path
            if dry_run:
                LOGGER.info("[dry-run] %s -> %s", source, target)
                result.applied.append(change)
                continue

            try:
                self._renamer.rename(source, target)
            except OSError as exc:
                LOGGER.error("Failed to rename %s -> %s: %s", source, target, exc)
                result.errors.append(
                    ApplyError(change_id=change.id, source=source, target=target, message=str(exc))
                )
                continue

            LOGGER.info("Renamed %s -> %s", source, target)
            result.applied.append(change)

            if self._journal is None:
                continue
            try:
                self._journal.record(source, target, snapshots.get(source))
            except StateError as exc:
                LOGGER.warning("Renamed %s but could not journal it: %s", source, exc)
                result.warnings.append(
                    ApplyWarning(change_id=change.id, message=f"failed to save state: {exc}")
                )

        LOGGER.info(
            "Applied %d change(s), %d error(s), %d skipped",
            result.applied_count,
            len(result.errors),
            len(result.skipped),
        )
        return result


__all__ = ["ApplyExecutor"]
