"""Conflict detection and resolution for rename plans."""

from __future__ import annotations

import logging
import os
import threading
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Sequence

from reelname.config.models import ConflictStrategy

from .errors import ConflictResolutionError
from .models import Action, Change, Conflict, ConflictResolution, ConflictType, FileRef, Plan

LOGGER = logging.getLogger(__name__)

ExistsCheck = Callable[[Path], bool]
Clock = Callable[[], datetime]

SKIP_MARKER = "skip"


def path_exists(path: Path) -> bool:
    """Return True when anything, including a dangling symlink, occupies ``path``."""
    return os.path.lexists(path)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConflictDetector:
    """Find target paths claimed by several changes or already present on disk."""

    def __init__(self, exists: ExistsCheck = path_exists) -> None:
        self._exists = exists

    def detect(self, changes: Sequence[Change]) -> List[Conflict]:
        """Return conflicts among the rename changes in ``changes``.

        Changes are grouped by target path in list order. A group with several
        members yields one ``multiple_source`` conflict; a single member whose
        target exists on disk yields one ``target_exists`` conflict. Noop and
        skip changes are ignored, and no change appears in two conflicts.
        """
        groups: Dict[Path, List[str]] = {}
        for change in changes:
            if change.action == Action.RENAME:
                groups.setdefault(change.after.path, []).append(change.id)

        conflicts: List[Conflict] = []
        for target, change_ids in groups.items():
            if len(change_ids) > 1:
                conflict_type = ConflictType.MULTIPLE_SOURCE
            elif self._exists(target):
                conflict_type = ConflictType.TARGET_EXISTS
            else:
                continue
            conflicts.append(
                Conflict(target_path=target, change_ids=change_ids, conflict_type=conflict_type)
            )
            LOGGER.debug("Detected %s conflict on %s", conflict_type.value, target)
        return conflicts

    def attach(self, plan: Plan) -> None:
        """Store each conflict id on the changes it involves."""
        index: Dict[str, List[str]] = defaultdict(list)
        for conflict in plan.conflicts:
            for change_id in conflict.change_ids:
                index[change_id].append(conflict.id)
        for change in plan.changes:
            change.conflict_ids = list(index.get(change.id, []))


class _MonotonicStamp:
    """Timestamps that strictly increase even when the clock does not."""

    def __init__(self, clock: Clock = _utcnow) -> None:
        self._clock = clock
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def next(self) -> datetime:
        with self._lock:
            now = self._clock()
            if self._last is not None and now <= self._last:
                now = self._last + timedelta(microseconds=1)
            self._last = now
            return now


class ConflictResolver:
    """Apply a conflict strategy to the conflicts of a plan."""

    def __init__(self, exists: ExistsCheck = path_exists, clock: Clock = _utcnow) -> None:
        self._exists = exists
        self._clock = clock
        self._stamps = _MonotonicStamp(clock)

    def resolve_all(self, plan: Plan, strategy: ConflictStrategy | str) -> None:
        """Resolve every unresolved conflict of ``plan`` in list order.

        ``prompt_user`` leaves conflicts unresolved for an interactive caller,
        which then resolves them one at a time through :meth:`resolve`.

        Raises:
            ConflictResolutionError: On an unknown strategy or a broken conflict.
                Conflicts after the failing one are left untouched and the plan
                must not be applied.
        """
        chosen = self._coerce(strategy)
        if chosen == ConflictStrategy.PROMPT_USER:
            LOGGER.info("Leaving %d conflict(s) for interactive resolution", len(plan.unresolved_conflicts()))
            return

        for conflict in plan.conflicts:
            if conflict.resolved:
                continue
            LOGGER.debug("Resolving conflict %s with %s", conflict.id, chosen.value)
            try:
                self._resolve(plan, conflict, chosen)
            except ConflictResolutionError:
                LOGGER.error("Failed to resolve conflict %s", conflict.id)
                raise

    def resolve(self, plan: Plan, conflict_id: str, strategy: ConflictStrategy | str) -> Conflict:
        """Resolve a single conflict chosen by an interactive caller.

        Raises:
            ConflictResolutionError: If the conflict is unknown or already
                resolved, or the strategy is unknown or ``prompt_user``.
        """
        chosen = self._coerce(strategy)
        if chosen == ConflictStrategy.PROMPT_USER:
            raise ConflictResolutionError("prompt_user cannot resolve a conflict; choose a concrete strategy")
        conflict = plan.conflict_by_id(conflict_id)
        if conflict is None:
            raise ConflictResolutionError(f"Unknown conflict id {conflict_id}")
        if conflict.resolved:
            raise ConflictResolutionError(f"Conflict {conflict_id} is already resolved")
        self._resolve(plan, conflict, chosen)
        return conflict

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _coerce(self, strategy: ConflictStrategy | str) -> ConflictStrategy:
        try:
            return ConflictStrategy(strategy)
        except ValueError as exc:
            raise ConflictResolutionError(f"Unsupported conflict strategy: {strategy!r}") from exc

    def _resolve(self, plan: Plan, conflict: Conflict, strategy: ConflictStrategy) -> None:
        changes = self._changes_for(plan, conflict)

        if conflict.conflict_type == ConflictType.MULTIPLE_SOURCE:
            if len(changes) < 2:
                raise ConflictResolutionError(
                    f"multiple_source conflict {conflict.id} has {len(changes)} change(s)"
                )
            modifications = self._resolve_multiple_source(plan, changes, strategy)
        elif conflict.conflict_type == ConflictType.TARGET_EXISTS:
            if len(changes) != 1:
                raise ConflictResolutionError(
                    f"target_exists conflict {conflict.id} should have exactly one change, got {len(changes)}"
                )
            modifications = self._resolve_target_exists(changes[0], strategy)
        else:  # pragma: no cover - exhaustive over ConflictType
            raise ConflictResolutionError(f"Unknown conflict type: {conflict.conflict_type}")

        conflict.resolved = True
        conflict.resolution = ConflictResolution(
            strategy=strategy.value,
            modifications=modifications,
            timestamp=self._clock(),
        )
        for change in changes:
            change.conflict_ids = [cid for cid in change.conflict_ids if cid != conflict.id]

    def _changes_for(self, plan: Plan, conflict: Conflict) -> List[Change]:
        wanted = set(conflict.change_ids)
        changes = [change for change in plan.changes if change.id in wanted]
        if len(changes) != len(wanted):
            missing = wanted - {change.id for change in changes}
            raise ConflictResolutionError(
                f"Conflict {conflict.id} references unknown change(s): {', '.join(sorted(missing))}"
            )
        return changes

    def _resolve_multiple_source(
        self,
        plan: Plan,
        changes: List[Change],
        strategy: ConflictStrategy,
    ) -> Dict[str, str]:
        modifications: Dict[str, str] = {}

        if strategy == ConflictStrategy.SKIP:
            for change in changes:
                change.action = Action.SKIP
                modifications[change.id] = SKIP_MARKER
        elif strategy == ConflictStrategy.OVERWRITE:
            for change in changes[1:]:
                change.action = Action.SKIP
                modifications[change.id] = SKIP_MARKER
        # The first contender keeps the shared target only while nothing is on disk there.
        elif strategy == ConflictStrategy.APPEND_NUMBER:
            for index, change in enumerate(changes):
                if index == 0 and not self._exists(change.after.path):
                    continue
                target = self._numbered_target(plan, change, max(index, 1))
                modifications[change.id] = str(target.path)
                change.after = target
        elif strategy == ConflictStrategy.APPEND_TIMESTAMP:
            for index, change in enumerate(changes):
                if index == 0 and not self._exists(change.after.path):
                    continue
                target = self._timestamped_target(plan, change)
                modifications[change.id] = str(target.path)
                change.after = target
        else:
            raise ConflictResolutionError(f"Unsupported conflict strategy: {strategy.value}")
        return modifications

    def _resolve_target_exists(self, change: Change, strategy: ConflictStrategy) -> Dict[str, str]:
        if strategy == ConflictStrategy.OVERWRITE:
            # The rename stays and replaces the existing file at apply time.
            return {}
        # skip, and the numbering strategies which have no single-change behavior yet.
        change.action = Action.SKIP
        return {change.id: SKIP_MARKER}

    def _numbered_target(self, plan: Plan, change: Change, start: int) -> FileRef:
        stem, suffix = _split_name(change.after.filename)
        counter = start
        while True:
            filename = f"{stem} ({counter}){suffix}"
            candidate = change.after.path.with_name(filename)
            if not self._is_taken(plan, candidate, change.id):
                return FileRef(path=candidate, filename=filename)
            counter += 1

    def _timestamped_target(self, plan: Plan, change: Change) -> FileRef:
        stem, suffix = _split_name(change.after.filename)
        while True:
            stamp = self._stamps.next().strftime("%Y%m%d-%H%M%S.%f")
            filename = f"{stem} ({stamp}){suffix}"
            candidate = change.after.path.with_name(filename)
            if not self._is_taken(plan, candidate, change.id):
                return FileRef(path=candidate, filename=filename)

    def _is_taken(self, plan: Plan, candidate: Path, change_id: str) -> bool:
        for other in plan.changes:
            if other.id != change_id and other.action == Action.RENAME and other.after.path == candidate:
                return True
        return self._exists(candidate)


def _split_name(filename: str) -> tuple[str, str]:
    suffix = Path(filename).suffix
    return filename[: len(filename) - len(suffix)], suffix


__all__ = ["ConflictDetector", "ConflictResolver", "path_exists", "SKIP_MARKER"]
