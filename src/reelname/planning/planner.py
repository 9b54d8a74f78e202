"""Plan construction from enriched media files."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from reelname.config.models import ConflictStrategy
from reelname.formatting import FormatError, NameFormatter
from reelname.media.models import MediaFile
from reelname.metadata.pipeline import FileFailure

from .conflicts import ConflictDetector, ConflictResolver, ExistsCheck, path_exists
from .models import Action, Change, FileRef, Plan

LOGGER = logging.getLogger(__name__)


class PlanBuilder:
    """Derive a rename plan from media files and a name formatter."""

    def __init__(
        self,
        formatter: NameFormatter,
        *,
        strategy: Optional[ConflictStrategy] = None,
        per_file_strategy: bool = False,
        exists: ExistsCheck = path_exists,
        resolver: Optional[ConflictResolver] = None,
    ) -> None:
        """Configure the builder.

        Args:
            formatter: Renders target filenames.
            strategy: Conflict strategy applied after detection; ``None`` leaves
                conflicts unresolved.
            per_file_strategy: Resolve each conflict with the strategy carried by
                its first file instead of ``strategy``.
            exists: Filesystem existence check used by detection and resolution.
            resolver: Resolver to use; one sharing ``exists`` is created when omitted.
        """
        self._formatter = formatter
        self._strategy = strategy
        self._per_file_strategy = per_file_strategy
        self._detector = ConflictDetector(exists)
        self._resolver = resolver or ConflictResolver(exists)

    @property
    def resolver(self) -> ConflictResolver:
        return self._resolver

    def build(
        self,
        files: Iterable[MediaFile],
        *,
        failures: Iterable[FileFailure] = (),
    ) -> Plan:
        """Produce a plan for ``files``.

        Files are processed in path order so identical inputs and disk state
        always produce the same classifications and targets. Files listed in
        ``failures`` (metadata lookups that failed) and files the formatter
        rejects are recorded in ``Plan.errors`` and get no change.

        Raises:
            ConflictResolutionError: If the configured strategy cannot resolve a
                conflict; the partially resolved plan must not be applied.
        """
        plan = Plan()
        strategies: dict[str, ConflictStrategy] = {}
        failed = {failure.path: failure.message for failure in failures}

        for media in sorted(files, key=lambda item: str(item.path)):
            if media.path in failed:
                plan.add_error(media.path, f"metadata lookup failed: {failed[media.path]}")
                continue
            try:
                change = self._build_change(media)
            except FormatError as exc:
                LOGGER.debug("Failed to plan %s: %s", media.path, exc)
                plan.add_error(media.path, f"error while formatting filename: {exc}")
                continue
            plan.changes.append(change)
            strategies[change.id] = media.conflict_strategy

        plan.conflicts = self._detector.detect(plan.changes)
        self._detector.attach(plan)

        if plan.conflicts:
            LOGGER.debug("Detected %d conflict(s)", len(plan.conflicts))
            self._resolve(plan, strategies)
        return plan

    def _build_change(self, media: MediaFile) -> Change:
        target_name = self._formatter.format(media)
        target_path = media.path.parent / target_name
        action = Action.NOOP if target_name == media.filename else Action.RENAME
        return Change(
            action=action,
            before=FileRef(path=media.path, filename=media.filename),
            after=FileRef(path=target_path, filename=target_name),
        )

    def _resolve(self, plan: Plan, strategies: dict[str, ConflictStrategy]) -> None:
        if not self._per_file_strategy:
            if self._strategy is not None:
                self._resolver.resolve_all(plan, self._strategy)
            return

        for conflict in plan.unresolved_conflicts():
            strategy = strategies[conflict.change_ids[0]]
            if strategy == ConflictStrategy.PROMPT_USER:
                continue
            self._resolver.resolve(plan, conflict.id, strategy)


__all__ = ["PlanBuilder"]
