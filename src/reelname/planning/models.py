"""Rename plan data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def new_id() -> str:
    """Return a fresh identifier for plans, changes, and conflicts."""
    return uuid.uuid4().hex


class Action(str, Enum):
    """What a change will do when the plan is applied."""

    NOOP = "noop"
    RENAME = "rename"
    SKIP = "skip"

    @property
    def symbol(self) -> str:
        return {"noop": " ", "rename": "~", "skip": "-"}[self.value]


class FileRef(BaseModel):
    """Location of a file before or after a change."""

    path: Path
    filename: str


class Change(BaseModel):
    """One planned transformation of a file.

    Attributes:
        id: Unique change identifier.
        action: Classification of the change.
        before: Current location of the file.
        after: Proposed location of the file.
        conflict_ids: Unresolved conflicts currently attached to the change.
    """

    id: str = Field(default_factory=new_id)
    action: Action = Action.NOOP
    before: FileRef
    after: FileRef
    conflict_ids: List[str] = Field(default_factory=list)

    @property
    def is_conflicting(self) -> bool:
        return bool(self.conflict_ids)

    @property
    def is_eligible(self) -> bool:
        """Whether the change may be applied."""
        return self.action == Action.RENAME and not self.conflict_ids


class ConflictType(str, Enum):
    """Kinds of target-path collisions."""

    MULTIPLE_SOURCE = "multiple_source"
    TARGET_EXISTS = "target_exists"


class ConflictResolution(BaseModel):
    """How a conflict was resolved.

    Attributes:
        strategy: Name of the strategy applied.
        modifications: Change id mapped to its new target path, or ``"skip"``
            for changes that were skipped.
        timestamp: When the resolution happened.
    """

    strategy: str
    modifications: Dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Conflict(BaseModel):
    """A detected collision on a target path."""

    id: str = Field(default_factory=new_id)
    target_path: Path
    change_ids: List[str]
    conflict_type: ConflictType
    resolved: bool = False
    resolution: Optional[ConflictResolution] = None


class PlanError(BaseModel):
    """A file that could not be planned."""

    file: str
    message: str


class PlanSummary(BaseModel):
    """Counts describing a plan."""

    total_changes: int = 0
    ready_changes: int = 0
    conflicted_changes: int = 0
    skipped_changes: int = 0
    noop_changes: int = 0
    error_changes: int = 0
    total_conflicts: int = 0
    resolved_conflicts: int = 0


class Plan(BaseModel):
    """Changes, errors, and conflicts computed for one batch of files."""

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    changes: List[Change] = Field(default_factory=list)
    errors: List[PlanError] = Field(default_factory=list)
    conflicts: List[Conflict] = Field(default_factory=list)

    def add_error(self, file: Path | str, message: str) -> None:
        self.errors.append(PlanError(file=str(file), message=message))

    def change_by_id(self, change_id: str) -> Optional[Change]:
        return next((change for change in self.changes if change.id == change_id), None)

    def conflict_by_id(self, conflict_id: str) -> Optional[Conflict]:
        return next((conflict for conflict in self.conflicts if conflict.id == conflict_id), None)

    def unresolved_conflicts(self) -> List[Conflict]:
        return [conflict for conflict in self.conflicts if not conflict.resolved]

    def has_unresolved_conflicts(self) -> bool:
        return any(not conflict.resolved for conflict in self.conflicts)

    def eligible_changes(self) -> List[Change]:
        return [change for change in self.changes if change.is_eligible]

    def summary(self) -> PlanSummary:
        """Count changes by state and conflicts by resolution."""
        summary = PlanSummary(
            total_changes=len(self.changes),
            error_changes=len(self.errors),
            total_conflicts=len(self.conflicts),
            resolved_conflicts=sum(1 for conflict in self.conflicts if conflict.resolved),
        )
        for change in self.changes:
            if change.action == Action.RENAME:
                if change.is_conflicting:
                    summary.conflicted_changes += 1
                else:
                    summary.ready_changes += 1
            elif change.action == Action.SKIP:
                summary.skipped_changes += 1
            else:
                summary.noop_changes += 1
        return summary


__all__ = [
    "Action",
    "FileRef",
    "Change",
    "ConflictType",
    "ConflictResolution",
    "Conflict",
    "PlanError",
    "PlanSummary",
    "Plan",
    "new_id",
]
