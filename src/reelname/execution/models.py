"""Apply result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from reelname.planning.models import Change


@dataclass(slots=True)
class ApplyError:
    """A change whose rename failed."""

    change_id: str
    source: Path
    target: Path
    message: str


@dataclass(slots=True)
class ApplyWarning:
    """A rename that succeeded but could not be journaled."""

    change_id: str
    message: str


@dataclass(slots=True)
class ApplyResult:
    """Outcome of applying a plan.

    Attributes:
        applied: Changes whose file was renamed (or would be, for a dry run).
        errors: Changes whose rename failed.
        warnings: Non-fatal problems such as journal write failures.
        skipped: Changes that were not eligible for apply.
        dry_run: Whether the disk was left untouched.
    """

    applied: List[Change] = field(default_factory=list)
    errors: List[ApplyError] = field(default_factory=list)
    warnings: List[ApplyWarning] = field(default_factory=list)
    skipped: List[Change] = field(default_factory=list)
    dry_run: bool = False

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    @property
    def ok(self) -> bool:
        return not self.errors


__all__ = ["ApplyError", "ApplyWarning", "ApplyResult"]
