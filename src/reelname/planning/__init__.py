"""Rename planning: change construction, conflict detection, and resolution."""

from .conflicts import ConflictDetector, ConflictResolver, path_exists
from .errors import ConflictResolutionError, PlanningError
from .models import (
    Action,
    Change,
    Conflict,
    ConflictResolution,
    ConflictType,
    FileRef,
    Plan,
    PlanError,
    PlanSummary,
)
from .planner import PlanBuilder

__all__ = [
    "Action",
    "Change",
    "Conflict",
    "ConflictDetector",
    "ConflictResolution",
    "ConflictResolutionError",
    "ConflictResolver",
    "ConflictType",
    "FileRef",
    "Plan",
    "PlanBuilder",
    "PlanError",
    "PlanSummary",
    "PlanningError",
    "path_exists",
]
