"""Planning errors."""


class PlanningError(Exception):
    """Base exception for plan construction."""


class ConflictResolutionError(PlanningError):
    """Raised when a conflict cannot be resolved with the requested strategy."""
