"""Journal and revert errors."""


class StateError(Exception):
    """Base exception for journal operations."""


class EntryNotFoundError(StateError):
    """Raised when a journal entry id does not exist."""


class NoActiveEntriesError(StateError):
    """Raised when the journal has no entry left to revert."""


class RevertError(StateError):
    """Raised when a revert could not move the file back."""


class RevertPreconditionError(RevertError):
    """Raised when a revert is refused before touching the filesystem.

    Covers entries that were already reverted, files missing from their
    renamed location, and original locations that are occupied again.
    """
