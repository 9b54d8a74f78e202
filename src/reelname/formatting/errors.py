"""Formatting errors."""


class FormatError(Exception):
    """Raised when a target filename cannot be rendered for a file."""
