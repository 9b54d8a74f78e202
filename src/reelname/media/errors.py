"""Media discovery errors."""


class DiscoveryError(Exception):
    """Raised when a root directory cannot be enumerated."""
