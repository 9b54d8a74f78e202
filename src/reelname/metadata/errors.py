"""Metadata lookup errors."""


class MetadataError(Exception):
    """Raised when metadata for a file cannot be resolved."""


class MetadataCancelledError(MetadataError):
    """Raised for files whose lookup was abandoned after cancellation."""


class ProviderError(MetadataError):
    """Raised when the metadata service fails or returns unusable data."""


class NoMatchError(ProviderError):
    """Raised when the metadata service has no match for a file."""
