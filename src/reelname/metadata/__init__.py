"""Metadata enrichment: the provider capability, the pipeline, and TMDb."""

from .errors import MetadataCancelledError, MetadataError, NoMatchError, ProviderError
from .pipeline import EnrichmentResult, FileFailure, MetadataPipeline, MetadataProvider
from .ratelimit import RateLimiter

__all__ = [
    "EnrichmentResult",
    "FileFailure",
    "MetadataCancelledError",
    "MetadataError",
    "MetadataPipeline",
    "MetadataProvider",
    "NoMatchError",
    "ProviderError",
    "RateLimiter",
]
