"""Media files, their metadata records, and discovery."""

from .discovery import VIDEO_EXTENSIONS, DirectoryScanner
from .errors import DiscoveryError
from .models import (
    Episode,
    EpisodeMetadata,
    ExternalIDs,
    MediaFile,
    MediaKind,
    Metadata,
    Movie,
    MovieMetadata,
    TVShow,
)

__all__ = [
    "DirectoryScanner",
    "DiscoveryError",
    "Episode",
    "EpisodeMetadata",
    "ExternalIDs",
    "MediaFile",
    "MediaKind",
    "Metadata",
    "Movie",
    "MovieMetadata",
    "TVShow",
    "VIDEO_EXTENSIONS",
]
