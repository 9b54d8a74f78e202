"""Target filename rendering."""

from .errors import FormatError
from .formatter import (
    DirectoryFormatter,
    EMBY_TV,
    KODI_TV,
    PLEX_MOVIE,
    PLEX_TV,
    NameFormatter,
    TemplateFormatter,
    sanitize_filename,
)

__all__ = [
    "DirectoryFormatter",
    "EMBY_TV",
    "KODI_TV",
    "PLEX_MOVIE",
    "PLEX_TV",
    "FormatError",
    "NameFormatter",
    "TemplateFormatter",
    "sanitize_filename",
]
