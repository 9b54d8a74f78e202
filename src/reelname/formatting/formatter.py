"""Template-driven filename formatter."""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Any, Mapping, Protocol

from reelname.config.models import FormattingSettings
from reelname.media.models import EpisodeMetadata, MediaFile, MediaKind, MovieMetadata

from .errors import FormatError

PLEX_MOVIE = "{name} ({year})"
PLEX_TV = "{name} - S{season:02d}E{episode:02d} - {title}"
KODI_TV = "{name} ({year}) - {title} {season}x{episode:02d}"
EMBY_TV = "{name} ({year}) - S{season:02d}E{episode:02d} - {title}"

_REPLACEMENTS = (
    (":", " -"),
    ("*", ""),
    ("?", ""),
    ('"', "'"),
    ("<", ""),
    (">", ""),
    ("|", ""),
    ("/", ""),
    ("\\", ""),
)
_WHITESPACE = re.compile(r"\s+")


class NameFormatter(Protocol):
    """Capability that renders a target filename from a file's metadata."""

    def format(self, file: MediaFile) -> str:
        """Return the target filename, extension included."""


def sanitize_filename(value: str) -> str:
    """Replace characters that are unsafe in filenames and collapse whitespace."""
    for old, new in _REPLACEMENTS:
        value = value.replace(old, new)
    return _WHITESPACE.sub(" ", value).strip()


class _Fields(dict):
    def __missing__(self, key: str) -> Any:
        raise FormatError(f"template field {key!r} is not available")


class TemplateFormatter:
    """Render filenames with ``str.format`` templates.

    Movie templates can use ``name``, ``year``, ``director`` and ``genre``.
    TV templates can use ``name`` (the show), ``title`` (the episode),
    ``year``, ``season`` and ``episode``. Fields whose value is unknown are
    treated as missing and fail the render.
    """

    def __init__(self, movie_template: str = PLEX_MOVIE, tv_template: str = PLEX_TV) -> None:
        self.movie_template = movie_template
        self.tv_template = tv_template

    @classmethod
    def from_settings(cls, settings: FormattingSettings) -> "TemplateFormatter":
        return cls(movie_template=settings.movie_template, tv_template=settings.tv_template)

    def format(self, file: MediaFile) -> str:
        """Return the target filename for ``file``.

        Raises:
            FormatError: If metadata is missing, does not match the media kind,
                or the template cannot be rendered.
        """
        if file.metadata is None:
            raise FormatError("no metadata available")

        if file.kind == MediaKind.MOVIE:
            if not isinstance(file.metadata, MovieMetadata):
                raise FormatError("expected movie metadata for a movie file")
            movie = file.metadata.movie
            template = self.movie_template
            fields = {
                "name": html.unescape(movie.title),
                "year": movie.year,
                "director": movie.director,
                "genre": movie.genre,
            }
        elif file.kind == MediaKind.TV:
            if not isinstance(file.metadata, EpisodeMetadata):
                raise FormatError("expected episode metadata for a TV file")
            episode = file.metadata.episode
            template = self.tv_template
            year = episode.air_date.year if episode.air_date else episode.show.year
            fields = {
                "name": html.unescape(episode.show.name),
                "title": html.unescape(episode.title),
                "year": year,
                "season": episode.season,
                "episode": episode.episode,
            }
        else:
            raise FormatError(f"cannot format media kind {file.kind.value!r}")

        rendered = sanitize_filename(self._render(template, fields))
        if not rendered:
            raise FormatError("template rendered an empty filename")
        return rendered + file.extension.lower()

    def _render(self, template: str, fields: Mapping[str, Any]) -> str:
        available = _Fields({key: value for key, value in fields.items() if value is not None})
        try:
            return template.format_map(available)
        except FormatError:
            raise
        except (ValueError, IndexError, KeyError, AttributeError) as exc:
            raise FormatError(f"invalid template {template!r}: {exc}") from exc


class DirectoryFormatter:
    """Delegate each file to the formatter registered for its directory.

    When directories are nested, the deepest one containing the file wins.
    """

    def __init__(self) -> None:
        self._routes: list[tuple[Path, NameFormatter]] = []

    def add(self, root: Path, formatter: NameFormatter) -> None:
        self._routes.append((root, formatter))
        self._routes.sort(key=lambda route: len(route[0].parts), reverse=True)

    def format(self, file: MediaFile) -> str:
        """Return the target filename from the formatter owning ``file``.

        Raises:
            FormatError: If no registered directory contains ``file``, or the
                owning formatter rejects it.
        """
        for root, formatter in self._routes:
            if file.path.is_relative_to(root):
                return formatter.format(file)
        raise FormatError(f"no configured directory contains {file.path}")


__all__ = [
    "DirectoryFormatter",
    "NameFormatter",
    "TemplateFormatter",
    "sanitize_filename",
    "PLEX_MOVIE",
    "PLEX_TV",
    "KODI_TV",
    "EMBY_TV",
]
