"""Media file discovery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Literal

from reelname.config.models import DEFAULT_CONFLICT_STRATEGY, ConflictStrategy

from .errors import DiscoveryError
from .models import MediaFile, MediaKind
from .parsing import guess_media_kind

LOGGER = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset(
    {
        ".mkv",
        ".mp4",
        ".avi",
        ".mov",
        ".wmv",
        ".flv",
        ".webm",
        ".m4v",
        ".mpg",
        ".mpeg",
        ".3gp",
        ".ogv",
    }
)


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


class DirectoryScanner:
    """Discover video files below a root directory."""

    def __init__(
        self,
        *,
        recursive: bool,
        include_hidden: bool = False,
        kind_override: Literal["auto", "movie", "tv"] = "auto",
        conflict_strategy: ConflictStrategy = DEFAULT_CONFLICT_STRATEGY,
    ) -> None:
        self.recursive = recursive
        self.include_hidden = include_hidden
        self.kind_override = kind_override
        self.conflict_strategy = conflict_strategy

    def scan(self, root: Path) -> list[MediaFile]:
        """Return the video files under ``root`` sorted by path.

        Raises:
            DiscoveryError: If ``root`` is missing, not a directory, or unreadable.
        """
        root = root.expanduser().resolve()
        if not root.is_dir():
            raise DiscoveryError(f"Cannot scan {root}: not a directory")

        try:
            found = sorted(set(self._iter_files(root)))
        except OSError as exc:
            raise DiscoveryError(f"Cannot scan {root}: {exc}") from exc

        LOGGER.debug("Discovered %d video file(s) under %s", len(found), root)
        return [
            MediaFile.from_path(
                path,
                kind=self._kind_for(path),
                conflict_strategy=self.conflict_strategy,
            )
            for path in found
        ]

    def _iter_files(self, root: Path) -> Iterator[Path]:
        for path in self._iter_paths(root):
            if not path.is_file():
                continue
            if not self.include_hidden and _is_hidden(path.relative_to(root)):
                continue
            if path.suffix.lower() not in VIDEO_EXTENSIONS:
                LOGGER.debug("Skipping unsupported file type: %s", path)
                continue
            yield path

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        if self.recursive:
            return root.rglob("*")
        return root.iterdir()

    def _kind_for(self, path: Path) -> MediaKind:
        if self.kind_override == "movie":
            return MediaKind.MOVIE
        if self.kind_override == "tv":
            return MediaKind.TV
        return guess_media_kind(path.name)


__all__ = ["DirectoryScanner", "VIDEO_EXTENSIONS"]
