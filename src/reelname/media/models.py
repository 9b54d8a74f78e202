"""Media data models shared by discovery, metadata lookup, and formatting."""

from __future__ import annotations

from datetime import date
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from reelname.config.models import ConflictStrategy


class MediaKind(str, Enum):
    """Kind of media a file is believed to contain."""

    MOVIE = "movie"
    TV = "tv"
    UNKNOWN = "unknown"


class ExternalIDs(BaseModel):
    """Identifiers assigned by external metadata services."""

    tmdb_id: Optional[str] = None
    imdb_id: Optional[str] = None


class Movie(BaseModel):
    """Movie record resolved by a metadata provider.

    Attributes:
        id: Provider-specific identifier.
        title: Localized display title.
        original_title: Title in the original language.
        release_date: Theatrical release date when known.
        genre: Primary genre label.
        director: Director name when known.
        external_ids: Identifiers in external catalogues.
    """

    id: str = ""
    title: str
    original_title: Optional[str] = None
    release_date: Optional[date] = None
    genre: Optional[str] = None
    director: Optional[str] = None
    external_ids: ExternalIDs = Field(default_factory=ExternalIDs)

    @property
    def year(self) -> Optional[int]:
        """Return the release year if the release date is known."""
        return self.release_date.year if self.release_date else None


class TVShow(BaseModel):
    """TV show record resolved by a metadata provider."""

    id: str = ""
    name: str
    original_name: Optional[str] = None
    first_air_date: Optional[date] = None
    genre: Optional[str] = None
    seasons: int = 0
    episodes: int = 0
    external_ids: ExternalIDs = Field(default_factory=ExternalIDs)

    @property
    def year(self) -> Optional[int]:
        return self.first_air_date.year if self.first_air_date else None


class Episode(BaseModel):
    """Single TV episode together with the show it belongs to."""

    title: str
    season: int
    episode: int
    air_date: Optional[date] = None
    summary: Optional[str] = None
    show: TVShow
    external_ids: ExternalIDs = Field(default_factory=ExternalIDs)


class MovieMetadata(BaseModel):
    """Metadata payload for a movie file."""

    kind: Literal["movie"] = "movie"
    movie: Movie


class EpisodeMetadata(BaseModel):
    """Metadata payload for a TV episode file."""

    kind: Literal["episode"] = "episode"
    episode: Episode


Metadata = Annotated[Union[MovieMetadata, EpisodeMetadata], Field(discriminator="kind")]


class MediaFile(BaseModel):
    """Unit of work flowing through lookup, planning, and apply.

    Attributes:
        path: Absolute path of the file on disk.
        filename: Base filename including the extension.
        kind: Inferred or overridden media kind.
        metadata: Metadata resolved by a provider, if any.
        conflict_strategy: Conflict policy for the directory the file came from.
    """

    path: Path
    filename: str
    kind: MediaKind = MediaKind.UNKNOWN
    metadata: Optional[Metadata] = None
    conflict_strategy: ConflictStrategy = ConflictStrategy.APPEND_NUMBER

    @classmethod
    def from_path(
        cls,
        path: Path,
        kind: MediaKind = MediaKind.UNKNOWN,
        conflict_strategy: ConflictStrategy = ConflictStrategy.APPEND_NUMBER,
    ) -> "MediaFile":
        """Build a media file for ``path`` with no metadata attached."""
        return cls(path=path, filename=path.name, kind=kind, conflict_strategy=conflict_strategy)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix


__all__ = [
    "MediaKind",
    "ExternalIDs",
    "Movie",
    "TVShow",
    "Episode",
    "MovieMetadata",
    "EpisodeMetadata",
    "Metadata",
    "MediaFile",
]
