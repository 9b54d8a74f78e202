"""Metadata provider backed by The Movie Database (TMDb) v3 API."""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Dict, Optional

import requests

from reelname.media.models import (
    Episode,
    EpisodeMetadata,
    ExternalIDs,
    MediaFile,
    MediaKind,
    Movie,
    MovieMetadata,
    TVShow,
)
from reelname.media.parsing import clean_title, extract_season_episode, extract_year

from .errors import MetadataError, NoMatchError, ProviderError
from .ratelimit import RateLimiter

LOGGER = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_TIMEOUT = 10


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


class TMDbProvider:
    """Resolve movie and episode metadata through TMDb.

    The first search result is taken as the match. Show searches are cached so
    a season's worth of episodes costs one search request.
    """

    def __init__(
        self,
        api_key: str,
        *,
        session: requests.Session | None = None,
        limiter: RateLimiter | None = None,
        base_url: str = TMDB_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        if not api_key:
            raise ProviderError("A TMDb API key is required (set providers.tmdb_api_key).")
        self._api_key = api_key
        self._session = session or requests.Session()
        self._limiter = limiter
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._show_cache: Dict[tuple[str, Optional[int]], TVShow] = {}
        self._cache_lock = threading.Lock()

    def provide(self, file: MediaFile) -> None:
        """Attach movie or episode metadata to ``file``.

        Raises:
            MetadataError: If the media kind is unknown or the filename lacks
                season/episode numbers.
            ProviderError: If TMDb fails or has no match.
        """
        if file.kind == MediaKind.MOVIE:
            title = clean_title(file.filename, MediaKind.MOVIE)
            movie = self.search_movie(title, extract_year(file.filename))
            file.metadata = MovieMetadata(movie=movie)
            return

        if file.kind == MediaKind.TV:
            season, number = extract_season_episode(file.filename)
            if season is None or number is None:
                raise MetadataError(f"Could not extract season/episode from {file.filename}")
            show = self.search_show(clean_title(file.filename, MediaKind.TV), extract_year(file.filename))
            file.metadata = EpisodeMetadata(episode=self.get_episode(show, season, number))
            return

        raise MetadataError(f"Unknown media kind for {file.filename}")

    def search_movie(self, title: str, year: Optional[int] = None) -> Movie:
        params: Dict[str, Any] = {"query": title, "include_adult": "false"}
        if year:
            params["year"] = str(year)
        results = self._request("search/movie", params).get("results") or []
        if not results:
            raise NoMatchError(f"No movies found for {title!r}")

        match = results[0]
        LOGGER.debug("TMDb movie match for %r: %s", title, match.get("id"))
        return Movie(
            id=str(match.get("id", "")),
            title=match.get("title") or title,
            original_title=match.get("original_title"),
            release_date=_parse_date(match.get("release_date")),
            external_ids=ExternalIDs(tmdb_id=str(match.get("id", "")) or None),
        )

    def search_show(self, name: str, year: Optional[int] = None) -> TVShow:
        key = (name.lower(), year)
        with self._cache_lock:
            cached = self._show_cache.get(key)
        if cached is not None:
            return cached

        params: Dict[str, Any] = {"query": name, "include_adult": "false"}
        if year:
            params["first_air_date_year"] = str(year)
        results = self._request("search/tv", params).get("results") or []
        if not results:
            raise NoMatchError(f"No TV shows found for {name!r}")

        match = results[0]
        show = TVShow(
            id=str(match.get("id", "")),
            name=match.get("name") or name,
            original_name=match.get("original_name"),
            first_air_date=_parse_date(match.get("first_air_date")),
            external_ids=ExternalIDs(tmdb_id=str(match.get("id", "")) or None),
        )
        with self._cache_lock:
            self._show_cache[key] = show
        return show

    def get_episode(self, show: TVShow, season: int, number: int) -> Episode:
        data = self._request(f"tv/{show.id}/season/{season}/episode/{number}", {})
        if not data.get("name"):
            raise NoMatchError(f"No episode S{season:02d}E{number:02d} found for {show.name!r}")
        return Episode(
            title=data["name"],
            season=data.get("season_number", season),
            episode=data.get("episode_number", number),
            air_date=_parse_date(data.get("air_date")),
            summary=data.get("overview"),
            show=show,
            external_ids=ExternalIDs(tmdb_id=str(data["id"]) if data.get("id") else None),
        )

    def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self._limiter is not None:
            self._limiter.wait()
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        try:
            response = self._session.get(
                url, params={**params, "api_key": self._api_key}, timeout=self._timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.HTTPError as exc:
            if exc.response is not None and exc.response.status_code == 404:
                raise NoMatchError(f"TMDb has no resource at {endpoint}") from exc
            raise ProviderError(f"TMDb request to {endpoint} failed: {exc}") from exc
        except requests.exceptions.RequestException as exc:
            raise ProviderError(f"TMDb request to {endpoint} failed: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(f"TMDb returned invalid JSON for {endpoint}: {exc}") from exc

        if not isinstance(data, dict):
            raise ProviderError(f"TMDb returned an unexpected payload for {endpoint}")
        if data.get("success") is False:
            raise ProviderError(f"TMDb error: {data.get('status_message', 'unknown error')}")
        return data


__all__ = ["TMDbProvider", "TMDB_BASE_URL"]
