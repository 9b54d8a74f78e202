"""Filename parsing helpers used to seed metadata lookups."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Optional, Tuple

from .models import MediaKind

_SEASON_EPISODE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"s(\d{1,2})[.\s_-]*e(\d{1,3})", re.IGNORECASE), "both"),
    (re.compile(r"(?<!\d)(\d{1,2})x(\d{1,3})(?!\d)", re.IGNORECASE), "both"),
    (re.compile(r"season[ ._-]?(\d{1,2}).*episode[ ._-]?(\d{1,3})", re.IGNORECASE), "both"),
    (re.compile(r"(?<![a-z])s(\d{1,2})(?:[^0-9]|$)", re.IGNORECASE), "season"),
    (re.compile(r"season[ ._-]?(\d{1,2})", re.IGNORECASE), "season"),
    (re.compile(r"(?<![a-z])e(\d{1,3})(?:[^0-9]|$)", re.IGNORECASE), "episode"),
)

_YEAR = re.compile(r"(?<!\d)(19\d{2}|20\d{2})(?!\d)")
_EPISODE_MARKER = re.compile(r"(s\d{1,2}[.\s_-]*e\d{1,3}|(?<!\d)\d{1,2}x\d{1,3}(?!\d))", re.IGNORECASE)
_NOISE = (
    re.compile(r"\b\d{3,4}p\b"),
    re.compile(r"\b[xh]\.?26[45]\b"),
    re.compile(r"\b(hevc|avc|xvid|divx)\b"),
    re.compile(r"\bddp?\d?(\.\d)?\b"),
    re.compile(r"\b(dts|ac3|aac|mp3|flac|atmos)\b"),
    re.compile(r"\b(bluray|blu-ray|brrip|bdrip|web-?dl|webrip|hdtv|dvdrip|remux|hdr|10bit)\b"),
    re.compile(
        r"\b(final|proper|repack|internal|limited|festival|extended|unrated|remastered|criterion)\b"
    ),
)
_BRACKETS = re.compile(r"\[.*?\]|\(.*?\)|\{.*?\}")
_COPY_SUFFIX = re.compile(r"\s*copy(\s*\(\d+\))?$")


def extract_season_episode(filename: str) -> Tuple[Optional[int], Optional[int]]:
    """Return the season and episode numbers encoded in ``filename``.

    Recognizes ``S01E02``, ``1x02`` and ``Season 1 Episode 2`` forms, falling
    back to season-only or episode-only markers. Missing parts are ``None``.
    """
    for pattern, shape in _SEASON_EPISODE_PATTERNS:
        match = pattern.search(filename)
        if match is None:
            continue
        if shape == "both":
            return int(match.group(1)), int(match.group(2))
        if shape == "season":
            return int(match.group(1)), None
        return None, int(match.group(1))
    return None, None


def extract_year(filename: str) -> Optional[int]:
    """Return the first plausible release year found in ``filename``."""
    match = _YEAR.search(filename)
    return int(match.group(1)) if match else None


def guess_media_kind(filename: str) -> MediaKind:
    """Guess whether ``filename`` is a TV episode or a movie."""
    season, episode = extract_season_episode(PurePath(filename).stem)
    if season is not None and episode is not None:
        return MediaKind.TV
    return MediaKind.MOVIE


def clean_title(filename: str, kind: MediaKind) -> str:
    """Strip release noise from ``filename`` and return a searchable title."""
    stem = PurePath(filename).stem.lower()

    if kind == MediaKind.TV:
        marker = _EPISODE_MARKER.search(stem)
        if marker is not None:
            return _normalize(stem[: marker.start()])
        stem = _COPY_SUFFIX.sub("", stem)
    else:
        year = _YEAR.search(stem)
        if year is not None and year.start() > 0:
            stem = stem[: year.start()]

    for pattern in _NOISE:
        stem = pattern.sub(" ", stem)
    stem = _BRACKETS.sub(" ", stem)
    return _normalize(stem)


def _normalize(value: str) -> str:
    value = _BRACKETS.sub(" ", value)
    for separator in ".-_()[]{}":
        value = value.replace(separator, " ")
    return " ".join(value.split())


__all__ = ["extract_season_episode", "extract_year", "guess_media_kind", "clean_title"]
