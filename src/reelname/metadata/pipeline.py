"""Bounded-concurrency metadata enrichment."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Protocol

from reelname.config.models import MetadataSettings
from reelname.media.models import MediaFile

from .errors import MetadataCancelledError, MetadataError
from .ratelimit import RateLimiter

LOGGER = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    """Capability that attaches metadata to a media file.

    Implementations must tolerate concurrent calls for distinct files.
    """

    def provide(self, file: MediaFile) -> None:
        """Populate ``file.metadata`` or raise when no metadata can be found."""


@dataclass(slots=True)
class FileFailure:
    """Metadata lookup failure recorded against a single file."""

    path: Path
    message: str


@dataclass(slots=True)
class EnrichmentResult:
    """Outcome of a pipeline run.

    Attributes:
        files: Every input file, in completion order; successful lookups have
            their metadata populated in place.
        errors: Per-file failures.
        cancelled: Whether the run was cut short by ``cancel``.
    """

    files: list[MediaFile] = field(default_factory=list)
    errors: list[FileFailure] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def succeeded(self) -> int:
        return len(self.files) - len(self.errors)

    @property
    def error(self) -> Optional[MetadataError]:
        """Aggregated error when at least one file failed, else ``None``."""
        if not self.errors:
            return None
        return MetadataError(f"{len(self.errors)} of {len(self.files)} file(s) failed metadata lookup")

    def sorted_files(self) -> list[MediaFile]:
        """Return files ordered by path for deterministic planning."""
        return sorted(self.files, key=lambda item: str(item.path))

    def failure_for(self, path: Path) -> Optional[FileFailure]:
        return next((failure for failure in self.errors if failure.path == path), None)


@dataclass(slots=True)
class _Outcome:
    file: MediaFile
    error: Optional[str] = None


class MetadataPipeline:
    """Run a metadata provider over many files with at most ``concurrency`` calls in flight.

    Submission acquires a slot from a bounded semaphore before handing a file to
    the worker pool, so the submitting thread blocks while the pool is saturated.
    Each task releases its slot when it finishes, whether it succeeded, failed,
    or was cancelled. Results are fanned in through a queue and arrive in
    completion order.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        *,
        concurrency: int = 10,
        limiter: RateLimiter | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._provider = provider
        self._concurrency = concurrency
        self._limiter = limiter
        self._cancelled = threading.Event()

    @classmethod
    def from_settings(
        cls,
        provider: MetadataProvider,
        settings: MetadataSettings,
        *,
        limiter: RateLimiter | None = None,
    ) -> "MetadataPipeline":
        """Build a pipeline honoring the configured concurrency bound."""
        return cls(provider, concurrency=settings.concurrency, limiter=limiter)

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def cancel(self) -> None:
        """Stop starting new lookups; in-flight calls are allowed to finish.

        A cancel issued before :meth:`run` makes that run cancel every file.
        The flag is cleared when a run returns.
        """
        self._cancelled.set()

    def run(self, files: Iterable[MediaFile]) -> EnrichmentResult:
        """Enrich ``files`` and collect per-file failures.

        Args:
            files: Media files to enrich. Metadata is written onto each file.

        Returns:
            EnrichmentResult: Files in completion order plus recorded failures.
        """
        try:
            return self._run(files)
        finally:
            self._cancelled.clear()

    def _run(self, files: Iterable[MediaFile]) -> EnrichmentResult:
        results: queue.Queue[_Outcome] = queue.Queue()
        slots = threading.BoundedSemaphore(self._concurrency)
        expected = 0

        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="reelname-metadata"
        ) as pool:
            for media in files:
                expected += 1
                if self._cancelled.is_set():
                    results.put(_Outcome(media, str(MetadataCancelledError("lookup cancelled"))))
                    continue
                slots.acquire()
                try:
                    pool.submit(self._enrich, media, slots, results)
                except BaseException:
                    slots.release()
                    raise

        result = EnrichmentResult(cancelled=self._cancelled.is_set())
        for _ in range(expected):
            outcome = results.get()
            result.files.append(outcome.file)
            if outcome.error is not None:
                result.errors.append(FileFailure(path=outcome.file.path, message=outcome.error))

        LOGGER.info(
            "Metadata lookup finished: %d succeeded, %d failed", result.succeeded, result.failed
        )
        return result

    def _enrich(
        self,
        media: MediaFile,
        slots: threading.BoundedSemaphore,
        results: "queue.Queue[_Outcome]",
    ) -> None:
        outcome = _Outcome(media, "lookup interrupted")
        try:
            if self._cancelled.is_set():
                raise MetadataCancelledError("lookup cancelled")
            if self._limiter is not None:
                self._limiter.wait()
            LOGGER.debug("Providing metadata for %s", media.filename)
            self._provider.provide(media)
            outcome.error = None
        except Exception as exc:
            LOGGER.warning("Metadata lookup failed for %s: %s", media.path, exc)
            outcome.error = str(exc) or exc.__class__.__name__
        finally:
            # Every submitted file reports exactly once so collection never blocks.
            results.put(outcome)
            slots.release()


__all__ = [
    "MetadataProvider",
    "MetadataPipeline",
    "EnrichmentResult",
    "FileFailure",
]
