"""Filesystem rename capability shared by apply and revert."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol


class Renamer(Protocol):
    """Capability that moves a file from one path to another."""

    def rename(self, old_path: Path, new_path: Path) -> None:
        """Move ``old_path`` to ``new_path`` or raise ``OSError``."""


class FileRenamer:
    """Rename files with ``os.replace``, creating missing parent directories.

    ``os.replace`` is atomic when both paths are on the same filesystem and
    replaces an existing destination.
    """

    def rename(self, old_path: Path, new_path: Path) -> None:
        new_path.parent.mkdir(parents=True, exist_ok=True)
        os.replace(old_path, new_path)


__all__ = ["Renamer", "FileRenamer"]
