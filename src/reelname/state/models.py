"""Journal data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from reelname.media.models import Metadata

JOURNAL_VERSION = "1.0"


class EntryStatus(str, Enum):
    """Lifecycle of a journal entry; ``reverted`` is terminal."""

    ACTIVE = "active"
    REVERTED = "reverted"


class StateEntry(BaseModel):
    """One applied rename.

    Attributes:
        id: Unique entry identifier.
        timestamp: When the rename was applied.
        original_path: Path of the file before the rename.
        new_path: Path of the file after the rename.
        original_name: Filename before the rename.
        new_name: Filename after the rename.
        media_info: Snapshot of the metadata that produced the new name.
        reverted: Whether the rename has been undone.
        reverted_at: When the rename was undone.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    original_path: str
    new_path: str
    original_name: str
    new_name: str
    media_info: Optional[Metadata] = None
    reverted: bool = False
    reverted_at: Optional[datetime] = None

    @property
    def status(self) -> EntryStatus:
        return EntryStatus.REVERTED if self.reverted else EntryStatus.ACTIVE


class JournalState(BaseModel):
    """Versioned container of journal entries in append order."""

    version: str = JOURNAL_VERSION
    entries: List[StateEntry] = Field(default_factory=list)


__all__ = ["JOURNAL_VERSION", "EntryStatus", "StateEntry", "JournalState"]
