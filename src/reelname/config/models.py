"""Configuration models describing reelname settings."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConflictStrategy(str, Enum):
    """Strategies available to resolve target-path collisions."""

    SKIP = "skip"
    APPEND_NUMBER = "append_number"
    APPEND_TIMESTAMP = "append_timestamp"
    OVERWRITE = "overwrite"
    PROMPT_USER = "prompt_user"


DEFAULT_CONFLICT_STRATEGY = ConflictStrategy.APPEND_NUMBER

LogLevel = Literal["debug", "info", "warning", "error", "critical"]


class ReelnameBaseModel(BaseModel):
    """Shared configuration for reelname settings models."""

    model_config = ConfigDict(extra="forbid")


class MetadataSettings(ReelnameBaseModel):
    """Metadata enrichment options.

    Attributes:
        provider: Identifier of the metadata provider to use.
        concurrency: Maximum number of provider calls in flight at once.
        rate_limit: Maximum provider requests per second.
    """

    provider: Literal["tmdb"] = "tmdb"
    concurrency: int = Field(default=10, ge=1)
    rate_limit: int = Field(default=40, ge=1)


class ProviderSettings(ReelnameBaseModel):
    """Credentials for metadata providers.

    Attributes:
        tmdb_api_key: API key for The Movie Database.
    """

    tmdb_api_key: Optional[str] = None


class OrganizationOptions(ReelnameBaseModel):
    """Settings that govern discovery and conflict handling.

    Attributes:
        conflict_strategy: Strategy applied to detected collisions.
        recursive: Whether to recurse into subdirectories.
        media_type: Media kind override, or ``auto`` to guess from filenames.
        include_hidden: Whether hidden files should be scanned.
    """

    conflict_strategy: ConflictStrategy = DEFAULT_CONFLICT_STRATEGY
    recursive: bool = False
    media_type: Literal["auto", "movie", "tv"] = "auto"
    include_hidden: bool = False


class FormattingSettings(ReelnameBaseModel):
    """Filename templates used to render target names.

    Attributes:
        movie_template: Template for movie filenames (no extension).
        tv_template: Template for TV episode filenames (no extension).
    """

    movie_template: str = "{name} ({year})"
    tv_template: str = "{name} - S{season:02d}E{episode:02d} - {title}"


class DirectorySettings(ReelnameBaseModel):
    """A media directory planned with its own discovery and naming rules.

    Unset fields fall back to the ``organization`` and ``formatting`` sections.

    Attributes:
        path: Directory to scan.
        name: Optional label shown in output.
        media_type: Media kind override, or ``auto`` to guess from filenames.
        recursive: Whether to recurse into subdirectories.
        include_hidden: Whether hidden files should be scanned.
        conflict_strategy: Strategy applied to collisions among this directory's files.
        movie_template: Template for movie filenames (no extension).
        tv_template: Template for TV episode filenames (no extension).
    """

    path: str
    name: Optional[str] = None
    media_type: Optional[Literal["auto", "movie", "tv"]] = None
    recursive: Optional[bool] = None
    include_hidden: Optional[bool] = None
    conflict_strategy: Optional[ConflictStrategy] = None
    movie_template: Optional[str] = None
    tv_template: Optional[str] = None

    def with_defaults(
        self, organization: OrganizationOptions, formatting: FormattingSettings
    ) -> "DirectorySettings":
        """Return a copy with every unset field taken from the global sections."""
        return self.model_copy(
            update={
                "media_type": self.media_type or organization.media_type,
                "recursive": organization.recursive if self.recursive is None else self.recursive,
                "include_hidden": (
                    organization.include_hidden if self.include_hidden is None else self.include_hidden
                ),
                "conflict_strategy": self.conflict_strategy or organization.conflict_strategy,
                "movie_template": self.movie_template or formatting.movie_template,
                "tv_template": self.tv_template or formatting.tv_template,
            }
        )


class StateSettings(ReelnameBaseModel):
    """Journal persistence options.

    Attributes:
        journal_path: Location of the rename journal.
    """

    journal_path: str = "~/.reelname/state.json"


class LoggingSettings(ReelnameBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; console-only when unset.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: LogLevel = "warning"
    file: Optional[str] = None
    max_size_mb: int = 10
    backup_count: int = 3

    @field_validator("level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value


class CLIOptions(ReelnameBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class ReelnameConfig(ReelnameBaseModel):
    """Top-level configuration struct for reelname."""

    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    organization: OrganizationOptions = Field(default_factory=OrganizationOptions)
    formatting: FormattingSettings = Field(default_factory=FormattingSettings)
    directories: List[DirectorySettings] = Field(default_factory=list)
    state: StateSettings = Field(default_factory=StateSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)

    def scan_directories(self, path: Optional[str] = None) -> List[DirectorySettings]:
        """Return the directories to plan, with defaults filled in.

        An explicit ``path`` replaces the configured ``directories`` list and is
        planned with the global ``organization`` and ``formatting`` settings.
        """
        entries = [DirectorySettings(path=path)] if path else self.directories
        return [entry.with_defaults(self.organization, self.formatting) for entry in entries]


__all__ = [
    "ConflictStrategy",
    "DEFAULT_CONFLICT_STRATEGY",
    "LogLevel",
    "ReelnameBaseModel",
    "MetadataSettings",
    "ProviderSettings",
    "OrganizationOptions",
    "FormattingSettings",
    "DirectorySettings",
    "StateSettings",
    "LoggingSettings",
    "CLIOptions",
    "ReelnameConfig",
]
