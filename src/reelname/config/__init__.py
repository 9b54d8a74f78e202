"""Configuration management for reelname.

Settings are layered: model defaults, then ``~/.reelname/config.yaml``, then
``REELNAME__`` environment variables, then command-line flags.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from .exceptions import ConfigError
from .models import ConflictStrategy, DirectorySettings, ReelnameConfig
from .resolver import flatten_for_env, parse_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.reelname/config.yaml")
STAMP_PREFIX = "# Last updated: "
_HEADER_LINES = (
    "# reelname configuration file",
    "# Written by reelname; edit by hand or use `reelname config set`.",
)


class ConfigManager:
    """Own the YAML configuration file and resolve layered settings."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config_path: File location; defaults to ``~/.reelname/config.yaml``.
            env: Environment mapping consulted for ``REELNAME__`` variables.
        """
        self._path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env: Mapping[str, str] = os.environ if env is None else env

    @property
    def config_path(self) -> Path:
        return self._path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
    ) -> ReelnameConfig:
        """Return the effective configuration, creating the file on first use.

        Raises:
            ConfigError: If the file or any override is invalid.
        """
        self.ensure_exists()
        return resolve_with_precedence(
            defaults=ReelnameConfig(),
            file_overrides=self.stored(),
            env_overrides=parse_env(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def stored(self) -> dict[str, Any]:
        """Return the mapping persisted in the configuration file.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        if not self._path.exists():
            return {}
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigError(f"Cannot parse {self._path}: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"{self._path} must hold a mapping of settings.")
        return data

    def ensure_exists(self) -> Path:
        """Write a file of defaults unless one is already present."""
        if not self._path.exists():
            self.save(ReelnameConfig())
        return self._path

    def save(self, config: ReelnameConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to the file, replacing its contents."""
        if isinstance(config, ReelnameConfig):
            data: dict[str, Any] = config.model_dump(mode="json")
        else:
            data = dict(config)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        lines = [*_HEADER_LINES, f"{STAMP_PREFIX}{stamp}"]
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            "\n".join(lines) + "\n" + yaml.safe_dump(data, sort_keys=False),
            encoding="utf-8",
        )

    def set_value(self, segments: Sequence[str], value: Any) -> dict[str, Any]:
        """Assign ``value`` at the dotted ``segments`` path and persist it.

        The updated mapping is validated before anything is written.

        Returns:
            dict[str, Any]: The mapping now stored on disk.

        Raises:
            ConfigError: If the path crosses a non-mapping or the result is invalid.
        """
        data = self.stored()
        node = data
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(f"'{segment}' is not a section and cannot hold '{segments[-1]}'.")
            node = child
        node[segments[-1]] = value
        resolve_with_precedence(defaults=ReelnameConfig(), file_overrides=data)
        self.save(data)
        return data

    def document_lines(self) -> list[str]:
        """Return the file's lines without the volatile timestamp line."""
        if not self._path.exists():
            return []
        text = self._path.read_text(encoding="utf-8")
        return [line for line in text.splitlines() if not line.startswith(STAMP_PREFIX)]


__all__ = [
    "ConfigError",
    "ConfigManager",
    "ConflictStrategy",
    "DEFAULT_CONFIG_PATH",
    "DirectorySettings",
    "ReelnameConfig",
    "flatten_for_env",
    "resolve_with_precedence",
]
