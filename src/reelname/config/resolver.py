"""Layered configuration resolution."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import ReelnameConfig

ENV_PREFIX = "REELNAME__"


def resolve_with_precedence(
    *,
    defaults: ReelnameConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ReelnameConfig:
    """Merge configuration layers, later layers winning.

    Layers apply in the order defaults, file, environment, CLI. Keys in any
    override layer may be nested mappings or dotted paths such as
    ``metadata.concurrency``.

    Raises:
        ConfigError: If a layer is malformed or the merged result fails validation.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="json")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for layer_name, layer in layers:
        if layer is None:
            continue
        merged = _deep_merge(merged, expand_dotted(layer, layer_name=layer_name))

    try:
        return ReelnameConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def parse_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``REELNAME__SECTION__KEY`` variables into a nested mapping.

    Values are parsed as YAML scalars so ``"10"`` becomes ``10`` and
    ``"true"`` becomes ``True``.
    """
    overrides: dict[str, Any] = {}
    for key, raw in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in key[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        _set_path(overrides, segments, value, layer_name="environment")
    return overrides


def flatten_for_env(config: ReelnameConfig) -> Dict[str, str]:
    """Render the config as ``REELNAME__SECTION__KEY`` environment assignments."""
    flat: Dict[str, str] = {}

    def _walk(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for child_key, child in value.items():
                _walk([*prefix, str(child_key)], child)
            return
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            flat[env_key] = "null"
        elif isinstance(value, bool):
            flat[env_key] = str(value).lower()
        else:
            flat[env_key] = str(value)

    for section, values in config.model_dump(mode="json").items():
        _walk([section], values)
    return flat


def expand_dotted(source: Mapping[str, Any], *, layer_name: str) -> dict[str, Any]:
    """Return ``source`` with dotted keys expanded into nested dictionaries."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{layer_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{layer_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, layer_name=layer_name)
        _set_path(expanded, key.split("."), value, layer_name=layer_name)
    return expanded


def _set_path(target: dict[str, Any], path: list[str], value: Any, *, layer_name: str) -> None:
    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{layer_name.capitalize()} override for {'.'.join(path)} conflicts with a scalar value."
            )
        node = child
    leaf = path[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _deep_merge(node[leaf], value)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["resolve_with_precedence", "flatten_for_env", "parse_env", "expand_dotted", "ENV_PREFIX"]
