"""Merge configuration layers into a validated :class:`AIFilesConfig`."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import AIFilesConfig

ENV_PREFIX = "AIFILES__"


def resolve_with_precedence(
    *,
    defaults: AIFilesConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AIFilesConfig:
    """Layer overrides on top of defaults: file, then environment, then CLI.

    Keys may be nested mappings or dotted paths such as ``"watch.use_polling"``.

    Raises:
        ConfigError: If an override is malformed or the merged values fail
            validation.
    """
    merged = defaults.model_dump(mode="python")
    for source_name, source in (
        ("file", file_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source:
            merged = _deep_merge(merged, _expand_dotted(source, source_name))

    try:
        return AIFilesConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: AIFilesConfig) -> Dict[str, str]:
    """Render the config as ``AIFILES__SECTION__KEY`` environment variables."""
    flat: Dict[str, str] = {}
    for section, values in config.model_dump(mode="python").items():
        for key, value in values.items():
            env_key = f"{ENV_PREFIX}{section.upper()}__{key.upper()}"
            if value is None:
                flat[env_key] = "null"
            elif isinstance(value, bool):
                flat[env_key] = "true" if value else "false"
            elif isinstance(value, (dict, list)):
                flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
            else:
                flat[env_key] = str(value)
    return flat


def parse_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Extract nested overrides from ``AIFILES__`` prefixed variables.

    Values are parsed as YAML scalars so ``"true"`` and ``"2.5"`` arrive typed.
    """
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        node = overrides
        for segment in segments[:-1]:
            node = node.setdefault(segment, {})
        node[segments[-1]] = value
    return overrides


def _expand_dotted(source: Mapping[str, Any], source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        path = key.split(".")
        node = result
        for segment in path[:-1]:
            existing = node.setdefault(segment, {})
            if not isinstance(existing, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override for {key} conflicts with existing value."
                )
            node = existing
        if isinstance(value, MappingABC):
            value = _expand_dotted(value, source_name)
            current = node.get(path[-1])
            if isinstance(current, dict):
                value = _deep_merge(current, value)
        node[path[-1]] = value
    return result


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "flatten_for_env", "parse_env"]
