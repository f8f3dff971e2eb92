"""Configuration management for AIFiles."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import AIFilesConfig
from .resolver import flatten_for_env, parse_env, resolve_with_precedence

CONFIG_HOME_ENV = "AIFILES_HOME"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # AIFiles configuration file
    # Generated automatically; manage via `aifiles config set KEY --value VALUE`.
    """
)


def config_dir(env: Mapping[str, str] | None = None) -> Path:
    """Return the directory holding config, templates, locks, and the database.

    ``AIFILES_HOME`` overrides the default ``~/.aifiles``.
    """
    source = env if env is not None else os.environ
    override = source.get(CONFIG_HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path("~/.aifiles").expanduser()


class ConfigManager:
    """Load and persist configuration data, applying precedence rules."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        self._config_path = (config_path or config_dir(self._env) / "config.yaml").expanduser()

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
    ) -> AIFilesConfig:
        """Load configuration from disk and apply environment/CLI overrides."""
        if ensure_file:
            self.ensure_exists()

        return resolve_with_precedence(
            defaults=AIFilesConfig(),
            file_overrides=self._read_file(),
            env_overrides=parse_env(self._env) if include_env else None,
            cli_overrides=cli_overrides,
        )

    def save(self, config: AIFilesConfig | Mapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        if isinstance(config, AIFilesConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def set_value(self, key: str, raw_value: str) -> AIFilesConfig:
        """Assign a dotted ``KEY`` in the file layer and persist it.

        Raises:
            ConfigError: If the resulting configuration does not validate.
        """
        try:
            value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            value = raw_value
        file_data = self._read_file()
        candidate = resolve_with_precedence(
            defaults=AIFilesConfig(),
            file_overrides=file_data,
            cli_overrides={key: value},
        )
        self.save(candidate)
        return candidate

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(AIFilesConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )


__all__ = [
    "CONFIG_HOME_ENV",
    "ConfigManager",
    "AIFilesConfig",
    "ConfigError",
    "config_dir",
    "flatten_for_env",
    "parse_env",
    "resolve_with_precedence",
]
