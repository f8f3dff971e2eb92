"""Custom exceptions for configuration management."""

from aifiles.errors import AIFilesError


class ConfigError(AIFilesError):
    """Raised when configuration data cannot be processed."""

    hint = "Check ~/.aifiles/config.yaml or run `aifiles config view`."
