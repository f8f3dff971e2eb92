"""Configuration models describing AIFiles settings."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AIFilesBaseModel(BaseModel):
    """Shared configuration for AIFiles Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class LLMSettings(AIFilesBaseModel):
    """Classifier provider configuration.

    Attributes:
        provider: Identifier for the classification provider.
        model: Model name recorded alongside provenance entries.
        timeout_seconds: Upper bound for a single classification call; ``None``
            leaves calls unbounded.
        prompt: Optional instruction text forwarded to the provider.
        sample_size_kb: Number of kilobytes of file content sampled for the
            classifier.
        command: Shell command used by the ``command`` provider; it receives
            the request as JSON on stdin and prints the classification.
    """

    provider: str = "heuristic"
    model: str = "default"
    timeout_seconds: Optional[float] = None
    prompt: Optional[str] = None
    sample_size_kb: int = 16
    command: Optional[str] = None


class OrganizationOptions(AIFilesBaseModel):
    """Settings that govern how files are relocated.

    Attributes:
        operation: Whether organized files are moved or copied.
        backup_dir: Directory receiving timestamped backups; defaults to
            ``<config dir>/backups`` when unset.
        add_tags: Whether to write classifier tags through the annotator.
        add_comments: Whether to write the classifier summary as a comment.
        prompt_for_revision: Whether the manual flow asks for a revision suffix.
        prompt_for_context: Whether the manual flow asks for a context prefix.
        default_template: Template id used when neither the caller nor the
            classifier picks one.
    """

    operation: Literal["move", "copy"] = "move"
    backup_dir: Optional[str] = None
    add_tags: bool = True
    add_comments: bool = True
    prompt_for_revision: bool = False
    prompt_for_context: bool = False
    default_template: Optional[str] = "documents"


class WatchSettings(AIFilesBaseModel):
    """Directory watcher configuration.

    Attributes:
        quiescence_seconds: How long size and mtime must stay unchanged before a
            new file is considered complete.
        poll_interval_seconds: Interval used to re-check pending files.
        use_polling: Use watchdog's polling observer instead of native events.
    """

    quiescence_seconds: float = 2.0
    poll_interval_seconds: float = 0.1
    use_polling: bool = False


class LoggingSettings(AIFilesBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(AIFilesBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        history_limit: Default number of history rows to display.
    """

    quiet_default: bool = False
    history_limit: int = 20


class AIFilesConfig(AIFilesBaseModel):
    """Top-level configuration struct for AIFiles.

    Attributes:
        llm: Classifier provider settings.
        organization: File relocation settings.
        watch: Directory watcher settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    llm: LLMSettings = Field(default_factory=LLMSettings)
    organization: OrganizationOptions = Field(default_factory=OrganizationOptions)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "AIFilesBaseModel",
    "LLMSettings",
    "OrganizationOptions",
    "WatchSettings",
    "LoggingSettings",
    "CLIOptions",
    "AIFilesConfig",
]
