"""Errors raised by the singleton guard."""

from __future__ import annotations

from pathlib import Path

from aifiles.errors import AIFilesError


def format_uptime(seconds: float) -> str:
    """Render an uptime in whole minutes, or seconds below one minute."""
    total = max(0, int(seconds))
    minutes = total // 60
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''}"
    return f"{total} second{'s' if total != 1 else ''}"


class LockContentionError(AIFilesError):
    """Raised when another live process already holds the lock for a mode.

    Attributes:
        pid: Process id recorded in the lock artifact.
        command: Command label recorded by the holder.
        uptime_seconds: How long the holder has been running.
        lock_path: Location of the lock artifact.
        mode_label: Human-readable name of the contended mode.
    """

    def __init__(
        self,
        *,
        pid: int,
        command: str,
        uptime_seconds: float,
        lock_path: Path,
        mode_label: str,
    ) -> None:
        self.pid = pid
        self.command = command
        self.uptime_seconds = uptime_seconds
        self.lock_path = lock_path
        self.mode_label = mode_label
        message = (
            f"Another instance of {mode_label} is already running!\n\n"
            f"  Process ID: {pid}\n"
            f"  Command: {command}\n"
            f"  Running for: {format_uptime(uptime_seconds)}"
        )
        hint = (
            "To stop the existing instance:\n"
            f"  1. Kill the process: kill {pid}\n"
            f'  2. Remove the lock file: rm "{lock_path}"\n\n'
            f'Or use this command: kill {pid} && rm "{lock_path}"'
        )
        super().__init__(message, hint=hint)


__all__ = ["LockContentionError", "format_uptime"]
