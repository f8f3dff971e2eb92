"""Lock artifact models."""

from __future__ import annotations

import os
import sys
import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LockMode(str, Enum):
    """Operating modes guarded independently of each other."""

    NORMAL = "normal"
    WATCH = "watch"
    FILEMANAGER = "filemanager"

    @property
    def filename(self) -> str:
        """Return the artifact filename for the mode."""
        if self is LockMode.NORMAL:
            return ".aifiles.lock"
        return f".aifiles-{self.value}.lock"

    @property
    def label(self) -> str:
        """Return the label used in contention messages."""
        return {
            LockMode.NORMAL: "AIFiles",
            LockMode.WATCH: "Watch mode (daemon)",
            LockMode.FILEMANAGER: "File Manager",
        }[self]


class LockArtifact(BaseModel):
    """Serialized contents of a lock file.

    Attributes:
        pid: Process id of the holder.
        start_time: Acquisition time in epoch milliseconds.
        command: Command label recorded by the holder.
    """

    model_config = ConfigDict(populate_by_name=True)

    pid: int
    start_time: int = Field(alias="startTime")
    command: str = "aifiles"

    @classmethod
    def for_current_process(cls, command: str) -> "LockArtifact":
        """Build an artifact describing the running interpreter."""
        return cls(pid=os.getpid(), start_time=int(time.time() * 1000), command=command)

    def uptime_seconds(self, now: Optional[float] = None) -> float:
        """Return seconds elapsed since the artifact was written."""
        current = time.time() if now is None else now
        return max(0.0, current - self.start_time / 1000)


class LockStatus(BaseModel):
    """Non-raising view of a mode's lock."""

    locked: bool
    pid: Optional[int] = None
    command: Optional[str] = None


def default_command_label() -> str:
    """Return the current command line as recorded in new artifacts."""
    return " ".join(sys.argv) or "aifiles"


__all__ = ["LockMode", "LockArtifact", "LockStatus", "default_command_label"]
