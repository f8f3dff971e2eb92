"""Typed events emitted by :class:`~aifiles.watch.watcher.DirectoryWatcher`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from aifiles.templates.models import Template


@dataclass(frozen=True, slots=True)
class FileAppeared:
    """A new file under a watched template has stopped changing.

    Attributes:
        path: Absolute path of the file.
        file_name: Base name of the file.
        template: Template whose base path contains the file.
    """

    path: Path
    file_name: str
    template: Template


@dataclass(frozen=True, slots=True)
class WatchError:
    """The observer for a template failed.

    Attributes:
        template: Template whose watch failed.
        error: Exception raised by the observer.
    """

    template: Template
    error: BaseException


WatchEvent = Union[FileAppeared, WatchError]


__all__ = ["FileAppeared", "WatchError", "WatchEvent"]
