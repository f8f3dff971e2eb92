"""Directory watching and the watch daemon."""

from .errors import PathUnavailableError
from .events import FileAppeared, WatchError, WatchEvent
from .service import WatchDaemon
from .watcher import DirectoryWatcher

__all__ = [
    "DirectoryWatcher",
    "FileAppeared",
    "PathUnavailableError",
    "WatchDaemon",
    "WatchError",
    "WatchEvent",
]
