"""Recursive directory watching with write-quiescence detection."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver
from watchdog.observers.polling import PollingObserver

from aifiles.templates.engine import expand_path
from aifiles.templates.models import Template

from .errors import PathUnavailableError
from .events import FileAppeared, WatchError, WatchEvent

LOGGER = logging.getLogger(__name__)

_OBSERVER_JOIN_TIMEOUT = 5.0


@dataclass(slots=True)
class _Pending:
    template: Template
    signature: tuple[int, int]
    stable_since: float


@dataclass(slots=True)
class _Watch:
    template: Template
    root: Path
    observer: BaseObserver


def _signature(path: Path) -> Optional[tuple[int, int]]:
    try:
        stat = path.stat()
    except OSError:
        return None
    if not path.is_file():
        return None
    return stat.st_size, stat.st_mtime_ns


class _TemplateEventHandler(FileSystemEventHandler):
    """Forward watchdog callbacks for one template into the watcher."""

    def __init__(self, watcher: "DirectoryWatcher", template: Template) -> None:
        super().__init__()
        self._watcher = watcher
        self._template = template

    def on_created(self, event: FileSystemEvent) -> None:
        """Start tracking a newly created file."""
        if not event.is_directory:
            self._guard(self._watcher.track, Path(os.fsdecode(event.src_path)), self._template)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Start tracking a file moved into the watched tree."""
        if not event.is_directory:
            self._guard(self._watcher.track, Path(os.fsdecode(event.dest_path)), self._template)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Restart the quiescence window of a file already being tracked."""
        if not event.is_directory:
            self._guard(self._watcher.refresh, Path(os.fsdecode(event.src_path)))

    def _guard(self, action: Callable[..., object], path: Path, *args: object) -> None:
        try:
            action(path, *args)
        except Exception as exc:
            LOGGER.exception("Watch handler failed for %s", path)
            self._watcher.events.put(WatchError(template=self._template, error=exc))


class DirectoryWatcher:
    """Watch template base paths and report files once they stop changing.

    New and moved-in files are tracked until their size and modification time
    have stayed the same for ``quiescence_seconds``; then exactly one
    :class:`FileAppeared` is put on :attr:`events`. Files under any hidden
    directory, or hidden themselves, are ignored.
    """

    def __init__(
        self,
        *,
        quiescence_seconds: float = 2.0,
        poll_interval_seconds: float = 0.1,
        use_polling: bool = False,
        clock: Callable[[], float] = time.monotonic,
        event_queue: Optional["queue.Queue[WatchEvent]"] = None,
    ) -> None:
        """Configure timing and the observer implementation.

        Args:
            quiescence_seconds: Time a file must stay unchanged before it is reported.
            poll_interval_seconds: How often pending files are re-checked.
            use_polling: Use watchdog's polling observer instead of native events.
            clock: Monotonic time source.
            event_queue: Queue receiving events; a new one is created by default.
        """
        self._quiescence = max(0.0, quiescence_seconds)
        self._poll_interval = max(0.01, poll_interval_seconds)
        self._use_polling = use_polling
        self._clock = clock
        self._events: "queue.Queue[WatchEvent]" = event_queue or queue.Queue()
        self._watches: dict[str, _Watch] = {}
        self._pending: dict[Path, _Pending] = {}
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._stabilizer: Optional[threading.Thread] = None

    @property
    def events(self) -> "queue.Queue[WatchEvent]":
        """Return the queue receiving :class:`FileAppeared` and :class:`WatchError`."""
        return self._events

    def next_event(self, timeout: Optional[float] = None) -> Optional[WatchEvent]:
        """Return the next event, or ``None`` when ``timeout`` elapses."""
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    def watched_ids(self) -> list[str]:
        """Return ids of templates currently being watched."""
        with self._lock:
            return list(self._watches)

    def pending_paths(self) -> list[Path]:
        """Return files waiting for their quiescence window to elapse."""
        with self._lock:
            return list(self._pending)

    def watch(self, template: Template) -> None:
        """Start watching ``template.base_path`` recursively.

        Watching an id that is already watched does nothing.

        Raises:
            PathUnavailableError: If the base path is not an accessible directory
                or the observer cannot be started.
        """
        with self._lock:
            if template.id in self._watches:
                LOGGER.debug("Template %s is already watched", template.id)
                return

            root = expand_path(template.base_path)
            if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
                raise PathUnavailableError(
                    f"Cannot watch {root} for template '{template.id}': not an accessible directory"
                )

            observer: BaseObserver = PollingObserver() if self._use_polling else Observer()
            observer.schedule(_TemplateEventHandler(self, template), str(root), recursive=True)
            try:
                observer.start()
            except OSError as exc:
                raise PathUnavailableError(
                    f"Cannot watch {root} for template '{template.id}': {exc}"
                ) from exc

            self._watches[template.id] = _Watch(template=template, root=root, observer=observer)
            self._ensure_stabilizer()
            LOGGER.info("Watching %s for template %s", root, template.id)

    def unwatch(self, template_id: str) -> None:
        """Stop watching a template; unknown ids are ignored."""
        with self._lock:
            watch = self._watches.pop(template_id, None)
            if watch is None:
                return
            for path in [p for p, entry in self._pending.items() if entry.template.id == template_id]:
                del self._pending[path]
        self._stop_observer(watch)
        LOGGER.info("Stopped watching template %s", template_id)

    def stop_all(self) -> None:
        """Stop every watch and the stabilizer thread. Safe to call repeatedly."""
        for template_id in self.watched_ids():
            self.unwatch(template_id)
        self._stop_event.set()
        stabilizer = self._stabilizer
        if stabilizer is not None and stabilizer is not threading.current_thread():
            stabilizer.join(timeout=_OBSERVER_JOIN_TIMEOUT)
        self._stabilizer = None
        with self._lock:
            self._pending.clear()

    def track(self, path: Path, template: Template) -> bool:
        """Begin tracking a file that appeared under ``template``.

        Returns:
            bool: ``True`` if the path is now pending, ``False`` if it was ignored.
        """
        path = Path(os.path.abspath(path))
        root = expand_path(template.base_path)
        if self._is_hidden(path, root):
            return False
        signature = _signature(path)
        if signature is None:
            return False
        with self._lock:
            self._pending[path] = _Pending(
                template=template,
                signature=signature,
                stable_since=self._clock(),
            )
        LOGGER.debug("Tracking %s for template %s", path, template.id)
        return True

    def refresh(self, path: Path) -> None:
        """Restart the quiescence window of ``path`` if it is pending."""
        path = Path(os.path.abspath(path))
        with self._lock:
            entry = self._pending.get(path)
            if entry is None:
                return
            signature = _signature(path)
            if signature is None:
                del self._pending[path]
                return
            entry.signature = signature
            entry.stable_since = self._clock()

    def poll(self, now: Optional[float] = None) -> list[FileAppeared]:
        """Emit events for pending files that have stopped changing.

        Vanished files are dropped; files whose size or mtime changed get a
        fresh window.

        Args:
            now: Current time from the watcher clock; read from it when omitted.

        Returns:
            list[FileAppeared]: Events emitted by this call.
        """
        current = self._clock() if now is None else now
        emitted: list[FileAppeared] = []
        with self._lock:
            for path, entry in list(self._pending.items()):
                signature = _signature(path)
                if signature is None:
                    LOGGER.debug("%s vanished before it settled", path)
                    del self._pending[path]
                    continue
                if signature != entry.signature:
                    entry.signature = signature
                    entry.stable_since = current
                    continue
                if current - entry.stable_since >= self._quiescence:
                    del self._pending[path]
                    emitted.append(FileAppeared(path=path, file_name=path.name, template=entry.template))
        for event in emitted:
            self._events.put(event)
        return emitted

    def check_observers(self) -> list[WatchError]:
        """Report and drop watches whose observer thread has died."""
        failures: list[WatchError] = []
        with self._lock:
            dead = [watch for watch in self._watches.values() if not watch.observer.is_alive()]
        for watch in dead:
            error = WatchError(
                template=watch.template,
                error=RuntimeError(f"Observer for {watch.root} stopped unexpectedly"),
            )
            failures.append(error)
            self._events.put(error)
            self.unwatch(watch.template.id)
        return failures

    def _ensure_stabilizer(self) -> None:
        if self._stabilizer is not None and self._stabilizer.is_alive():
            return
        self._stop_event.clear()
        self._stabilizer = threading.Thread(
            target=self._run_stabilizer,
            name="aifiles-watch-stabilizer",
            daemon=True,
        )
        self._stabilizer.start()

    def _run_stabilizer(self) -> None:
        while not self._stop_event.wait(self._poll_interval):
            try:
                self.poll()
                self.check_observers()
            except Exception:  # pragma: no cover - keep the loop alive
                LOGGER.exception("Watch stabilizer iteration failed")

    def _stop_observer(self, watch: _Watch) -> None:
        watch.observer.stop()
        if watch.observer is not threading.current_thread():
            watch.observer.join(timeout=_OBSERVER_JOIN_TIMEOUT)

    @staticmethod
    def _is_hidden(path: Path, root: Path) -> bool:
        for candidate, base in ((path, root), (path.resolve(), root.resolve())):
            try:
                relative = candidate.relative_to(base)
            except ValueError:
                continue
            return any(part.startswith(".") for part in relative.parts)
        return True


__all__ = ["DirectoryWatcher"]
