"""Watch daemon dispatching watcher events to the organization pipeline."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from aifiles.templates.models import Template

from .errors import PathUnavailableError
from .events import FileAppeared, WatchError, WatchEvent
from .watcher import DirectoryWatcher

if TYPE_CHECKING:
    from aifiles.organization.models import OrganizeTransaction

LOGGER = logging.getLogger(__name__)

EventHandler = Callable[[FileAppeared], "OrganizeTransaction"]
ResultCallback = Callable[["OrganizeTransaction"], None]
ErrorCallback = Callable[[WatchError], None]


class WatchDaemon:
    """Consume watcher events and organize files per template.

    Each template gets its own single-worker executor, so files of one
    template are handled in arrival order while templates proceed in parallel.
    A failure for one file is logged and never stops other watches.
    """

    def __init__(
        self,
        watcher: DirectoryWatcher,
        handler: EventHandler,
        *,
        on_result: Optional[ResultCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        """Initialize the daemon.

        Args:
            watcher: Source of :class:`FileAppeared` and :class:`WatchError` events.
            handler: Callable organizing one file, usually ``Orchestrator.handle_event``.
            on_result: Optional callable receiving each finished transaction.
            on_error: Optional callable receiving watch errors.
        """
        self._watcher = watcher
        self._handler = handler
        self._on_result = on_result
        self._on_error = on_error
        self._workers: dict[str, ThreadPoolExecutor] = {}
        self._workers_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def watcher(self) -> DirectoryWatcher:
        """Return the underlying watcher."""
        return self._watcher

    def start(self, templates: Iterable[Template]) -> list[Template]:
        """Begin watching ``templates``.

        Templates whose base path is unavailable are logged and skipped.

        Returns:
            list[Template]: Templates that are now watched.
        """
        started: list[Template] = []
        for template in templates:
            try:
                self._watcher.watch(template)
            except PathUnavailableError as exc:
                LOGGER.error("Skipping template %s: %s", template.id, exc)
                continue
            started.append(template)
        return started

    def run(self, poll_timeout: float = 0.5) -> None:
        """Dispatch events until :meth:`stop` is called."""
        while not self._stop_event.is_set():
            event = self._watcher.next_event(timeout=poll_timeout)
            if event is not None:
                self.dispatch(event)

    def dispatch(self, event: WatchEvent) -> Optional["Future[None]"]:
        """Route one event to its template worker.

        Returns:
            Optional[Future[None]]: Future for a submitted file, ``None`` for errors.
        """
        if isinstance(event, WatchError):
            LOGGER.error("Watch for template %s failed: %s", event.template.id, event.error)
            if self._on_error is not None:
                self._on_error(event)
            return None
        return self._worker_for(event.template.id).submit(self._process, event)

    def stop(self, wait: bool = True) -> None:
        """Stop watching and drain the template workers. Safe to call repeatedly."""
        self._stop_event.set()
        self._watcher.stop_all()
        with self._workers_lock:
            workers, self._workers = self._workers, {}
        for worker in workers.values():
            worker.shutdown(wait=wait)

    def _worker_for(self, template_id: str) -> ThreadPoolExecutor:
        with self._workers_lock:
            worker = self._workers.get(template_id)
            if worker is None:
                worker = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"aifiles-{template_id}"
                )
                self._workers[template_id] = worker
            return worker

    def _process(self, event: FileAppeared) -> None:
        try:
            txn = self._handler(event)
        except Exception:
            LOGGER.exception("Failed to organize %s", event.path)
            return
        if self._on_result is not None:
            try:
                self._on_result(txn)
            except Exception:  # pragma: no cover - reporting must not kill the worker
                LOGGER.exception("Result callback failed for %s", event.path)


__all__ = ["WatchDaemon"]
