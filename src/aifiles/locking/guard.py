"""Cross-process singleton guard backed by PID-stamped lock files."""

from __future__ import annotations

import atexit
import logging
import os
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

from pydantic import ValidationError

from aifiles.errors import AIFilesError

from .errors import LockContentionError
from .models import LockArtifact, LockMode, LockStatus, default_command_label

LOGGER = logging.getLogger(__name__)

_MAX_ATTEMPTS = 5
_EXIT_CODES = {signal.SIGINT: 130, signal.SIGTERM: 143}


def is_process_alive(pid: int) -> bool:
    """Check ``pid`` with a zero-effect signal.

    Returns:
        bool: ``True`` if a process with that id exists, even when it belongs to
        another user.
    """
    if pid <= 0:
        return False
    if sys.platform == "win32":  # pragma: no cover - platform specific
        return _windows_process_alive(pid)
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


def _windows_process_alive(pid: int) -> bool:  # pragma: no cover - platform specific
    import ctypes

    process_query_limited_information = 0x1000
    handle = ctypes.windll.kernel32.OpenProcess(process_query_limited_information, False, pid)
    if not handle:
        return False
    ctypes.windll.kernel32.CloseHandle(handle)
    return True


class SingletonGuard:
    """Ensure at most one live process per :class:`LockMode`.

    The lock file is the only source of truth; the guard keeps no state about
    other processes. Different modes use different files and therefore never
    contend with each other.
    """

    def __init__(self, mode: LockMode, lock_dir: Path) -> None:
        """Bind the guard to a mode and the directory holding lock files.

        Args:
            mode: Operating mode being guarded.
            lock_dir: Directory that stores the per-mode lock artifacts.
        """
        self._mode = mode
        self._lock_path = lock_dir.expanduser() / mode.filename
        self._held = False
        self._release_lock = threading.Lock()
        self._shutdown_hooks: list[Callable[[], None]] = []
        self._previous_handlers: dict[int, object] = {}
        self._previous_excepthook: Optional[Callable[..., object]] = None
        self._atexit_registered = False

    @property
    def mode(self) -> LockMode:
        """Return the guarded mode."""
        return self._mode

    @property
    def lock_path(self) -> Path:
        """Return the lock artifact location."""
        return self._lock_path

    def acquire(self, command: Optional[str] = None) -> LockArtifact:
        """Take the lock for this mode.

        Stale artifacts (dead PID) and unparseable artifacts are deleted and the
        create is retried.

        Args:
            command: Label recorded in the artifact; defaults to ``sys.argv``.

        Returns:
            LockArtifact: Artifact written for the current process.

        Raises:
            LockContentionError: If a live process already holds the lock.
            AIFilesError: If the lock could not be created after several retries.
        """
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        artifact = LockArtifact.for_current_process(command or default_command_label())

        for _ in range(_MAX_ATTEMPTS):
            if self._try_create(artifact):
                self._held = True
                LOGGER.debug("Acquired %s lock at %s", self._mode.value, self._lock_path)
                return artifact

            existing = self.read()
            if existing is None:
                LOGGER.info("Removing corrupted lock file %s", self._lock_path)
                self._discard()
                continue

            if existing.pid == os.getpid() and self._held:
                return existing

            if is_process_alive(existing.pid):
                raise LockContentionError(
                    pid=existing.pid,
                    command=existing.command,
                    uptime_seconds=existing.uptime_seconds(),
                    lock_path=self._lock_path,
                    mode_label=self._mode.label,
                )

            LOGGER.info(
                "Removing stale lock file from previous instance (pid %s)", existing.pid
            )
            self._discard()

        raise AIFilesError(
            f"Could not create lock file {self._lock_path}",
            hint=f'Remove the file manually: rm "{self._lock_path}"',
        )

    def release(self) -> None:
        """Delete the artifact if, and only if, it records this process's PID.

        Safe to call any number of times and from any exit path.
        """
        with self._release_lock:
            existing = self.read()
            if existing is not None and existing.pid == os.getpid():
                try:
                    self._lock_path.unlink()
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    LOGGER.warning("Could not remove lock file %s: %s", self._lock_path, exc)
                else:
                    LOGGER.debug("Released %s lock", self._mode.value)
            self._held = False

    def read(self) -> Optional[LockArtifact]:
        """Return the current artifact, or ``None`` when absent or malformed."""
        try:
            raw = self._lock_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            LOGGER.debug("Could not read lock file %s: %s", self._lock_path, exc)
            return None
        try:
            return LockArtifact.model_validate_json(raw)
        except ValidationError:
            return None

    def status(self) -> LockStatus:
        """Report whether a live process holds the lock, without raising."""
        existing = self.read()
        if existing is None or not is_process_alive(existing.pid):
            return LockStatus(locked=False)
        return LockStatus(locked=True, pid=existing.pid, command=existing.command)

    @contextmanager
    def held(self, command: Optional[str] = None) -> Iterator[LockArtifact]:
        """Hold the lock for the duration of the ``with`` block."""
        artifact = self.acquire(command)
        try:
            yield artifact
        finally:
            self.release()

    def add_shutdown_hook(self, hook: Callable[[], None]) -> None:
        """Register a callable run on signal-driven shutdown before the lock is released."""
        self._shutdown_hooks.append(hook)

    def install_handlers(self) -> None:
        """Route normal exit, SIGINT, SIGTERM, and uncaught exceptions into :meth:`release`.

        Signal handlers can only be installed from the main thread; elsewhere only
        the ``atexit`` and excepthook paths are registered.
        """
        if not self._atexit_registered:
            atexit.register(self.release)
            self._atexit_registered = True

        if self._previous_excepthook is None:
            self._previous_excepthook = sys.excepthook
            sys.excepthook = self._excepthook

        if threading.current_thread() is not threading.main_thread():
            return
        for signum in _EXIT_CODES:
            if signum not in self._previous_handlers:
                self._previous_handlers[signum] = signal.getsignal(signum)
                signal.signal(signum, self._handle_signal)

    def uninstall_handlers(self) -> None:
        """Restore handlers replaced by :meth:`install_handlers`."""
        if self._atexit_registered:
            atexit.unregister(self.release)
            self._atexit_registered = False
        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None
        for signum, previous in list(self._previous_handlers.items()):
            signal.signal(signum, previous)  # type: ignore[arg-type]
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, _frame: object) -> None:
        LOGGER.info("Received signal %s; shutting down", signum)
        self._run_shutdown_hooks()
        self.release()
        sys.exit(_EXIT_CODES.get(signum, 1))

    def _excepthook(self, exc_type, exc_value, traceback) -> None:
        self.release()
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc_value, traceback)

    def _run_shutdown_hooks(self) -> None:
        hooks, self._shutdown_hooks = self._shutdown_hooks, []
        for hook in hooks:
            try:
                hook()
            except Exception:  # pragma: no cover - shutdown must continue
                LOGGER.exception("Shutdown hook failed")

    def _try_create(self, artifact: LockArtifact) -> bool:
        """Publish ``artifact`` with a hard link so readers never see a partial file."""
        temp_path = self._lock_path.with_name(f"{self._lock_path.name}.{os.getpid()}.tmp")
        payload = artifact.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        temp_path.write_bytes(payload)
        try:
            os.link(temp_path, self._lock_path)
        except FileExistsError:
            return False
        except OSError:
            # Filesystems without hard links fall back to an exclusive create.
            return self._exclusive_create(payload)
        finally:
            temp_path.unlink(missing_ok=True)
        return True

    def _exclusive_create(self, payload: bytes) -> bool:
        try:
            fd = os.open(self._lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        return True

    def _discard(self) -> None:
        try:
            self._lock_path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["SingletonGuard", "is_process_alive"]
