"""Backup-then-relocate execution of organization decisions."""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
import uuid
from pathlib import Path
from typing import Literal

from .errors import OrganizationError
from .models import MoveResult

LOGGER = logging.getLogger(__name__)


class OperationExecutor:
    """Apply a single relocation with a backup taken first.

    Files are written to a hidden temporary name next to the destination and
    then renamed into place, so the destination never holds a partial file.
    """

    def __init__(
        self,
        backup_dir: Path,
        operation: Literal["move", "copy"] = "move",
    ) -> None:
        """Configure where backups go and whether sources are kept.

        Args:
            backup_dir: Directory receiving ``<name>.backup.<epoch-ms>`` copies.
            operation: ``"move"`` removes the source afterwards, ``"copy"`` keeps it.
        """
        self._backup_dir = backup_dir.expanduser()
        self._operation = operation
        self._lock = threading.Lock()

    @property
    def backup_dir(self) -> Path:
        """Return the backup directory."""
        return self._backup_dir

    @property
    def operation(self) -> str:
        """Return the configured operation."""
        return self._operation

    def backup(self, source: Path) -> Path:
        """Copy ``source`` into the backup directory.

        Backups taken in the same millisecond for files sharing a name get a
        ``-N`` suffix instead of overwriting each other.

        Returns:
            Path: Location of the backup.

        Raises:
            OrganizationError: If the backup cannot be written.
        """
        stamp = int(time.time() * 1000)
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            target = self._reserve(f"{source.name}.backup.{stamp}")
        except OSError as exc:
            raise OrganizationError(f"Unable to back up {source}: {exc}") from exc
        try:
            shutil.copy2(source, target)
        except OSError as exc:
            _discard(target)
            raise OrganizationError(f"Unable to back up {source}: {exc}") from exc
        LOGGER.debug("Backed up %s to %s", source, target)
        return target

    def _reserve(self, name: str) -> Path:
        """Create an empty backup file named ``name`` or ``name-N``, whichever is free."""
        candidate = self._backup_dir / name
        counter = 0
        while True:
            try:
                fd = os.open(candidate, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                counter += 1
                candidate = self._backup_dir / f"{name}-{counter}"
                continue
            os.close(fd)
            return candidate

    def execute(self, source: Path, destination: Path) -> MoveResult:
        """Back up ``source`` and move or copy it to ``destination``.

        An existing file at ``destination`` is never overwritten; ``-1``,
        ``-2``... is appended to the stem instead.

        Raises:
            OrganizationError: If the source is missing or either step fails.
                The source is left untouched.
        """
        if not source.is_file():
            raise OrganizationError(f"Source file is missing: {source}")

        if source.resolve() == destination.resolve():
            LOGGER.info("%s is already in place", source)
            return MoveResult(source, source, None, self._operation)

        backup_path = self.backup(source)
        target = destination
        temp_path = destination.with_name(f".{destination.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, temp_path)
            with self._lock:
                target = unique_destination(destination)
                os.replace(temp_path, target)
        except OSError as exc:
            _discard(temp_path)
            raise OrganizationError(
                f"Unable to {self._operation} {source} to {target}: {exc}",
                hint=f"A backup of the file was kept at {backup_path}.",
            ) from exc

        if self._operation == "move":
            try:
                source.unlink()
            except OSError as exc:
                _discard(target)
                raise OrganizationError(f"Unable to remove {source} after copying: {exc}") from exc

        LOGGER.info("%s %s -> %s", self._operation.capitalize(), source, target)
        return MoveResult(source, target, backup_path, self._operation)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.debug("Could not remove %s: %s", path, exc)


def unique_destination(path: Path) -> Path:
    """Return ``path`` or the first ``<stem>-N<suffix>`` sibling that does not exist."""
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


__all__ = ["OperationExecutor", "unique_destination"]
