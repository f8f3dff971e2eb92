"""Write classifier tags and summaries into filesystem metadata."""

from __future__ import annotations

import errno
import logging
import os
import plistlib
import subprocess
import sys
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

from .errors import AnnotationError, AnnotationUnsupportedError

LOGGER = logging.getLogger(__name__)

MACOS_TAGS_ATTR = "com.apple.metadata:_kMDItemUserTags"
XDG_TAGS_ATTR = "user.xdg.tags"
XDG_COMMENT_ATTR = "user.xdg.comment"


@runtime_checkable
class Annotator(Protocol):
    """Sink for file tags and comments."""

    def add_tags(self, path: Path, tags: Sequence[str]) -> None:
        """Attach ``tags`` to ``path``."""
        ...

    def add_comment(self, path: Path, text: str) -> None:
        """Attach a free-text comment to ``path``."""
        ...


def clean_comment(text: str) -> str:
    """Strip whitespace and one pair of surrounding quotes."""
    cleaned = text.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
        cleaned = cleaned[1:-1].strip()
    return cleaned


class NullAnnotator:
    """Annotator that records calls without touching the filesystem."""

    def __init__(self) -> None:
        self.tags: dict[Path, list[str]] = {}
        self.comments: dict[Path, str] = {}

    def add_tags(self, path: Path, tags: Sequence[str]) -> None:
        self.tags[path] = list(tags)

    def add_comment(self, path: Path, text: str) -> None:
        self.comments[path] = text


class SystemAnnotator:
    """Annotator using the host platform's metadata facilities.

    macOS receives Finder tags through ``xattr`` and comments through
    ``osascript``. Linux receives ``user.xdg.tags`` and ``user.xdg.comment``
    extended attributes. Other platforms raise
    :class:`AnnotationUnsupportedError`.
    """

    def __init__(self, platform: str | None = None) -> None:
        self._platform = platform or sys.platform

    @property
    def platform(self) -> str:
        """Return the platform this annotator targets."""
        return self._platform

    def add_tags(self, path: Path, tags: Sequence[str]) -> None:
        """Write ``tags`` to ``path``.

        Raises:
            AnnotationUnsupportedError: If the platform or filesystem has no tag support.
            AnnotationError: If writing the tags fails.
        """
        cleaned = [tag.strip() for tag in tags if tag and tag.strip()]
        if not cleaned:
            return
        if self._platform == "darwin":
            payload = plistlib.dumps(cleaned, fmt=plistlib.FMT_XML).decode("utf-8")
            self._run(["xattr", "-w", MACOS_TAGS_ATTR, payload, str(path)])
        elif self._platform.startswith("linux"):
            self._set_xattr(path, XDG_TAGS_ATTR, ",".join(cleaned))
        else:
            raise AnnotationUnsupportedError(f"Tags are not supported on {self._platform}")

    def add_comment(self, path: Path, text: str) -> None:
        """Write ``text`` as the comment of ``path``.

        Raises:
            AnnotationUnsupportedError: If the platform or filesystem has no comment support.
            AnnotationError: If writing the comment fails.
        """
        comment = clean_comment(text)
        if not comment:
            return
        if self._platform == "darwin":
            escaped_path = str(path).replace("\\", "\\\\").replace('"', '\\"')
            escaped_comment = comment.replace("\\", "\\\\").replace('"', '\\"')
            script = (
                f'tell application "Finder" to set comment of '
                f'(POSIX file "{escaped_path}" as alias) to "{escaped_comment}"'
            )
            self._run(["osascript", "-e", script])
        elif self._platform.startswith("linux"):
            self._set_xattr(path, XDG_COMMENT_ATTR, comment)
        else:
            raise AnnotationUnsupportedError(f"Comments are not supported on {self._platform}")

    def _set_xattr(self, path: Path, name: str, value: str) -> None:
        try:
            os.setxattr(path, name, value.encode("utf-8"))
        except OSError as exc:
            if exc.errno in (errno.ENOTSUP, errno.EOPNOTSUPP, errno.EPERM):
                raise AnnotationUnsupportedError(
                    f"Extended attributes are not supported for {path}"
                ) from exc
            raise AnnotationError(f"Unable to set {name} on {path}: {exc}") from exc

    def _run(self, argv: list[str]) -> None:
        try:
            subprocess.run(argv, check=True, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise AnnotationUnsupportedError(f"{argv[0]} is not available") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise AnnotationError(f"{argv[0]} failed: {detail}") from exc


__all__ = [
    "Annotator",
    "MACOS_TAGS_ATTR",
    "NullAnnotator",
    "SystemAnnotator",
    "XDG_COMMENT_ATTR",
    "XDG_TAGS_ATTR",
    "clean_comment",
]
