"""Tests for tag and comment annotators."""

import errno
import plistlib
import subprocess
from pathlib import Path

import pytest

from aifiles.annotation import (
    AnnotationError,
    AnnotationUnsupportedError,
    NullAnnotator,
    SystemAnnotator,
    clean_comment,
)
from aifiles.annotation import annotators


def test_clean_comment_strips_quotes() -> None:
    assert clean_comment('  "Quarterly numbers"  ') == "Quarterly numbers"
    assert clean_comment("it's fine") == "it's fine"


def test_null_annotator_records_calls(tmp_path: Path) -> None:
    annotator = NullAnnotator()
    target = tmp_path / "a.txt"

    annotator.add_tags(target, ["one", "two"])
    annotator.add_comment(target, "hello")

    assert annotator.tags == {target: ["one", "two"]}
    assert annotator.comments == {target: "hello"}


def test_unsupported_platform_raises(tmp_path: Path) -> None:
    annotator = SystemAnnotator(platform="win32")

    with pytest.raises(AnnotationUnsupportedError):
        annotator.add_tags(tmp_path / "a.txt", ["x"])
    with pytest.raises(AnnotationUnsupportedError):
        annotator.add_comment(tmp_path / "a.txt", "x")


def test_empty_values_are_skipped(tmp_path: Path) -> None:
    annotator = SystemAnnotator(platform="win32")

    annotator.add_tags(tmp_path / "a.txt", ["", "  "])
    annotator.add_comment(tmp_path / "a.txt", '""')


def test_linux_writes_xdg_attributes(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[Path, str, bytes]] = []
    monkeypatch.setattr(
        annotators.os,
        "setxattr",
        lambda path, name, value: calls.append((path, name, value)),
        raising=False,
    )
    target = tmp_path / "a.txt"
    annotator = SystemAnnotator(platform="linux")

    annotator.add_tags(target, ["Finance", " Reports "])
    annotator.add_comment(target, "'Quarterly numbers'")

    assert calls == [
        (target, "user.xdg.tags", b"Finance,Reports"),
        (target, "user.xdg.comment", b"Quarterly numbers"),
    ]


def test_linux_without_xattr_support(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _unsupported(path, name, value) -> None:
        raise OSError(errno.ENOTSUP, "Operation not supported")

    def _broken(path, name, value) -> None:
        raise OSError(errno.EIO, "I/O error")

    annotator = SystemAnnotator(platform="linux")
    monkeypatch.setattr(annotators.os, "setxattr", _unsupported, raising=False)
    with pytest.raises(AnnotationUnsupportedError):
        annotator.add_tags(tmp_path / "a.txt", ["x"])

    monkeypatch.setattr(annotators.os, "setxattr", _broken, raising=False)
    with pytest.raises(AnnotationError):
        annotator.add_comment(tmp_path / "a.txt", "x")


def test_macos_uses_xattr_and_osascript(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    commands: list[list[str]] = []

    def _run(argv, **kwargs):
        commands.append(argv)
        return subprocess.CompletedProcess(argv, 0, "", "")

    monkeypatch.setattr(annotators.subprocess, "run", _run)
    target = tmp_path / 'report "final".pdf'
    annotator = SystemAnnotator(platform="darwin")

    annotator.add_tags(target, ["Finance"])
    annotator.add_comment(target, "Q3 numbers")

    xattr, osascript = commands
    assert xattr[:3] == ["xattr", "-w", "com.apple.metadata:_kMDItemUserTags"]
    assert plistlib.loads(xattr[3].encode("utf-8")) == ["Finance"]
    assert xattr[4] == str(target)
    assert osascript[0] == "osascript"
    assert '\\"final\\"' in osascript[2]
    assert 'to "Q3 numbers"' in osascript[2]


def test_macos_missing_tool_is_unsupported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _missing(argv, **kwargs):
        raise FileNotFoundError(argv[0])

    monkeypatch.setattr(annotators.subprocess, "run", _missing)

    with pytest.raises(AnnotationUnsupportedError):
        SystemAnnotator(platform="darwin").add_tags(tmp_path / "a.txt", ["x"])
