from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from deadstrip.errors import FileUnreadable, FileUnwritable


def safe_relpath(path: Path, root: Path) -> str:
    """
    Return a stable, POSIX-style path for reporting output.

    Prefer a path relative to `root` when possible and fall back to
    `path.as_posix()` when the path lies outside the root.
    """

    try:
        resolved_path = path.resolve()
    except OSError:
        resolved_path = path

    try:
        resolved_root = root.resolve()
    except OSError:
        resolved_root = root

    try:
        return resolved_path.relative_to(resolved_root).as_posix()
    except ValueError:
        return path.as_posix()


def new_batch_id() -> str:
    return datetime.now(UTC).strftime("%Y%m%dT%H%M%S%fZ")


def read_source(path: Path) -> str:
    # newline="" keeps CRLF endings intact so edits round-trip exactly.
    try:
        with path.open("r", encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise FileUnreadable(path, str(exc)) from exc


def write_source(path: Path, contents: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as fh:
            fh.write(contents)
    except OSError as exc:
        raise FileUnwritable(path, str(exc)) from exc
