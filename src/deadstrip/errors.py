from __future__ import annotations

from pathlib import Path

from deadstrip.engine.types import DeletionStats


class DeadstripError(RuntimeError):
    """Base class for errors raised by the removal engine."""


class FileUnreadable(DeadstripError):
    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        super().__init__(f"Cannot read source file: {path}" + (f" ({reason})" if reason else ""))


class FileUnwritable(DeadstripError):
    def __init__(self, path: Path, reason: str = "") -> None:
        self.path = path
        super().__init__(f"Cannot write source file: {path}" + (f" ({reason})" if reason else ""))


class InvalidLineRange(DeadstripError):
    """A computed range falls outside the current line buffer (stale location)."""

    def __init__(self, start_line: int, end_line: int, line_count: int) -> None:
        self.start_line = start_line
        self.end_line = end_line
        self.line_count = line_count
        super().__init__(f"Invalid line range {start_line}-{end_line} (buffer has {line_count} lines)")


class IgnoreCommentNotFound(DeadstripError):
    def __init__(self, marker: str, line: int) -> None:
        self.marker = marker
        self.line = line
        super().__init__(f"No '{marker}' comment found above line {line}")


class NoRemovableWarnings(DeadstripError):
    """The scope had warnings but none of them can be removed mechanically."""

    def __init__(self, path: Path | None, stats: DeletionStats) -> None:
        self.path = path
        self.stats = stats
        target = str(path) if path is not None else "scope"
        super().__init__(f"No removable warnings in {target}")


class BatchInProgress(DeadstripError):
    """Another removal batch is already running against the same model."""


class TransactionStateError(DeadstripError):
    """An undo/redo step was requested from a state that does not allow it."""


class TokenNotFound(DeadstripError):
    """The text a strategy expects on the declaration's line is not there."""

    def __init__(self, token: str, line: int) -> None:
        self.token = token
        self.line = line
        super().__init__(f"'{token}' not found on line {line}")
