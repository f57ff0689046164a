from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

Annotation = Literal[
    "unused",
    "assign_only_property",
    "redundant_protocol",
    "redundant_public",
    "superfluous_ignore",
]

ANNOTATIONS: tuple[Annotation, ...] = (
    "unused",
    "assign_only_property",
    "redundant_protocol",
    "redundant_public",
    "superfluous_ignore",
)

IMPORT_KIND = "module"


@dataclass(slots=True)
class Location:
    """
    Source position of a declaration (1-based lines and columns).

    `line` and `end_line` are patched in place by the reindexer after edits;
    every other field is fixed once the analyzer has produced the location.
    """

    path: Path
    line: int
    column: int
    end_line: int | None = None
    end_column: int | None = None

    @property
    def has_full_range(self) -> bool:
        return self.end_line is not None and self.end_column is not None

    def copy(self) -> Location:
        return Location(
            path=self.path,
            line=self.line,
            column=self.column,
            end_line=self.end_line,
            end_column=self.end_column,
        )

    def sort_key(self) -> tuple[str, int, int, int, int]:
        # Missing end fields sort before any concrete value.
        return (
            self.path.as_posix(),
            self.line,
            self.column,
            self.end_line if self.end_line is not None else -1,
            self.end_column if self.end_column is not None else -1,
        )

    def __lt__(self, other: Location) -> bool:
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        parts = [self.path.as_posix(), str(self.line), str(self.column)]
        if self.end_line is not None and self.end_column is not None:
            parts.extend([str(self.end_line), str(self.end_column)])
        return ":".join(parts)


@dataclass(frozen=True, slots=True)
class Declaration:
    usrs: tuple[str, ...]
    kind: str
    name: str | None = None
    attributes: frozenset[str] = frozenset()
    modifiers: frozenset[str] = frozenset()
    parent_usr: str | None = None

    @property
    def primary_usr(self) -> str:
        return self.usrs[0] if self.usrs else ""

    @property
    def is_import(self) -> bool:
        return self.kind == IMPORT_KIND


@dataclass(frozen=True, slots=True)
class ScanWarning:
    declaration: Declaration
    annotation: Annotation


def warning_id(path: Path, usr: str) -> str:
    return f"{path.as_posix()}:{usr}"


def usr_from_warning_id(value: str, path: Path) -> str | None:
    # Swift USRs contain ':' themselves ("s:4Demo3FooV"), so strip the known
    # path prefix instead of splitting.
    prefix = f"{path.as_posix()}:"
    if not value.startswith(prefix):
        return None
    return value[len(prefix) :] or None


@dataclass(frozen=True, slots=True)
class DeletionRange:
    start_line: int  # 1-based, inclusive
    end_line: int  # 1-based, inclusive

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


@dataclass(frozen=True, slots=True)
class DeletionStats:
    deleted_count: int = 0
    non_deletable_count: int = 0
    failed_ignore_comment_count: int = 0

    def __add__(self, other: DeletionStats) -> DeletionStats:
        return DeletionStats(
            deleted_count=self.deleted_count + other.deleted_count,
            non_deletable_count=self.non_deletable_count + other.non_deletable_count,
            failed_ignore_comment_count=self.failed_ignore_comment_count + other.failed_ignore_comment_count,
        )


@dataclass(frozen=True, slots=True)
class RemovalResult:
    path: Path
    original_contents: str
    modified_contents: str
    removed_warning_ids: tuple[str, ...]
    adjusted_usrs: tuple[str, ...]
    should_delete_file: bool
    should_strip_imports: bool
    stats: DeletionStats = field(default_factory=DeletionStats)

    @property
    def changed(self) -> bool:
        return self.should_delete_file or self.original_contents != self.modified_contents
