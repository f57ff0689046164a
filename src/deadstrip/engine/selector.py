from __future__ import annotations

import logging
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from deadstrip.engine.classifier import can_remove
from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.types import ANNOTATIONS, Annotation, Declaration, Location, ScanWarning, warning_id

logger = logging.getLogger(__name__)

KindGroup = str

KIND_GROUPS: tuple[KindGroup, ...] = (
    "class",
    "enum",
    "extension",
    "function",
    "import",
    "initializer",
    "parameter",
    "property",
    "protocol",
    "struct",
    "typealias",
)


def kind_group(kind: str) -> KindGroup:
    """Collapse the analyzer's dotted declaration kinds into filter groups."""

    if kind == "module":
        return "import"
    if kind in {"class", "struct", "protocol", "typealias"}:
        return kind
    if kind in {"enum", "enumelement"}:
        return "enum"
    if kind == "extension" or kind.startswith("extension."):
        return "extension"
    if kind in {"function.constructor", "function.destructor"}:
        return "initializer"
    if kind in {"var.parameter", "varParameter", "parameter"}:
        return "parameter"
    if kind.startswith("var."):
        return "property"
    return "function"


@dataclass(frozen=True, slots=True)
class FilterState:
    """
    The browser's visibility toggles.

    A warning is visible when its annotation and its declaration's kind group
    are both enabled, and, with `top_level_only`, when it has no parent.
    """

    top_level_only: bool = False
    annotations: frozenset[Annotation] = frozenset(ANNOTATIONS)
    kinds: frozenset[KindGroup] = frozenset(KIND_GROUPS)

    def should_show(self, warning: ScanWarning) -> bool:
        decl = warning.declaration
        if self.top_level_only and decl.parent_usr is not None:
            return False
        if warning.annotation not in self.annotations:
            return False
        return kind_group(decl.kind) in self.kinds


@dataclass(frozen=True, slots=True)
class RemovalScope:
    path: Path
    is_folder: bool

    @classmethod
    def for_path(cls, path: Path) -> RemovalScope:
        return cls(path=path, is_folder=path.is_dir())

    def contains(self, candidate: Path) -> bool:
        if not self.is_folder:
            return candidate == self.path
        try:
            candidate.relative_to(self.path)
        except ValueError:
            return False
        return True


@dataclass(frozen=True, slots=True)
class PlannedEdit:
    warning: ScanWarning
    location: Location  # live side-table entry; reflects reindexing
    warning_id: str

    @property
    def declaration(self) -> Declaration:
        return self.warning.declaration

    @property
    def annotation(self) -> Annotation:
        return self.warning.annotation


@dataclass(frozen=True, slots=True)
class FilePlan:
    path: Path
    edits: tuple[PlannedEdit, ...]  # bottom of file first
    non_removable: tuple[ScanWarning, ...] = ()
    # warning id -> id of the enclosing edit whose deletion also removes it
    covered: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def considered(self) -> int:
        return len(self.edits) + len(self.non_removable) + len(self.covered)


@dataclass(frozen=True, slots=True)
class EditPlan:
    scope: RemovalScope
    file_plans: tuple[FilePlan, ...]  # sorted by path

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def files(self) -> list[Path]:
        """Files with at least one removable edit, in processing order."""

        return [fp.path for fp in self.file_plans if fp.edits]

    def by_file(self) -> dict[Path, FilePlan]:
        return {fp.path: fp for fp in self.file_plans}

    def stats(self) -> tuple[int, int]:
        """(removable, non-removable) warning counts across the plan."""

        removable = sum(len(fp.edits) + len(fp.covered) for fp in self.file_plans)
        return removable, sum(len(fp.non_removable) for fp in self.file_plans)


def visible_warnings(
    warnings: Iterable[ScanWarning],
    graph: SourceGraph,
    *,
    scope: RemovalScope | None = None,
    filter_state: FilterState | None = None,
    hidden_ids: Collection[str] = (),
) -> list[tuple[ScanWarning, Location]]:
    out: list[tuple[ScanWarning, Location]] = []
    for warning in warnings:
        loc = graph.location_of(warning.declaration.primary_usr)
        if loc is None:
            logger.debug("warning without location in graph: %s", warning.declaration.primary_usr)
            continue
        if scope is not None and not scope.contains(loc.path):
            continue
        if filter_state is not None and not filter_state.should_show(warning):
            continue
        if warning_id(loc.path, warning.declaration.primary_usr) in hidden_ids:
            continue
        out.append((warning, loc))
    return out


def plan_removals(
    scope: RemovalScope,
    warnings: Iterable[ScanWarning],
    graph: SourceGraph,
    *,
    filter_state: FilterState | None = None,
    hidden_ids: Collection[str] = (),
) -> EditPlan:
    """
    Build the ordered edit plan for a file or folder.

    Edits for each file are sorted descending by (line, column): every strategy
    works on explicit line numbers, so editing from the bottom up keeps the
    locations of still-pending edits valid without reindexing in between.
    """

    per_file: dict[Path, list[tuple[ScanWarning, Location]]] = {}
    for warning, loc in visible_warnings(
        warnings, graph, scope=scope, filter_state=filter_state, hidden_ids=hidden_ids
    ):
        per_file.setdefault(loc.path, []).append((warning, loc))

    files: list[FilePlan] = []
    for path in sorted(per_file):
        files.append(_plan_file(path, per_file[path]))
    return EditPlan(scope=scope, file_plans=tuple(files))


def _plan_file(path: Path, items: list[tuple[ScanWarning, Location]]) -> FilePlan:
    removable: list[PlannedEdit] = []
    non_removable: list[ScanWarning] = []
    seen: set[str] = set()

    for warning, loc in items:
        wid = warning_id(path, warning.declaration.primary_usr)
        if wid in seen:
            # The analyzer can report several annotations for one declaration;
            # only the first one is acted upon.
            continue
        seen.add(wid)
        if can_remove(warning.annotation, loc.has_full_range, is_import=warning.declaration.is_import):
            removable.append(PlannedEdit(warning=warning, location=loc, warning_id=wid))
        else:
            non_removable.append(warning)

    removable.sort(key=lambda e: (e.location.line, e.location.column), reverse=True)
    covered = _covered_edits(removable)
    edits = tuple(e for e in removable if e.warning_id not in covered)
    return FilePlan(
        path=path,
        edits=edits,
        non_removable=tuple(non_removable),
        covered=MappingProxyType(covered),
    )


def _covered_edits(edits: list[PlannedEdit]) -> dict[str, str]:
    """
    Find edits that lie inside an enclosing whole-declaration deletion.

    Deleting the enclosing declaration removes them too. Applying them first
    would shorten the enclosing range without updating its end line.

    Whole-declaration deletions remove full lines, so anything starting after
    the enclosing start and ending on or before its end line goes with it.
    Enum cases never enclose: `case a, b` is rewritten in place and keeps the
    rest of its line.
    """

    enclosing = [
        e
        for e in edits
        if e.annotation == "unused"
        and not e.declaration.is_import
        and e.declaration.kind != "enumelement"
        and e.location.end_line is not None
    ]
    covered: dict[str, str] = {}
    for edit in edits:
        start = (edit.location.line, edit.location.column)
        end_line = edit.location.end_line if edit.location.end_line is not None else edit.location.line
        for outer in enclosing:
            if outer is edit:
                continue
            outer_end = outer.location.end_line
            assert outer_end is not None
            if start <= (outer.location.line, outer.location.column):
                continue
            if end_line > outer_end:
                continue
            covered[edit.warning_id] = outer.warning_id
            break
    return covered
