from __future__ import annotations

import logging
import os
import re
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path

from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.strategies import is_conditional_directive
from deadstrip.engine.types import usr_from_warning_id
from deadstrip.errors import FileUnwritable
from deadstrip.utils import safe_relpath, write_source

logger = logging.getLogger(__name__)

DEFAULT_MEANINGFUL_COMMENT_THRESHOLD = 5

# `import X`, `@testable import X`, `@_exported import struct X.Y`
_IMPORT_RE = re.compile(r"^(?:@\w+\s+)*import\s")


@dataclass(frozen=True, slots=True)
class FileVerdict:
    should_delete: bool
    should_strip_imports: bool


KEEP = FileVerdict(should_delete=False, should_strip_imports=False)
DELETE = FileVerdict(should_delete=True, should_strip_imports=False)
STRIP_IMPORTS = FileVerdict(should_delete=False, should_strip_imports=True)


def finalize(
    path: Path,
    modified_contents: str,
    graph: SourceGraph,
    removed_warning_ids: Collection[str],
    *,
    meaningful_comment_threshold: int = DEFAULT_MEANINGFUL_COMMENT_THRESHOLD,
    graph_complete: bool = True,
) -> FileVerdict:
    """
    Decide what happens to a file once its warnings have been removed.

    1. Any remaining non-import declaration keeps the file as it is.
    2. A file reduced to imports, comments and `#if` scaffolding is deleted.
    3. A file whose comments outlive its code keeps the comments and loses
       its imports.
    4. Anything else is deleted.

    When the graph only holds flagged declarations (`graph_complete=False`),
    unflagged code is invisible to step 1, so only step 2 may delete.
    """

    if graph_complete and has_remaining_declarations(path, graph, removed_warning_ids):
        return KEEP
    if has_only_scaffolding(modified_contents):
        return DELETE
    if not graph_complete:
        return KEEP
    if count_meaningful_comments(modified_contents) > meaningful_comment_threshold:
        return STRIP_IMPORTS
    return DELETE


def has_remaining_declarations(path: Path, graph: SourceGraph, removed_warning_ids: Collection[str]) -> bool:
    removed = {usr for wid in removed_warning_ids if (usr := usr_from_warning_id(wid, path)) is not None}
    for decl, _loc in graph.declarations_in(path):
        if decl.is_import:
            continue
        if _is_removed(decl.primary_usr, graph, removed):
            continue
        return True
    return False


def _is_removed(usr: str, graph: SourceGraph, removed: set[str]) -> bool:
    # Members go away with their removed parent even when unflagged.
    seen: set[str] = set()
    current: str | None = usr
    while current is not None and current not in seen:
        if current in removed:
            return True
        seen.add(current)
        decl = graph.declaration(current)
        current = decl.parent_usr if decl is not None else None
    return False


def _is_comment(text: str) -> bool:
    return text.startswith(("//", "/*", "*")) or text.endswith("*/")


def _is_import(text: str) -> bool:
    return _IMPORT_RE.match(text) is not None


def has_only_scaffolding(contents: str) -> bool:
    for raw in contents.split("\n"):
        text = raw.strip()
        if not text or _is_comment(text) or _is_import(text):
            continue
        if is_conditional_directive(text):
            continue
        return False
    return True


def count_meaningful_comments(contents: str) -> int:
    """
    Count comment lines after the first import.

    Comments above the first import are treated as a file header. Every line
    of a block comment counts.
    """

    lines = contents.split("\n")
    first_import = next((i for i, raw in enumerate(lines) if _is_import(raw.strip())), -1)

    count = 0
    in_block = False
    for raw in lines[first_import + 1 :]:
        text = raw.strip()
        if in_block:
            count += 1
            if "*/" in text:
                in_block = False
            continue
        if text.startswith("//"):
            count += 1
        elif text.startswith("/*"):
            count += 1
            in_block = "*/" not in text
    return count


def strip_imports(contents: str) -> str:
    return "\n".join(raw for raw in contents.split("\n") if not _is_import(raw.strip()))


class TrashBin:
    """
    Reversible file deletion.

    Files are moved under `<trash_dir>/<batch_id>/<path relative to root>`, so
    one batch never overwrites another batch's trashed copies.
    """

    def __init__(self, root: Path, trash_dir: Path, batch_id: str) -> None:
        self.root = root
        self.trash_dir = trash_dir
        self.batch_id = batch_id

    @property
    def batch_dir(self) -> Path:
        return self.trash_dir / self.batch_id

    def location_for(self, path: Path) -> Path:
        rel = safe_relpath(path, self.root)
        if rel.startswith("/") or rel.startswith(".."):
            rel = path.name
        return self.batch_dir / rel

    def trash(self, path: Path) -> Path:
        target = self.location_for(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            os.replace(path, target)
        except OSError as exc:
            raise FileUnwritable(path, f"cannot move to trash: {exc}") from exc
        logger.info("Moved %s to %s", path, target)
        return target


def retrash(path: Path, trash_location: Path) -> None:
    """Move a restored file back to the trash slot it was first moved to."""

    try:
        trash_location.parent.mkdir(parents=True, exist_ok=True)
        os.replace(path, trash_location)
    except OSError as exc:
        raise FileUnwritable(path, f"cannot move to trash: {exc}") from exc
    logger.info("Moved %s to %s", path, trash_location)


def restore_from_trash(path: Path, trash_location: Path | None, original_contents: str) -> None:
    """
    Put a trashed file back.

    The captured original contents are always written back, which also covers
    a trashed copy that has since disappeared.
    """

    if trash_location is not None and trash_location.exists():
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            os.replace(trash_location, path)
        except OSError as exc:
            raise FileUnwritable(path, f"cannot restore from trash: {exc}") from exc
        logger.info("Restored %s from %s", path, trash_location)
    else:
        logger.debug("Trashed copy of %s missing; rewriting captured contents", path)
    write_source(path, original_contents)
