from __future__ import annotations

import logging
from dataclasses import dataclass

from deadstrip.config import DeadstripConfig
from deadstrip.engine import reindex
from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.lifecycle import DEFAULT_MEANINGFUL_COMMENT_THRESHOLD, KEEP, finalize, strip_imports
from deadstrip.engine.selector import FilePlan
from deadstrip.engine.strategies import DEFAULT_IGNORE_MARKER, DEFAULT_SEARCH_WINDOW, LineBuffer, apply_edit
from deadstrip.engine.types import DeletionStats, RemovalResult
from deadstrip.errors import IgnoreCommentNotFound, InvalidLineRange, NoRemovableWarnings, TokenNotFound
from deadstrip.utils import read_source, write_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RemovalSettings:
    ignore_marker: str = DEFAULT_IGNORE_MARKER
    search_window: int = DEFAULT_SEARCH_WINDOW
    meaningful_comment_threshold: int = DEFAULT_MEANINGFUL_COMMENT_THRESHOLD
    # False when the graph holds only flagged declarations
    graph_complete: bool = True

    @classmethod
    def from_config(cls, config: DeadstripConfig, *, graph_complete: bool = True) -> RemovalSettings:
        return cls(
            ignore_marker=config.ignore_marker,
            search_window=config.ignore_search_window,
            meaningful_comment_threshold=config.meaningful_comment_threshold,
            graph_complete=graph_complete,
        )


def apply_removals(
    plan: FilePlan,
    graph: SourceGraph,
    *,
    settings: RemovalSettings | None = None,
    dry_run: bool = False,
) -> RemovalResult:
    """
    Remove every planned warning from one file in a single read/write pass.

    The graph's locations for the file are reindexed after each edit that
    removes lines. With `dry_run`, nothing is written; pass a copy of the
    graph to keep the live locations untouched as well.

    A file marked for deletion is left on disk: moving it to the trash is the
    caller's job so it can be undone with the rest of the batch.
    """

    settings = settings or RemovalSettings()
    if not plan.edits:
        raise NoRemovableWarnings(plan.path, DeletionStats(non_deletable_count=len(plan.non_removable)))

    original = read_source(plan.path)
    buffer = LineBuffer(original)

    removed: list[str] = []
    excised: list[str] = []
    adjusted: list[str] = []
    failed: set[str] = set()
    # Counted only in failed_ignore_comment_count, never as non-deletable.
    failed_ignore: set[str] = set()

    for edit in plan.edits:
        try:
            outcome = apply_edit(
                buffer,
                edit.warning,
                edit.location,
                ignore_marker=settings.ignore_marker,
                search_window=settings.search_window,
            )
        except IgnoreCommentNotFound as exc:
            failed_ignore.add(edit.warning_id)
            logger.warning("%s: %s", plan.path, exc)
            continue
        except (InvalidLineRange, TokenNotFound) as exc:
            failed.add(edit.warning_id)
            logger.warning("%s: skipping %s (%s)", plan.path, edit.declaration.name or edit.warning_id, exc)
            continue

        logger.debug("%s: %s removed at line %d (%+d lines)", plan.path, edit.annotation, edit.location.line, outcome.line_delta)
        removed.append(edit.warning_id)
        if edit.annotation == "unused":
            excised.append(edit.warning_id)
        adjusted.extend(
            reindex.adjust(graph, plan.path, after_line=outcome.after_line, line_delta=outcome.line_delta)
        )

    for covered_id, outer_id in plan.covered.items():
        if outer_id in failed:
            failed.add(covered_id)
        else:
            removed.append(covered_id)
            excised.append(covered_id)

    modified = buffer.text()
    # Only whole-declaration deletions can leave a file empty.
    verdict = KEEP
    if excised:
        verdict = finalize(
            plan.path,
            modified,
            graph,
            excised,
            meaningful_comment_threshold=settings.meaningful_comment_threshold,
            graph_complete=settings.graph_complete,
        )
    if verdict.should_strip_imports:
        modified = strip_imports(modified)

    if not dry_run and not verdict.should_delete and modified != original:
        write_source(plan.path, modified)

    stats = DeletionStats(
        deleted_count=len(removed),
        non_deletable_count=len(plan.non_removable) + len(failed),
        failed_ignore_comment_count=len(failed_ignore),
    )
    return RemovalResult(
        path=plan.path,
        original_contents=original,
        modified_contents=modified,
        removed_warning_ids=tuple(removed),
        adjusted_usrs=tuple(dict.fromkeys(adjusted)),
        should_delete_file=verdict.should_delete,
        should_strip_imports=verdict.should_strip_imports,
        stats=stats,
    )
