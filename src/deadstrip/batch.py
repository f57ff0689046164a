from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass
from pathlib import Path

from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.lifecycle import TrashBin
from deadstrip.engine.selector import EditPlan, FilterState, RemovalScope, plan_removals
from deadstrip.engine.types import DeletionStats, RemovalResult, ScanWarning
from deadstrip.errors import DeadstripError, NoRemovableWarnings
from deadstrip.removal import RemovalSettings, apply_removals
from deadstrip.undo import FileChange

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag, checked between files only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class BatchCallbacks:
    # (current file, files processed so far, total files)
    on_progress: Callable[[Path, int, int], None] | None = None
    on_file_done: Callable[[RemovalResult], None] | None = None


@dataclass(frozen=True, slots=True)
class FileFailure:
    path: Path
    error: str


@dataclass(frozen=True, slots=True)
class BatchSummary:
    scope: RemovalScope
    stats: DeletionStats
    file_count: int
    total_files: int
    cancelled: bool
    dry_run: bool
    changes: tuple[FileChange, ...]
    results: tuple[RemovalResult, ...]
    failures: tuple[FileFailure, ...]

    @property
    def deleted_files(self) -> tuple[Path, ...]:
        return tuple(r.path for r in self.results if r.should_delete_file)

    @property
    def removed_warning_ids(self) -> tuple[str, ...]:
        return tuple(wid for r in self.results for wid in r.removed_warning_ids)


def run_folder_batch(
    folder: Path,
    warnings: Iterable[ScanWarning],
    graph: SourceGraph,
    *,
    trash: TrashBin | None,
    filter_state: FilterState | None = None,
    hidden_ids: Collection[str] = (),
    settings: RemovalSettings | None = None,
    callbacks: BatchCallbacks | None = None,
    cancel: CancelToken | None = None,
    dry_run: bool = False,
) -> BatchSummary:
    plan = plan_removals(
        RemovalScope(path=folder, is_folder=True),
        warnings,
        graph,
        filter_state=filter_state,
        hidden_ids=hidden_ids,
    )
    return run_plan(plan, graph, trash=trash, settings=settings, callbacks=callbacks, cancel=cancel, dry_run=dry_run)


def run_file(
    path: Path,
    warnings: Iterable[ScanWarning],
    graph: SourceGraph,
    *,
    trash: TrashBin | None,
    filter_state: FilterState | None = None,
    hidden_ids: Collection[str] = (),
    settings: RemovalSettings | None = None,
    callbacks: BatchCallbacks | None = None,
    dry_run: bool = False,
) -> BatchSummary:
    plan = plan_removals(
        RemovalScope(path=path, is_folder=False),
        warnings,
        graph,
        filter_state=filter_state,
        hidden_ids=hidden_ids,
    )
    return run_plan(plan, graph, trash=trash, settings=settings, callbacks=callbacks, dry_run=dry_run)


def run_plan(
    plan: EditPlan,
    graph: SourceGraph,
    *,
    trash: TrashBin | None,
    settings: RemovalSettings | None = None,
    callbacks: BatchCallbacks | None = None,
    cancel: CancelToken | None = None,
    dry_run: bool = False,
) -> BatchSummary:
    """
    Apply an edit plan file by file, in the plan's (sorted path) order.

    Per-file failures are logged and skipped. Cancellation is honoured at
    file boundaries; files finished before it stay finished and are part of
    the returned changes.

    Raises `NoRemovableWarnings` when no file in the plan has a removable edit.
    """

    callbacks = callbacks or BatchCallbacks()
    settings = settings or RemovalSettings()

    stats = DeletionStats()
    for fp in plan.file_plans:
        if not fp.edits:
            stats = stats + DeletionStats(non_deletable_count=len(fp.non_removable))

    files = [fp for fp in plan.file_plans if fp.edits]
    if not files:
        raise NoRemovableWarnings(None if plan.scope.is_folder else plan.scope.path, stats)

    results: list[RemovalResult] = []
    changes: list[FileChange] = []
    failures: list[FileFailure] = []
    cancelled = False
    total = len(files)

    for index, fp in enumerate(files):
        if cancel is not None and cancel.cancelled:
            logger.info("Cancelled after %d of %d file(s)", index, total)
            cancelled = True
            break

        before = graph.snapshot_locations(fp.path)
        try:
            result = apply_removals(fp, graph, settings=settings, dry_run=dry_run)
            trash_location = None
            if result.should_delete_file and not dry_run and trash is not None:
                trash_location = trash.trash(fp.path)
        except DeadstripError as exc:
            graph.restore_locations(before)
            logger.warning("Skipping %s: %s", fp.path, exc)
            failures.append(FileFailure(path=fp.path, error=str(exc)))
        else:
            stats = stats + result.stats
            results.append(result)
            if result.changed:
                changes.append(
                    FileChange(
                        path=fp.path,
                        original_contents=result.original_contents,
                        modified_contents=result.modified_contents,
                        removed_warning_ids=result.removed_warning_ids,
                        was_deleted=result.should_delete_file,
                        trash_location=trash_location,
                        locations_before=before,
                        locations_after=graph.snapshot_locations(fp.path),
                    )
                )
            if callbacks.on_file_done is not None:
                callbacks.on_file_done(result)

        if callbacks.on_progress is not None:
            callbacks.on_progress(fp.path, index + 1, total)

    return BatchSummary(
        scope=plan.scope,
        stats=stats,
        file_count=len(results),
        total_files=total,
        cancelled=cancelled,
        dry_run=dry_run,
        changes=tuple(changes),
        results=tuple(results),
        failures=tuple(failures),
    )
