from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from deadstrip.batch import BatchCallbacks, BatchSummary, CancelToken, run_plan
from deadstrip.config import DeadstripConfig, resolve_under_root
from deadstrip.engine import selector
from deadstrip.engine.classifier import can_remove
from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.lifecycle import TrashBin
from deadstrip.engine.selector import EditPlan, FilterState, RemovalScope
from deadstrip.engine.types import Annotation, ScanWarning
from deadstrip.errors import BatchInProgress
from deadstrip.events import EventChannel
from deadstrip.removal import RemovalSettings
from deadstrip.undo import Transaction, UndoManager
from deadstrip.utils import new_batch_id

logger = logging.getLogger(__name__)


class EngineSession:
    """
    The removal engine as seen by a front end.

    Owns the declaration graph and its warnings, the visibility state, the
    undo history and the event channel. At most one batch runs at a time;
    a second concurrent request raises `BatchInProgress`.
    """

    def __init__(
        self,
        graph: SourceGraph,
        warnings: Iterable[ScanWarning],
        *,
        root: Path,
        config: DeadstripConfig | None = None,
        filter_state: FilterState | None = None,
        hidden_ids: Iterable[str] = (),
        undo_manager: UndoManager | None = None,
        events: EventChannel | None = None,
        graph_complete: bool = True,
    ) -> None:
        self.config = config or DeadstripConfig()
        self.graph = graph
        self.warnings = tuple(warnings)
        self.root = root
        self.settings = RemovalSettings.from_config(self.config, graph_complete=graph_complete)
        self.filter_state = filter_state or self.config.filters.to_filter_state()
        self.hidden_ids: set[str] = set(hidden_ids)
        self.events = events or EventChannel()
        self.undo_manager = undo_manager or UndoManager(events=self.events)
        if self.undo_manager.events is None:
            self.undo_manager.events = self.events
        self._processing = threading.Lock()

    @property
    def is_processing(self) -> bool:
        return self._processing.locked()

    @staticmethod
    def classify(annotation: Annotation, has_full_range: bool, *, is_import: bool = False) -> bool:
        return can_remove(annotation, has_full_range, is_import=is_import)

    def visible_warnings(self, path: Path | None = None) -> list[ScanWarning]:
        scope = RemovalScope.for_path(path) if path is not None else None
        pairs = selector.visible_warnings(
            self.warnings,
            self.graph,
            scope=scope,
            filter_state=self.filter_state,
            hidden_ids=self.hidden_ids,
        )
        return [warning for warning, _loc in pairs]

    def plan(self, path: Path) -> EditPlan:
        return selector.plan_removals(
            RemovalScope.for_path(path),
            self.warnings,
            self.graph,
            filter_state=self.filter_state,
            hidden_ids=self.hidden_ids,
        )

    def remove_file(
        self,
        path: Path,
        *,
        dry_run: bool = False,
        callbacks: BatchCallbacks | None = None,
    ) -> BatchSummary:
        scope = RemovalScope(path=path, is_folder=False)
        return self._run(scope, dry_run=dry_run, callbacks=callbacks, cancel=None)

    def remove_folder(
        self,
        folder: Path,
        *,
        dry_run: bool = False,
        callbacks: BatchCallbacks | None = None,
        cancel: CancelToken | None = None,
    ) -> BatchSummary:
        scope = RemovalScope(path=folder, is_folder=True)
        return self._run(scope, dry_run=dry_run, callbacks=callbacks, cancel=cancel)

    def undo(self) -> Transaction | None:
        with self._exclusive():
            return self.undo_manager.undo(self.graph, self.hidden_ids)

    def redo(self) -> Transaction | None:
        with self._exclusive():
            return self.undo_manager.redo(self.graph, self.hidden_ids)

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._processing.acquire(blocking=False):
            raise BatchInProgress("A removal batch is already running")
        try:
            yield
        finally:
            self._processing.release()

    def _run(
        self,
        scope: RemovalScope,
        *,
        dry_run: bool,
        callbacks: BatchCallbacks | None,
        cancel: CancelToken | None,
    ) -> BatchSummary:
        with self._exclusive():
            # Dry runs reindex a throwaway copy so the live locations stay put.
            graph = self.graph.copy() if dry_run else self.graph
            plan = selector.plan_removals(
                scope,
                self.warnings,
                graph,
                filter_state=self.filter_state,
                hidden_ids=self.hidden_ids,
            )

            batch_id = new_batch_id()
            trash = None
            if not dry_run:
                trash = TrashBin(self.root, resolve_under_root(self.root, self.config.trash_dir), batch_id)

            transaction = Transaction(label=f"Remove unused code in {scope.path.name or scope.path}", id=batch_id)
            transaction.begin()
            summary = run_plan(
                plan,
                graph,
                trash=trash,
                settings=self.settings,
                callbacks=callbacks,
                cancel=cancel,
                dry_run=dry_run,
            )
            if dry_run:
                return summary

            for change in summary.changes:
                transaction.record(change)
            transaction.commit(partial=summary.cancelled)
            self.undo_manager.record(transaction)

            removed = summary.removed_warning_ids
            self.hidden_ids.update(removed)
            self.events.publish_all("completed", removed)
            logger.info(
                "Removed %d warning(s) across %d file(s)%s",
                summary.stats.deleted_count,
                summary.file_count,
                " (cancelled)" if summary.cancelled else "",
            )
            return summary
