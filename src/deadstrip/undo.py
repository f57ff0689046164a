from __future__ import annotations

import logging
from collections.abc import MutableSet
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Literal

from deadstrip.engine.graph import LocationSnapshot, SourceGraph
from deadstrip.engine.lifecycle import restore_from_trash, retrash
from deadstrip.errors import TransactionStateError
from deadstrip.events import EventChannel
from deadstrip.utils import write_source

logger = logging.getLogger(__name__)

TransactionState = Literal["idle", "applying", "committed", "partially_committed", "undone"]


@dataclass(frozen=True, slots=True)
class FileChange:
    """Everything needed to undo or redo one file's removals without the strategies."""

    path: Path
    original_contents: str
    modified_contents: str
    removed_warning_ids: tuple[str, ...]
    was_deleted: bool = False
    trash_location: Path | None = None
    locations_before: LocationSnapshot = field(default_factory=lambda: MappingProxyType({}))
    locations_after: LocationSnapshot = field(default_factory=lambda: MappingProxyType({}))


@dataclass(slots=True)
class Transaction:
    """
    One user-visible removal action.

    idle -> applying -> committed | partially_committed
    committed | partially_committed -> undone (undo)
    undone -> the committed state it had before (redo)
    """

    label: str
    id: str = ""
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    changes: list[FileChange] = field(default_factory=list)
    state: TransactionState = "idle"
    committed_state: TransactionState | None = None

    def begin(self) -> None:
        self._require("idle", action="begin")
        self.state = "applying"

    def record(self, change: FileChange) -> None:
        self._require("applying", action="record a change in")
        self.changes.append(change)

    def commit(self, *, partial: bool = False) -> None:
        self._require("applying", action="commit")
        self.state = "partially_committed" if partial else "committed"
        self.committed_state = self.state

    def mark_undone(self) -> None:
        self._require("committed", "partially_committed", action="undo")
        self.state = "undone"

    def mark_redone(self) -> bool:
        """Return False when the transaction is already applied (redo is a no-op)."""

        if self.state in {"committed", "partially_committed"}:
            return False
        self._require("undone", action="redo")
        assert self.committed_state is not None
        self.state = self.committed_state
        return True

    @property
    def removed_warning_ids(self) -> tuple[str, ...]:
        return tuple(wid for change in self.changes for wid in change.removed_warning_ids)

    def _require(self, *states: TransactionState, action: str) -> None:
        if self.state not in states:
            raise TransactionStateError(f"Cannot {action} transaction {self.label!r} in state {self.state!r}")


@dataclass(frozen=True, slots=True)
class UndoCommand:
    changes: tuple[FileChange, ...]

    def execute(self, graph: SourceGraph | None, hidden_ids: MutableSet[str]) -> list[str]:
        restored: list[str] = []
        for change in reversed(self.changes):
            if change.was_deleted:
                restore_from_trash(change.path, change.trash_location, change.original_contents)
            else:
                write_source(change.path, change.original_contents)
            if graph is not None:
                graph.restore_locations(change.locations_before)
            for wid in change.removed_warning_ids:
                hidden_ids.discard(wid)
                restored.append(wid)
        return restored


@dataclass(frozen=True, slots=True)
class RedoCommand:
    changes: tuple[FileChange, ...]

    def execute(self, graph: SourceGraph | None, hidden_ids: MutableSet[str]) -> list[str]:
        completed: list[str] = []
        for change in self.changes:
            if change.was_deleted and change.trash_location is not None:
                write_source(change.path, change.original_contents)
                retrash(change.path, change.trash_location)
            elif change.was_deleted:
                change.path.unlink(missing_ok=True)
            else:
                write_source(change.path, change.modified_contents)
            if graph is not None:
                graph.restore_locations(change.locations_after)
            for wid in change.removed_warning_ids:
                hidden_ids.add(wid)
                completed.append(wid)
        return completed


class UndoManager:
    def __init__(
        self,
        *,
        undo_stack: list[Transaction] | None = None,
        redo_stack: list[Transaction] | None = None,
        events: EventChannel | None = None,
    ) -> None:
        self.undo_stack: list[Transaction] = list(undo_stack or [])
        self.redo_stack: list[Transaction] = list(redo_stack or [])
        self.events = events

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def record(self, transaction: Transaction) -> None:
        if transaction.state not in {"committed", "partially_committed"}:
            raise TransactionStateError(f"Cannot record transaction {transaction.label!r} in state {transaction.state!r}")
        if not transaction.changes:
            logger.debug("Not recording empty transaction %r", transaction.label)
            return
        self.undo_stack.append(transaction)
        self.redo_stack.clear()

    def undo(self, graph: SourceGraph | None, hidden_ids: MutableSet[str]) -> Transaction | None:
        if not self.undo_stack:
            return None
        transaction = self.undo_stack[-1]
        restored = UndoCommand(tuple(transaction.changes)).execute(graph, hidden_ids)
        transaction.mark_undone()
        self.undo_stack.pop()
        self.redo_stack.append(transaction)
        logger.info("Undid %r (%d file(s))", transaction.label, len(transaction.changes))
        if self.events is not None:
            self.events.publish_all("restored", restored)
        return transaction

    def redo(self, graph: SourceGraph | None, hidden_ids: MutableSet[str]) -> Transaction | None:
        if not self.redo_stack:
            return None
        transaction = self.redo_stack[-1]
        if transaction.state != "undone":
            return None
        completed = RedoCommand(tuple(transaction.changes)).execute(graph, hidden_ids)
        transaction.mark_redone()
        self.redo_stack.pop()
        self.undo_stack.append(transaction)
        logger.info("Redid %r (%d file(s))", transaction.label, len(transaction.changes))
        if self.events is not None:
            self.events.publish_all("completed", completed)
        return transaction
