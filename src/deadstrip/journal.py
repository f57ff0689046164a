from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, cast

from deadstrip.engine.graph import LocationSnapshot, SourceGraph
from deadstrip.engine.types import Location
from deadstrip.undo import FileChange, Transaction, TransactionState

logger = logging.getLogger(__name__)

JOURNAL_VERSION = 1
DEFAULT_MAX_TRANSACTIONS = 50

_STATES = {"committed", "partially_committed", "undone"}


@dataclass(slots=True)
class JournalState:
    """Undo/redo stacks and hidden warnings, carried between CLI invocations."""

    undo: list[Transaction] = field(default_factory=list)
    redo: list[Transaction] = field(default_factory=list)
    hidden_ids: set[str] = field(default_factory=set)


def load_journal(path: Path) -> JournalState:
    if not path.exists():
        return JournalState()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable journal %s", path)
        return JournalState()

    if not isinstance(data, dict) or data.get("version") != JOURNAL_VERSION:
        logger.warning("Ignoring journal %s with unknown version", path)
        return JournalState()

    try:
        undo = [_parse_transaction(t) for t in _list(data.get("undo"))]
        redo = [_parse_transaction(t) for t in _list(data.get("redo"))]
    except (KeyError, TypeError, ValueError):
        logger.warning("Ignoring malformed journal %s", path)
        return JournalState()
    hidden = {h for h in _list(data.get("hidden_ids")) if isinstance(h, str)}
    return JournalState(undo=undo, redo=redo, hidden_ids=hidden)


def save_journal(path: Path, state: JournalState, *, max_transactions: int = DEFAULT_MAX_TRANSACTIONS) -> None:
    payload = {
        "version": JOURNAL_VERSION,
        "undo": [_transaction_to_json(t) for t in state.undo[-max_transactions:]],
        "redo": [_transaction_to_json(t) for t in state.redo[-max_transactions:]],
        "hidden_ids": sorted(state.hidden_ids),
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def replay_locations(state: JournalState, graph: SourceGraph) -> None:
    """
    Bring a freshly loaded graph up to date with removals already on disk.

    Analyzer output describes the files as they were before the journal's
    applied transactions; their post-edit location snapshots are replayed in
    order.
    """

    for transaction in state.undo:
        for change in transaction.changes:
            graph.restore_locations(change.locations_after)


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _transaction_to_json(t: Transaction) -> dict[str, Any]:
    return {
        "id": t.id,
        "label": t.label,
        "created_at": t.created_at,
        "state": t.state,
        "committed_state": t.committed_state,
        "changes": [_change_to_json(c) for c in t.changes],
    }


def _parse_transaction(raw: Any) -> Transaction:
    if not isinstance(raw, dict):
        raise TypeError("transaction must be an object")
    state = str(raw["state"])
    committed_state = raw.get("committed_state")
    if state not in _STATES or committed_state not in {"committed", "partially_committed"}:
        raise ValueError(f"unexpected transaction state: {state}")
    return Transaction(
        label=str(raw["label"]),
        id=str(raw.get("id", "")),
        created_at=str(raw.get("created_at", "")),
        changes=[_parse_change(c) for c in _list(raw.get("changes"))],
        state=cast(TransactionState, state),
        committed_state=cast(TransactionState, committed_state),
    )


def _change_to_json(c: FileChange) -> dict[str, Any]:
    return {
        "path": str(c.path),
        "original_contents": c.original_contents,
        "modified_contents": c.modified_contents,
        "removed_warning_ids": list(c.removed_warning_ids),
        "was_deleted": c.was_deleted,
        "trash_location": str(c.trash_location) if c.trash_location is not None else None,
        "locations_before": _snapshot_to_json(c.locations_before),
        "locations_after": _snapshot_to_json(c.locations_after),
    }


def _parse_change(raw: Any) -> FileChange:
    if not isinstance(raw, dict):
        raise TypeError("file change must be an object")
    path = Path(str(raw["path"]))
    trash = raw.get("trash_location")
    removed = raw.get("removed_warning_ids", [])
    if not isinstance(removed, list):
        raise TypeError("removed_warning_ids must be a list")
    return FileChange(
        path=path,
        original_contents=str(raw["original_contents"]),
        modified_contents=str(raw["modified_contents"]),
        removed_warning_ids=tuple(str(r) for r in removed),
        was_deleted=bool(raw.get("was_deleted", False)),
        trash_location=Path(trash) if isinstance(trash, str) else None,
        locations_before=_parse_snapshot(raw.get("locations_before"), path),
        locations_after=_parse_snapshot(raw.get("locations_after"), path),
    )


def _snapshot_to_json(snapshot: LocationSnapshot) -> dict[str, list[int | None]]:
    return {usr: [loc.line, loc.column, loc.end_line, loc.end_column] for usr, loc in snapshot.items()}


def _parse_snapshot(raw: Any, path: Path) -> LocationSnapshot:
    if not isinstance(raw, dict):
        return MappingProxyType({})
    out: dict[str, Location] = {}
    for usr, values in raw.items():
        if not isinstance(values, list) or len(values) != 4:
            raise ValueError(f"bad location snapshot for {usr}")
        line, column, end_line, end_column = values
        out[str(usr)] = Location(
            path=path,
            line=int(line),
            column=int(column),
            end_line=int(end_line) if end_line is not None else None,
            end_column=int(end_column) if end_column is not None else None,
        )
    return MappingProxyType(out)
