from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from deadstrip.engine.graph import SourceGraph

logger = logging.getLogger(__name__)


def adjust(graph: SourceGraph, path: Path, *, after_line: int, line_delta: int) -> list[str]:
    """
    Shift every declaration in `path` that starts after `after_line`.

    Use a negative `line_delta` for removed lines and a positive one for
    inserted lines. Declarations starting at or before `after_line` are left
    untouched. Returns the primary USRs of the shifted declarations.

    Not idempotent: the caller must issue exactly one call per applied edit.
    """

    if line_delta == 0:
        return []

    adjusted: list[str] = []
    for decl, loc in graph.declarations_in(path):
        if loc.line <= after_line:
            continue
        loc.line += line_delta
        if loc.end_line is not None:
            loc.end_line += line_delta
        adjusted.append(decl.primary_usr)

    logger.debug("reindexed %d declaration(s) in %s after line %d by %+d", len(adjusted), path, after_line, line_delta)
    return adjusted


def reverse(graph: SourceGraph, path: Path, *, usrs: Iterable[str], line_delta: int) -> None:
    """Undo a previous `adjust()` call for exactly the USRs it reported."""

    wanted = set(usrs)
    for decl, loc in graph.declarations_in(path):
        if decl.primary_usr not in wanted:
            continue
        loc.line -= line_delta
        if loc.end_line is not None:
            loc.end_line -= line_delta
