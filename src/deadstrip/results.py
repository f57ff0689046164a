from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.types import Annotation, Declaration, Location, ScanWarning

logger = logging.getLogger(__name__)


class ResultsError(ValueError):
    """Raised when analyzer output cannot be read."""


_HINTS: dict[str, Annotation] = {
    "unused": "unused",
    "assignOnlyProperty": "assign_only_property",
    "redundantProtocol": "redundant_protocol",
    "redundantPublicAccessibility": "redundant_public",
    "superfluousIgnoreCommand": "superfluous_ignore",
}

# path:line:col or path:line:col:endLine:endCol; the path may itself contain ':'.
_LOCATION_RE = re.compile(r"^(?P<path>.+?):(?P<line>\d+):(?P<col>\d+)(?::(?P<end_line>\d+):(?P<end_col>\d+))?$")


@dataclass(frozen=True, slots=True)
class ScanResults:
    graph: SourceGraph
    warnings: tuple[ScanWarning, ...]
    # True when the input listed every declaration, not only the flagged ones
    graph_complete: bool = False


def load_results(path: Path, *, project_root: Path) -> ScanResults:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResultsError(f"Cannot read results file {path}: {exc}") from exc
    return parse_results(text, project_root=project_root)


def parse_results(text: str, *, project_root: Path) -> ScanResults:
    """
    Parse analyzer JSON into a declaration graph and a warning list.

    Two shapes are accepted: the analyzer's plain report (a list of flagged
    declarations), or an object with `declarations` (the whole graph) and
    `results` (the flagged subset).
    """

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResultsError(f"Results are not valid JSON: {exc}") from exc

    complete = False
    if isinstance(data, list):
        declarations: list[Any] = []
        flagged = data
    elif isinstance(data, dict):
        declarations = data.get("declarations", [])
        flagged = data.get("results", [])
        if not isinstance(declarations, list) or not isinstance(flagged, list):
            raise ResultsError("`declarations` and `results` must be lists.")
        complete = "declarations" in data
    else:
        raise ResultsError("Results must be a JSON list or object.")

    graph = SourceGraph()
    for index, raw in enumerate(declarations):
        decl, loc, _hints = _parse_record(raw, project_root=project_root, where=f"declarations[{index}]")
        graph.add(decl, loc)

    warnings: list[ScanWarning] = []
    for index, raw in enumerate(flagged):
        decl, loc, hints = _parse_record(raw, project_root=project_root, where=f"results[{index}]")
        existing = graph.declaration(decl.primary_usr)
        if existing is None:
            graph.add(decl, loc)
        else:
            decl = existing
        for hint in hints:
            annotation = _HINTS.get(hint)
            if annotation is None:
                logger.debug("Skipping unknown hint %r on %s", hint, decl.name or decl.primary_usr)
                continue
            warnings.append(ScanWarning(declaration=decl, annotation=annotation))

    logger.debug("Loaded %d declaration(s), %d warning(s)", len(graph), len(warnings))
    return ScanResults(graph=graph, warnings=tuple(warnings), graph_complete=complete)


def _parse_record(raw: Any, *, project_root: Path, where: str) -> tuple[Declaration, Location, tuple[str, ...]]:
    if not isinstance(raw, dict):
        raise ResultsError(f"{where} must be an object.")

    ids = raw.get("ids")
    if not isinstance(ids, list) or not ids or any(not isinstance(v, str) or not v for v in ids):
        raise ResultsError(f"{where}.ids must be a non-empty list of strings.")

    kind = raw.get("kind")
    if not isinstance(kind, str) or not kind:
        raise ResultsError(f"{where}.kind must be a string.")

    raw_location = raw.get("location")
    if not isinstance(raw_location, str):
        raise ResultsError(f"{where}.location must be a string.")
    location = parse_location(raw_location, project_root=project_root)
    if location is None:
        raise ResultsError(f"{where}.location is not path:line:col[:endLine:endCol]: {raw_location!r}")

    name = raw.get("name")
    parent = raw.get("parent")
    decl = Declaration(
        usrs=tuple(ids),
        kind=kind,
        name=name if isinstance(name, str) else None,
        attributes=frozenset(_str_list(raw.get("attributes"))),
        modifiers=frozenset(_str_list(raw.get("modifiers"))),
        parent_usr=parent if isinstance(parent, str) and parent else None,
    )
    return decl, location, _str_list(raw.get("hints"))


def _str_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(v for v in value if isinstance(v, str))


def parse_location(value: str, *, project_root: Path) -> Location | None:
    match = _LOCATION_RE.match(value.strip())
    if match is None:
        return None
    path = Path(match["path"])
    if not path.is_absolute():
        path = project_root / path
    end_line = match["end_line"]
    end_col = match["end_col"]
    return Location(
        path=path.resolve(),
        line=int(match["line"]),
        column=int(match["col"]),
        end_line=int(end_line) if end_line is not None else None,
        end_column=int(end_col) if end_col is not None else None,
    )
