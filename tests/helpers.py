from __future__ import annotations

from pathlib import Path

from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.types import Annotation, Declaration, Location, ScanWarning


def write(root: Path, relpath: str, content: str) -> Path:
    path = root / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def make_decl(
    usr: str,
    kind: str = "function.free",
    *,
    name: str | None = None,
    attributes: tuple[str, ...] = (),
    parent: str | None = None,
) -> Declaration:
    return Declaration(
        usrs=(usr,),
        kind=kind,
        name=name if name is not None else usr,
        attributes=frozenset(attributes),
        parent_usr=parent,
    )


def make_loc(path: Path, line: int, column: int = 1, end_line: int | None = None, end_column: int | None = None) -> Location:
    if end_line is not None and end_column is None:
        end_column = 2
    return Location(path=path, line=line, column=column, end_line=end_line, end_column=end_column)


class GraphBuilder:
    """Collects declarations and their warnings for one test scenario."""

    def __init__(self) -> None:
        self.graph = SourceGraph()
        self.warnings: list[ScanWarning] = []

    def add(
        self,
        path: Path,
        usr: str,
        line: int,
        end_line: int | None = None,
        *,
        kind: str = "function.free",
        column: int = 1,
        annotation: Annotation | None = "unused",
        name: str | None = None,
        attributes: tuple[str, ...] = (),
        parent: str | None = None,
    ) -> Declaration:
        decl = make_decl(usr, kind, name=name, attributes=attributes, parent=parent)
        self.graph.add(decl, make_loc(path, line, column, end_line))
        if annotation is not None:
            self.warnings.append(ScanWarning(declaration=decl, annotation=annotation))
        return decl
