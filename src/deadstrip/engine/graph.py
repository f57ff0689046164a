from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from deadstrip.engine.types import Declaration, Location

LocationSnapshot = Mapping[str, Location]


class SourceGraph:
    """
    Declarations produced by one analyzer run.

    Declarations are immutable and stored in an arena keyed by primary USR.
    Locations live in a separate side-table keyed by the same USR: that table is
    the only part of the graph the engine mutates (via the reindexer), which
    keeps the mutation localized and easy to snapshot for undo.
    """

    def __init__(self) -> None:
        self._declarations: dict[str, Declaration] = {}
        self._locations: dict[str, Location] = {}
        self._by_path: dict[Path, list[str]] = {}

    def __len__(self) -> int:
        return len(self._declarations)

    def __contains__(self, usr: object) -> bool:
        return usr in self._declarations

    def add(self, declaration: Declaration, location: Location) -> None:
        usr = declaration.primary_usr
        if not usr:
            raise ValueError("declaration has no USR")
        previous = self._locations.get(usr)
        if previous is not None and previous.path != location.path:
            self._by_path[previous.path].remove(usr)
        if previous is None or previous.path != location.path:
            self._by_path.setdefault(location.path, []).append(usr)
        self._declarations[usr] = declaration
        self._locations[usr] = location

    def declaration(self, usr: str) -> Declaration | None:
        return self._declarations.get(usr)

    def location_of(self, usr: str) -> Location | None:
        return self._locations.get(usr)

    def all_declarations(self) -> Iterator[tuple[Declaration, Location]]:
        for usr, decl in self._declarations.items():
            yield decl, self._locations[usr]

    def declarations_in(self, path: Path) -> list[tuple[Declaration, Location]]:
        return [(self._declarations[usr], self._locations[usr]) for usr in self._by_path.get(path, ())]

    def paths(self) -> list[Path]:
        return sorted(p for p, usrs in self._by_path.items() if usrs)

    def snapshot_locations(self, path: Path) -> LocationSnapshot:
        return MappingProxyType({usr: self._locations[usr].copy() for usr in self._by_path.get(path, ())})

    def restore_locations(self, snapshot: LocationSnapshot) -> None:
        """Write a previously captured side-table slice back in place."""

        for usr, saved in snapshot.items():
            current = self._locations.get(usr)
            if current is None:
                continue
            current.line = saved.line
            current.end_line = saved.end_line

    def copy(self) -> SourceGraph:
        clone = SourceGraph()
        for decl, loc in self.all_declarations():
            clone.add(decl, loc.copy())
        return clone

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[Declaration, Location]]) -> SourceGraph:
        graph = cls()
        for decl, loc in pairs:
            graph.add(decl, loc)
        return graph
