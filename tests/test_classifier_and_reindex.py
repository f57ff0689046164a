from __future__ import annotations

from pathlib import Path

import pytest

from deadstrip.engine import reindex
from deadstrip.engine.classifier import can_remove
from deadstrip.engine.graph import SourceGraph
from deadstrip.engine.types import Location, usr_from_warning_id, warning_id
from helpers import make_decl, make_loc


@pytest.mark.parametrize(
    ("annotation", "has_full_range", "is_import", "expected"),
    [
        ("unused", True, False, True),
        ("unused", False, False, False),
        ("unused", False, True, True),
        ("redundant_public", False, False, True),
        ("superfluous_ignore", False, False, True),
        ("assign_only_property", True, False, False),
        ("redundant_protocol", True, False, False),
    ],
)
def test_can_remove(annotation, has_full_range: bool, is_import: bool, expected: bool) -> None:
    assert can_remove(annotation, has_full_range, is_import=is_import) is expected


def test_location_ordering_and_display() -> None:
    path = Path("/src/A.swift")
    a = Location(path=path, line=3, column=9)
    b = Location(path=path, line=3, column=10, end_line=4, end_column=2)
    c = Location(path=path, line=10, column=1)

    assert sorted([c, b, a]) == [a, b, c]
    assert not a.has_full_range
    assert b.has_full_range
    assert str(b) == "/src/A.swift:3:10:4:2"
    assert str(a) == "/src/A.swift:3:9"


def test_warning_id_round_trips_usr_containing_colons() -> None:
    path = Path("/src/A.swift")
    wid = warning_id(path, "s:4Demo3FooV")
    assert wid == "/src/A.swift:s:4Demo3FooV"
    assert usr_from_warning_id(wid, path) == "s:4Demo3FooV"
    assert usr_from_warning_id(wid, Path("/src/B.swift")) is None


def _graph(path: Path) -> SourceGraph:
    graph = SourceGraph()
    graph.add(make_decl("top"), make_loc(path, 1, end_line=3))
    graph.add(make_decl("middle"), make_loc(path, 5, end_line=8))
    graph.add(make_decl("bottom"), make_loc(path, 10, end_line=12))
    graph.add(make_decl("elsewhere"), make_loc(Path("/other.swift"), 20, end_line=21))
    return graph


def test_adjust_only_shifts_declarations_after_the_edit() -> None:
    path = Path("/src/A.swift")
    graph = _graph(path)

    touched = reindex.adjust(graph, path, after_line=5, line_delta=-3)

    assert touched == ["bottom"]
    assert (graph.location_of("top").line, graph.location_of("top").end_line) == (1, 3)
    assert (graph.location_of("middle").line, graph.location_of("middle").end_line) == (5, 8)
    assert (graph.location_of("bottom").line, graph.location_of("bottom").end_line) == (7, 9)
    assert graph.location_of("elsewhere").line == 20


def test_adjust_with_zero_delta_is_a_noop() -> None:
    path = Path("/src/A.swift")
    graph = _graph(path)
    assert reindex.adjust(graph, path, after_line=0, line_delta=0) == []
    assert graph.location_of("top").line == 1


def test_reverse_undoes_exactly_the_reported_adjustment() -> None:
    path = Path("/src/A.swift")
    graph = _graph(path)

    touched = reindex.adjust(graph, path, after_line=2, line_delta=-2)
    assert set(touched) == {"middle", "bottom"}
    reindex.reverse(graph, path, usrs=touched, line_delta=-2)

    assert graph.location_of("middle").line == 5
    assert graph.location_of("bottom").end_line == 12


def test_snapshot_restore_and_copy_are_independent() -> None:
    path = Path("/src/A.swift")
    graph = _graph(path)
    snapshot = graph.snapshot_locations(path)
    clone = graph.copy()

    reindex.adjust(graph, path, after_line=0, line_delta=-1)
    assert graph.location_of("top").line == 0
    assert clone.location_of("top").line == 1
    assert snapshot["top"].line == 1

    graph.restore_locations(snapshot)
    assert graph.location_of("top").line == 1
    assert graph.location_of("bottom").end_line == 12
    assert graph.paths() == [Path("/other.swift"), path]
