from __future__ import annotations

from pathlib import Path

import pytest

from deadstrip.engine.selector import RemovalScope, plan_removals
from deadstrip.engine.types import warning_id
from deadstrip.errors import FileUnreadable, NoRemovableWarnings
from deadstrip.removal import RemovalSettings, apply_removals
from helpers import GraphBuilder, write


def _file_plan(builder: GraphBuilder, path: Path):
    plan = plan_removals(RemovalScope(path=path, is_folder=False), builder.warnings, builder.graph)
    return plan.by_file()[path]


def test_unused_property_and_redundant_public_in_one_pass(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(
        tmp_path,
        "Box.swift",
        "import Foundation\n"
        "\n"
        "public struct Box {\n"
        "    public var size: Int = 0\n"
        "    var unusedProp: Int = 0\n"
        "}\n",
    )
    builder.add(path, "Box", 3, 6, kind="struct", annotation=None)
    builder.add(path, "size", 4, kind="var.instance", column=5, annotation="redundant_public", parent="Box")
    builder.add(path, "unusedProp", 5, 5, kind="var.instance", column=5, parent="Box")

    result = apply_removals(_file_plan(builder, path), builder.graph)

    expected = "import Foundation\n\npublic struct Box {\n    var size: Int = 0\n}\n"
    assert path.read_text(encoding="utf-8") == expected
    assert result.modified_contents == expected
    assert result.stats.deleted_count == 2
    assert result.stats.non_deletable_count == 0
    assert not result.should_delete_file
    assert set(result.removed_warning_ids) == {warning_id(path, "size"), warning_id(path, "unusedProp")}


def test_warning_without_end_range_is_reported_and_file_untouched(tmp_path: Path, builder: GraphBuilder) -> None:
    original = "func f() {\n}\n"
    path = write(tmp_path, "F.swift", original)
    builder.add(path, "f", 1, None)

    with pytest.raises(NoRemovableWarnings) as excinfo:
        apply_removals(_file_plan(builder, path), builder.graph)

    assert excinfo.value.stats.non_deletable_count == 1
    assert path.read_text(encoding="utf-8") == original


def test_bottom_up_edits_leave_remaining_locations_accurate(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(
        tmp_path,
        "Mixed.swift",
        "import Foundation\n"  # 1
        "import Combine\n"  # 2
        "\n"  # 3
        "/// First.\n"  # 4
        "func first() {\n"  # 5
        "}\n"  # 6
        "\n"  # 7
        "func keepA() {}\n"  # 8
        "\n"  # 9
        "// periphery:ignore\n"  # 10
        "func keepB() {}\n"  # 11
        "\n"  # 12
        "func last() {\n"  # 13
        "    print(1)\n"  # 14
        "}\n"  # 15
        "\n"  # 16
        "func keepC() {\n"  # 17
        "}\n",  # 18
    )
    builder.add(path, "Combine", 2, kind="module")
    builder.add(path, "first", 5, 6)
    builder.add(path, "keepA", 8, 8, annotation=None)
    builder.add(path, "keepB", 11, 11, annotation="superfluous_ignore")
    builder.add(path, "last", 13, 15)
    builder.add(path, "keepC", 17, 18, annotation=None)

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert result.modified_contents == (
        "import Foundation\n"
        "\n"
        "func keepA() {}\n"
        "\n"
        "func keepB() {}\n"
        "\n"
        "func keepC() {\n"
        "}\n"
    )
    lines = result.modified_contents.split("\n")
    for usr in ("keepA", "keepB", "keepC"):
        loc = builder.graph.location_of(usr)
        assert f"func {usr}()" in lines[loc.line - 1]
    keep_c = builder.graph.location_of("keepC")
    assert (keep_c.line, keep_c.end_line) == (7, 8)
    assert result.stats.deleted_count == 4
    assert set(result.adjusted_usrs) >= {"keepA", "keepB", "keepC"}


def test_failed_ignore_search_is_counted_not_raised(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(tmp_path, "G.swift", "// unrelated\nfunc g() {}\n\nfunc h() {\n}\n")
    builder.add(path, "g", 2, 2, annotation="superfluous_ignore")
    builder.add(path, "h", 4, 5)

    fp = _file_plan(builder, path)
    result = apply_removals(fp, builder.graph)

    stats = result.stats
    assert stats.deleted_count == 1
    assert stats.non_deletable_count == 0
    assert stats.failed_ignore_comment_count == 1
    assert fp.considered == 2
    assert stats.deleted_count + stats.non_deletable_count + stats.failed_ignore_comment_count <= fp.considered
    assert path.read_text(encoding="utf-8") == "// unrelated\nfunc g() {}\n\n"


def test_two_unused_cases_on_one_line_are_both_removed(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(tmp_path, "E.swift", "enum E {\n    case a, b, c\n}\n")
    builder.add(path, "E", 1, 3, kind="enum", annotation=None)
    builder.add(path, "E.a", 2, 2, kind="enumelement", column=10, name="a", parent="E")
    builder.add(path, "E.b", 2, 2, kind="enumelement", column=13, name="b", parent="E")

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert path.read_text(encoding="utf-8") == "enum E {\n    case c\n}\n"
    assert set(result.removed_warning_ids) == {warning_id(path, "E.a"), warning_id(path, "E.b")}
    assert result.stats.deleted_count == 2
    assert not result.should_delete_file


def test_last_two_cases_on_a_line_remove_the_line(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(tmp_path, "E.swift", "enum E {\n    case a, b\n    case c\n}\n")
    builder.add(path, "E", 1, 4, kind="enum", annotation=None)
    builder.add(path, "E.a", 2, 2, kind="enumelement", column=10, name="a", parent="E")
    builder.add(path, "E.b", 2, 2, kind="enumelement", column=13, name="b", parent="E")
    builder.add(path, "E.c", 3, 3, kind="enumelement", column=10, name="c", parent="E", annotation=None)

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert path.read_text(encoding="utf-8") == "enum E {\n    case c\n}\n"
    assert result.stats.deleted_count == 2
    assert builder.graph.location_of("E.c").line == 2


def test_emptied_file_is_marked_for_deletion_but_left_on_disk(tmp_path: Path, builder: GraphBuilder) -> None:
    original = "import Foundation\n\nclass Unused {\n}\n"
    path = write(tmp_path, "Unused.swift", original)
    builder.add(path, "Foundation", 1, kind="module", annotation=None)
    builder.add(path, "Unused", 3, 4, kind="class")

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert result.should_delete_file
    assert result.changed
    assert path.read_text(encoding="utf-8") == original


def test_comment_heavy_file_is_kept_with_imports_stripped(tmp_path: Path, builder: GraphBuilder) -> None:
    notes = "".join(f"// design note {i}\n" for i in range(6))
    path = write(
        tmp_path,
        "Notes.swift",
        "import Foundation\n" + notes + "print(\"setup\")\n\nfunc unused() {\n}\n",
    )
    builder.add(path, "unused", 10, 11)

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert result.should_strip_imports
    assert not result.should_delete_file
    assert path.read_text(encoding="utf-8") == notes + "print(\"setup\")\n\n"


def test_redundant_public_alone_never_empties_a_file(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(tmp_path, "P.swift", "public func only() {}\n")
    builder.add(path, "only", 1, kind="function.free", annotation="redundant_public")

    result = apply_removals(_file_plan(builder, path), builder.graph)

    assert not result.should_delete_file
    assert path.read_text(encoding="utf-8") == "func only() {}\n"


def test_dry_run_does_not_write(tmp_path: Path, builder: GraphBuilder) -> None:
    original = "func a() {\n}\n\nfunc b() {}\n"
    path = write(tmp_path, "D.swift", original)
    builder.add(path, "a", 1, 2)
    builder.add(path, "b", 4, 4, annotation=None)

    result = apply_removals(_file_plan(builder, path), builder.graph, dry_run=True)

    assert result.modified_contents == "func b() {}\n"
    assert path.read_text(encoding="utf-8") == original


def test_custom_settings_are_honoured(tmp_path: Path, builder: GraphBuilder) -> None:
    path = write(tmp_path, "C.swift", "// keep:me\nfunc c() {}\n")
    builder.add(path, "c", 2, 2, annotation="superfluous_ignore")

    result = apply_removals(_file_plan(builder, path), builder.graph, settings=RemovalSettings(ignore_marker="keep:me"))

    assert result.stats.deleted_count == 1
    assert path.read_text(encoding="utf-8") == "func c() {}\n"


def test_missing_file_raises_unreadable(tmp_path: Path, builder: GraphBuilder) -> None:
    path = tmp_path / "Missing.swift"
    builder.add(path, "m", 1, 2)

    with pytest.raises(FileUnreadable):
        apply_removals(_file_plan(builder, path), builder.graph)
