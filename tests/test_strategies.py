from __future__ import annotations

from pathlib import Path

import pytest

from deadstrip.engine.strategies import (
    LineBuffer,
    delete_declaration,
    delete_import_line,
    delete_superfluous_ignore,
    remove_inline_enum_case,
    strip_redundant_public,
)
from deadstrip.engine.types import DeletionRange
from deadstrip.errors import IgnoreCommentNotFound, InvalidLineRange, TokenNotFound
from helpers import make_decl, make_loc

PATH = Path("/src/A.swift")


def test_line_buffer_round_trips_contents_exactly() -> None:
    for text in ("a\nb\n", "a\r\nb\r\n", "no trailing newline", ""):
        assert LineBuffer(text).text() == text


def test_declaration_deletion_takes_attributes_and_doc_comments() -> None:
    buffer = LineBuffer(
        "struct Foo {\n"
        "    let keep = 1\n"
        "\n"
        "    /// Docs.\n"
        "    @discardableResult\n"
        "    func unused() -> Int {\n"
        "        return 1\n"
        "    }\n"
        "\n"
        "    func used() {}\n"
        "}\n"
    )
    decl = make_decl("unused", "function.method.instance", attributes=("discardableResult",))

    outcome = delete_declaration(buffer, decl, make_loc(PATH, 6, 5, end_line=8))

    assert outcome.range == DeletionRange(4, 9)
    assert (outcome.after_line, outcome.line_delta) == (9, -6)
    assert buffer.text() == "struct Foo {\n    let keep = 1\n\n    func used() {}\n}\n"


def test_multiline_attribute_arguments_are_removed_with_the_declaration() -> None:
    buffer = LineBuffer(
        "struct V {\n"
        "    @Environment(\n"
        "        \\.dismiss\n"
        "    )\n"
        "    var dismiss\n"
        "}\n"
    )
    decl = make_decl("dismiss", "var.instance", attributes=("Environment",))

    outcome = delete_declaration(buffer, decl, make_loc(PATH, 5, 5, end_line=5))

    assert outcome.range == DeletionRange(2, 5)
    assert buffer.text() == "struct V {\n}\n"


def test_section_markers_and_blank_lines_stop_the_upward_search() -> None:
    buffer = LineBuffer("// MARK: - Helpers\nfunc unused() {\n}\n")

    outcome = delete_declaration(buffer, make_decl("unused"), make_loc(PATH, 2, end_line=3))

    assert outcome.range == DeletionRange(2, 3)
    assert buffer.text() == "// MARK: - Helpers\n"


def test_block_comment_above_declaration_is_removed() -> None:
    buffer = LineBuffer(
        "let keep = 0\n"
        "\n"
        "/**\n"
        " * Explains unused.\n"
        " */\n"
        "func unused() {\n"
        "}\n"
    )

    outcome = delete_declaration(buffer, make_decl("unused"), make_loc(PATH, 6, end_line=7))

    assert outcome.range == DeletionRange(3, 7)
    assert buffer.text() == "let keep = 0\n\n"


def test_single_line_declaration_keeps_the_following_blank_line() -> None:
    buffer = LineBuffer("let a = 1\nlet unused = 2\n\nlet b = 3\n")

    outcome = delete_declaration(buffer, make_decl("unused", "var.global"), make_loc(PATH, 2, end_line=2))

    assert outcome.line_delta == -1
    assert buffer.text() == "let a = 1\n\nlet b = 3\n"


def test_multiline_declaration_absorbs_trailing_blank_lines() -> None:
    buffer = LineBuffer("func unused() {\n}\n\n\nfunc keep() {}\n")

    outcome = delete_declaration(buffer, make_decl("unused"), make_loc(PATH, 1, end_line=2))

    assert outcome.range == DeletionRange(1, 4)
    assert buffer.text() == "func keep() {}\n"


def test_emptied_conditional_block_is_removed_with_its_directives() -> None:
    buffer = LineBuffer(
        "import Foundation\n"
        "\n"
        "#if DEBUG\n"
        "func debugOnly() {\n"
        "}\n"
        "#endif\n"
        "\n"
        "func keep() {}\n"
    )

    outcome = delete_declaration(buffer, make_decl("debugOnly"), make_loc(PATH, 4, end_line=5))

    assert outcome.range == DeletionRange(3, 6)
    assert (outcome.after_line, outcome.line_delta) == (6, -4)
    assert buffer.text() == "import Foundation\n\n\nfunc keep() {}\n"


def test_conditional_block_with_other_code_is_kept() -> None:
    buffer = LineBuffer("#if DEBUG\nfunc a() {\n}\nfunc b() {}\n#endif\n")

    delete_declaration(buffer, make_decl("a"), make_loc(PATH, 2, end_line=3))

    assert buffer.text() == "#if DEBUG\nfunc b() {}\n#endif\n"


def test_enum_case_is_removed_from_a_shared_case_line() -> None:
    buffer = LineBuffer("enum Direction {\n    case north, south, east\n}\n")
    decl = make_decl("south", "enumelement", name="south")

    outcome = delete_declaration(buffer, decl, make_loc(PATH, 2, 17, end_line=2))

    assert outcome.line_delta == 0
    assert buffer.text() == "enum Direction {\n    case north, east\n}\n"


def test_enum_case_alone_on_its_line_is_deleted_as_a_declaration() -> None:
    buffer = LineBuffer("enum E {\n    case only\n    case other\n}\n")

    outcome = delete_declaration(buffer, make_decl("only", "enumelement", name="only"), make_loc(PATH, 2, 10, end_line=2))

    assert outcome.line_delta == -1
    assert buffer.text() == "enum E {\n    case other\n}\n"


def test_remove_inline_enum_case_respects_associated_values() -> None:
    assert remove_inline_enum_case("    case a(Int, String), b", "b") == "    case a(Int, String)"
    assert remove_inline_enum_case("    case a(Int, String), b", "a") == "    case b"
    assert remove_inline_enum_case("    case a, b // note", "a") == "    case b // note"
    assert remove_inline_enum_case("    case a, b", "missing") is None


def test_import_line_deletion_removes_exactly_one_line() -> None:
    buffer = LineBuffer("import Foundation\nimport UIKit\n\nlet x = 1\n")

    outcome = delete_import_line(buffer, make_loc(PATH, 2, 8))

    assert (outcome.after_line, outcome.line_delta) == (2, -1)
    assert buffer.text() == "import Foundation\n\nlet x = 1\n"


def test_redundant_public_is_stripped_once_without_line_delta() -> None:
    buffer = LineBuffer("    public static let x = \"public value\"\n")

    outcome = strip_redundant_public(buffer, make_loc(PATH, 1, 5))

    assert outcome.line_delta == 0
    assert buffer.text() == "    static let x = \"public value\"\n"


def test_missing_public_token_raises() -> None:
    buffer = LineBuffer("func f() {}\n")
    with pytest.raises(TokenNotFound):
        strip_redundant_public(buffer, make_loc(PATH, 1))
    assert buffer.text() == "func f() {}\n"


def test_superfluous_ignore_comment_is_removed() -> None:
    buffer = LineBuffer("struct A {}\n\n// periphery:ignore\nfunc f() {}\n")

    outcome = delete_superfluous_ignore(buffer, make_loc(PATH, 4))

    assert (outcome.after_line, outcome.line_delta) == (3, -1)
    assert buffer.text() == "struct A {}\n\nfunc f() {}\n"


def test_superfluous_ignore_searches_through_adjacent_comments_only() -> None:
    buffer = LineBuffer("// periphery:ignore\n// reason\nfunc f() {}\n")
    delete_superfluous_ignore(buffer, make_loc(PATH, 3))
    assert buffer.text() == "// reason\nfunc f() {}\n"

    separated = LineBuffer("// periphery:ignore\n\nfunc f() {}\n")
    with pytest.raises(IgnoreCommentNotFound):
        delete_superfluous_ignore(separated, make_loc(PATH, 3))


def test_superfluous_ignore_search_is_bounded_by_the_window() -> None:
    text = "// periphery:ignore\n" + "// filler\n" * 11 + "func f() {}\n"

    with pytest.raises(IgnoreCommentNotFound):
        delete_superfluous_ignore(LineBuffer(text), make_loc(PATH, 13), window=10)

    buffer = LineBuffer(text)
    delete_superfluous_ignore(buffer, make_loc(PATH, 13), window=12)
    assert buffer.text().startswith("// filler\n")


def test_custom_ignore_marker() -> None:
    buffer = LineBuffer("// deadcode:keep\nfunc f() {}\n")
    delete_superfluous_ignore(buffer, make_loc(PATH, 2), marker="deadcode:keep")
    assert buffer.text() == "func f() {}\n"


def test_out_of_range_location_raises_invalid_line_range() -> None:
    buffer = LineBuffer("func f() {\n}\n")
    with pytest.raises(InvalidLineRange):
        delete_declaration(buffer, make_decl("f"), make_loc(PATH, 2, end_line=9))
    with pytest.raises(InvalidLineRange):
        delete_declaration(buffer, make_decl("f"), make_loc(PATH, 1))
    assert buffer.text() == "func f() {\n}\n"
