from __future__ import annotations

import re
from dataclasses import dataclass

from deadstrip.engine.types import Declaration, DeletionRange, Location, ScanWarning
from deadstrip.errors import IgnoreCommentNotFound, InvalidLineRange, TokenNotFound

DEFAULT_IGNORE_MARKER = "periphery:ignore"
DEFAULT_SEARCH_WINDOW = 10

_PUBLIC_RE = re.compile(r"public\s+")

_DECLARATION_KEYWORDS = (
    "var ",
    "let ",
    "func ",
    "struct ",
    "class ",
    "enum ",
    "protocol ",
    "actor ",
    "init(",
    "init ",
    "deinit ",
    "subscript ",
    "typealias ",
    "associatedtype ",
)
_SECTION_MARKERS = ("// MARK:", "// TODO:", "// FIXME:")
_CONDITIONAL_DIRECTIVES = ("#if", "#else", "#elseif", "#endif")


class LineBuffer:
    """
    Mutable view of one file's lines (1-based).

    Text is split on "\\n" and joined back with "\\n", so an unedited buffer
    reproduces the original contents byte for byte (CRLF endings stay on the
    line bodies and a trailing newline becomes a final empty line).
    """

    def __init__(self, text: str) -> None:
        self._lines = text.split("\n")

    def __len__(self) -> int:
        return len(self._lines)

    def line(self, number: int) -> str:
        if number < 1 or number > len(self._lines):
            raise InvalidLineRange(number, number, len(self._lines))
        return self._lines[number - 1]

    def stripped(self, number: int) -> str:
        return self.line(number).strip()

    def replace(self, number: int, content: str) -> None:
        self.line(number)
        self._lines[number - 1] = content

    def delete(self, start_line: int, end_line: int) -> list[str]:
        if start_line < 1 or end_line < start_line or end_line > len(self._lines):
            raise InvalidLineRange(start_line, end_line, len(self._lines))
        removed = self._lines[start_line - 1 : end_line]
        del self._lines[start_line - 1 : end_line]
        return removed

    @property
    def last_content_line(self) -> int:
        # The empty string after a final newline is not a real line.
        if len(self._lines) > 1 and self._lines[-1] == "":
            return len(self._lines) - 1
        return len(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines)


@dataclass(frozen=True, slots=True)
class EditOutcome:
    """
    Result of one strategy application.

    `after_line` is the last removed line in pre-edit numbering and
    `line_delta` is zero or negative; both feed the reindexer.
    """

    after_line: int
    line_delta: int
    range: DeletionRange | None = None

    @property
    def removed_lines(self) -> int:
        return -self.line_delta


def apply_edit(
    buffer: LineBuffer,
    warning: ScanWarning,
    location: Location,
    *,
    ignore_marker: str = DEFAULT_IGNORE_MARKER,
    search_window: int = DEFAULT_SEARCH_WINDOW,
) -> EditOutcome:
    decl = warning.declaration
    if warning.annotation == "unused":
        if decl.is_import:
            return delete_import_line(buffer, location)
        return delete_declaration(buffer, decl, location)
    if warning.annotation == "redundant_public":
        return strip_redundant_public(buffer, location)
    if warning.annotation == "superfluous_ignore":
        return delete_superfluous_ignore(buffer, location, marker=ignore_marker, window=search_window)
    raise ValueError(f"No removal strategy for annotation: {warning.annotation}")


def delete_import_line(buffer: LineBuffer, location: Location) -> EditOutcome:
    buffer.delete(location.line, location.line)
    return EditOutcome(
        after_line=location.line,
        line_delta=-1,
        range=DeletionRange(location.line, location.line),
    )


def strip_redundant_public(buffer: LineBuffer, location: Location) -> EditOutcome:
    original = buffer.line(location.line)
    updated = _PUBLIC_RE.sub("", original, count=1)
    if updated == original:
        raise TokenNotFound("public", location.line)
    buffer.replace(location.line, updated)
    return EditOutcome(after_line=location.line, line_delta=0)


def delete_superfluous_ignore(
    buffer: LineBuffer,
    location: Location,
    *,
    marker: str = DEFAULT_IGNORE_MARKER,
    window: int = DEFAULT_SEARCH_WINDOW,
) -> EditOutcome:
    line_no = find_comment_containing(buffer, marker, above=location.line, window=window)
    if line_no is None:
        raise IgnoreCommentNotFound(marker, location.line)

    end = line_no
    if line_no < buffer.last_content_line and buffer.stripped(line_no + 1) == "":
        end = line_no + 1
    buffer.delete(line_no, end)
    return EditOutcome(after_line=end, line_delta=-(end - line_no + 1), range=DeletionRange(line_no, end))


def find_comment_containing(buffer: LineBuffer, marker: str, *, above: int, window: int) -> int | None:
    """
    Scan upward through the `//` comments directly above line `above`.

    Stops at the first blank or non-comment line, and after `window` lines.
    """

    if above < 1 or above > len(buffer):
        raise InvalidLineRange(above, above, len(buffer))
    limit = max(1, above - window)
    check = above - 1
    while check >= limit:
        text = buffer.stripped(check)
        if not text or not text.startswith("//"):
            return None
        if marker in text:
            return check
        check -= 1
    return None


def delete_declaration(buffer: LineBuffer, declaration: Declaration, location: Location) -> EditOutcome:
    if location.end_line is None:
        raise InvalidLineRange(location.line, location.line, len(buffer))
    if location.line < 1 or location.end_line < location.line or location.end_line > len(buffer):
        raise InvalidLineRange(location.line, location.end_line, len(buffer))

    if declaration.kind == "enumelement" and declaration.name:
        rewritten = remove_inline_enum_case(buffer.line(location.line), declaration.name)
        if rewritten is not None:
            buffer.replace(location.line, rewritten)
            return EditOutcome(after_line=location.line, line_delta=0)

    span = deletion_range(buffer, declaration, location)
    buffer.delete(span.start_line, span.end_line)
    return EditOutcome(after_line=span.end_line, line_delta=-span.line_count, range=span)


def deletion_range(buffer: LineBuffer, declaration: Declaration, location: Location) -> DeletionRange:
    """Compute the full span removed for a declaration, without editing."""

    assert location.end_line is not None
    start = find_deletion_start(buffer, location.line, declaration.attributes)
    end = find_deletion_end(buffer, location.line, location.end_line)
    block = find_empty_conditional_block(buffer, start, end)
    if block is not None:
        start, end = block
    return DeletionRange(start, end)


def find_deletion_start(buffer: LineBuffer, line: int, attributes: frozenset[str] = frozenset()) -> int:
    start = line
    check = _attribute_start(buffer, line, attributes) - 1
    if check + 1 < line:
        start = check + 1

    in_block = False
    while check >= 1:
        text = buffer.stripped(check)
        if in_block:
            start = check
            if text.startswith("/*"):
                in_block = False
            check -= 1
            continue
        if not text or text.startswith("#") or text.startswith(_SECTION_MARKERS):
            break
        if text.startswith("//") or (text.startswith("/*") and text.endswith("*/")):
            pass
        elif text.endswith("*/"):
            in_block = True
        else:
            break
        start = check
        check -= 1
    return start


def _attribute_start(buffer: LineBuffer, line: int, attributes: frozenset[str]) -> int:
    # Attribute lines may carry arguments spread over several lines:
    #   @Environment(
    #       \.dismiss
    #   )
    patterns = tuple("@" + name.split("(", 1)[0].lstrip("@") for name in attributes)
    first = line
    check = line - 1
    in_arguments = False
    while check >= 1:
        text = buffer.stripped(check)
        if not text or text.startswith("#") or text.startswith("//") or _is_declaration_line(text):
            break
        if text.startswith("@") or any(p in text for p in patterns):
            first = check
            in_arguments = False
        elif text.startswith(")") or (")" in text and "(" not in text):
            first = check
            in_arguments = True
        elif in_arguments:
            first = check
        else:
            break
        check -= 1
    if in_arguments:
        # Dangling argument lines without their opening attribute belong to
        # something else.
        return line
    return first


def _is_declaration_line(text: str) -> bool:
    if not any(keyword in text for keyword in _DECLARATION_KEYWORDS):
        return False
    if text.startswith("@"):
        # "@State var foo" declares; "@available(iOS 15, *)" does not.
        _, sep, rest = text.partition(" ")
        return bool(sep) and any(keyword in rest for keyword in _DECLARATION_KEYWORDS)
    return True


def find_deletion_end(buffer: LineBuffer, line: int, end_line: int) -> int:
    if end_line <= line:
        return end_line
    end = end_line
    while end < buffer.last_content_line and buffer.stripped(end + 1) == "":
        end += 1
    return end


def find_empty_conditional_block(buffer: LineBuffer, start: int, end: int) -> tuple[int, int] | None:
    """
    Return the `#if`/`#endif` lines when the block holds nothing but the range.

    Comments and blank lines inside the block do not count as content.
    """

    if_line = None
    check = start - 1
    while check >= 1:
        text = buffer.stripped(check)
        if text.startswith("#if"):
            if_line = check
            break
        if text and not text.startswith("//"):
            return None
        check -= 1
    if if_line is None:
        return None

    endif_line = None
    check = end + 1
    while check <= len(buffer):
        text = buffer.stripped(check)
        if text.startswith("#endif"):
            endif_line = check
            break
        if text and not text.startswith("//"):
            return None
        check += 1
    if endif_line is None:
        return None
    return if_line, endif_line


def is_conditional_directive(text: str) -> bool:
    return text.startswith(_CONDITIONAL_DIRECTIVES)


def remove_inline_enum_case(line: str, case_name: str) -> str | None:
    """
    Drop one case from a `case a, b, c` line.

    Returns None when the line does not list several cases or does not list
    `case_name`; the caller then deletes the whole declaration range.
    """

    name = case_name.split("(", 1)[0]
    stripped = line.strip()
    keyword = stripped.find("case ")
    if keyword < 0 or "," not in stripped:
        return None

    before = stripped[:keyword]
    listing = stripped[keyword + len("case ") :]
    trailer = ""
    for stop in ("}", "//"):
        idx = listing.find(stop)
        if idx >= 0:
            trailer = listing[idx:]
            listing = listing[:idx]
            break

    cases = _split_top_level(listing.strip())
    names = [re.split(r"[(=\s]", item, maxsplit=1)[0] for item in cases]
    if len(cases) < 2 or name not in names:
        return None
    del cases[names.index(name)]

    indent = line[: len(line) - len(line.lstrip())]
    rebuilt = f"{indent}{before}case {', '.join(cases)}"
    return f"{rebuilt} {trailer}" if trailer else rebuilt


def _split_top_level(listing: str) -> list[str]:
    # Associated values contain commas of their own: case a(Int, String), b
    items: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in listing:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        if ch == "," and depth == 0:
            items.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        items.append(tail)
    return items
