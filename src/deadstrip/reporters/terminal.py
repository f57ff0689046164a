from __future__ import annotations

import difflib
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from deadstrip import __version__
from deadstrip.batch import BatchSummary
from deadstrip.engine.selector import EditPlan
from deadstrip.engine.types import usr_from_warning_id
from deadstrip.undo import Transaction
from deadstrip.utils import safe_relpath

_ANNOTATION_LABEL = {
    "unused": "unused",
    "assign_only_property": "assign-only",
    "redundant_protocol": "redundant protocol",
    "redundant_public": "redundant public",
    "superfluous_ignore": "superfluous ignore",
}


def _header(console: Console, subtitle: str) -> None:
    header = Text()
    header.append("deadstrip ", style="bold")
    header.append(f"v{__version__}", style="dim")
    console.print(Panel(header, subtitle=subtitle, border_style="cyan"))


def render_plan(plan: EditPlan, *, project_root: Path, console: Console) -> None:
    removable, non_removable = plan.stats()
    _header(console, f"{removable} removable, {non_removable} reported only")

    table = Table(show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Warning")
    table.add_column("Declaration")
    table.add_column("Action", style="dim")

    for fp in plan.file_plans:
        rel = safe_relpath(fp.path, project_root)
        for edit in fp.edits:
            table.add_row(
                rel,
                str(edit.location.line),
                _ANNOTATION_LABEL.get(edit.annotation, edit.annotation),
                edit.declaration.name or edit.declaration.primary_usr,
                "remove",
            )
        for covered_id, outer_id in fp.covered.items():
            covered = usr_from_warning_id(covered_id, fp.path) or covered_id
            outer = usr_from_warning_id(outer_id, fp.path) or outer_id
            table.add_row(rel, "", "unused", covered, f"with {outer}")
        for warning in fp.non_removable:
            table.add_row(
                rel,
                "",
                _ANNOTATION_LABEL.get(warning.annotation, warning.annotation),
                warning.declaration.name or warning.declaration.primary_usr,
                "manual",
            )

    console.print(table)


def render_summary(summary: BatchSummary, *, project_root: Path, console: Console, show_diff: bool = False) -> None:
    verb = "Would remove" if summary.dry_run else "Removed"
    _header(console, f"{summary.file_count} of {summary.total_files} file(s) processed")

    for result in summary.results:
        rel = safe_relpath(result.path, project_root)
        line = Text()
        if result.should_delete_file:
            line.append("  ✖ ", style="red")
            line.append(rel, style="bold")
            line.append("  moved to trash" if not summary.dry_run else "  would be moved to trash", style="dim")
        elif result.should_strip_imports:
            line.append("  ✎ ", style="yellow")
            line.append(rel, style="bold")
            line.append("  kept for its comments; imports stripped", style="dim")
        else:
            line.append("  ✎ ", style="green")
            line.append(rel, style="bold")
        line.append(f"  ({len(result.removed_warning_ids)} removed)", style="dim")
        console.print(line)
        if show_diff and not result.should_delete_file:
            diff = unified_diff(result.original_contents, result.modified_contents, path=rel)
            if diff:
                console.print(diff, markup=False, highlight=False)

    for failure in summary.failures:
        console.print(Text(f"  ⚠ {safe_relpath(failure.path, project_root)}: {failure.error}", style="yellow"))

    stats = summary.stats
    console.print(Text("─" * 60, style="dim"))
    console.print(Text(f"{verb} {stats.deleted_count} warning(s)", style="bold"))
    console.print(Text(f"Not removable: {stats.non_deletable_count}", style="dim"))
    if stats.failed_ignore_comment_count:
        console.print(
            Text(
                f"Ignore comments not found: {stats.failed_ignore_comment_count} (remove them by hand)",
                style="yellow",
            )
        )
    if summary.cancelled:
        console.print(Text("Cancelled: remaining files were left untouched.", style="yellow"))
    console.print(Text("─" * 60, style="dim"))


def render_history(undo: list[Transaction], redo: list[Transaction], *, console: Console) -> None:
    if not undo and not redo:
        console.print("No removals recorded yet.")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("When")
    table.add_column("Action")
    table.add_column("Files", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("State")
    for t in [*undo, *reversed(redo)]:
        table.add_row(
            t.created_at[:19].replace("T", " "),
            t.label,
            str(len(t.changes)),
            str(len(t.removed_warning_ids)),
            t.state.replace("_", " "),
        )
    console.print(table)


def unified_diff(before: str, after: str, *, path: str) -> str:
    if before == after:
        return ""
    diff = difflib.unified_diff(
        before.splitlines(keepends=False),
        after.splitlines(keepends=False),
        fromfile=path,
        tofile=path,
        lineterm="",
    )
    return "\n".join(diff)
