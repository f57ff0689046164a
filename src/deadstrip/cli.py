from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Annotated

import click
import typer
from rich.console import Console

from deadstrip import __version__
from deadstrip.batch import BatchCallbacks, BatchSummary, CancelToken
from deadstrip.config import ConfigError, DeadstripConfig, detect_project_root, load_config, resolve_under_root
from deadstrip.errors import DeadstripError, NoRemovableWarnings
from deadstrip.journal import JournalState, load_journal, replay_locations, save_journal
from deadstrip.logging_utils import configure_logging
from deadstrip.reporters.json_reporter import render_plan_json, render_summary_json
from deadstrip.reporters.terminal import render_history, render_plan, render_summary
from deadstrip.results import ResultsError, ScanResults, load_results
from deadstrip.session import EngineSession
from deadstrip.undo import UndoManager
from deadstrip.utils import safe_relpath

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="deadstrip: remove unused code reported by a static analyzer, with undo.",
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

ResultsArg = Annotated[
    Path,
    typer.Argument(
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
        help="Analyzer results (JSON).",
    ),
]
TargetArg = Annotated[
    Path | None,
    typer.Argument(
        exists=True,
        file_okay=True,
        dir_okay=True,
        resolve_path=True,
        help="File or folder to act on (default: the project root).",
    ),
]
RootOption = Annotated[
    Path | None,
    typer.Option("--root", file_okay=False, resolve_path=True, help="Project root (default: auto-detected)."),
]
FormatOption = Annotated[str, typer.Option("--format", "-f", help="Output format: terminal, json.")]


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logs (printed to stderr)."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Reduce non-essential output."),
    ] = False,
    progress: Annotated[
        bool,
        typer.Option("--progress/--no-progress", help="Show a progress bar for folder removals.", show_default=True),
    ] = True,
) -> None:
    """deadstrip CLI."""

    if verbose and quiet:
        raise typer.BadParameter("Choose at most one: --verbose or --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = {"verbose": verbose, "quiet": quiet, "progress": progress}


def _cli_settings() -> dict[str, bool]:
    ctx = click.get_current_context(silent=True)
    if ctx is None or not isinstance(ctx.obj, dict):
        return {"verbose": False, "quiet": False, "progress": True}
    verbose = bool(ctx.obj.get("verbose", False))
    quiet = bool(ctx.obj.get("quiet", False))
    progress = bool(ctx.obj.get("progress", True))
    return {"verbose": verbose, "quiet": quiet, "progress": progress}


def _check_format(fmt: str) -> str:
    normalized = fmt.strip().lower()
    if normalized not in {"terminal", "json"}:
        raise typer.BadParameter("Unsupported format. Use: terminal, json.")
    return normalized


def _project(root: Path | None, start: Path) -> tuple[Path, DeadstripConfig, Path]:
    project_root = root if root is not None else detect_project_root(start)
    try:
        config = load_config(project_root)
        journal_path = resolve_under_root(project_root, config.journal)
        resolve_under_root(project_root, config.trash_dir)
    except ConfigError as exc:
        err_console.print(f"Invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc
    return project_root, config, journal_path


def _open_session(results: Path, root: Path | None, target: Path | None) -> tuple[EngineSession, JournalState, Path]:
    project_root, config, journal_path = _project(root, target or results)
    try:
        scan: ScanResults = load_results(results, project_root=project_root)
    except ResultsError as exc:
        err_console.print(f"Invalid results file: {exc}")
        raise typer.Exit(code=2) from exc

    state = load_journal(journal_path)
    replay_locations(state, scan.graph)
    session = EngineSession(
        scan.graph,
        scan.warnings,
        root=project_root,
        config=config,
        hidden_ids=state.hidden_ids,
        undo_manager=UndoManager(undo_stack=state.undo, redo_stack=state.redo),
        graph_complete=scan.graph_complete,
    )
    return session, state, journal_path


def _persist(session: EngineSession, state: JournalState, journal_path: Path) -> None:
    state.undo = session.undo_manager.undo_stack
    state.redo = session.undo_manager.redo_stack
    state.hidden_ids = set(session.hidden_ids)
    save_journal(journal_path, state)


@app.command()
def plan(
    results: ResultsArg,
    target: TargetArg = None,
    root: RootOption = None,
    fmt: FormatOption = "terminal",
) -> None:
    """
    Show what `remove` would do, in processing order.
    """

    normalized = _check_format(fmt)
    session, _state, _journal = _open_session(results, root, target)
    edit_plan = session.plan(target or session.root)
    if normalized == "json":
        typer.echo(render_plan_json(edit_plan, project_root=session.root))
        return
    render_plan(edit_plan, project_root=session.root, console=console)


@app.command()
def remove(
    results: ResultsArg,
    target: TargetArg = None,
    root: RootOption = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Don't touch any file; report what would be removed."),
    ] = False,
    diff: Annotated[
        bool,
        typer.Option("--diff", help="Print a unified diff for each edited file."),
    ] = False,
    fmt: FormatOption = "terminal",
) -> None:
    """
    Remove the removable warnings in a file or folder.

    Files left with nothing but imports and comments are moved to the trash
    directory. Ctrl-C stops at the next file boundary; finished files stay
    edited and can be undone with `deadstrip undo`.
    """

    normalized = _check_format(fmt)
    settings = _cli_settings()
    session, state, journal_path = _open_session(results, root, target)
    scope = target or session.root

    try:
        summary = _run_with_progress(
            session,
            scope,
            dry_run=dry_run,
            show_progress=settings["progress"] and not settings["quiet"] and normalized == "terminal",
        )
    except NoRemovableWarnings as exc:
        console.print(
            f"No removable warnings in {safe_relpath(scope, session.root)} "
            f"({exc.stats.non_deletable_count} need manual attention)."
        )
        return
    except DeadstripError as exc:
        err_console.print(f"Removal failed: {exc}")
        raise typer.Exit(code=1) from exc

    if not dry_run:
        _persist(session, state, journal_path)

    if normalized == "json":
        typer.echo(render_summary_json(summary, project_root=session.root))
    else:
        render_summary(summary, project_root=session.root, console=console, show_diff=diff)

    if summary.failures:
        raise typer.Exit(code=1)


def _run_with_progress(session: EngineSession, scope: Path, *, dry_run: bool, show_progress: bool) -> BatchSummary:
    from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

    cancel = CancelToken()

    def _run(callbacks: BatchCallbacks | None) -> BatchSummary:
        if scope.is_dir():
            return session.remove_folder(scope, dry_run=dry_run, callbacks=callbacks, cancel=cancel)
        return session.remove_file(scope, dry_run=dry_run, callbacks=callbacks)

    def _wait(future: Future[BatchSummary]) -> BatchSummary:
        try:
            return future.result()
        except KeyboardInterrupt:
            err_console.print("Cancelling after the current file…")
            cancel.cancel()
            return future.result()

    if not show_progress:
        with ThreadPoolExecutor(max_workers=1) as executor:
            return _wait(executor.submit(_run, None))

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=Console(stderr=True),
        transient=True,
    )
    task = progress.add_task("Removing", total=None)

    def _on_progress(current: Path, processed: int, total: int) -> None:
        progress.update(
            task,
            total=total,
            completed=processed,
            description=f"Removing {safe_relpath(current, session.root)}",
        )

    with progress, ThreadPoolExecutor(max_workers=1) as executor:
        return _wait(executor.submit(_run, BatchCallbacks(on_progress=_on_progress)))


@app.command()
def undo(root: RootOption = None) -> None:
    """
    Revert the most recent removal (restores edited and trashed files).
    """

    _step(root, redo=False)


@app.command()
def redo(root: RootOption = None) -> None:
    """
    Re-apply the most recently undone removal from its recorded contents.
    """

    _step(root, redo=True)


def _step(root: Path | None, *, redo: bool) -> None:
    project_root, _config, journal_path = _project(root, Path.cwd())
    state = load_journal(journal_path)
    manager = UndoManager(undo_stack=state.undo, redo_stack=state.redo)
    try:
        if redo:
            transaction = manager.redo(None, state.hidden_ids)
        else:
            transaction = manager.undo(None, state.hidden_ids)
    except DeadstripError as exc:
        err_console.print(f"{'Redo' if redo else 'Undo'} failed: {exc}")
        raise typer.Exit(code=1) from exc

    if transaction is None:
        console.print("Nothing to redo." if redo else "Nothing to undo.")
        return

    state.undo = manager.undo_stack
    state.redo = manager.redo_stack
    save_journal(journal_path, state)
    verb = "Redid" if redo else "Undid"
    console.print(f"{verb} {transaction.label!r}: {len(transaction.changes)} file(s).")
    if _cli_settings()["verbose"]:
        for change in transaction.changes:
            logger.debug("  %s", safe_relpath(change.path, project_root))


@app.command()
def history(root: RootOption = None) -> None:
    """
    List recorded removals, oldest first; undone ones are listed last.
    """

    _project_root, _config, journal_path = _project(root, Path.cwd())
    state = load_journal(journal_path)
    render_history(state.undo, state.redo, console=console)
