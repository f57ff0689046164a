from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, cast

from deadstrip.engine.lifecycle import DEFAULT_MEANINGFUL_COMMENT_THRESHOLD
from deadstrip.engine.selector import KIND_GROUPS, FilterState
from deadstrip.engine.strategies import DEFAULT_IGNORE_MARKER, DEFAULT_SEARCH_WINDOW
from deadstrip.engine.types import ANNOTATIONS, Annotation


class ConfigError(ValueError):
    """Raised when a deadstrip configuration file is invalid."""


DEFAULT_TRASH_DIR = ".deadstrip/trash"
DEFAULT_JOURNAL_PATH = ".deadstrip/journal.json"


@dataclass(frozen=True, slots=True)
class FiltersConfig:
    top_level_only: bool = False
    annotations: tuple[Annotation, ...] = ANNOTATIONS
    kinds: tuple[str, ...] = KIND_GROUPS

    def to_filter_state(self) -> FilterState:
        return FilterState(
            top_level_only=self.top_level_only,
            annotations=frozenset(self.annotations),
            kinds=frozenset(self.kinds),
        )


@dataclass(frozen=True, slots=True)
class DeadstripConfig:
    ignore_marker: str = DEFAULT_IGNORE_MARKER
    ignore_search_window: int = DEFAULT_SEARCH_WINDOW
    meaningful_comment_threshold: int = DEFAULT_MEANINGFUL_COMMENT_THRESHOLD
    trash_dir: str = DEFAULT_TRASH_DIR
    journal: str = DEFAULT_JOURNAL_PATH
    filters: FiltersConfig = field(default_factory=FiltersConfig)


def load_config(project_dir: Path | str = ".") -> DeadstripConfig:
    """
    Load deadstrip configuration from `pyproject.toml` within `project_dir`.

    If no file / no `[tool.deadstrip]` table exists, returns defaults.
    """

    project_dir_path = Path(project_dir)
    pyproject_path = project_dir_path / "pyproject.toml"
    if not pyproject_path.exists():
        return DeadstripConfig()

    try:
        data = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {pyproject_path}: {exc}") from exc

    tool_table = data.get("tool", {})
    if not isinstance(tool_table, dict):
        return DeadstripConfig()

    table = tool_table.get("deadstrip", {})
    if not isinstance(table, dict) or not table:
        return DeadstripConfig()

    return _parse_deadstrip_table(table)


def _parse_deadstrip_table(table: dict[str, Any]) -> DeadstripConfig:
    marker = table.get("ignore-marker", table.get("ignore_marker", DEFAULT_IGNORE_MARKER))
    if not isinstance(marker, str) or not marker.strip():
        raise ConfigError("`tool.deadstrip.ignore-marker` must be a non-empty string.")

    window = table.get("ignore-search-window", table.get("ignore_search_window", DEFAULT_SEARCH_WINDOW))
    if not isinstance(window, int) or isinstance(window, bool):
        raise ConfigError("`tool.deadstrip.ignore-search-window` must be an integer.")
    if window < 1:
        raise ConfigError("`tool.deadstrip.ignore-search-window` must be at least 1.")

    threshold = table.get(
        "meaningful-comment-threshold",
        table.get("meaningful_comment_threshold", DEFAULT_MEANINGFUL_COMMENT_THRESHOLD),
    )
    if not isinstance(threshold, int) or isinstance(threshold, bool):
        raise ConfigError("`tool.deadstrip.meaningful-comment-threshold` must be an integer.")
    if threshold < 0:
        raise ConfigError("`tool.deadstrip.meaningful-comment-threshold` must be >= 0.")

    trash_dir = _parse_relative_path(table.get("trash-dir", table.get("trash_dir")), "trash-dir", DEFAULT_TRASH_DIR)
    journal = _parse_relative_path(table.get("journal"), "journal", DEFAULT_JOURNAL_PATH)
    filters = _parse_filters(table.get("filters", {}))

    return DeadstripConfig(
        ignore_marker=marker.strip(),
        ignore_search_window=window,
        meaningful_comment_threshold=threshold,
        trash_dir=trash_dir,
        journal=journal,
        filters=filters,
    )


def _parse_relative_path(value: Any, key: str, default: str) -> str:
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigError(f"`tool.deadstrip.{key}` must be a string path.")
    path = value.strip() or default
    pure = Path(path)
    if pure.is_absolute() or ".." in pure.parts:
        raise ConfigError(f"`tool.deadstrip.{key}` must be a relative path inside the project.")
    return path


def _parse_filters(value: Any) -> FiltersConfig:
    if value is None:
        return FiltersConfig()
    if not isinstance(value, dict):
        raise ConfigError("`tool.deadstrip.filters` must be a table.")

    top_level_only = value.get("top-level-only", value.get("top_level_only", False))
    if not isinstance(top_level_only, bool):
        raise ConfigError("`tool.deadstrip.filters.top-level-only` must be a boolean.")

    annotations = _validate_choices(
        value.get("annotations"),
        allowed=ANNOTATIONS,
        field_name="tool.deadstrip.filters.annotations",
    )
    kinds = _validate_choices(value.get("kinds"), allowed=KIND_GROUPS, field_name="tool.deadstrip.filters.kinds")

    return FiltersConfig(
        top_level_only=top_level_only,
        annotations=cast(tuple[Annotation, ...], annotations) if annotations is not None else ANNOTATIONS,
        kinds=kinds if kinds is not None else KIND_GROUPS,
    )


def _normalize_choice(value: str) -> str:
    return value.strip().lower().replace("-", "_")


def _validate_choices(value: Any, *, allowed: tuple[str, ...], field_name: str) -> tuple[str, ...] | None:
    if value is None:
        return None
    if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
        raise ConfigError(f"`{field_name}` must be a list of strings.")
    out: list[str] = []
    for raw in value:
        normalized = _normalize_choice(raw)
        if normalized not in allowed:
            raise ConfigError(f"`{field_name}` contains unknown value {raw!r}; expected one of: {', '.join(allowed)}.")
        if normalized not in out:
            out.append(normalized)
    return tuple(out)


def resolve_under_root(root: Path, relative: str) -> Path:
    """Resolve a configured path and refuse anything that escapes `root`."""

    candidate = root / relative
    try:
        resolved = candidate.resolve()
        resolved.relative_to(root.resolve())
    except (OSError, RuntimeError, ValueError) as exc:
        raise ConfigError(f"Configured path escapes the project root: {relative}") from exc
    return resolved


def detect_project_root(start: Path) -> Path:
    # Prefer the closest directory that already holds deadstrip state or a
    # pyproject.toml, then the closest VCS root.
    base = start if start.is_dir() else start.parent
    for marker in (".deadstrip", "pyproject.toml", ".git"):
        for candidate in [base, *base.parents]:
            if (candidate / marker).exists():
                return candidate
    return base
