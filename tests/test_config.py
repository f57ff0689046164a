from __future__ import annotations

from pathlib import Path

import pytest

from deadstrip.config import ConfigError, DeadstripConfig, detect_project_root, load_config, resolve_under_root


def _write_pyproject(root: Path, body: str) -> None:
    (root / "pyproject.toml").write_text(body.lstrip(), encoding="utf-8")


def test_defaults_without_pyproject(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert config == DeadstripConfig()
    assert config.ignore_marker == "periphery:ignore"
    assert config.ignore_search_window == 10
    assert config.meaningful_comment_threshold == 5


def test_values_are_parsed_with_dash_or_underscore_keys(tmp_path: Path) -> None:
    _write_pyproject(
        tmp_path,
        """
[tool.deadstrip]
ignore-marker = "deadcode:keep"
ignore_search_window = 4
meaningful-comment-threshold = 0
trash-dir = "build/trash"
journal = "build/journal.json"

[tool.deadstrip.filters]
top-level-only = true
annotations = ["unused", "Redundant-Public"]
kinds = ["function", "property"]
""",
    )

    config = load_config(tmp_path)

    assert config.ignore_marker == "deadcode:keep"
    assert config.ignore_search_window == 4
    assert config.meaningful_comment_threshold == 0
    assert config.trash_dir == "build/trash"
    assert config.journal == "build/journal.json"
    state = config.filters.to_filter_state()
    assert state.top_level_only
    assert state.annotations == frozenset({"unused", "redundant_public"})
    assert state.kinds == frozenset({"function", "property"})


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("ignore-search-window = 0", "ignore-search-window"),
        ("ignore-search-window = true", "ignore-search-window"),
        ('ignore-marker = "  "', "ignore-marker"),
        ("meaningful-comment-threshold = -1", "meaningful-comment-threshold"),
        ('trash-dir = "../outside"', "trash-dir"),
        ('journal = "/tmp/journal.json"', "journal"),
        ("filters = 3", "filters"),
    ],
)
def test_invalid_values_name_the_key(tmp_path: Path, body: str, message: str) -> None:
    _write_pyproject(tmp_path, f"[tool.deadstrip]\n{body}\n")
    with pytest.raises(ConfigError, match=message):
        load_config(tmp_path)


def test_unknown_filter_choice_is_rejected(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, '[tool.deadstrip.filters]\nkinds = ["widget"]\n')
    with pytest.raises(ConfigError, match="widget"):
        load_config(tmp_path)


def test_invalid_toml_is_a_config_error(tmp_path: Path) -> None:
    _write_pyproject(tmp_path, "[tool.deadstrip\n")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(tmp_path)


def test_resolve_under_root_refuses_escapes(tmp_path: Path) -> None:
    assert resolve_under_root(tmp_path, ".deadstrip/trash") == (tmp_path / ".deadstrip" / "trash").resolve()
    with pytest.raises(ConfigError):
        resolve_under_root(tmp_path, "../elsewhere")


def test_detect_project_root_prefers_the_closest_marker(tmp_path: Path) -> None:
    (tmp_path / ".git").mkdir()
    app = tmp_path / "App"
    (app / "Sources").mkdir(parents=True)
    _write_pyproject(app, "[tool.deadstrip]\n")
    source = app / "Sources" / "A.swift"
    source.write_text("", encoding="utf-8")

    assert detect_project_root(source) == app
    assert detect_project_root(tmp_path) == tmp_path
