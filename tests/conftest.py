from __future__ import annotations

import logging
from pathlib import Path

import pytest

from helpers import GraphBuilder


@pytest.fixture()
def builder() -> GraphBuilder:
    return GraphBuilder()


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    (tmp_path / "pyproject.toml").write_text("[tool.deadstrip]\n", encoding="utf-8")
    return tmp_path


@pytest.fixture(autouse=True)
def _reset_logging() -> None:
    # The CLI reconfigures the root logger with force=True.
    logging.getLogger().setLevel(logging.WARNING)
