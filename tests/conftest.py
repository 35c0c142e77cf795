"""Pytest configuration and shared fixtures for the gsheet test suite."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import List

import pytest


def _ensure_project_root_on_path(source_file: Path) -> None:
    """Add the repository root to ``sys.path`` when running from subdirectories."""

    for candidate in [source_file.parent, *source_file.parents]:
        if (candidate / "gsheet").is_dir():
            project_root = str(candidate)
            if project_root not in sys.path:
                sys.path.insert(0, project_root)
            break


_ensure_project_root_on_path(Path(__file__).resolve())

from fakes import FakeSource


@pytest.fixture
def people_grid() -> List[List[str]]:
    return [
        ["Name", "Email"],
        ["Ada", "ada@x.com"],
        ["", "b@x.com"],
    ]


@pytest.fixture
def fake_source(people_grid) -> FakeSource:
    return FakeSource(people_grid)
