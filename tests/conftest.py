from __future__ import annotations

from pathlib import Path

import pytest

from minicode.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        sessions_dir=tmp_path / "sessions",
        global_config_dir=tmp_path / "config",
        plugins={},
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "workspace"
    path.mkdir()
    return path
