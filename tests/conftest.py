"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from infrascout.analysis import PathGuard, RepositoryAnalyzer
from infrascout.settings import Settings


class FakeDiskUsageProbe:
    """DiskUsageProbe returning a fixed size and recording calls."""

    def __init__(self, size: int = 0) -> None:
        self.size = size
        self.calls: list[Path] = []

    def size_bytes(self, path: Path) -> int:
        self.calls.append(path)
        return self.size


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with the scratch root at tmp_path and no .env loading."""
    return Settings(_env_file=None, scratch_root=tmp_path)


@pytest.fixture
def probe() -> FakeDiskUsageProbe:
    return FakeDiskUsageProbe()


@pytest.fixture
def make_repo(tmp_path):
    """Build a throwaway checkout under tmp_path from {relative path: content}.

    dict and list contents are written as JSON.
    """

    def _make(files: dict[str, object], name: str = "repo") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, (dict, list)):
                content = json.dumps(content)
            target.write_text(str(content))
        return root

    return _make


@pytest.fixture
def analyzer(settings, probe) -> RepositoryAnalyzer:
    """RepositoryAnalyzer whose size probe never shells out."""
    return RepositoryAnalyzer(settings, path_guard=PathGuard(settings, probe))
