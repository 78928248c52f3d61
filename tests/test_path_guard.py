"""Tests for checkout path validation."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from infrascout.analysis.path_guard import DuDiskUsageProbe, PathGuard
from infrascout.exceptions import PathSecurityError
from infrascout.settings import Settings

from conftest import FakeDiskUsageProbe


@pytest.fixture
def scratch(tmp_path):
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def guard_settings(scratch) -> Settings:
    return Settings(_env_file=None, scratch_root=scratch)


class TestPathGuard:
    """Test PathGuard.validate."""

    def test_accepts_checkout_inside_root(self, scratch, guard_settings):
        """A directory below the scratch root passes and is measured."""
        repo = scratch / "repo"
        repo.mkdir()
        probe = FakeDiskUsageProbe()

        PathGuard(guard_settings, probe).validate(repo)

        assert probe.calls == [repo.resolve()]

    def test_missing_path(self, scratch, guard_settings):
        with pytest.raises(PathSecurityError, match="does not exist"):
            PathGuard(guard_settings, FakeDiskUsageProbe()).validate(scratch / "missing")

    def test_file_is_not_a_checkout(self, scratch, guard_settings):
        target = scratch / "file.txt"
        target.write_text("x")
        with pytest.raises(PathSecurityError, match="not a directory"):
            PathGuard(guard_settings, FakeDiskUsageProbe()).validate(target)

    def test_rejects_directory_outside_root(self, tmp_path, guard_settings):
        """Directories outside the scratch root are rejected before measuring."""
        outside = tmp_path / "outside"
        outside.mkdir()
        probe = FakeDiskUsageProbe()

        with pytest.raises(PathSecurityError, match="escapes scratch root"):
            PathGuard(guard_settings, probe).validate(outside)
        assert probe.calls == []

    def test_rejects_dot_dot_traversal(self, tmp_path, scratch, guard_settings):
        """../ segments are resolved before the containment check."""
        (tmp_path / "outside").mkdir()
        (scratch / "repo").mkdir()
        with pytest.raises(PathSecurityError, match="escapes scratch root"):
            PathGuard(guard_settings, FakeDiskUsageProbe()).validate(scratch / "repo" / ".." / ".." / "outside")

    def test_rejects_symlink_escape(self, tmp_path, scratch, guard_settings):
        """A symlink inside the root pointing outside it is rejected."""
        outside = tmp_path / "outside"
        outside.mkdir()
        link = scratch / "link"
        link.symlink_to(outside, target_is_directory=True)
        with pytest.raises(PathSecurityError, match="escapes scratch root"):
            PathGuard(guard_settings, FakeDiskUsageProbe()).validate(link)

    def test_rejects_scratch_root_itself(self, scratch, guard_settings):
        """The checkout must be a strict descendant of the root."""
        with pytest.raises(PathSecurityError, match="escapes scratch root"):
            PathGuard(guard_settings, FakeDiskUsageProbe()).validate(scratch)

    def test_rejects_oversized_checkout(self, scratch, guard_settings):
        """A checkout above the ceiling fails."""
        repo = scratch / "repo"
        repo.mkdir()
        probe = FakeDiskUsageProbe(size=600 * 1024 * 1024)
        with pytest.raises(PathSecurityError, match="limit is 500 MB"):
            PathGuard(guard_settings, probe).validate(repo)

    def test_accepts_checkout_at_ceiling(self, scratch, guard_settings):
        repo = scratch / "repo"
        repo.mkdir()
        probe = FakeDiskUsageProbe(size=guard_settings.max_repo_size_bytes)
        PathGuard(guard_settings, probe).validate(repo)


class TestDuDiskUsageProbe:
    """Test the du-backed probe."""

    def test_parses_kilobytes(self, tmp_path):
        """du -sk output is converted to bytes."""
        completed = MagicMock(stdout=f"12\t{tmp_path}\n")
        with patch("infrascout.analysis.path_guard.subprocess.run", return_value=completed) as run:
            assert DuDiskUsageProbe().size_bytes(tmp_path) == 12 * 1024
        assert run.call_args[0][0] == ["du", "-sk", str(tmp_path)]

    def test_command_failure(self, tmp_path):
        """A failing du is reported as a PathSecurityError."""
        error = subprocess.CalledProcessError(1, ["du"])
        with patch("infrascout.analysis.path_guard.subprocess.run", side_effect=error):
            with pytest.raises(PathSecurityError, match="Could not measure"):
                DuDiskUsageProbe().size_bytes(tmp_path)

    def test_unexpected_output(self, tmp_path):
        with patch(
            "infrascout.analysis.path_guard.subprocess.run", return_value=MagicMock(stdout="")
        ):
            with pytest.raises(PathSecurityError, match="Unexpected du output"):
                DuDiskUsageProbe().size_bytes(tmp_path)
