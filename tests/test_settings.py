"""Tests for settings module."""

from pathlib import Path
from unittest.mock import patch

from infrascout.settings import Settings, get_settings


class TestSettings:
    """Test Settings class configuration."""

    def test_settings_defaults(self):
        """Settings has correct default values."""
        with patch.dict("os.environ", {}, clear=True):
            settings = Settings(_env_file=None)
            assert settings.scratch_root == Path("/tmp/infrascout")
            assert settings.max_repo_size_mb == 500
            assert settings.max_manifest_bytes == 512 * 1024
            assert settings.max_workspace_config_bytes == 1024 * 1024
            assert settings.env_placeholder_template == "<required: set {key}>"
            assert settings.base_domain == "apps.localhost"

    def test_settings_loads_from_env(self):
        """Settings reads INFRASCOUT_-prefixed variables."""
        with patch.dict(
            "os.environ",
            {
                "INFRASCOUT_SCRATCH_ROOT": "/srv/scratch",
                "INFRASCOUT_MAX_REPO_SIZE_MB": "100",
            },
            clear=True,
        ):
            settings = Settings(_env_file=None)
            assert settings.scratch_root == Path("/srv/scratch")
            assert settings.max_repo_size_mb == 100

    def test_unprefixed_variables_ignored(self):
        """Variables without the prefix do not leak into settings."""
        with patch.dict("os.environ", {"MAX_REPO_SIZE_MB": "1"}, clear=True):
            assert Settings(_env_file=None).max_repo_size_mb == 500

    def test_max_repo_size_bytes(self):
        """Size ceiling is exposed in bytes."""
        settings = Settings(_env_file=None, max_repo_size_mb=2)
        assert settings.max_repo_size_bytes == 2 * 1024 * 1024


class TestGetSettings:
    """Test get_settings caching."""

    def test_get_settings_returns_same_instance(self):
        """get_settings returns cached instance."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
