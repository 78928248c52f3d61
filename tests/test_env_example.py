"""Tests for example env file parsing."""

import pytest

from infrascout.analysis.env_example import (
    EnvExampleEntry,
    find_env_example,
    is_placeholder,
    parse_env_example,
    parse_env_example_content,
)
from infrascout.exceptions import ParseError


class TestIsPlaceholder:
    """Test placeholder recognition."""

    @pytest.mark.parametrize(
        "value",
        ["", "<your-key>", "[token]", "your_api_key", "your-secret", "sk_test_here", "changeme",
         "CHANGE_ME", "replace-me", "xxxx", "...", "TODO", "tbd", "****"],
    )
    def test_placeholders(self, value):
        assert is_placeholder(value) is True

    @pytest.mark.parametrize("value", ["3000", "localhost", "production", "https://example.com", "x"])
    def test_real_values(self, value):
        assert is_placeholder(value) is False


class TestParseEnvExampleContent:
    """Test line parsing."""

    def test_defaults_and_required(self):
        content = """
# Server
PORT=3000
NODE_ENV=development

STRIPE_SECRET_KEY=sk_live_your_key_here
JWT_SECRET=
export SMTP_HOST=smtp.example.com
"""
        assert parse_env_example_content(content) == [
            EnvExampleEntry("PORT", "3000", False),
            EnvExampleEntry("NODE_ENV", "development", False),
            EnvExampleEntry("STRIPE_SECRET_KEY", None, True),
            EnvExampleEntry("JWT_SECRET", None, True),
            EnvExampleEntry("SMTP_HOST", "smtp.example.com", False),
        ]

    def test_quotes_and_inline_comments(self):
        content = 'GREETING="hello # world"\nPORT=8080  # http port\nNAME=\'app\'\n'
        entries = {e.key: e.value for e in parse_env_example_content(content)}
        assert entries == {"GREETING": "hello # world", "PORT": "8080", "NAME": "app"}

    def test_first_occurrence_wins(self):
        entries = parse_env_example_content("PORT=3000\nPORT=4000\n")
        assert entries == [EnvExampleEntry("PORT", "3000", False)]

    def test_value_may_contain_equals(self):
        (entry,) = parse_env_example_content("DATABASE_URL=postgres://u:p@db/app?sslmode=require\n")
        assert entry.value == "postgres://u:p@db/app?sslmode=require"

    @pytest.mark.parametrize("line", ["JUST_A_WORD", "1BAD=value", "BAD KEY=value"])
    def test_malformed_line(self, line):
        """Malformed lines name the file and line number."""
        with pytest.raises(ParseError, match=r"\.env\.example: line 2"):
            parse_env_example_content(f"OK=1\n{line}\n", ".env.example")


class TestFiles:
    """Test locating and reading example files."""

    def test_find_precedence(self, tmp_path):
        (tmp_path / "env.example").write_text("A=1\n")
        (tmp_path / ".env.sample").write_text("A=1\n")
        assert find_env_example(tmp_path).name == ".env.sample"

    def test_find_none(self, tmp_path):
        assert find_env_example(tmp_path) is None

    def test_parse_file(self, tmp_path):
        path = tmp_path / ".env.example"
        path.write_text("API_URL=http://localhost:4000\n")
        assert parse_env_example(path) == [EnvExampleEntry("API_URL", "http://localhost:4000", False)]

    def test_parse_missing_file(self, tmp_path):
        assert parse_env_example(tmp_path / ".env.example") is None
