"""Tests for Dockerfile parsing."""

import pytest

from infrascout.analysis.dockerfile import (
    logical_lines,
    parse_dockerfile,
    parse_dockerfile_content,
    parse_duration,
    runtime_from_image,
)
from infrascout.exceptions import ParseError


class TestLogicalLines:
    """Test instruction splitting."""

    def test_continuations_and_comments(self):
        content = "# syntax=docker/dockerfile:1\nFROM node:20\nRUN apt-get update && \\\n    apt-get install -y curl\n"
        assert logical_lines(content) == [
            ("FROM", "node:20"),
            ("RUN", "apt-get update && apt-get install -y curl"),
        ]

    def test_keywords_uppercased(self):
        assert logical_lines("from alpine\n") == [("FROM", "alpine")]


class TestParseDuration:
    """Test Docker duration strings."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("30s", 30), ("1m30s", 90), ("2h", 7200), ("500ms", 0)],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == expected

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_duration("soon")


class TestRuntimeFromImage:
    """Test runtime inference from base images."""

    @pytest.mark.parametrize(
        ("image", "expected"),
        [
            ("node:20-alpine", ("node", "20")),
            ("python:3.12-slim", ("python", "3.12")),
            ("golang:1.22", ("go", "1.22")),
            ("docker.io/library/ruby:3.3", ("ruby", "3.3")),
            ("eclipse-temurin:21-jre", ("java", "21")),
            ("node:lts", ("node", None)),
            ("alpine:3.19", (None, None)),
        ],
    )
    def test_images(self, image, expected):
        assert runtime_from_image(image) == expected


class TestParseDockerfileContent:
    """Test fact extraction."""

    def test_single_stage(self):
        content = """
FROM node:20-alpine
ARG NODE_ENV=production
ENV PORT=3000 LOG_LEVEL=info
EXPOSE 3000/tcp
HEALTHCHECK --interval=30s --timeout=5s --start-period=1m --retries=3 \\
  CMD curl -f http://localhost:3000/health || exit 1
CMD ["node", "server.js"]
"""
        info = parse_dockerfile_content(content)

        assert info.base_image == "node:20-alpine"
        assert info.runtime == "node"
        assert info.runtime_version == "20"
        assert info.exposed_ports == [3000]
        assert info.build_args == ["NODE_ENV"]
        assert info.env_vars == ["PORT", "LOG_LEVEL"]
        assert info.health_check.path == "/health"
        assert info.health_check.interval_seconds == 30
        assert info.health_check.timeout_seconds == 5
        assert info.health_check.start_period_seconds == 60
        assert info.health_check.retries == 3

    def test_final_stage_wins(self):
        """Ports exposed in a builder stage do not leak into the final image."""
        content = """
FROM golang:1.22 AS build
EXPOSE 9000
RUN go build -o /app
FROM gcr.io/distroless/base
EXPOSE 8080
"""
        info = parse_dockerfile_content(content)

        assert info.base_image == "gcr.io/distroless/base"
        assert info.exposed_ports == [8080]
        assert info.runtime is None

    def test_final_stage_from_alias(self):
        """A stage built FROM an earlier alias resolves to that alias's image."""
        content = "FROM python:3.11-slim AS base\nRUN pip install poetry\nFROM base\nEXPOSE 8000\n"

        info = parse_dockerfile_content(content)

        assert info.base_image == "python:3.11-slim"
        assert info.runtime_version == "3.11"

    def test_expose_expands_variables(self):
        content = "FROM node:20\nARG PORT=4000\nEXPOSE ${PORT}\nENV WEB=5000\nEXPOSE $WEB\n"
        assert parse_dockerfile_content(content).exposed_ports == [4000, 5000]

    def test_from_flags_and_args(self):
        content = "ARG NODE=18\nFROM --platform=linux/amd64 node:${NODE}\n"
        info = parse_dockerfile_content(content)
        assert info.base_image == "node:18"
        assert info.runtime_version == "18"

    def test_legacy_env_form(self):
        assert parse_dockerfile_content("FROM alpine\nENV APP_HOME /srv/app\n").env_vars == ["APP_HOME"]

    def test_deduplicates(self):
        content = "FROM alpine\nEXPOSE 80 80\nARG A\nARG A\nENV B=1\nENV B=2\n"
        info = parse_dockerfile_content(content)
        assert info.exposed_ports == [80]
        assert info.build_args == ["A"]
        assert info.env_vars == ["B"]

    def test_healthcheck_exec_form(self):
        content = 'FROM alpine\nHEALTHCHECK CMD ["wget", "-qO-", "http://127.0.0.1:8080/ready"]\n'
        check = parse_dockerfile_content(content).health_check
        assert check.command == "wget -qO- http://127.0.0.1:8080/ready"
        assert check.path == "/ready"

    def test_healthcheck_none(self):
        assert parse_dockerfile_content("FROM alpine\nHEALTHCHECK NONE\n").health_check is None

    def test_healthcheck_without_url(self):
        check = parse_dockerfile_content("FROM alpine\nHEALTHCHECK CMD pg_isready\n").health_check
        assert check.path is None
        assert check.command == "pg_isready"

    def test_missing_from(self):
        with pytest.raises(ParseError, match="no FROM"):
            parse_dockerfile_content("RUN echo hi\n", "Dockerfile")

    def test_malformed_healthcheck(self):
        """Instruction errors are reported as ParseError naming the file."""
        with pytest.raises(ParseError, match="Dockerfile"):
            parse_dockerfile_content("FROM alpine\nHEALTHCHECK --interval=10s\n")

    def test_bad_duration(self):
        with pytest.raises(ParseError, match="invalid duration"):
            parse_dockerfile_content("FROM alpine\nHEALTHCHECK --interval=often CMD true\n")


class TestParseDockerfile:
    """Test reading from disk."""

    def test_missing_file(self, tmp_path):
        assert parse_dockerfile(tmp_path / "Dockerfile") is None

    def test_oversized_file(self, tmp_path):
        path = tmp_path / "Dockerfile"
        path.write_text("FROM alpine\n" + "# padding\n" * 100)
        assert parse_dockerfile(path, max_bytes=16) is None

    def test_reads_file(self, tmp_path):
        path = tmp_path / "Dockerfile"
        path.write_text("FROM python:3.12\nEXPOSE 8000\n")
        assert parse_dockerfile(path).exposed_ports == [8000]
