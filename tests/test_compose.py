"""Tests for compose parsing and compose-declared databases."""

import pytest

from infrascout.analysis.compose import (
    databases_from_compose,
    find_compose_file,
    match_image,
    parse_compose,
    parse_compose_content,
)
from infrascout.exceptions import ParseError
from infrascout.models.analysis import DockerComposeService


class TestFindComposeFile:
    """Test compose filename precedence."""

    def test_prefers_docker_compose_yml(self, tmp_path):
        (tmp_path / "compose.yaml").write_text("services: {}\n")
        (tmp_path / "docker-compose.yml").write_text("services: {}\n")
        assert find_compose_file(tmp_path).name == "docker-compose.yml"

    def test_none_when_absent(self, tmp_path):
        assert find_compose_file(tmp_path) is None


class TestParseComposeContent:
    """Test service extraction."""

    def test_services(self):
        data = {
            "services": {
                "web": {
                    "build": ".",
                    "ports": ["8080:80/tcp", {"target": 443, "published": 8443}, 9000],
                    "environment": ["NODE_ENV=production", "API_KEY"],
                    "depends_on": {"db": {"condition": "service_healthy"}},
                },
                "db": {"image": "postgres:15", "environment": {"POSTGRES_PASSWORD": "secret"}},
            }
        }

        web, db = parse_compose_content(data, "docker-compose.yml")

        assert web.name == "web"
        assert web.has_build is True
        assert web.image is None
        assert web.ports == [80, 443, 9000]
        assert web.environment == ["NODE_ENV", "API_KEY"]
        assert web.depends_on == ["db"]
        assert db.image == "postgres:15"
        assert db.environment == ["POSTGRES_PASSWORD"]

    def test_empty_document(self):
        assert parse_compose_content(None, "compose.yml") == []

    def test_service_without_body(self):
        (cache,) = parse_compose_content({"services": {"cache": None}}, "compose.yml")
        assert cache.name == "cache"

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            (["web"], "must be a mapping"),
            ({"services": ["web", "db"]}, "'services' must be a mapping"),
            ({"services": {"web": "nginx"}}, "service 'web' must be a mapping"),
        ],
    )
    def test_malformed(self, data, message):
        with pytest.raises(ParseError, match=message):
            parse_compose_content(data, "docker-compose.yml")


class TestParseCompose:
    """Test reading from disk."""

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "docker-compose.yml"
        path.write_text("services:\n  web: [unclosed\n")
        with pytest.raises(ParseError, match="invalid YAML"):
            parse_compose(path)

    def test_missing(self, tmp_path):
        assert parse_compose(tmp_path / "docker-compose.yml") is None

    def test_oversized(self, tmp_path):
        path = tmp_path / "docker-compose.yml"
        path.write_text("services:\n  db:\n    image: postgres\n")
        assert parse_compose(path, max_bytes=8) is None


class TestMatchImage:
    """Test image to engine mapping."""

    @pytest.mark.parametrize(
        ("image", "db_type"),
        [
            ("postgres:16-alpine", "postgresql"),
            ("bitnami/postgresql:15", "postgresql"),
            ("pgvector/pgvector:pg16", "postgresql"),
            ("timescale/timescaledb:latest-pg15", "postgresql"),
            ("mariadb:11", "mariadb"),
            ("mysql:8.0", "mysql"),
            ("mongo:7", "mongodb"),
            ("redis:7-alpine", "redis"),
            ("valkey/valkey:7.2", "redis"),
            ("eqalpha/keydb", "keydb"),
            ("docker.dragonflydb.io/dragonflydb/dragonfly", "dragonfly"),
            ("clickhouse/clickhouse-server:24", "clickhouse"),
            ("ghcr.io/acme/postgres@sha256:abc", "postgresql"),
        ],
    )
    def test_known_images(self, image, db_type):
        assert match_image(image).type == db_type

    @pytest.mark.parametrize("image", ["nginx:alpine", "prometheuscommunity/postgres-exporter", "node:20"])
    def test_unknown_images(self, image):
        assert match_image(image) is None


class TestDatabasesFromCompose:
    """Test DetectedDatabase construction."""

    def test_one_per_type(self):
        services = [
            DockerComposeService(name="app", has_build=True, ports=[3000]),
            DockerComposeService(name="db", image="postgres:15.4", ports=[5433]),
            DockerComposeService(name="replica", image="postgres:15"),
            DockerComposeService(name="cache", image="redis"),
        ]

        databases = databases_from_compose(services, "api")

        assert [(d.type, d.name) for d in databases] == [("postgresql", "postgresql"), ("redis", "redis")]
        postgres, redis = databases
        assert postgres.consumers == ("api",)
        assert postgres.detected_via == "compose:db"
        assert postgres.port == 5433
        assert postgres.version == "15.4"
        assert postgres.env_var_name == "DATABASE_URL"
        assert redis.port == 6379
        assert redis.version is None
