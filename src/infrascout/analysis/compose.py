"""Compose file parsing and database detection from service images."""

import logging
import re
from pathlib import Path
from typing import Any

from infrascout.analysis.manifests import DEFAULT_MAX_BYTES, is_readable, read_yaml
from infrascout.analysis.rules import IMAGE_RULES, ImageRule, image_tag
from infrascout.exceptions import ParseError
from infrascout.models.analysis import DetectedDatabase, DockerComposeService

logger = logging.getLogger(__name__)

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")


def find_compose_file(app_dir: Path) -> Path | None:
    for filename in COMPOSE_FILES:
        candidate = app_dir / filename
        if candidate.is_file():
            return candidate
    return None


def _container_port(entry: Any) -> int | None:
    """Container-side port of a compose ports entry ("8080:80/tcp" -> 80)."""
    if isinstance(entry, int):
        return entry
    if isinstance(entry, dict):
        target = entry.get("target")
        return int(target) if str(target).isdigit() else None
    if isinstance(entry, str):
        container = entry.split("/", 1)[0].rsplit(":", 1)[-1]
        match = re.match(r"(\d+)", container)
        return int(match.group(1)) if match else None
    return None


def _names(value: Any) -> list[str]:
    """Keys of a compose list-or-mapping field (environment, depends_on)."""
    if isinstance(value, dict):
        return [str(k) for k in value]
    if isinstance(value, list):
        return [str(item).split("=", 1)[0] for item in value]
    return []


def parse_compose_content(data: Any, path: Path | str) -> list[DockerComposeService]:
    """Turn a loaded compose document into service records.

    Raises:
        ParseError: If the document or its services section is not a mapping.
    """
    if data is None:
        return []
    if not isinstance(data, dict):
        raise ParseError(path, "compose file must be a mapping")
    services = data.get("services") or {}
    if not isinstance(services, dict):
        raise ParseError(path, "'services' must be a mapping")

    parsed = []
    for name, spec in services.items():
        if spec is None:
            spec = {}
        if not isinstance(spec, dict):
            raise ParseError(path, f"service '{name}' must be a mapping")
        ports = [p for p in (_container_port(e) for e in spec.get("ports") or []) if p]
        image = spec.get("image")
        parsed.append(
            DockerComposeService(
                name=str(name),
                image=str(image) if image else None,
                has_build="build" in spec,
                ports=ports,
                environment=_names(spec.get("environment")),
                depends_on=_names(spec.get("depends_on")),
            )
        )
    return parsed


def parse_compose(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[DockerComposeService] | None:
    """Parse a compose file, or None when it is absent or oversized."""
    if not is_readable(path, max_bytes):
        return None
    return parse_compose_content(read_yaml(path, max_bytes), path)


def match_image(image: str, rules: tuple[ImageRule, ...] = IMAGE_RULES) -> ImageRule | None:
    for rule in rules:
        if rule.matches(image):
            return rule
    return None


def databases_from_compose(
    services: list[DockerComposeService],
    consumer: str,
    rules: tuple[ImageRule, ...] = IMAGE_RULES,
) -> list[DetectedDatabase]:
    """One DetectedDatabase per engine type whose image appears in services."""
    found: dict[str, DetectedDatabase] = {}
    for service in services:
        if not service.image:
            continue
        rule = match_image(service.image, rules)
        if rule is None or rule.type in found:
            continue
        version = re.match(r"(\d+(?:\.\d+)*)", image_tag(service.image) or "")
        found[rule.type] = DetectedDatabase(
            type=rule.type,
            name=rule.type,
            consumers=[consumer],
            detected_via=f"compose:{service.name}",
            port=service.ports[0] if service.ports else rule.default_port,
            version=version.group(1) if version else None,
        )
        logger.debug("Compose service %s uses %s", service.name, rule.type)
    return list(found.values())
