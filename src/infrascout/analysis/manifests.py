"""Size-capped readers for manifests and dependency extraction per ecosystem."""

import json
import logging
import re
import tomllib
from pathlib import Path
from typing import Any

import yaml

from infrascout.exceptions import ParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 512 * 1024

# Directories never treated as workspaces or scanned for sources
SKIP_DIRS = frozenset({
    ".git",
    ".github",
    ".gitlab",
    ".vscode",
    ".idea",
    ".devcontainer",
    ".cache",
    "node_modules",
    "vendor",
    "__pycache__",
    ".venv",
    "venv",
    "dist",
    "build",
    "out",
    "target",
    "docs",
    "documentation",
    "assets",
    "public",
    "static",
    "scripts",
    "tools",
    "config",
    "configs",
})

# Dependency trees that never hold workspaces of their own
VENDOR_DIRS = frozenset({".git", "node_modules", "vendor", "__pycache__", ".venv", "venv"})

_PY_NAME = re.compile(r"^([A-Za-z0-9_.-]+)")


def is_readable(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> bool:
    """Existing regular file no larger than max_bytes."""
    try:
        return path.is_file() and path.stat().st_size <= max_bytes
    except OSError:
        return False


def read_text(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> str | None:
    """Read a file, or None when it is missing or over the size cap."""
    if not is_readable(path, max_bytes):
        if path.is_file():
            logger.debug("Skipping %s: larger than %d bytes", path, max_bytes)
        return None
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ParseError(path, f"unreadable: {e}") from e


def read_json(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Any:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise ParseError(path, f"invalid JSON: {e}") from e


def read_yaml(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> Any:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ParseError(path, f"invalid YAML: {e}") from e


def read_toml(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> dict[str, Any] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ParseError(path, f"invalid TOML: {e}") from e


def _mapping(path: Path, data: Any) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ParseError(path, f"expected an object at top level, got {type(data).__name__}")
    return data


def _keys(value: Any) -> list[str]:
    return list(value.keys()) if isinstance(value, dict) else []


def node_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    """Names from dependencies, devDependencies and peerDependencies."""
    data = read_json(path, max_bytes)
    if data is None:
        return None
    data = _mapping(path, data)
    return [
        *_keys(data.get("dependencies")),
        *_keys(data.get("devDependencies")),
        *_keys(data.get("peerDependencies")),
    ]


def requirements_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    """Lower-cased package names from a requirements.txt."""
    content = read_text(path, max_bytes)
    if content is None:
        return None
    deps = []
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith(("#", "-")):
            continue
        match = _PY_NAME.match(line)
        if match:
            deps.append(match.group(1).lower())
    return deps


def pyproject_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    """Lower-cased names from PEP 621 and Poetry dependency tables."""
    data = read_toml(path, max_bytes)
    if data is None:
        return None
    deps = []
    for spec in data.get("project", {}).get("dependencies", []):
        match = _PY_NAME.match(str(spec).strip())
        if match:
            deps.append(match.group(1).lower())
    poetry = data.get("tool", {}).get("poetry", {}).get("dependencies", {})
    deps.extend(name.lower() for name in _keys(poetry) if name.lower() != "python")
    return deps


def composer_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    data = read_json(path, max_bytes)
    if data is None:
        return None
    data = _mapping(path, data)
    return [*_keys(data.get("require")), *_keys(data.get("require-dev"))]


def gem_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    return re.findall(r"""gem\s+['"]([^'"]+)['"]""", content)


def go_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    """Module paths from require blocks and single-line requires."""
    content = read_text(path, max_bytes)
    if content is None:
        return None
    deps = re.findall(r"require\s+([^\s(]+)\s+v", content)
    for block in re.findall(r"require\s*\((.*?)\)", content, re.DOTALL):
        deps.extend(re.findall(r"^\s*([^\s/][^\s]*)\s+v", block, re.MULTILINE))
    return list(dict.fromkeys(deps))


def cargo_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    data = read_toml(path, max_bytes)
    if data is None:
        return None
    return [*_keys(data.get("dependencies")), *_keys(data.get("dev-dependencies"))]


def mix_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    return [f":{name}" for name in re.findall(r"\{:([a-z_]+),", content)]


def maven_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    return re.findall(r"<artifactId>([^<]+)</artifactId>", content)


def gradle_dependencies(path: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> list[str] | None:
    content = read_text(path, max_bytes)
    if content is None:
        return None
    deps = []
    for group, artifact in re.findall(
        r"""(?:implementation|compile|api)\s*\(?\s*['"]([^:'"]+):([^:'"]+)""", content
    ):
        deps.extend([f"{group}:{artifact}", group])
    deps.extend(re.findall(r"""id\s*\(?\s*['"]([^'"]+)['"]""", content))
    return list(dict.fromkeys(deps))


# Manifest filename -> extractor
MANIFEST_EXTRACTORS = {
    "package.json": node_dependencies,
    "requirements.txt": requirements_dependencies,
    "pyproject.toml": pyproject_dependencies,
    "composer.json": composer_dependencies,
    "Gemfile": gem_dependencies,
    "go.mod": go_dependencies,
    "Cargo.toml": cargo_dependencies,
    "mix.exs": mix_dependencies,
    "pom.xml": maven_dependencies,
    "build.gradle": gradle_dependencies,
}

# Ecosystem -> manifests feeding it, in merge order
ECOSYSTEM_MANIFESTS: dict[str, tuple[str, ...]] = {
    "npm": ("package.json",),
    "pip": ("requirements.txt", "pyproject.toml"),
    "composer": ("composer.json",),
    "gem": ("Gemfile",),
    "go": ("go.mod",),
    "cargo": ("Cargo.toml",),
}


def manifest_dependencies(
    app_dir: Path, manifest: str, max_bytes: int = DEFAULT_MAX_BYTES
) -> list[str] | None:
    """Dependencies declared in one manifest, or None when it is absent."""
    extractor = MANIFEST_EXTRACTORS.get(manifest)
    if extractor is None:
        return None
    return extractor(app_dir / manifest, max_bytes)


def extract_dependencies(app_dir: Path, max_bytes: int = DEFAULT_MAX_BYTES) -> dict[str, list[str]]:
    """Dependencies of an app directory keyed by ecosystem (npm, pip, go, ...)."""
    found: dict[str, list[str]] = {}
    for ecosystem, manifests in ECOSYSTEM_MANIFESTS.items():
        for manifest in manifests:
            deps = manifest_dependencies(app_dir, manifest, max_bytes)
            if deps is not None:
                found.setdefault(ecosystem, []).extend(deps)
    return found
