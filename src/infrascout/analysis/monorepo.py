"""Monorepo layout detection."""

import logging
import re
from pathlib import Path
from typing import Any

from infrascout.analysis.manifests import (
    SKIP_DIRS,
    VENDOR_DIRS,
    read_json,
    read_text,
    read_toml,
    read_yaml,
)
from infrascout.models.analysis import MonorepoInfo
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Root marker -> workspace manager, highest priority first. turbo.json wins
# over pnpm-workspace.yaml because Turborepo is usually layered on top of it.
MARKERS: tuple[tuple[str, str], ...] = (
    ("turbo.json", "turborepo"),
    ("nx.json", "nx"),
    ("lerna.json", "lerna"),
    ("pnpm-workspace.yaml", "pnpm"),
    ("rush.json", "rush"),
)

# Files that mark a top-level directory as an app in the "simple" layout
APP_MARKERS = (
    "package.json",
    "requirements.txt",
    "pyproject.toml",
    "go.mod",
    "Cargo.toml",
    "composer.json",
    "Gemfile",
    "mix.exs",
    "pom.xml",
    "build.gradle",
    "Dockerfile",
    "nixpacks.toml",
    "nixpacks.json",
    "Procfile",
)


class MonorepoDetector:
    """Classify a checkout as single-app or one of several monorepo layouts."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.max_bytes = (settings or get_settings()).max_workspace_config_bytes

    def detect(self, repo_path: Path) -> MonorepoInfo:
        for filename, kind in MARKERS:
            marker = repo_path / filename
            if not marker.exists():
                continue
            patterns = self._marker_patterns(repo_path, marker, kind)
            info = self._build(repo_path, kind, patterns)
            if info.is_monorepo:
                logger.debug("Detected %s monorepo via %s", kind, filename)
                return info

        package = self._json(repo_path / "package.json")
        if "workspaces" in package:
            info = self._build(repo_path, "npm-workspaces", _workspace_globs(package["workspaces"]))
            if info.is_monorepo:
                return info

        for detect in (self._cargo_workspace, self._go_workspace):
            info = detect(repo_path)
            if info.is_monorepo:
                return info

        return self._simple(repo_path)

    def _json(self, path: Path) -> dict[str, Any]:
        data = read_json(path, self.max_bytes)
        return data if isinstance(data, dict) else {}

    def _marker_patterns(self, repo_path: Path, marker: Path, kind: str) -> list[str]:
        match kind:
            case "turborepo":
                return self._turborepo(repo_path)
            case "pnpm":
                return self._pnpm(marker)
            case "lerna":
                return self._lerna(repo_path, marker)
            case "nx":
                return self._nx(repo_path, marker)
            case "rush":
                return self._rush(marker)
        return []

    def _turborepo(self, repo_path: Path) -> list[str]:
        # turbo.json only defines the task pipeline, workspaces live elsewhere
        pnpm = repo_path / "pnpm-workspace.yaml"
        if pnpm.exists():
            return self._pnpm(pnpm)
        package = self._json(repo_path / "package.json")
        if "workspaces" in package:
            return _workspace_globs(package["workspaces"])
        return ["apps/*", "packages/*"]

    def _pnpm(self, marker: Path) -> list[str]:
        data = read_yaml(marker, self.max_bytes)
        if not isinstance(data, dict):
            return []
        return [str(p) for p in data.get("packages") or []]

    def _lerna(self, repo_path: Path, marker: Path) -> list[str]:
        config = self._json(marker)
        if config.get("useWorkspaces"):
            package = self._json(repo_path / "package.json")
            if "workspaces" in package:
                return _workspace_globs(package["workspaces"])
        return [str(p) for p in config.get("packages", ["packages/*"])]

    def _nx(self, repo_path: Path, marker: Path) -> list[str]:
        for source in (marker, repo_path / "workspace.json"):
            projects = self._json(source).get("projects")
            if isinstance(projects, list) and projects:
                return [str(p) for p in projects]
            if isinstance(projects, dict) and projects:
                paths = []
                for name, project in projects.items():
                    if isinstance(project, str):
                        paths.append(project)
                    elif isinstance(project, dict):
                        paths.append(project.get("root", name))
                return paths
        return ["apps/*", "libs/*", "packages/*"]

    def _rush(self, marker: Path) -> list[str]:
        projects = self._json(marker).get("projects") or []
        return [p["projectFolder"] for p in projects if isinstance(p, dict) and "projectFolder" in p]

    def _cargo_workspace(self, repo_path: Path) -> MonorepoInfo:
        data = read_toml(repo_path / "Cargo.toml", self.max_bytes) or {}
        members = data.get("workspace", {}).get("members") or []
        return self._build(repo_path, "cargo-workspace", [str(m) for m in members])

    def _go_workspace(self, repo_path: Path) -> MonorepoInfo:
        content = read_text(repo_path / "go.work", self.max_bytes)
        if content is None:
            return MonorepoInfo.not_monorepo()
        dirs = re.findall(r"^\s*use\s+([^\s(]+)\s*$", content, re.MULTILINE)
        for block in re.findall(r"use\s*\((.*?)\)", content, re.DOTALL):
            dirs.extend(line.strip() for line in block.splitlines() if line.strip())
        dirs = [d for d in dirs if not d.startswith("//") and d != "."]
        return self._build(repo_path, "go-workspace", dirs)

    def _simple(self, repo_path: Path) -> MonorepoInfo:
        """Two or more top-level directories that each hold an app marker."""
        root = repo_path.resolve()
        app_dirs = []
        for entry in sorted(repo_path.iterdir()):
            if not entry.is_dir() or entry.name.startswith(".") or entry.name in SKIP_DIRS:
                continue
            if entry.is_symlink() or not entry.resolve().is_relative_to(root):
                logger.debug("Skipping %s: resolves outside the repository", entry.name)
                continue
            if any((entry / marker).exists() for marker in APP_MARKERS):
                app_dirs.append(entry.name)

        if len(app_dirs) < 2:
            return MonorepoInfo.not_monorepo()
        return MonorepoInfo(is_monorepo=True, type="simple", workspace_paths=app_dirs)

    def _build(self, repo_path: Path, kind: str, patterns: list[str]) -> MonorepoInfo:
        paths = expand_workspace_patterns(repo_path, patterns)
        if not paths:
            return MonorepoInfo.not_monorepo()
        return MonorepoInfo(is_monorepo=True, type=kind, workspace_paths=paths)


def _workspace_globs(workspaces: Any) -> list[str]:
    """Normalise npm/yarn workspaces: a string, a list, or {packages: [...]}."""
    if isinstance(workspaces, str):
        return [workspaces]
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages") or []
    if isinstance(workspaces, list):
        return [str(w) for w in workspaces]
    return []


def expand_workspace_patterns(repo_path: Path, patterns: list[str]) -> list[str]:
    """Resolve workspace globs to sorted, unique directories relative to repo_path."""
    root = repo_path.resolve()
    found: dict[str, None] = {}
    for pattern in patterns:
        pattern = pattern.strip().strip("/")
        if pattern.startswith("./"):
            pattern = pattern[2:]
        if not pattern or pattern.startswith("!") or pattern == ".":
            continue
        if any(ch in pattern for ch in "*?["):
            candidates = sorted(root.glob(pattern))
        else:
            candidates = [root / pattern]
        for candidate in candidates:
            if not candidate.is_dir():
                continue
            if any(part in VENDOR_DIRS for part in candidate.relative_to(root).parts):
                continue
            resolved = candidate.resolve()
            if resolved == root or not resolved.is_relative_to(root):
                continue
            found[resolved.relative_to(root).as_posix()] = None
    return sorted(found)
