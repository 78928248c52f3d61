"""Application detection per directory."""

import logging
import re
from pathlib import Path

from infrascout.analysis.compose import find_compose_file
from infrascout.analysis.dockerfile import DEFAULT_PORT, parse_dockerfile
from infrascout.analysis.manifests import manifest_dependencies, read_text
from infrascout.analysis.rules import FRAMEWORK_RULES, FrameworkRule
from infrascout.models.analysis import AppType, BuildPack, DetectedApp, MonorepoInfo
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AppDetector:
    """Match directories against an ordered framework rule table.

    The first rule that matches decides framework, build pack, port and role.
    Directories no rule matches fall back to Dockerfile, compose file and
    plain index.html, in that order.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        rules: tuple[FrameworkRule, ...] = FRAMEWORK_RULES,
    ) -> None:
        self.max_bytes = (settings or get_settings()).max_manifest_bytes
        self.rules = rules

    def detect_single_app(self, repo_path: Path) -> list[DetectedApp]:
        """Exactly one app rooted at '.'; unknown frameworks still yield one."""
        app = self._detect_in_directory(repo_path, repo_path)
        if app is None:
            logger.info("No framework recognised in %s, using defaults", repo_path.name)
            app = DetectedApp(
                name=_app_name(repo_path),
                path=".",
                framework="unknown",
                build_pack=BuildPack.NIXPACKS,
                default_port=DEFAULT_PORT,
                type=AppType.UNKNOWN,
            )
        return [app]

    def detect_from_monorepo(self, repo_path: Path, monorepo: MonorepoInfo) -> list[DetectedApp]:
        root = repo_path.resolve()
        apps = []
        for workspace in monorepo.workspace_paths:
            if not (repo_path / workspace).resolve().is_relative_to(root):
                logger.warning("Skipping workspace %s: resolves outside the repository", workspace)
                continue
            app = self._detect_in_directory(repo_path / workspace, repo_path)
            if app is None:
                logger.debug("Skipping workspace %s: no app detected", workspace)
                continue
            apps.append(app)
        return apps

    def _detect_in_directory(self, app_dir: Path, repo_path: Path) -> DetectedApp | None:
        relative = "." if app_dir == repo_path else app_dir.relative_to(repo_path).as_posix()
        base = {"name": _app_name(app_dir), "path": relative}

        deps_cache: dict[str, list[str] | None] = {}
        for rule in self.rules:
            if self._matches(app_dir, rule, deps_cache):
                logger.debug("%s matched framework %s", relative, rule.framework)
                return DetectedApp(
                    **base,
                    framework=rule.framework,
                    build_pack=rule.build_pack,
                    default_port=rule.default_port,
                    build_command=rule.build_command,
                    publish_directory=rule.publish_directory,
                    type=rule.type,
                )

        dockerfile = app_dir / "Dockerfile"
        if dockerfile.is_file():
            info = parse_dockerfile(dockerfile, self.max_bytes)
            port = info.exposed_ports[0] if info and info.exposed_ports else DEFAULT_PORT
            return DetectedApp(
                **base,
                framework="dockerfile",
                build_pack=BuildPack.DOCKERFILE,
                default_port=port,
                type=AppType.UNKNOWN,
                dockerfile=info,
            )

        if find_compose_file(app_dir) is not None:
            return DetectedApp(
                **base,
                framework="docker-compose",
                build_pack=BuildPack.DOCKERCOMPOSE,
                default_port=80,
                type=AppType.UNKNOWN,
            )

        if (app_dir / "index.html").is_file():
            return DetectedApp(
                **base,
                framework="static",
                build_pack=BuildPack.STATIC,
                default_port=80,
                type=AppType.FRONTEND,
                publish_directory="/",
            )
        return None

    def _matches(
        self, app_dir: Path, rule: FrameworkRule, deps_cache: dict[str, list[str] | None]
    ) -> bool:
        manifest, pattern = rule.manifest, rule.pattern
        if not (app_dir / manifest).is_file():
            if rule.alt_manifest is None or not (app_dir / rule.alt_manifest).is_file():
                return False
            manifest, pattern = rule.alt_manifest, rule.alt_pattern or rule.pattern

        if not rule.deps:
            return True

        if manifest not in deps_cache:
            deps_cache[manifest] = manifest_dependencies(app_dir, manifest, self.max_bytes)
        deps = deps_cache[manifest]
        if deps is None:
            return False

        if any(dep in deps for dep in rule.exclude_deps):
            return False
        if rule.match_mode == "all":
            return all(dep in deps for dep in rule.deps)
        if any(dep in deps for dep in rule.deps):
            return True

        if pattern is None:
            return False
        content = read_text(app_dir / manifest, self.max_bytes)
        return content is not None and re.search(pattern, content) is not None


def _app_name(app_dir: Path) -> str:
    return app_dir.resolve().name
