"""Repository analysis orchestration."""

import logging
import re
from pathlib import Path

from infrascout.analysis.apps import AppDetector
from infrascout.analysis.ci_config import CIConfigDetector
from infrascout.analysis.dependencies import DependencyAnalyzer
from infrascout.analysis.monorepo import MonorepoDetector
from infrascout.analysis.path_guard import PathGuard
from infrascout.exceptions import RepositoryAnalysisError
from infrascout.models.analysis import (
    AnalysisResult,
    AppDependency,
    AppType,
    CIConfig,
    DependencyAnalysisResult,
    DetectedApp,
    DetectedDatabase,
    DetectedEnvVariable,
    DetectedService,
)
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Backends first so their addresses exist when clients are wired up
DEPLOY_ORDER: dict[AppType, int] = {
    AppType.BACKEND: 0,
    AppType.FULLSTACK: 1,
    AppType.FRONTEND: 2,
    AppType.UNKNOWN: 2,
}


class RepositoryAnalyzer:
    """Run the full analysis pipeline over one checkout."""

    def __init__(
        self,
        settings: Settings | None = None,
        path_guard: PathGuard | None = None,
        monorepo_detector: MonorepoDetector | None = None,
        app_detector: AppDetector | None = None,
        dependency_analyzer: DependencyAnalyzer | None = None,
        ci_detector: CIConfigDetector | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.path_guard = path_guard or PathGuard(settings)
        self.monorepo_detector = monorepo_detector or MonorepoDetector(settings)
        self.app_detector = app_detector or AppDetector(settings)
        self.dependency_analyzer = dependency_analyzer or DependencyAnalyzer(settings)
        self.ci_detector = ci_detector or CIConfigDetector(settings)

    def analyze(self, repo_path: Path | str) -> AnalysisResult:
        """Analyze a checkout.

        Steps run strictly in order: path validation, monorepo detection, app
        detection, per-app dependency analysis, database and service
        de-duplication, app-to-app dependency inference.

        Args:
            repo_path: Checkout directory below the scratch root.

        Returns:
            The complete analysis. There is no partial result.

        Raises:
            RepositoryAnalysisError: Wrapping the first failure.
        """
        repo_path = Path(repo_path)
        repository = repo_path.name
        logger.info("Analyzing %s", repository)

        try:
            self.path_guard.validate(repo_path)
            root = repo_path.resolve()

            monorepo = self.monorepo_detector.detect(root)
            if monorepo.is_monorepo:
                logger.info(
                    "Detected %s monorepo with %d workspaces",
                    monorepo.type,
                    len(monorepo.workspace_paths),
                )
                apps = self.app_detector.detect_from_monorepo(root, monorepo)
            else:
                apps = self.app_detector.detect_single_app(root)

            ci_config = self.ci_detector.detect(root)

            enriched: list[DetectedApp] = []
            results: list[DependencyAnalysisResult] = []
            for app in apps:
                result = self.dependency_analyzer.analyze(root, app)
                app_ci = ci_config if app.path == "." else self.ci_detector.detect(root / app.path)
                enriched.append(_enrich(app, result, app_ci))
                results.append(result)
                logger.debug(
                    "%s: %d databases, %d services, %d env vars",
                    app.name,
                    len(result.databases),
                    len(result.services),
                    len(result.env_variables),
                )

            env_variables = [v for r in results for v in r.env_variables]
            analysis = AnalysisResult(
                monorepo=monorepo,
                applications=enriched,
                databases=merge_databases([d for r in results for d in r.databases]),
                services=merge_services([s for r in results for s in r.services]),
                env_variables=env_variables,
                persistent_volumes=[p for r in results for p in r.persistent_volumes],
                app_dependencies=infer_app_dependencies(enriched, env_variables),
                compose_services=[c for r in results for c in r.compose_services],
                ci_config=ci_config,
            )
        except Exception as e:
            logger.exception("Analysis of %s failed", repository)
            raise RepositoryAnalysisError(repository, str(e)) from e

        logger.info(
            "Analysis of %s complete: %d apps, %d databases",
            repository,
            len(analysis.applications),
            len(analysis.databases),
        )
        return analysis


def _enrich(app: DetectedApp, result: DependencyAnalysisResult, ci: CIConfig | None) -> DetectedApp:
    """Fill commands from CI and health check plus Dockerfile facts from the scan."""
    update: dict = {}
    if ci is not None:
        for field in ("install_command", "build_command", "start_command"):
            if getattr(app, field) is None and getattr(ci, field) is not None:
                update[field] = getattr(ci, field)
    if result.dockerfile is not None:
        update["dockerfile"] = result.dockerfile
        if app.health_check is None and result.dockerfile.health_check is not None:
            update["health_check"] = result.dockerfile.health_check
    return app.model_copy(update=update) if update else app


def merge_databases(databases: list[DetectedDatabase]) -> list[DetectedDatabase]:
    """Collapse entries sharing (type, name), unioning their consumers."""
    merged: dict[tuple[str, str], DetectedDatabase] = {}
    for database in databases:
        existing = merged.get(database.key)
        merged[database.key] = existing.with_merged_consumers(database) if existing else database
    return list(merged.values())


def merge_services(services: list[DetectedService]) -> list[DetectedService]:
    merged: dict[str, DetectedService] = {}
    for service in services:
        existing = merged.get(service.type)
        merged[service.type] = existing.with_merged_consumers(service) if existing else service
    return list(merged.values())


def _tokens(value: str) -> list[str]:
    return [t for t in re.split(r"[^a-z0-9]+", value.lower()) if t]


def _names_app(key: str, default: str | None, app_name: str) -> bool:
    """True when an env key's words or its URL host name the given app."""
    name = _tokens(app_name)
    words = _tokens(key)
    if name and any(words[i : i + len(name)] == name for i in range(len(words))):
        return True
    if default:
        host = re.match(r"^[a-z][a-z0-9+.-]*://([^/:@\s]+)", default.strip().lower())
        return host is not None and host.group(1) == app_name.lower()
    return False


def infer_app_dependencies(
    apps: list[DetectedApp], env_variables: list[DetectedEnvVariable]
) -> list[AppDependency]:
    """Link apps whose *_URL variables name another app of the same checkout."""
    dependencies = []
    for app in apps:
        internal_urls: dict[str, str] = {}
        for var in env_variables:
            if var.for_app != app.name or not var.key.upper().endswith("_URL"):
                continue
            for target in apps:
                if target.name != app.name and _names_app(var.key, var.default_value, target.name):
                    internal_urls[var.key] = target.name
                    break
        dependencies.append(
            AppDependency(
                app_name=app.name,
                depends_on=list(dict.fromkeys(internal_urls.values())),
                internal_urls=internal_urls,
                deploy_order=DEPLOY_ORDER[app.type],
            )
        )
    return dependencies
