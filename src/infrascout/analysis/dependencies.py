"""Per-app detection of databases, services, env variables and storage needs."""

import logging
import re
from pathlib import Path

from infrascout.analysis.compose import databases_from_compose, find_compose_file, parse_compose
from infrascout.analysis.dockerfile import parse_dockerfile
from infrascout.analysis.env_example import find_env_example, parse_env_example
from infrascout.analysis.manifests import extract_dependencies, read_text
from infrascout.analysis.rules import (
    DATABASE_RULES,
    ENV_CATEGORY_RULES,
    IMAGE_RULES,
    SERVICE_RULES,
    SQLITE_DEFAULT,
    SQLITE_FRAMEWORK_DEFAULTS,
    SQLITE_PACKAGES,
    DatabaseRule,
    EnvCategoryRule,
    ImageRule,
    ServiceRule,
    categorize_env_var,
)
from infrascout.models.analysis import (
    DependencyAnalysisResult,
    DetectedApp,
    DetectedDatabase,
    DetectedEnvVariable,
    DetectedPersistentVolume,
    DetectedService,
    DockerfileInfo,
)
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Source globs scanned for env lookups when no example env file exists
SOURCE_SCANS: tuple[tuple[tuple[str, ...], tuple[re.Pattern[str], ...]], ...] = (
    (
        ("*.py", "src/*.py", "app/*.py", "config/*.py"),
        (
            re.compile(r"""os\.(?:getenv|environ\.get)\s*\(\s*["']([A-Z_][A-Z0-9_]*)["']"""),
            re.compile(r"""os\.environ\s*\[\s*["']([A-Z_][A-Z0-9_]*)["']"""),
        ),
    ),
    (
        ("*.js", "*.ts", "*.mjs", "*.mts", "src/*.js", "src/*.ts", "config/*.js", "config/*.ts"),
        (re.compile(r"process\.env\.([A-Z_][A-Z0-9_]*)"),),
    ),
    (
        ("*.go", "cmd/*.go", "internal/config/*.go"),
        (re.compile(r"""os\.Getenv\s*\(\s*"([A-Z_][A-Z0-9_]*)\""""),),
    ),
    (
        ("*.rb", "config/*.rb"),
        (re.compile(r"""ENV(?:\.fetch\s*\(\s*|\s*\[\s*)["']([A-Z_][A-Z0-9_]*)["']"""),),
    ),
)

# Process-level variables nobody configures per deployment
IGNORED_ENV_VARS = frozenset({
    "PATH",
    "HOME",
    "USER",
    "SHELL",
    "PWD",
    "TERM",
    "LANG",
    "LC_ALL",
    "TZ",
    "NODE_ENV",
    "PYTHONPATH",
    "PYTHONUNBUFFERED",
    "PYTHONDONTWRITEBYTECODE",
    "DEBIAN_FRONTEND",
})

PRISMA_SCHEMAS = ("prisma/schema.prisma", "schema.prisma")


class DependencyAnalyzer:
    """Scan one app directory for what it needs at runtime."""

    def __init__(
        self,
        settings: Settings | None = None,
        database_rules: tuple[DatabaseRule, ...] = DATABASE_RULES,
        service_rules: tuple[ServiceRule, ...] = SERVICE_RULES,
        env_category_rules: tuple[EnvCategoryRule, ...] = ENV_CATEGORY_RULES,
        image_rules: tuple[ImageRule, ...] = IMAGE_RULES,
    ) -> None:
        self.max_bytes = (settings or get_settings()).max_manifest_bytes
        self.database_rules = database_rules
        self.service_rules = service_rules
        self.env_category_rules = env_category_rules
        self.image_rules = image_rules

    def analyze(self, repo_path: Path, app: DetectedApp) -> DependencyAnalysisResult:
        """Analyze one app.

        Raises:
            ParseError: If a compose file, Dockerfile, example env file or
                manifest in the app directory is malformed.
        """
        app_dir = repo_path if app.path == "." else repo_path / app.path
        dependencies = extract_dependencies(app_dir, self.max_bytes)

        compose_services = []
        compose_file = find_compose_file(app_dir)
        if compose_file is not None:
            compose_services = parse_compose(compose_file, self.max_bytes) or []

        dockerfile = app.dockerfile or parse_dockerfile(app_dir / "Dockerfile", self.max_bytes)

        databases = self._merge_databases(
            databases_from_compose(compose_services, app.name, self.image_rules),
            self._databases_from_manifests(app_dir, dependencies, app),
        )
        env_variables = self._env_variables(app_dir, app, dockerfile)
        services = self._services(dependencies, env_variables, app)
        volumes = self._sqlite_volumes(app_dir, dependencies, app)

        return DependencyAnalysisResult(
            databases=databases,
            services=services,
            env_variables=env_variables,
            persistent_volumes=volumes,
            compose_services=compose_services,
            dockerfile=dockerfile,
        )

    def _databases_from_manifests(
        self, app_dir: Path, dependencies: dict[str, list[str]], app: DetectedApp
    ) -> list[DetectedDatabase]:
        found = []
        for rule in self.database_rules:
            matched = _first_match(dependencies, rule.packages)
            if matched is None:
                continue
            ecosystem, package = matched
            # A Prisma client on a SQLite datasource needs a volume, not a server
            if package == "@prisma/client" and self._prisma_uses_sqlite(app_dir):
                continue
            found.append(
                DetectedDatabase(
                    type=rule.type,
                    name=rule.type,
                    consumers=[app.name],
                    detected_via=f"{ecosystem}:{package}",
                )
            )
        return found

    @staticmethod
    def _merge_databases(*sources: list[DetectedDatabase]) -> list[DetectedDatabase]:
        """One database per type; earlier sources win."""
        merged: dict[str, DetectedDatabase] = {}
        for source in sources:
            for database in source:
                merged.setdefault(database.type, database)
        return list(merged.values())

    def _services(
        self,
        dependencies: dict[str, list[str]],
        env_variables: list[DetectedEnvVariable],
        app: DetectedApp,
    ) -> list[DetectedService]:
        keys = [var.key.upper() for var in env_variables]
        found = []
        for rule in self.service_rules:
            by_package = _first_match(dependencies, rule.packages) is not None
            by_env = any(key.startswith(rule.env_prefixes) for key in keys)
            if by_package or by_env:
                found.append(
                    DetectedService(
                        type=rule.type,
                        description=rule.description,
                        required_env_vars=list(rule.env_vars),
                        consumers=[app.name],
                    )
                )
        return found

    def _env_variables(
        self, app_dir: Path, app: DetectedApp, dockerfile: DockerfileInfo | None
    ) -> list[DetectedEnvVariable]:
        env_file = find_env_example(app_dir)
        if env_file is not None:
            entries = parse_env_example(env_file, self.max_bytes)
            if entries is not None:
                return [
                    self._variable(e.key, app, default=e.value, required=e.is_required)
                    for e in entries
                ]

        keys = self._keys_from_source(app_dir)
        if not keys and dockerfile is not None:
            keys = [k for k in [*dockerfile.env_vars, *dockerfile.build_args] if k not in IGNORED_ENV_VARS]
            keys = list(dict.fromkeys(keys))
        return [self._variable(key, app) for key in keys]

    def _variable(
        self, key: str, app: DetectedApp, default: str | None = None, required: bool = True
    ) -> DetectedEnvVariable:
        return DetectedEnvVariable(
            key=key,
            default_value=default,
            is_required=required,
            category=categorize_env_var(key, self.env_category_rules),
            for_app=app.name,
        )

    def _keys_from_source(self, app_dir: Path) -> list[str]:
        keys: dict[str, None] = {}
        for globs, patterns in SOURCE_SCANS:
            files = sorted({f for pattern in globs for f in app_dir.glob(pattern) if f.is_file()})
            for source in files:
                content = read_text(source, self.max_bytes)
                if content is None:
                    continue
                for regex in patterns:
                    for key in regex.findall(content):
                        if key not in IGNORED_ENV_VARS:
                            keys[key] = None
        return list(keys)

    def _sqlite_volumes(
        self, app_dir: Path, dependencies: dict[str, list[str]], app: DetectedApp
    ) -> list[DetectedPersistentVolume]:
        matched = _first_match(dependencies, SQLITE_PACKAGES)
        if matched is not None:
            defaults = SQLITE_FRAMEWORK_DEFAULTS.get(app.framework, SQLITE_DEFAULT)
            reason = f"SQLite database detected ({matched[1]})"
        elif self._prisma_uses_sqlite(app_dir):
            defaults = SQLITE_DEFAULT
            reason = "SQLite database detected (prisma:sqlite)"
        else:
            return []

        return [
            DetectedPersistentVolume(
                name="sqlite-data",
                mount_path=defaults.mount_path,
                reason=reason,
                for_app=app.name,
                env_var_name=defaults.env_var_name,
                env_var_value=defaults.env_var_value,
            )
        ]

    def _prisma_uses_sqlite(self, app_dir: Path) -> bool:
        for schema in PRISMA_SCHEMAS:
            content = read_text(app_dir / schema, self.max_bytes)
            if content and re.search(r'provider\s*=\s*"sqlite"', content, re.IGNORECASE):
                return True
        return False


def _first_match(
    dependencies: dict[str, list[str]], packages: dict[str, tuple[str, ...]]
) -> tuple[str, str] | None:
    """First (ecosystem, package) from packages that dependencies declare."""
    for ecosystem, declared in dependencies.items():
        for package in packages.get(ecosystem, ()):
            if package in declared:
                return ecosystem, package
    return None
