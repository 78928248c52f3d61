"""Pydantic models for repository analysis.

Every model here is frozen. Updates go through ``model_copy(update=...)`` so a
detected fact is never mutated after it is produced.
"""

from collections.abc import Iterable
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BuildPack(StrEnum):
    """Strategy used to turn source into a runnable artifact."""

    NIXPACKS = "nixpacks"
    DOCKERFILE = "dockerfile"
    DOCKERCOMPOSE = "dockercompose"
    STATIC = "static"


class AppType(StrEnum):
    """Role an application plays."""

    BACKEND = "backend"
    FRONTEND = "frontend"
    FULLSTACK = "fullstack"
    UNKNOWN = "unknown"


class EnvCategory(StrEnum):
    """Category of a detected environment variable."""

    DATABASE = "database"
    CACHE = "cache"
    SECRET = "secret"
    OTHER = "other"


# Conventional connection-string variable per database type
ENV_VAR_NAMES: dict[str, str] = {
    "postgresql": "DATABASE_URL",
    "mysql": "DATABASE_URL",
    "mariadb": "DATABASE_URL",
    "mongodb": "MONGODB_URL",
    "redis": "REDIS_URL",
    "clickhouse": "CLICKHOUSE_URL",
}


def default_env_var_name(db_type: str) -> str:
    """Return the conventional env var for a database type, e.g. DATABASE_URL."""
    if db_type in ENV_VAR_NAMES:
        return ENV_VAR_NAMES[db_type]
    return f"{db_type.upper().replace('-', '_')}_URL"


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    """De-duplicate while keeping first-seen order."""
    return tuple(dict.fromkeys(names))


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MonorepoInfo(_Frozen):
    """Layout of a checkout: single app or one of several monorepo conventions."""

    is_monorepo: bool = False
    type: str | None = None
    workspace_paths: tuple[str, ...] = ()

    @classmethod
    def not_monorepo(cls) -> "MonorepoInfo":
        return cls(is_monorepo=False, type=None, workspace_paths=())


class DetectedHealthCheck(_Frozen):
    """Health check declared in a Dockerfile."""

    path: str | None = None
    command: str | None = None
    method: str = "GET"
    interval_seconds: int = 0
    timeout_seconds: int = 0
    retries: int = 0
    start_period_seconds: int = 0


class DockerfileInfo(_Frozen):
    """Facts extracted from a Dockerfile."""

    base_image: str
    runtime: str | None = None
    runtime_version: str | None = None
    exposed_ports: list[int] = []
    build_args: list[str] = []
    env_vars: list[str] = []
    health_check: DetectedHealthCheck | None = None


class DockerComposeService(_Frozen):
    """A service declared in a compose file."""

    name: str
    image: str | None = None
    has_build: bool = False
    ports: list[int] = []
    environment: list[str] = []
    depends_on: list[str] = []


class CIConfig(_Frozen):
    """Commands and runtime versions found in CI configuration."""

    install_command: str | None = None
    build_command: str | None = None
    test_command: str | None = None
    start_command: str | None = None
    node_version: str | None = None
    python_version: str | None = None
    go_version: str | None = None
    detected_from: str


class DetectedApp(_Frozen):
    """One logical application found in the checkout."""

    name: str
    path: str = Field(description="Relative to the checkout root, '.' for the root itself")
    framework: str
    build_pack: BuildPack
    default_port: int
    build_command: str | None = None
    publish_directory: str | None = None
    type: AppType = AppType.UNKNOWN
    install_command: str | None = None
    start_command: str | None = None
    health_check: DetectedHealthCheck | None = None
    dockerfile: DockerfileInfo | None = None


class DetectedDatabase(_Frozen):
    """A database an application needs."""

    type: str
    name: str
    env_var_name: str = ""
    consumers: tuple[str, ...] = ()
    detected_via: str | None = None
    port: int | None = None
    version: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_env_var_name(cls, data):
        if isinstance(data, dict) and not data.get("env_var_name") and data.get("type"):
            data = {**data, "env_var_name": default_env_var_name(data["type"])}
        return data

    @field_validator("consumers")
    @classmethod
    def _unique_consumers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(value)

    @property
    def key(self) -> tuple[str, str]:
        return (self.type, self.name)

    def with_merged_consumers(self, other: "DetectedDatabase | Iterable[str]") -> "DetectedDatabase":
        """Return a copy whose consumers are the union of both consumer lists."""
        extra = other.consumers if isinstance(other, DetectedDatabase) else other
        return self.model_copy(update={"consumers": _unique((*self.consumers, *extra))})


class DetectedService(_Frozen):
    """A non-database external dependency (object storage, mail, payments)."""

    type: str
    description: str
    required_env_vars: list[str] = []
    consumers: tuple[str, ...] = ()

    @field_validator("consumers")
    @classmethod
    def _unique_consumers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(value)

    def with_merged_consumers(self, other: "DetectedService | Iterable[str]") -> "DetectedService":
        """Return a copy whose consumers are the union of both consumer lists."""
        extra = other.consumers if isinstance(other, DetectedService) else other
        return self.model_copy(update={"consumers": _unique((*self.consumers, *extra))})


class DetectedEnvVariable(_Frozen):
    """An environment variable an application reads."""

    key: str
    default_value: str | None = None
    is_required: bool = True
    category: EnvCategory = EnvCategory.OTHER
    for_app: str


class DetectedPersistentVolume(_Frozen):
    """Storage an application needs to keep across redeploys (e.g. SQLite files)."""

    name: str
    mount_path: str
    reason: str
    for_app: str
    env_var_name: str | None = None
    env_var_value: str | None = None


class AppDependency(_Frozen):
    """How one app depends on the other apps of the same checkout."""

    app_name: str
    depends_on: list[str] = []
    internal_urls: dict[str, str] = Field(
        default_factory=dict, description="Env var name -> target app name"
    )
    deploy_order: int = 0


class DependencyAnalysisResult(_Frozen):
    """Everything DependencyAnalyzer found for one app."""

    databases: list[DetectedDatabase] = []
    services: list[DetectedService] = []
    env_variables: list[DetectedEnvVariable] = []
    persistent_volumes: list[DetectedPersistentVolume] = []
    compose_services: list[DockerComposeService] = []
    dockerfile: DockerfileInfo | None = None


class AnalysisResult(_Frozen):
    """Combined result of one analysis pass over a checkout."""

    monorepo: MonorepoInfo
    applications: list[DetectedApp] = []
    databases: list[DetectedDatabase] = []
    services: list[DetectedService] = []
    env_variables: list[DetectedEnvVariable] = []
    persistent_volumes: list[DetectedPersistentVolume] = []
    app_dependencies: list[AppDependency] = []
    compose_services: list[DockerComposeService] = []
    ci_config: CIConfig | None = None
