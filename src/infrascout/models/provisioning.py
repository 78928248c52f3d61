"""Pydantic models for provisioning inputs and created records."""

from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, Field


def _new_uuid() -> str:
    return str(uuid4())


class EngineFamily(StrEnum):
    """Storage family of a database engine; decides the resource name suffix."""

    RELATIONAL = "relational"
    DOCUMENT = "document"
    KEY_VALUE = "key_value"
    COLUMNAR = "columnar"


class Environment(BaseModel):
    """Deployment environment the resources are created in."""

    id: int
    name: str = "production"
    project_name: str | None = None


class Destination(BaseModel):
    """Resolved runtime destination (a container host network)."""

    id: int
    uuid: str
    server_name: str


class GitConfig(BaseModel):
    """Git source every created application builds from."""

    git_repository: str
    git_branch: str = "main"
    private_key_id: int | None = None
    source_id: int | None = None
    source_type: str | None = None


class AppOverrides(BaseModel):
    """User-supplied per-app overrides applied at provisioning time."""

    base_directory: str | None = None
    env_vars: dict[str, str] = Field(default_factory=dict)


class DatabaseRequest(BaseModel):
    """Arguments handed to an engine-specific creation call."""

    type: str
    name: str
    description: str
    environment_id: int
    destination_uuid: str


class DatabaseRecord(BaseModel):
    """A created database instance."""

    id: int | None = None
    uuid: str = Field(default_factory=_new_uuid)
    type: str
    name: str
    description: str
    environment_id: int
    destination_uuid: str


class ApplicationRecord(BaseModel):
    """A created application."""

    id: int | None = None
    uuid: str = Field(default_factory=_new_uuid)
    name: str
    environment_id: int
    destination_id: int

    git_repository: str
    git_branch: str = "main"
    private_key_id: int | None = None
    source_id: int | None = None
    source_type: str | None = None

    build_pack: str
    base_directory: str = ""
    ports_exposes: str = "80"
    install_command: str | None = None
    build_command: str | None = None
    start_command: str | None = None
    publish_directory: str | None = None
    static_image: str | None = None

    health_check_enabled: bool = False
    health_check_path: str | None = None
    health_check_method: str = "GET"
    health_check_interval: int = 10
    health_check_timeout: int = 5
    health_check_retries: int = 10
    health_check_start_period: int = 15

    monorepo_group_id: str | None = None
    fqdn: str | None = None


class ResourceLink(BaseModel):
    """Wiring that injects a database's connection info into an application."""

    id: int | None = None
    environment_id: int
    source_app_id: int
    target_type: str
    target_id: int
    auto_inject: bool = True
    inject_as: str | None = None
    use_external_url: bool = False


class EnvVariableRecord(BaseModel):
    """An environment variable set on an application."""

    application_id: int
    key: str
    value: str
    is_buildtime: bool = False


class PersistentStorageRecord(BaseModel):
    """A persistent volume mounted into an application."""

    application_id: int
    name: str
    mount_path: str


class ProvisioningResult(BaseModel):
    """What one provisioning call created."""

    applications: dict[str, ApplicationRecord] = Field(default_factory=dict)
    databases: dict[str, DatabaseRecord] = Field(default_factory=dict)
    monorepo_group_id: str | None = None
