"""Pydantic models for infrascout."""

from infrascout.models.analysis import (
    AnalysisResult,
    AppDependency,
    AppType,
    BuildPack,
    CIConfig,
    DependencyAnalysisResult,
    DetectedApp,
    DetectedDatabase,
    DetectedEnvVariable,
    DetectedHealthCheck,
    DetectedPersistentVolume,
    DetectedService,
    DockerComposeService,
    DockerfileInfo,
    EnvCategory,
    MonorepoInfo,
    default_env_var_name,
)
from infrascout.models.provisioning import (
    ApplicationRecord,
    AppOverrides,
    DatabaseRecord,
    DatabaseRequest,
    Destination,
    EngineFamily,
    Environment,
    EnvVariableRecord,
    GitConfig,
    PersistentStorageRecord,
    ProvisioningResult,
    ResourceLink,
)

__all__ = [
    "AnalysisResult",
    "AppDependency",
    "AppOverrides",
    "AppType",
    "ApplicationRecord",
    "BuildPack",
    "CIConfig",
    "DatabaseRecord",
    "DatabaseRequest",
    "DependencyAnalysisResult",
    "Destination",
    "DetectedApp",
    "DetectedDatabase",
    "DetectedEnvVariable",
    "DetectedHealthCheck",
    "DetectedPersistentVolume",
    "DetectedService",
    "DockerComposeService",
    "DockerfileInfo",
    "EngineFamily",
    "EnvCategory",
    "EnvVariableRecord",
    "Environment",
    "GitConfig",
    "MonorepoInfo",
    "PersistentStorageRecord",
    "ProvisioningResult",
    "ResourceLink",
    "default_env_var_name",
]
