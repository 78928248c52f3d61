"""Atomic creation of infrastructure from an analysis result."""

from infrascout.provisioning.backend import DatabaseCreator, ProvisioningBackend, UnitOfWork
from infrascout.provisioning.engines import EngineRegistry, default_registry
from infrascout.provisioning.memory import InMemoryBackend
from infrascout.provisioning.provisioner import InfrastructureProvisioner

__all__ = [
    "DatabaseCreator",
    "EngineRegistry",
    "InMemoryBackend",
    "InfrastructureProvisioner",
    "ProvisioningBackend",
    "UnitOfWork",
    "default_registry",
]
