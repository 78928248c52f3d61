"""Collaborator interfaces the provisioner calls as black boxes."""

from collections.abc import Callable, Mapping
from typing import Protocol

from infrascout.models.provisioning import (
    ApplicationRecord,
    DatabaseRecord,
    DatabaseRequest,
    Destination,
    Environment,
    EnvVariableRecord,
    PersistentStorageRecord,
    ResourceLink,
)

# Engine-specific creation call: one per supported database type
DatabaseCreator = Callable[[DatabaseRequest], DatabaseRecord]


class UnitOfWork(Protocol):
    """Transaction boundary around one provisioning call.

    After rollback(), nothing written since begin() is visible.
    """

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class ProvisioningBackend(Protocol):
    """Persistence and addressing primitives.

    Every method must be safe to call inside an open unit of work. Saved
    records come back with their id assigned.
    """

    def resolve_destination(self, destination_id: int) -> Destination: ...

    def generate_address(self, app_name: str, environment: Environment) -> str: ...

    def save_application(self, application: ApplicationRecord) -> ApplicationRecord: ...

    def create_resource_link(self, link: ResourceLink) -> ResourceLink: ...

    def create_env_variable(self, variable: EnvVariableRecord) -> EnvVariableRecord:
        """Set a variable; an existing key on the same application is replaced."""
        ...

    def create_persistent_storage(self, storage: PersistentStorageRecord) -> PersistentStorageRecord: ...

    def database_creators(self) -> Mapping[str, DatabaseCreator]:
        """Creation call per database type this backend can provision."""
        ...
