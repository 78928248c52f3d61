"""In-memory backend used for dry-run planning and tests."""

import copy
import logging
import re
from collections.abc import Mapping
from functools import partial

from infrascout.analysis.rules import ENGINE_FAMILIES
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
from infrascout.provisioning.backend import DatabaseCreator
from infrascout.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class InMemoryBackend:
    """Provisioning backend and unit of work backed by plain dicts.

    begin() snapshots every store and rollback() restores the snapshot, so a
    failed provisioning call leaves no records behind. Nested transactions
    are not supported.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        destinations: Mapping[int, Destination] | None = None,
    ) -> None:
        self.base_domain = (settings or get_settings()).base_domain
        self.destinations = dict(destinations or {})
        self.applications: dict[int, ApplicationRecord] = {}
        self.databases: dict[int, DatabaseRecord] = {}
        self.resource_links: dict[int, ResourceLink] = {}
        self.env_variables: dict[tuple[int, str], EnvVariableRecord] = {}
        self.storages: list[PersistentStorageRecord] = []
        self._next_id = 1
        self._snapshot: dict | None = None

    # Unit of work

    def begin(self) -> None:
        if self._snapshot is not None:
            raise RuntimeError("Transaction already in progress")
        self._snapshot = copy.deepcopy(self._state())

    def commit(self) -> None:
        if self._snapshot is None:
            raise RuntimeError("No transaction in progress")
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is None:
            return
        for name, value in self._snapshot.items():
            setattr(self, name, value)
        self._snapshot = None
        logger.debug("Rolled back in-memory transaction")

    @property
    def in_transaction(self) -> bool:
        return self._snapshot is not None

    def _state(self) -> dict:
        return {
            "applications": self.applications,
            "databases": self.databases,
            "resource_links": self.resource_links,
            "env_variables": self.env_variables,
            "storages": self.storages,
            "_next_id": self._next_id,
        }

    def _allocate_id(self) -> int:
        allocated = self._next_id
        self._next_id += 1
        return allocated

    # Backend primitives

    def resolve_destination(self, destination_id: int) -> Destination:
        if destination_id not in self.destinations:
            self.destinations[destination_id] = Destination(
                id=destination_id, uuid=f"destination-{destination_id}", server_name="localhost"
            )
        return self.destinations[destination_id]

    def generate_address(self, app_name: str, environment: Environment) -> str:
        slug = re.sub(r"[^a-z0-9]+", "-", f"{app_name}-{environment.name}".lower()).strip("-")
        return f"https://{slug}.{self.base_domain}"

    def save_application(self, application: ApplicationRecord) -> ApplicationRecord:
        saved = application.model_copy(update={"id": self._allocate_id()})
        self.applications[saved.id] = saved
        return saved

    def create_resource_link(self, link: ResourceLink) -> ResourceLink:
        saved = link.model_copy(update={"id": self._allocate_id()})
        self.resource_links[saved.id] = saved
        return saved

    def create_env_variable(self, variable: EnvVariableRecord) -> EnvVariableRecord:
        self.env_variables[(variable.application_id, variable.key)] = variable
        return variable

    def create_persistent_storage(self, storage: PersistentStorageRecord) -> PersistentStorageRecord:
        self.storages.append(storage)
        return storage

    def database_creators(self) -> dict[str, DatabaseCreator]:
        return {db_type: partial(self._create_database, db_type) for db_type in ENGINE_FAMILIES}

    def _create_database(self, db_type: str, request: DatabaseRequest) -> DatabaseRecord:
        record = DatabaseRecord(
            id=self._allocate_id(),
            type=db_type,
            name=request.name,
            description=request.description,
            environment_id=request.environment_id,
            destination_uuid=request.destination_uuid,
        )
        self.databases[record.id] = record
        return record

    def env_for(self, application_id: int) -> dict[str, str]:
        """Variables set on one application, key -> value."""
        return {
            key: variable.value
            for (app_id, key), variable in self.env_variables.items()
            if app_id == application_id
        }
