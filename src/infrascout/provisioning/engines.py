"""Database engine registry."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from infrascout.analysis.rules import ENGINE_FAMILIES
from infrascout.models.provisioning import EngineFamily
from infrascout.provisioning.backend import DatabaseCreator

logger = logging.getLogger(__name__)

NAME_SUFFIXES: dict[EngineFamily, str] = {
    EngineFamily.RELATIONAL: "db",
    EngineFamily.DOCUMENT: "db",
    EngineFamily.KEY_VALUE: "cache",
    EngineFamily.COLUMNAR: "analytics",
}


@dataclass(frozen=True, slots=True)
class Engine:
    type: str
    family: EngineFamily
    create: DatabaseCreator

    def resource_name(self, name: str) -> str:
        """Provisioned name, e.g. postgresql-db or redis-cache."""
        return f"{name}-{NAME_SUFFIXES[self.family]}"


class EngineRegistry:
    """Maps a database type to the engine that creates it.

    Adding an engine is a register() call; types with no registration are
    unsupported.
    """

    def __init__(self) -> None:
        self._engines: dict[str, Engine] = {}

    def register(self, db_type: str, family: EngineFamily, create: DatabaseCreator) -> None:
        if db_type in self._engines:
            logger.debug("Replacing engine registration for %s", db_type)
        self._engines[db_type] = Engine(db_type, family, create)

    def get(self, db_type: str) -> Engine | None:
        return self._engines.get(db_type)

    def supports(self, db_type: str) -> bool:
        return db_type in self._engines

    def types(self) -> list[str]:
        return sorted(self._engines)


def default_registry(
    creators: Mapping[str, DatabaseCreator],
    families: Mapping[str, EngineFamily] = ENGINE_FAMILIES,
) -> EngineRegistry:
    """Register every known engine type the backend has a creator for."""
    registry = EngineRegistry()
    for db_type, family in families.items():
        create = creators.get(db_type)
        if create is not None:
            registry.register(db_type, family, create)
    return registry
