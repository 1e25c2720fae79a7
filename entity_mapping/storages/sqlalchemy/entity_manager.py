from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from entity_mapping.exceptions import UnknownEntityName
from entity_mapping.storages.sqlalchemy import SqlAlchemyRepo
from entity_mapping.storages.sqlalchemy.registry import SaRegistry


class EntityManager:
    """Routes aggregates to the repository of their entity name, within one session."""

    def __init__(self, session: Session, registry: SaRegistry) -> None:
        self._session = session
        self._registry = registry
        self._repositories: Dict[str, SqlAlchemyRepo] = {}

    def repository(self, entity_name: str) -> SqlAlchemyRepo:
        if entity_name not in self._repositories:
            try:
                repository_cls = self._registry.repositories[entity_name]
            except KeyError:
                raise UnknownEntityName(f"No repository stores {entity_name}")
            self._repositories[entity_name] = repository_cls(self._session)
        return self._repositories[entity_name]

    def entity_name_of(self, entity: Any) -> str:
        return self._registry.resolve_entity_name(entity)

    def get(self, entity_name: str, identity: Any, fetch_profile: Optional[str] = None) -> Any:
        return self.repository(entity_name).get(identity, fetch_profile=fetch_profile)

    def save(self, entity: Any) -> str:
        entity_name = self.entity_name_of(entity)
        self.repository(entity_name).save(entity)
        return entity_name

    def merge(self, entity: Any) -> Any:
        return self.repository(self.entity_name_of(entity)).merge(entity)
