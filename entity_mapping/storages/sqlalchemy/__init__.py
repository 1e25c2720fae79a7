import logging
from typing import Any, List, Optional, Type

from sqlalchemy.orm import Session

from entity_mapping.abstract_entity_tree import AbstractEntityTree, FieldNode
from entity_mapping.cache import CacheKey, EntityCache
from entity_mapping.exceptions import EntityNameMismatch, EntityNotFound
from entity_mapping.repository import EntityType, IdentityType
from entity_mapping.state import assemble_aggregate, extract_state, merge_states, snapshot, states_equal
from entity_mapping.storages.sqlalchemy.populating_aggregates.visitor import PopulatingAggregateVisitor
from entity_mapping.storages.sqlalchemy.constructing_model.visitor import ModelConstructingVisitor
from entity_mapping.storages.sqlalchemy.populating_model.visitor import ModelPopulatingVisitor
from entity_mapping.storages.sqlalchemy.querying.visitor import QueryBuildingVisitor
from entity_mapping.storages.sqlalchemy.registry import SaRegistry
from entity_mapping.storages.sqlalchemy.unit_of_work import UnitOfWork, unit_of_work

logger = logging.getLogger(__name__)


def _disassemble(field: FieldNode, value: Any) -> Any:
    return value if field.user_type is None else field.user_type.disassemble(value)


class SqlAlchemyRepo:
    base: Any = None
    registry: SaRegistry = None
    # second-level cache, shared by every instance of the repository
    cache: Optional[EntityCache] = None

    def __init__(self, session: Session) -> None:
        self._session = session

    @classmethod
    def prepare(cls, entity_cls: Type[EntityType]) -> None:
        assert cls.base is not None, "Must set cls base to a declarative base!"
        assert isinstance(cls.registry, SaRegistry), "Must set cls registry to an instance of SaRegistry!"
        if cls.entity_name not in cls.registry.entities_models:
            aet = cls.registry.entities_to_aets[cls.entity_name]
            ModelConstructingVisitor(cls.base, cls.registry).traverse_from(aet.root)

    @property
    def unit_of_work(self) -> UnitOfWork:
        return unit_of_work(self._session)

    @property
    def aet(self) -> AbstractEntityTree:
        return self.registry.entities_to_aets[self.entity_name]

    @property
    def model(self) -> Type:
        return self.registry.entities_models[self.entity_name]

    def loader_options(self, fetch_profile: Optional[str] = None) -> List[Any]:
        key = (self.entity_name, fetch_profile)
        if key not in self.registry.loader_options:
            profile = None if fetch_profile is None else self.registry.get_fetch_profile(fetch_profile)
            visitor = QueryBuildingVisitor(self.registry, profile)
            visitor.traverse_from(self.aet.root)
            self.registry.loader_options[key] = visitor.options

        return self.registry.loader_options[key]

    def identity_of(self, entity: EntityType) -> IdentityType:
        values = tuple(getattr(entity, field.name) for field in self.aet.identity_fields)
        return values[0] if len(values) == 1 else values

    def cache_key(self, identity: IdentityType) -> CacheKey:
        identity_fields = self.aet.identity_fields
        user_type = identity_fields[0].user_type if len(identity_fields) == 1 else None
        return CacheKey(self.entity_name, identity, user_type)

    def get(self, identity: IdentityType, fetch_profile: Optional[str] = None) -> EntityType:
        if fetch_profile is not None:
            # unknown profiles fail even when the cache answers
            self.registry.get_fetch_profile(fetch_profile)

        key = self.cache_key(identity)
        uow = self.unit_of_work
        # aggregates written in the open transaction bypass the cache
        use_cache = self.cache is not None and not uow.is_unpublished(key)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                aggregate = assemble_aggregate(
                    self.aet, cached, lambda field, value: self._assemble(field, value, identity)
                )
                uow.snapshots[key] = snapshot(self.aet, aggregate)
                return aggregate

        result = self._session.get(self.model, identity, options=self.loader_options(fetch_profile))
        if result is None:
            raise EntityNotFound(self.entity_name, identity)

        converting_visitor = PopulatingAggregateVisitor(result)
        converting_visitor.traverse_from(self.aet.root)
        aggregate = converting_visitor.result

        uow.snapshots[key] = snapshot(self.aet, aggregate)
        if use_cache:
            self.cache.put(key, extract_state(self.aet, aggregate, _disassemble))
        return aggregate

    def save(self, entity: EntityType) -> None:
        self._check_entity_name(entity)
        key = self.cache_key(self.identity_of(entity))
        current = snapshot(self.aet, entity)
        if states_equal(self.aet.root, self.unit_of_work.snapshots.get(key), current):
            logger.debug("%s %r is not dirty, nothing to flush", self.entity_name, key.identity)
            return

        visitor = ModelPopulatingVisitor(entity, self.registry)
        visitor.traverse_from(self.aet.root)
        self._session.merge(visitor.result)
        self._session.flush()

        self.unit_of_work.written(key, current, self.cache)

    def merge(self, detached: EntityType) -> EntityType:
        identity = self.identity_of(detached)
        try:
            managed = self.get(identity)
        except EntityNotFound:
            managed = None

        managed_state = None if managed is None else extract_state(self.aet, managed)
        merged_state = merge_states(self.aet.root, extract_state(self.aet, detached), managed_state, managed)
        merged = assemble_aggregate(self.aet, merged_state)
        self.save(merged)
        return merged

    def _assemble(self, field: FieldNode, value: Any, owner: Any) -> Any:
        return value if field.user_type is None else field.user_type.assemble(value, owner)

    def _check_entity_name(self, entity: EntityType) -> None:
        entity_name = self.registry.entity_name_from_resolvers(entity)
        if entity_name is None and self.entity_name in self.registry.entity_names.get(type(entity), []):
            return
        if entity_name != self.entity_name:
            raise EntityNameMismatch(
                f"{type(entity).__name__} instance resolves to {entity_name!r}, {type(self).__name__} "
                f"stores {self.entity_name!r}"
            )
