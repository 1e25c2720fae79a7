import logging
from typing import Any, Dict, List, Union

import inflection
from sqlalchemy import Column, ForeignKey

from entity_mapping.abstract_entity_tree import (
    SKIP_CHILDREN,
    Visitor,
    EntityNode,
    ValueObjectNode,
    FieldNode,
    ListOfEntitiesNode,
    ListOfValueObjectsNode,
)
from entity_mapping.exceptions import MappingError
from entity_mapping.fetch import FetchMode
from entity_mapping.storages.sqlalchemy import native_type_to_column
from entity_mapping.storages.sqlalchemy.registry import SaRegistry
from entity_mapping.storages.sqlalchemy.constructing_model.raw_model import RawModel

logger = logging.getLogger(__name__)

LAZY_BY_FETCH_MODE = {FetchMode.JOIN: "joined", FetchMode.SELECT: "select", FetchMode.SUBSELECT: "subquery"}


def model_name(entity_name: str) -> str:
    return f"{inflection.camelize(entity_name)}Model"


def table_name(entity_name: str) -> str:
    return inflection.pluralize(entity_name)


class ModelConstructingVisitor(Visitor):
    EMPTY_PREFIX = ""

    def __init__(self, base: Any, registry: SaRegistry) -> None:
        self._base = base
        self._registry = registry
        self._entities_stack: List[Union[EntityNode, ListOfEntitiesNode]] = []
        self._entities_raw_models: Dict[str, RawModel] = {}
        self._stacked_vo: List[ValueObjectNode] = []

    @property
    def current_entity(self) -> Union[EntityNode, ListOfEntitiesNode]:
        return self._entities_stack[-1]

    @property
    def current_raw_model(self) -> RawModel:
        return self._entities_raw_models[self.current_entity.entity_name]

    @property
    def _prefix(self) -> str:
        if not self._stacked_vo:
            return self.EMPTY_PREFIX
        return "_".join(vo.name for vo in self._stacked_vo) + "_"

    def visit_field(self, field: FieldNode) -> None:
        nullable = field.nullable or any(vo.nullable for vo in self._stacked_vo)
        self.current_raw_model.append_column(
            f"{self._prefix}{field.name}",
            Column(native_type_to_column.convert(field), primary_key=field.is_identity, nullable=nullable),
        )

    def visit_entity(self, entity: EntityNode) -> Any:
        mapped = entity.entity_name in self._registry.entities_models
        if entity.entity_name in self._entities_raw_models and not mapped:
            raise NotImplementedError("Probably recursive, not supported")

        if self._entities_stack:  # nested, include foreign key
            identity_node = entity.identity
            column = Column(
                native_type_to_column.convert(identity_node),
                ForeignKey(f"{table_name(entity.entity_name)}.{identity_node.name}"),
                nullable=entity.nullable,
            )
            self.current_raw_model.append_column(f"{entity.name}_{identity_node.name}", column)
            self.current_raw_model.append_relationship(
                entity.name,
                model_name(entity.entity_name),
                foreign_keys=[column],
                lazy=LAZY_BY_FETCH_MODE[entity.fetch_mode],
                innerjoin=not entity.nullable,
            )

        if mapped:
            # by another aggregate or another association
            return SKIP_CHILDREN

        self._stack_raw_model(entity)
        return None

    def leave_entity(self, entity: EntityNode) -> None:
        if self._entities_stack and self.current_entity is entity:
            self._materialize()

    def visit_value_object(self, value_object: ValueObjectNode) -> None:
        # value objects' fields are embedded into entity above it
        self._stacked_vo.append(value_object)

    def leave_value_object(self, value_object: ValueObjectNode) -> None:
        self._stacked_vo.pop()

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> None:
        entity_name = list_of_entities.entity_name
        if entity_name in self._entities_raw_models or entity_name in self._registry.entities_models:
            raise MappingError(f"{entity_name} is mapped already, it can not be owned by {self.current_entity.entity_name}")

        owner = self.current_entity
        owner_identity = owner.identity
        related_model_name = model_name(entity_name)
        owner_key = Column(
            native_type_to_column.convert(owner_identity),
            ForeignKey(f"{table_name(owner.entity_name)}.{owner_identity.name}"),
            nullable=False,
        )
        self.current_raw_model.append_relationship(
            list_of_entities.name,
            related_model_name,
            foreign_keys=[owner_key],
            lazy=LAZY_BY_FETCH_MODE[list_of_entities.fetch_mode],
            cascade="all, delete-orphan",
            order_by=f"{related_model_name}.{list_of_entities.identity.name}",
        )

        self._stack_raw_model(list_of_entities)
        self.current_raw_model.append_column(f"{owner.entity_name}_{owner_identity.name}", owner_key)

    def leave_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> None:
        self._materialize()

    def visit_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError

    def leave_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError

    def _stack_raw_model(self, entity: Union[EntityNode, ListOfEntitiesNode]) -> None:
        self._entities_stack.append(entity)
        self._entities_raw_models[entity.entity_name] = RawModel(
            name=model_name(entity.entity_name),
            bases=(self._base,),
            namespace={"__tablename__": table_name(entity.entity_name)},
        )

    def _materialize(self) -> None:
        entity = self._entities_stack.pop()
        raw_model = self._entities_raw_models[entity.entity_name]
        self._registry.entities_models[entity.entity_name] = raw_model.materialize()
        logger.debug("Constructed %s for table %s", raw_model.name, raw_model.namespace["__tablename__"])
