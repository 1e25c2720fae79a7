from typing import List, Union, Any, Optional

from entity_mapping.abstract_entity_tree import (
    SKIP_CHILDREN,
    Visitor,
    FieldNode,
    EntityNode,
    ValueObjectNode,
    ListOfEntitiesNode,
    ListOfValueObjectsNode,
)
from entity_mapping.entity import EntityOrVo
from entity_mapping.storages.sqlalchemy.registry import SaRegistry


class ModelPopulatingVisitor(Visitor):
    EMPTY_PREFIX = ""

    def __init__(self, aggregate: EntityOrVo, registry: SaRegistry) -> None:
        self._aggregate = aggregate
        self._registry = registry
        self._complex_objects_stack: List[Optional[EntityOrVo]] = []
        self._models_dicts_stack: List[dict] = []
        self._result: Any = None
        self._stacked_vo: List[ValueObjectNode] = []

    @property
    def _prefix(self) -> str:
        if not self._stacked_vo:
            return self.EMPTY_PREFIX
        return "_".join(vo.name for vo in self._stacked_vo) + "_"

    @property
    def result(self) -> Any:
        return self._result

    def visit_field(self, field: FieldNode) -> None:
        if self._complex_objects_stack[-1] is not None:  # may be none if optional
            value = getattr(self._complex_objects_stack[-1], field.name)
            if field.user_type is not None:
                value = field.user_type.deep_copy(value)
        else:
            value = None
        self._models_dicts_stack[-1][f"{self._prefix}{field.name}"] = value

    def visit_entity(self, entity: EntityNode) -> None:
        self._stack_complex_object(entity)
        self._models_dicts_stack.append({})

    def leave_entity(self, entity: EntityNode) -> None:
        self._construct_model(entity)
        self._complex_objects_stack.pop()

    def visit_value_object(self, value_object: ValueObjectNode) -> None:
        self._stacked_vo.append(value_object)
        self._stack_complex_object(value_object)

    def leave_value_object(self, value_object: ValueObjectNode) -> None:
        self._stacked_vo.pop()
        self._complex_objects_stack.pop()

    def _stack_complex_object(self, vo_or_entity: Union[ValueObjectNode, EntityNode]) -> None:
        if not self._complex_objects_stack:
            self._complex_objects_stack.append(self._aggregate)
        else:
            current = self._complex_objects_stack[-1]
            if current is None:
                another = None
            else:
                another = getattr(current, vo_or_entity.name)

            self._complex_objects_stack.append(another)

    def _construct_model(self, entity: EntityNode) -> None:
        entity_dict = self._models_dicts_stack.pop()
        if self._complex_objects_stack[-1] is None:
            instance = None
        else:
            model_cls = self._registry.entities_models[entity.entity_name]
            instance = model_cls(**entity_dict)
        if self._models_dicts_stack:
            self._models_dicts_stack[-1][entity.name] = instance
        else:
            self._result = instance

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> Any:
        element_node = list_of_entities.element_node()
        owner = self._complex_objects_stack[-1]
        models = []
        for element in (getattr(owner, list_of_entities.name) if owner is not None else None) or []:
            visitor = ModelPopulatingVisitor(element, self._registry)
            visitor.traverse_from(element_node)
            models.append(visitor.result)
        self._models_dicts_stack[-1][list_of_entities.name] = models
        return SKIP_CHILDREN

    def visit_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError

    def leave_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError
