import typing

from entity_mapping.abstract_entity_tree import (
    SKIP_CHILDREN,
    Visitor,
    FieldNode,
    EntityNode,
    ValueObjectNode,
    ListOfEntitiesNode,
    ListOfValueObjectsNode,
)


class PopulatingAggregateVisitor(Visitor):
    EMPTY_PREFIX = ""

    def __init__(self, db_result: object) -> None:
        self._db_result = db_result
        self._stacked_vo: typing.List[ValueObjectNode] = []
        self._db_objects_stack: typing.List[typing.Optional[object]] = []
        self._ef_dicts_stack: typing.List[dict] = []
        self._result: typing.Any = None

    @property
    def _prefix(self) -> str:
        if not self._stacked_vo:
            return self.EMPTY_PREFIX
        return "_".join(vo.name for vo in self._stacked_vo) + "_"

    @property
    def result(self) -> typing.Any:
        return self._result

    def visit_field(self, field: FieldNode) -> None:
        db_object = self._db_objects_stack[-1]
        if db_object is not None:
            value = getattr(db_object, f"{self._prefix}{field.name}")
            if field.user_type is not None:
                # the aggregate must not share mutable values with the session
                value = field.user_type.deep_copy(value)
            self._ef_dicts_stack[-1][field.name] = value

    def visit_entity(self, entity: EntityNode) -> None:
        if not self._db_objects_stack:
            self._db_objects_stack.append(self._db_result)
        else:
            db_object = self._db_objects_stack[-1]
            self._db_objects_stack.append(None if db_object is None else getattr(db_object, entity.name))
        self._ef_dicts_stack.append({})

    def leave_entity(self, entity: EntityNode) -> None:
        db_object = self._db_objects_stack.pop()
        entity_dict = self._ef_dicts_stack.pop()
        self._put(entity, None if db_object is None else entity.type(**entity_dict))

    def visit_value_object(self, value_object: ValueObjectNode) -> None:
        # embedded, columns live in the entity above
        self._stacked_vo.append(value_object)
        self._db_objects_stack.append(self._db_objects_stack[-1])
        self._ef_dicts_stack.append({})

    def leave_value_object(self, value_object: ValueObjectNode) -> None:
        self._stacked_vo.pop()
        self._db_objects_stack.pop()
        vo_dict = self._ef_dicts_stack.pop()
        if value_object.nullable and all(v is None for v in vo_dict.values()):
            # One is not able to tell the difference between optional object with all its fields = None or
            # an absence of entire value object
            instance = None
        else:
            instance = value_object.type(**vo_dict)
        self._put(value_object, instance)

    def _put(self, vo_or_entity: typing.Union[ValueObjectNode, EntityNode], instance: typing.Any) -> None:
        if self._ef_dicts_stack:
            self._ef_dicts_stack[-1][vo_or_entity.name] = instance
        else:
            self._result = instance

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> typing.Any:
        db_object = self._db_objects_stack[-1]
        if db_object is not None:
            element_node = list_of_entities.element_node()
            elements = []
            for db_element in getattr(db_object, list_of_entities.name):
                visitor = PopulatingAggregateVisitor(db_element)
                visitor.traverse_from(element_node)
                elements.append(visitor.result)
            self._ef_dicts_stack[-1][list_of_entities.name] = elements
        return SKIP_CHILDREN

    def visit_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError

    def leave_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> None:
        raise NotImplementedError
