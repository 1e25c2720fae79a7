"""Aggregates as plain nested state.

State of an aggregate is a dict keyed by field name. Value objects and nested
entities become nested dicts (or None when absent), lists become lists of
dicts. Fields pass through a transformation on the way, which is where user
types plug in: deep copies for snapshots, disassembled values for the cache.
"""
import typing

from entity_mapping.abstract_entity_tree import (
    SKIP_CHILDREN,
    AbstractEntityTree,
    EntityNode,
    FieldNode,
    ListOfEntitiesNode,
    ListOfValueObjectsNode,
    Node,
    ValueObjectNode,
    Visitor,
)
from entity_mapping.entity import EntityOrVo

State = typing.Dict[str, typing.Any]
FieldTransform = typing.Callable[[FieldNode, typing.Any], typing.Any]
ComplexNode = typing.Union[EntityNode, ValueObjectNode]


def _as_is(field: FieldNode, value: typing.Any) -> typing.Any:
    return value


def _element_node(node: typing.Union[ListOfEntitiesNode, ListOfValueObjectsNode]) -> ComplexNode:
    if isinstance(node, ListOfEntitiesNode):
        return node.element_node()
    return ValueObjectNode(node.name, node.type, False, node.children)


class StateExtractingVisitor(Visitor):
    def __init__(self, aggregate: EntityOrVo, transform: FieldTransform = _as_is) -> None:
        self._aggregate = aggregate
        self._transform = transform
        self._objects_stack: typing.List[typing.Optional[EntityOrVo]] = []
        self._states_stack: typing.List[State] = []
        self._result: typing.Optional[State] = None

    @property
    def result(self) -> typing.Optional[State]:
        return self._result

    def visit_field(self, field: FieldNode) -> None:
        current = self._objects_stack[-1]
        if current is not None:  # may be none if optional
            self._states_stack[-1][field.name] = self._transform(field, getattr(current, field.name))

    def visit_entity(self, entity: EntityNode) -> None:
        self._stack_complex_object(entity)

    def leave_entity(self, entity: EntityNode) -> None:
        self._unstack_complex_object(entity)

    def visit_value_object(self, value_object: ValueObjectNode) -> None:
        self._stack_complex_object(value_object)

    def leave_value_object(self, value_object: ValueObjectNode) -> None:
        self._unstack_complex_object(value_object)

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> typing.Any:
        return self._extract_list(list_of_entities)

    def visit_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> typing.Any:
        return self._extract_list(list_of_value_objects)

    def _extract_list(self, node: typing.Union[ListOfEntitiesNode, ListOfValueObjectsNode]) -> typing.Any:
        current = self._objects_stack[-1]
        if current is not None:
            element_node = _element_node(node)
            states = []
            for element in getattr(current, node.name) or []:
                visitor = StateExtractingVisitor(element, self._transform)
                visitor.traverse_from(element_node)
                states.append(visitor.result)
            self._states_stack[-1][node.name] = states
        return SKIP_CHILDREN

    def _stack_complex_object(self, node: ComplexNode) -> None:
        if not self._objects_stack:
            self._objects_stack.append(self._aggregate)
        else:
            parent = self._objects_stack[-1]
            self._objects_stack.append(None if parent is None else getattr(parent, node.name))
        self._states_stack.append({})

    def _unstack_complex_object(self, node: ComplexNode) -> None:
        current = self._objects_stack.pop()
        state = self._states_stack.pop()
        if not self._states_stack:
            self._result = state
        elif self._objects_stack[-1] is not None:
            self._states_stack[-1][node.name] = None if current is None else state


class AggregateAssemblingVisitor(Visitor):
    def __init__(self, state: State, transform: FieldTransform = _as_is) -> None:
        self._state = state
        self._transform = transform
        self._states_stack: typing.List[typing.Optional[State]] = []
        self._kwargs_stack: typing.List[dict] = []
        self._result: typing.Any = None

    @property
    def result(self) -> typing.Any:
        return self._result

    def visit_field(self, field: FieldNode) -> None:
        state = self._states_stack[-1]
        if state is not None:
            self._kwargs_stack[-1][field.name] = self._transform(field, state.get(field.name))

    def visit_entity(self, entity: EntityNode) -> None:
        self._stack_complex_object(entity)

    def leave_entity(self, entity: EntityNode) -> None:
        self._construct_complex_object(entity)

    def visit_value_object(self, value_object: ValueObjectNode) -> None:
        self._stack_complex_object(value_object)

    def leave_value_object(self, value_object: ValueObjectNode) -> None:
        self._construct_complex_object(value_object)

    def visit_list_of_entities(self, list_of_entities: ListOfEntitiesNode) -> typing.Any:
        return self._assemble_list(list_of_entities)

    def visit_list_of_value_objects(self, list_of_value_objects: ListOfValueObjectsNode) -> typing.Any:
        return self._assemble_list(list_of_value_objects)

    def _assemble_list(self, node: typing.Union[ListOfEntitiesNode, ListOfValueObjectsNode]) -> typing.Any:
        state = self._states_stack[-1]
        if state is not None:
            element_node = _element_node(node)
            elements = []
            for element_state in state.get(node.name) or []:
                visitor = AggregateAssemblingVisitor(element_state, self._transform)
                visitor.traverse_from(element_node)
                elements.append(visitor.result)
            self._kwargs_stack[-1][node.name] = elements
        return SKIP_CHILDREN

    def _stack_complex_object(self, node: ComplexNode) -> None:
        if not self._states_stack:
            self._states_stack.append(self._state)
        else:
            parent = self._states_stack[-1]
            self._states_stack.append(None if parent is None else parent.get(node.name))
        self._kwargs_stack.append({})

    def _construct_complex_object(self, node: ComplexNode) -> None:
        state = self._states_stack.pop()
        kwargs = self._kwargs_stack.pop()
        instance = None if state is None else node.type(**kwargs)
        if not self._kwargs_stack:
            self._result = instance
        elif self._states_stack[-1] is not None:
            self._kwargs_stack[-1][node.name] = instance


def extract_state(aet: AbstractEntityTree, aggregate: EntityOrVo, transform: FieldTransform = _as_is) -> State:
    visitor = StateExtractingVisitor(aggregate, transform)
    visitor.traverse_from(aet.root)
    return visitor.result


def assemble_aggregate(aet: AbstractEntityTree, state: State, transform: FieldTransform = _as_is) -> typing.Any:
    visitor = AggregateAssemblingVisitor(state, transform)
    visitor.traverse_from(aet.root)
    return visitor.result


def snapshot(aet: AbstractEntityTree, aggregate: EntityOrVo) -> State:
    def deep_copy(field: FieldNode, value: typing.Any) -> typing.Any:
        return value if field.user_type is None else field.user_type.deep_copy(value)

    return extract_state(aet, aggregate, deep_copy)


def states_equal(node: Node, left: typing.Optional[State], right: typing.Optional[State]) -> bool:
    if left is None or right is None:
        return left is right
    for child in node.children:
        left_value, right_value = left.get(child.name), right.get(child.name)
        if isinstance(child, FieldNode):
            if child.user_type is not None:
                equal = child.user_type.equals(left_value, right_value)
            else:
                equal = left_value == right_value
        elif isinstance(child, (ListOfEntitiesNode, ListOfValueObjectsNode)):
            left_value, right_value = left_value or [], right_value or []
            equal = len(left_value) == len(right_value) and all(
                states_equal(child, left_element, right_element)
                for left_element, right_element in zip(left_value, right_value)
            )
        else:
            equal = states_equal(child, left_value, right_value)
        if not equal:
            return False
    return True


def merge_states(
    node: Node, detached: typing.Optional[State], managed: typing.Optional[State], owner: typing.Any
) -> typing.Optional[State]:
    """State of ``detached`` merged onto ``managed``, user typed fields going through ``UserType.replace``."""
    if detached is None:
        return None
    merged: State = {}
    for child in node.children:
        detached_value = detached.get(child.name)
        managed_value = None if managed is None else managed.get(child.name)
        if isinstance(child, FieldNode):
            if child.user_type is not None:
                merged[child.name] = child.user_type.replace(detached_value, managed_value, owner)
            else:
                merged[child.name] = detached_value
        elif isinstance(child, ListOfEntitiesNode):
            identity_name = child.identity.name
            managed_by_identity = {element[identity_name]: element for element in managed_value or []}
            merged[child.name] = [
                merge_states(child, element, managed_by_identity.get(element[identity_name]), owner)
                for element in detached_value or []
            ]
        elif isinstance(child, ListOfValueObjectsNode):
            merged[child.name] = [merge_states(child, element, None, owner) for element in detached_value or []]
        else:
            merged[child.name] = merge_states(child, detached_value, managed_value, owner)
    return merged
