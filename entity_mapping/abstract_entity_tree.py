import abc
import inspect
import typing
from collections import deque

import attr

from entity_mapping.entity import (
    Entity,
    Identity,
    ValueObject,
    EntityOrVoType,
    default_entity_name,
    is_optional,
    unwrap_optional,
)
from entity_mapping.exceptions import MappingError
from entity_mapping.fetch import Fetch, FetchMode, default_fetch_mode
from entity_mapping.user_type import UserType, user_type_of


def _is_generic(field_type: typing.Any) -> bool:
    return typing.get_origin(field_type) is not None


def _get_wrapped_type(wrapped_type: typing.Any) -> typing.Any:
    if is_optional(wrapped_type):
        return unwrap_optional(wrapped_type)
    return typing.get_args(wrapped_type)[0]


def _is_entity_or_vo(field_type: typing.Any) -> bool:
    return inspect.isclass(field_type) and issubclass(field_type, (Entity, ValueObject))


def _is_nested_entity_or_vo(field_type: typing.Any) -> bool:
    return _is_entity_or_vo(field_type) or _is_nullable_entity_or_vo(field_type)


def _is_nullable_entity_or_vo(field_type: typing.Any) -> bool:
    return is_optional(field_type) and _is_entity_or_vo(unwrap_optional(field_type))


def _is_identity(field_type: typing.Any) -> bool:
    return typing.get_origin(field_type) is Identity


def _is_list_of_entities_or_vos(field_type: typing.Any) -> bool:
    return typing.get_origin(field_type) is list and _is_entity_or_vo(_get_wrapped_type(field_type))


# returned from a visit_* method, the visited node's children are not traversed
SKIP_CHILDREN = object()


class Visitor:
    def traverse_from(self, node: "Node") -> None:
        if node.accept(self) is not SKIP_CHILDREN:
            for child in node.children:
                self.traverse_from(child)
        node.farewell(self)

    def visit_field(self, field: "FieldNode") -> typing.Any:
        pass

    def leave_field(self, field: "FieldNode") -> None:
        pass

    def visit_entity(self, entity: "EntityNode") -> typing.Any:
        pass

    def leave_entity(self, entity: "EntityNode") -> None:
        pass

    def visit_value_object(self, value_object: "ValueObjectNode") -> typing.Any:
        pass

    def leave_value_object(self, value_object: "ValueObjectNode") -> None:
        pass

    def visit_list_of_entities(self, list_of_entities: "ListOfEntitiesNode") -> typing.Any:
        pass

    def leave_list_of_entities(self, list_of_entities: "ListOfEntitiesNode") -> None:
        pass

    def visit_list_of_value_objects(self, list_of_value_objects: "ListOfValueObjectsNode") -> typing.Any:
        pass

    def leave_list_of_value_objects(self, list_of_value_objects: "ListOfValueObjectsNode") -> None:
        pass


class NodeMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace)
        if inspect.isabstract(cls):
            return cls
        return attr.s(auto_attribs=True)(cls)


class Node(metaclass=NodeMeta):
    name: str
    type: typing.Type
    nullable: bool = False
    children: typing.List["Node"] = attr.Factory(list)

    @abc.abstractmethod
    def accept(self, visitor: Visitor) -> typing.Any:
        pass

    @abc.abstractmethod
    def farewell(self, visitor: Visitor) -> None:
        pass


class FieldNode(Node):
    is_identity: bool = False
    user_type: typing.Optional[UserType] = None

    def accept(self, visitor: Visitor) -> typing.Any:
        return visitor.visit_field(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_field(self)


class AssociationNode(Node):
    fetch: typing.Optional[Fetch] = None
    entity_name: typing.Optional[str] = None

    def __attrs_post_init__(self) -> None:
        if self.entity_name is None:
            self.entity_name = default_entity_name(self.type)

    @property
    @abc.abstractmethod
    def is_collection(self) -> bool:
        pass

    @property
    def fetch_mode(self) -> FetchMode:
        if self.fetch is None:
            return default_fetch_mode(self.is_collection)
        return self.fetch.value

    @property
    def identity(self) -> "FieldNode":
        identity_nodes = [node for node in self.children if getattr(node, "is_identity", False)]
        if len(identity_nodes) != 1:
            raise MappingError(f"{self.type.__name__} has to have exactly one Identity field to be nested")
        return identity_nodes[0]


class EntityNode(AssociationNode):
    is_collection = False

    def accept(self, visitor: Visitor) -> typing.Any:
        return visitor.visit_entity(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_entity(self)


class ValueObjectNode(Node):
    def accept(self, visitor: Visitor) -> typing.Any:
        return visitor.visit_value_object(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_value_object(self)


class ListOfEntitiesNode(AssociationNode):
    is_collection = True

    def element_node(self) -> EntityNode:
        return EntityNode(self.name, self.type, False, self.children, self.fetch, self.entity_name)

    def accept(self, visitor: Visitor) -> typing.Any:
        return visitor.visit_list_of_entities(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_list_of_entities(self)


class ListOfValueObjectsNode(Node):
    def accept(self, visitor: Visitor) -> typing.Any:
        return visitor.visit_list_of_value_objects(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_list_of_value_objects(self)


@attr.s(auto_attribs=True)
class AbstractEntityTree:
    root: EntityNode

    @property
    def entity_name(self) -> str:
        return self.root.entity_name

    def __iter__(self) -> typing.Generator[Node, None, None]:
        def iterate_dfs() -> typing.Generator[Node, None, None]:
            nodes_left: typing.Deque[Node] = deque([self.root])

            while nodes_left:
                current = nodes_left.pop()
                yield current
                nodes_left.extend(current.children[::-1])

        return iterate_dfs()

    @property
    def identity_fields(self) -> typing.List[FieldNode]:
        return [node for node in self.root.children if getattr(node, "is_identity", False)]


def build(
    root: typing.Type[Entity],
    entity_name: typing.Optional[str] = None,
    user_types: typing.Optional[typing.Mapping[typing.Type, UserType]] = None,
) -> AbstractEntityTree:
    user_types = user_types or {}

    def parse_node(current_root: EntityOrVoType, name: str, fetch: typing.Optional[Fetch] = None) -> Node:
        node_name = name
        is_list = False
        if _is_list_of_entities_or_vos(current_root):
            node_nullable = False
            node_type = _get_wrapped_type(current_root)
            is_list = True
        elif _is_nullable_entity_or_vo(current_root):
            node_nullable = True
            node_type = _get_wrapped_type(current_root)
        else:
            node_nullable = False
            node_type = current_root
        node_children = []

        for field in attr.fields(node_type):
            field_type = field.type
            field_name = field.name
            field_fetch = Fetch.of(field)
            field_user_type = user_type_of(field)

            if _is_nested_entity_or_vo(field_type) or _is_list_of_entities_or_vos(field_type):
                if field_user_type is not None:
                    raise MappingError(f"{node_type.__name__}.{field_name} is an entity or value object, not a value")
                node_children.append(parse_node(field_type, field_name, field_fetch))
                continue

            if field_fetch is not None:
                raise MappingError(f"{node_type.__name__}.{field_name} is not an association, it can not be fetched")

            field_nullable = False
            is_identity = False

            if _is_generic(field.type):
                if _is_identity(field_type):
                    field_type = _get_wrapped_type(field.type)
                    is_identity = True
                elif is_optional(field.type):
                    field_type = _get_wrapped_type(field.type)
                    field_nullable = True
                elif field_user_type is None:
                    raise MappingError(f"Unhandled Generic type - {field_type}")

            if field_user_type is None:
                field_user_type = user_types.get(field_type)

            node_children.append(FieldNode(field_name, field_type, field_nullable, [], is_identity, field_user_type))

        if issubclass(node_type, Entity):
            if is_list:
                return ListOfEntitiesNode(node_name, node_type, node_nullable, node_children, fetch)
            if fetch is not None and fetch.value is FetchMode.SUBSELECT:
                raise MappingError(f"{name} is a single-valued association, SUBSELECT is for collections only")
            return EntityNode(node_name, node_type, node_nullable, node_children, fetch)

        if fetch is not None:
            raise MappingError(f"{name} holds value objects, only associations can be fetched")
        if is_list:
            return ListOfValueObjectsNode(node_name, node_type, node_nullable, node_children)
        return ValueObjectNode(node_name, node_type, node_nullable, node_children)

    root_node = parse_node(root, entity_name or default_entity_name(root))
    if entity_name is not None:
        root_node.entity_name = entity_name
    return AbstractEntityTree(root_node)
