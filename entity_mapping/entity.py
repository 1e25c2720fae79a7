import abc
import inspect
import types
import typing

import attr
import inflection


class EntityWithoutIdentity(TypeError):
    pass


class ValueObjectWithIdentity(TypeError):
    pass


class EntityNestedInValueObject(TypeError):
    pass


T = typing.TypeVar("T")

_UNION_ORIGINS = (typing.Union, getattr(types, "UnionType", typing.Union))


class Identity(typing.Generic[T]):
    @classmethod
    def is_identity(cls, field: attr.Attribute) -> bool:
        return typing.get_origin(field.type) is cls


def is_optional(field_type: typing.Any) -> bool:
    args = typing.get_args(field_type)
    return typing.get_origin(field_type) in _UNION_ORIGINS and len(args) == 2 and type(None) in args


def unwrap_optional(field_type: typing.Any) -> typing.Any:
    return next(arg for arg in typing.get_args(field_type) if arg is not type(None))


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if name == "Entity":
            return cls
        attr_cls = attr.s(auto_attribs=True)(cls)
        if not any(Identity.is_identity(field) for field in attr.fields(attr_cls)):
            raise EntityWithoutIdentity(f"{name} has no Identity field")
        return attr_cls


class Entity(metaclass=EntityMeta):
    pass


class ValueObjectMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if name == "ValueObject":
            return cls
        attr_cls = attr.s(auto_attribs=True)(cls)
        fields = attr.fields(attr_cls)
        if any(Identity.is_identity(field) for field in fields):
            raise ValueObjectWithIdentity(f"{name} is a value object, it can not have an Identity field")
        if any(_is_nested_entity(field.type) for field in fields):
            raise EntityNestedInValueObject(f"{name} is a value object, it can not contain entities")
        return attr_cls


def _is_nested_entity(field_type: typing.Any) -> bool:
    if is_optional(field_type):
        field_type = unwrap_optional(field_type)
    elif typing.get_origin(field_type) is list:
        field_type = typing.get_args(field_type)[0]
    return inspect.isclass(field_type) and issubclass(field_type, Entity)


class ValueObject(metaclass=ValueObjectMeta):
    pass


EntityOrVo = typing.Union[Entity, ValueObject]
EntityOrVoType = typing.Union[typing.Type[Entity], typing.Type[ValueObject]]


def default_entity_name(entity_cls: typing.Type) -> str:
    return inflection.underscore(entity_cls.__name__)
