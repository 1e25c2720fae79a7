import abc
import inspect
import typing

from entity_mapping.entity import default_entity_name
from entity_mapping.registry import Registry


EntityType = typing.TypeVar("EntityType")
IdentityType = typing.TypeVar("IdentityType")


def _generic_args(cls: typing.Type) -> typing.Tuple[typing.Type, typing.Type]:
    for klass in cls.__mro__:
        for base in klass.__dict__.get("__orig_bases__", ()):
            args = typing.get_args(base)
            if typing.get_origin(base) in (ReadOnlyRepository, Repository) and not any(
                isinstance(arg, typing.TypeVar) for arg in args
            ):
                return args
    raise TypeError(f"{cls.__name__} has to subclass Repository[EntityType, IdentityType]")


class RepositoryMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: typing.Tuple[typing.Type, ...], namespace: dict, **kwargs) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        if not inspect.isabstract(cls):
            assert isinstance(getattr(cls, "registry", None), Registry), f"{name} has to define a Registry"
            entity_cls, _identity_cls = _generic_args(cls)
            cls.entity = entity_cls
            cls.entity_name = getattr(cls, "entity_name", None) or default_entity_name(entity_cls)
            cls.registry.register_entity(entity_cls, cls.entity_name)
            cls.registry.repositories[cls.entity_name] = cls
            cls.prepare(entity_cls)

        return cls


class ReadOnlyRepository(typing.Generic[EntityType, IdentityType], metaclass=RepositoryMeta):
    entity: typing.Type = None
    entity_name: typing.Optional[str] = None
    registry: Registry = None

    @classmethod
    @abc.abstractmethod
    def prepare(cls, entity_cls: typing.Type[EntityType]) -> None:
        pass

    @abc.abstractmethod
    def get(self, identity: IdentityType) -> EntityType:
        pass


class Repository(ReadOnlyRepository[EntityType, IdentityType]):
    @abc.abstractmethod
    def save(self, entity: EntityType) -> None:
        pass

    @abc.abstractmethod
    def merge(self, detached: EntityType) -> EntityType:
        pass
