"""Resolving entity names of instances.

One class may be mapped several times, each mapping under its own entity
name (e.g. ``subscriber`` and ``archived_subscriber``). When the class alone
is not enough to tell which mapping an instance belongs to, the instance has
to carry that information and an :class:`EntityNameResolver` has to extract it.
"""
import abc
import typing

import attr


class EntityNameResolver(abc.ABC):
    @abc.abstractmethod
    def resolve_entity_name(self, entity: typing.Any) -> typing.Optional[str]:
        """Entity name of ``entity``, or None if this resolver can not tell."""


@attr.s(auto_attribs=True, frozen=True)
class AttributeEntityNameResolver(EntityNameResolver):
    attribute: str = "entity_name"

    def resolve_entity_name(self, entity: typing.Any) -> typing.Optional[str]:
        return getattr(entity, self.attribute, None)


@attr.s(auto_attribs=True, frozen=True)
class CallableEntityNameResolver(EntityNameResolver):
    function: typing.Callable[[typing.Any], typing.Optional[str]]

    def resolve_entity_name(self, entity: typing.Any) -> typing.Optional[str]:
        return self.function(entity)


ResolverLike = typing.Union[EntityNameResolver, typing.Callable[[typing.Any], typing.Optional[str]]]


def as_resolver(resolver: ResolverLike) -> EntityNameResolver:
    if isinstance(resolver, EntityNameResolver):
        return resolver
    if not callable(resolver):
        raise TypeError(f"Expected EntityNameResolver or callable, got {resolver!r}")
    return CallableEntityNameResolver(resolver)
