import logging
from typing import Any, Dict, List, Optional, Type

import attr

from entity_mapping.abstract_entity_tree import AbstractEntityTree, FieldNode, build
from entity_mapping.entity import Entity, default_entity_name
from entity_mapping.entity_name_resolver import EntityNameResolver, ResolverLike, as_resolver
from entity_mapping.exceptions import AmbiguousEntityName, MappingError, UnknownEntityName, UnknownFetchProfile
from entity_mapping.fetch import FetchProfile
from entity_mapping.user_type import UserType

logger = logging.getLogger(__name__)


@attr.s(auto_attribs=True)
class Registry:
    entities_to_aets: Dict[str, AbstractEntityTree] = attr.Factory(dict)
    entity_names: Dict[Type[Entity], List[str]] = attr.Factory(dict)
    repositories: Dict[str, Type] = attr.Factory(dict)
    entity_name_resolvers: List[EntityNameResolver] = attr.Factory(list)
    user_types: Dict[Type, UserType] = attr.Factory(dict)
    fetch_profiles: Dict[str, FetchProfile] = attr.Factory(dict)

    def register_entity(self, entity_cls: Type[Entity], entity_name: Optional[str] = None) -> AbstractEntityTree:
        entity_name = entity_name or default_entity_name(entity_cls)
        aet = self.entities_to_aets.get(entity_name)
        if aet is not None:
            if aet.root.type is not entity_cls:
                raise ValueError(f"Entity name {entity_name} is already taken by {aet.root.type.__name__}")
            return aet

        aet = build(entity_cls, entity_name, self.user_types)
        self.entities_to_aets[entity_name] = aet
        self.entity_names.setdefault(entity_cls, []).append(entity_name)
        logger.debug("Registered %s as entity %s", entity_cls.__name__, entity_name)
        return aet

    def register_user_type(self, user_type: UserType) -> None:
        value_class = user_type.returned_class
        stale = [
            entity_name
            for entity_name, aet in self.entities_to_aets.items()
            if any(isinstance(node, FieldNode) and node.type is value_class and node.user_type is None for node in aet)
        ]
        if stale:
            raise MappingError(
                f"{value_class.__name__} fields of {', '.join(stale)} are mapped already, "
                f"register {type(user_type).__name__} before their repositories"
            )
        self.user_types[value_class] = user_type

    def add_entity_name_resolver(self, *resolvers: ResolverLike) -> None:
        self.entity_name_resolvers.extend(as_resolver(resolver) for resolver in resolvers)

    def add_fetch_profile(self, profile: FetchProfile) -> None:
        self.fetch_profiles[profile.name] = profile

    def get_fetch_profile(self, name: str) -> FetchProfile:
        try:
            return self.fetch_profiles[name]
        except KeyError:
            raise UnknownFetchProfile(f"Unknown fetch profile - {name}")

    def entity_name_from_resolvers(self, instance: Any) -> Optional[str]:
        for resolver in self.entity_name_resolvers:
            entity_name = resolver.resolve_entity_name(instance)
            if entity_name is None:
                continue
            if entity_name not in self.entities_to_aets:
                raise UnknownEntityName(f"{resolver!r} resolved unmapped entity name {entity_name}")
            return entity_name
        return None

    def resolve_entity_name(self, instance: Any) -> str:
        entity_name = self.entity_name_from_resolvers(instance)
        if entity_name is not None:
            return entity_name

        entity_names = self.entity_names.get(type(instance), [])
        if not entity_names:
            raise UnknownEntityName(f"{type(instance).__name__} is not mapped")
        if len(entity_names) > 1:
            raise AmbiguousEntityName(
                f"{type(instance).__name__} is mapped as {', '.join(entity_names)}, add an EntityNameResolver"
            )
        return entity_names[0]
