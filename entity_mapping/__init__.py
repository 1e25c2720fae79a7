from entity_mapping.entity import Entity, Identity, ValueObject
from entity_mapping.entity_name_resolver import AttributeEntityNameResolver, EntityNameResolver
from entity_mapping.fetch import Fetch, FetchMode, FetchProfile, fetch
from entity_mapping.registry import Registry
from entity_mapping.repository import ReadOnlyRepository, Repository
from entity_mapping.user_type import UserType, ValueConverter, custom_type

__all__ = [
    "AttributeEntityNameResolver",
    "Entity",
    "EntityNameResolver",
    "Fetch",
    "FetchMode",
    "FetchProfile",
    "Identity",
    "ReadOnlyRepository",
    "Registry",
    "Repository",
    "UserType",
    "ValueConverter",
    "ValueObject",
    "custom_type",
    "fetch",
]
