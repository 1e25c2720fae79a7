import enum
import inspect
import typing
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Enum, Float, Integer, Numeric, String, Uuid

from entity_mapping.abstract_entity_tree import FieldNode
from entity_mapping.exceptions import MappingError
from entity_mapping.storages.sqlalchemy.types import CustomType
from entity_mapping.user_type import DEFAULT_LENGTH, DEFAULT_PRECISION, DEFAULT_SCALE


mapping = {
    int: Integer,
    str: String(DEFAULT_LENGTH),
    bool: Boolean,
    uuid.UUID: Uuid,
    float: Float,
    Decimal: Numeric(DEFAULT_PRECISION, DEFAULT_SCALE),
    datetime: DateTime,
    date: Date,
}


def convert(field: FieldNode) -> typing.Any:
    if field.user_type is not None:
        return CustomType(field.user_type)
    if inspect.isclass(field.type) and issubclass(field.type, enum.Enum):
        return Enum(field.type)
    try:
        return mapping[field.type]
    except KeyError:
        raise MappingError(f"Unsupported type - {field.type}, register a UserType for it")
