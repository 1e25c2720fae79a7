import typing

from sqlalchemy.engine import Dialect
from sqlalchemy.types import NullType, TypeDecorator, TypeEngine

from entity_mapping.user_type import UserType


class CustomType(TypeDecorator):
    """Adapts a :class:`~entity_mapping.user_type.UserType` to a SQLAlchemy column type."""

    impl = NullType
    cache_ok = True

    def __init__(self, user_type: UserType) -> None:
        super().__init__()
        self.user_type = user_type
        self.impl = user_type.column_type()

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine:
        return dialect.type_descriptor(self.user_type.column_type(dialect))

    def process_bind_param(self, value: typing.Any, dialect: Dialect) -> typing.Any:
        converter = self.user_type.value_converter
        if value is not None and converter is not None and not isinstance(value, self.user_type.returned_class):
            value = converter.to_domain_value(value)
        return self.user_type.null_safe_set(value, dialect)

    def process_result_value(self, value: typing.Any, dialect: Dialect) -> typing.Any:
        return self.user_type.null_safe_get(value, dialect)

    def compare_values(self, x: typing.Any, y: typing.Any) -> bool:
        return self.user_type.equals(x, y)

    def copy_value(self, value: typing.Any) -> typing.Any:
        return self.user_type.deep_copy(value)

    @property
    def python_type(self) -> typing.Type:
        return self.user_type.returned_class
