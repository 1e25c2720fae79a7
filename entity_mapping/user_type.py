"""Custom value types.

A :class:`UserType` is not a persistent attribute type itself, it serializes
instances of some other class (its :attr:`UserType.returned_class`) to and
from a single column. The mapped class should have value semantics, as its
identity is lost in the process.

Implementations must be immutable and constructible without arguments. A
field is mapped through a user type either explicitly::

    class Account(Entity):
        id: Identity[int]
        balance: Money = custom_type(MoneyType())

or for every field of the returned class, with
``Registry.register_user_type(MoneyType())``.
"""
import abc
import copy
import typing

import attr
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeEngine
from sqlalchemy.sql import sqltypes

J = typing.TypeVar("J")

USER_TYPE_METADATA_KEY = "entity_mapping.user_type"

DEFAULT_LENGTH = 255
DEFAULT_PRECISION = 19
DEFAULT_SCALE = 2


class ValueConverter(abc.ABC, typing.Generic[J]):
    """Converts an alternative representation into the domain value.

    Lets a column accept values of more than one class: anything that is not
    an instance of ``returned_class`` is converted before being written, or
    compared against in a query.
    """

    @abc.abstractmethod
    def to_domain_value(self, other_form: typing.Any) -> J:
        pass


class UserType(abc.ABC, typing.Generic[J]):
    default_sql_length: int = DEFAULT_LENGTH
    default_sql_precision: int = DEFAULT_PRECISION
    default_sql_scale: int = DEFAULT_SCALE

    @property
    @abc.abstractmethod
    def sql_type(self) -> typing.Union[typing.Type[TypeEngine], TypeEngine]:
        """SQLAlchemy type of the mapped column, ``String`` or ``Numeric(10, 4)`` alike."""

    @property
    @abc.abstractmethod
    def returned_class(self) -> typing.Type[J]:
        """The class returned by :meth:`null_safe_get`."""

    @abc.abstractmethod
    def null_safe_get(self, value: typing.Any, dialect: typing.Optional[Dialect], owner: typing.Any = None) -> J:
        """Column value to domain value. ``value`` may be None."""

    @abc.abstractmethod
    def null_safe_set(self, value: typing.Optional[J], dialect: typing.Optional[Dialect]) -> typing.Any:
        """Domain value to column value. ``value`` may be None."""

    @property
    def is_mutable(self) -> bool:
        return False

    def equals(self, x: typing.Optional[J], y: typing.Optional[J]) -> bool:
        """Equality of the persistent state."""
        return x == y

    def hash(self, x: J) -> int:
        """Hash consistent with :meth:`equals`."""
        return hash(x)

    def deep_copy(self, value: typing.Optional[J]) -> typing.Optional[J]:
        """Copy of the persistent state. Immutable values and None are returned as they are."""
        if value is None or not self.is_mutable:
            return value
        return copy.deepcopy(value)

    def disassemble(self, value: typing.Optional[J]) -> typing.Any:
        """Cacheable representation of ``value``, at least a deep copy for mutable types."""
        return self.deep_copy(value)

    def assemble(self, cached: typing.Any, owner: typing.Any) -> typing.Optional[J]:
        """Reconstruct a value from what :meth:`disassemble` returned."""
        return self.deep_copy(cached)

    def replace(self, detached: typing.Optional[J], managed: typing.Optional[J], owner: typing.Any) -> typing.Optional[J]:
        """Value to be put into the managed aggregate while merging ``detached`` into it."""
        return self.deep_copy(detached)

    def get_default_sql_length(self, dialect: typing.Optional[Dialect]) -> int:
        return self.default_sql_length

    def get_default_sql_precision(self, dialect: typing.Optional[Dialect]) -> int:
        return self.default_sql_precision

    def get_default_sql_scale(self, dialect: typing.Optional[Dialect]) -> int:
        return self.default_sql_scale

    def column_type(self, dialect: typing.Optional[Dialect] = None) -> TypeEngine:
        sql_type = self.sql_type
        if isinstance(sql_type, TypeEngine):
            return sql_type
        if issubclass(sql_type, (sqltypes.String, sqltypes.LargeBinary)):
            return sql_type(length=self.get_default_sql_length(dialect))
        if issubclass(sql_type, sqltypes.Float):
            return sql_type(precision=self.get_default_sql_precision(dialect))
        if issubclass(sql_type, sqltypes.Numeric):
            return sql_type(
                precision=self.get_default_sql_precision(dialect), scale=self.get_default_sql_scale(dialect)
            )
        return sql_type()

    @property
    def value_converter(self) -> typing.Optional[ValueConverter[J]]:
        return None


def custom_type(
    user_type: UserType, default: typing.Any = attr.NOTHING, factory: typing.Optional[typing.Callable] = None
) -> typing.Any:
    return attr.ib(default=default, factory=factory, metadata={USER_TYPE_METADATA_KEY: user_type})


def user_type_of(field: attr.Attribute) -> typing.Optional[UserType]:
    return field.metadata.get(USER_TYPE_METADATA_KEY)
