"""Declarative fetch strategies for associations.

An association is a field holding a nested entity (``plan: Plan``) or a list of
entities (``invoices: List[Invoice]``). Its loading strategy is declared with
:func:`fetch`::

    class Subscriber(Entity):
        id: Identity[int]
        plan: Plan = fetch(FetchMode.SELECT)
        invoices: List[Invoice] = fetch(FetchMode.SUBSELECT, factory=list)

and may be overridden per query with a :class:`FetchProfile`.
"""
import enum
import typing

import attr

FETCH_METADATA_KEY = "entity_mapping.fetch"


class FetchMode(enum.Enum):
    # eager, outer join in the statement loading the owner
    JOIN = "JOIN"
    # lazy, separate select issued on first access
    SELECT = "SELECT"
    # collections only, one statement loads collections of every owner returned by the original query
    SUBSELECT = "SUBSELECT"


@attr.s(auto_attribs=True, frozen=True)
class Fetch:
    value: FetchMode

    @classmethod
    def of(cls, field: attr.Attribute) -> typing.Optional["Fetch"]:
        return field.metadata.get(FETCH_METADATA_KEY)


def fetch(mode: FetchMode, default: typing.Any = attr.NOTHING, factory: typing.Optional[typing.Callable] = None) -> typing.Any:
    return attr.ib(default=default, factory=factory, metadata={FETCH_METADATA_KEY: Fetch(mode)})


def default_fetch_mode(is_collection: bool) -> FetchMode:
    return FetchMode.SELECT if is_collection else FetchMode.JOIN


@attr.s(auto_attribs=True, frozen=True)
class FetchProfile:
    name: str
    # (entity name, association name) -> mode
    overrides: typing.Mapping[typing.Tuple[str, str], FetchMode] = attr.Factory(dict)

    def mode_for(self, entity_name: str, association: str) -> typing.Optional[FetchMode]:
        return self.overrides.get((entity_name, association))
