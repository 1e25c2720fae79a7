from typing import Any, List, Type, Union

import attr
import pytest
from sqlalchemy.orm import Session

from entity_mapping import Entity, Identity, Repository, ValueObject
from entity_mapping.exceptions import MappingError
from entity_mapping.storages.sqlalchemy import SqlAlchemyRepo
from entity_mapping.storages.sqlalchemy.registry import SaRegistry


class InvoiceLine(Entity):
    id: Identity[int]
    sku: str
    quantity: int


class Invoice(Entity):
    id: Identity[int]
    number: str
    lines: List[InvoiceLine] = attr.ib(factory=list)


class CreditNote(Entity):
    id: Identity[int]
    lines: List[InvoiceLine] = attr.ib(factory=list)


class Adjustment(ValueObject):
    reason: str
    amount: int


class Statement(Entity):
    id: Identity[int]
    adjustments: List[Adjustment] = attr.ib(factory=list)


InvoiceRepo = Repository[Invoice, int]


@pytest.fixture()
def sa_repo(sa_base: Any) -> Type[Union[SqlAlchemyRepo, InvoiceRepo]]:
    class SaInvoiceRepo(SqlAlchemyRepo, InvoiceRepo):
        base = sa_base
        registry = SaRegistry()

    return SaInvoiceRepo


def lines_rows(session: Session, sa_repo: Type[SqlAlchemyRepo]) -> list:
    table = sa_repo.registry.entities_models["invoice_line"].__table__
    return [dict(row._mapping) for row in session.execute(table.select().order_by(table.c.id))]


def test_elements_table_refers_to_owner(sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]]) -> None:
    lines_table = sa_repo.registry.entities_models["invoice_line"].__table__

    assert lines_table.name == "invoice_lines"
    assert set(lines_table.columns.keys()) == {"id", "sku", "quantity", "invoice_id"}
    assert not lines_table.c.invoice_id.nullable
    assert [fk.target_fullname for fk in lines_table.c.invoice_id.foreign_keys] == ["invoices.id"]


def test_saves_every_element(sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]], session: Session) -> None:
    sa_repo(session).save(
        Invoice(id=1, number="FV/1", lines=[InvoiceLine(id=1, sku="A", quantity=2), InvoiceLine(id=2, sku="B", quantity=1)])
    )

    assert lines_rows(session, sa_repo) == [
        {"id": 1, "sku": "A", "quantity": 2, "invoice_id": 1},
        {"id": 2, "sku": "B", "quantity": 1, "invoice_id": 1},
    ]


def test_elements_come_back_ordered_by_identity(
    sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]], session: Session
) -> None:
    sa_repo(session).save(
        Invoice(id=1, number="FV/1", lines=[InvoiceLine(id=7, sku="B", quantity=1), InvoiceLine(id=3, sku="A", quantity=2)])
    )
    session.expunge_all()

    assert sa_repo(session).get(1) == Invoice(
        id=1, number="FV/1", lines=[InvoiceLine(id=3, sku="A", quantity=2), InvoiceLine(id=7, sku="B", quantity=1)]
    )


def test_empty_list(sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]], session: Session) -> None:
    sa_repo(session).save(Invoice(id=1, number="FV/1"))
    session.expunge_all()

    assert sa_repo(session).get(1) == Invoice(id=1, number="FV/1", lines=[])


def test_removed_elements_are_deleted(sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]], session: Session) -> None:
    sa_repo(session).save(
        Invoice(id=1, number="FV/1", lines=[InvoiceLine(id=1, sku="A", quantity=2), InvoiceLine(id=2, sku="B", quantity=1)])
    )
    session.expunge_all()
    repo = sa_repo(session)
    invoice = repo.get(1)

    invoice.lines.pop()
    invoice.lines[0].quantity = 5
    repo.save(invoice)

    assert lines_rows(session, sa_repo) == [{"id": 1, "sku": "A", "quantity": 5, "invoice_id": 1}]


def test_element_can_not_be_owned_by_two_aggregates(
    sa_repo: Type[Union[SqlAlchemyRepo, InvoiceRepo]], sa_base: Any
) -> None:
    with pytest.raises(MappingError):

        class SaCreditNoteRepo(SqlAlchemyRepo, Repository[CreditNote, int]):
            base = sa_base
            registry = sa_repo.registry


def test_lists_of_value_objects_are_not_supported(sa_base: Any) -> None:
    with pytest.raises(NotImplementedError):

        class SaStatementRepo(SqlAlchemyRepo, Repository[Statement, int]):
            base = sa_base
            registry = SaRegistry()
