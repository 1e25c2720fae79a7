import typing

import attr
import pytest
from sqlalchemy import String
from sqlalchemy.engine import Dialect

from entity_mapping import Entity, Identity, UserType, ValueObject, custom_type
from entity_mapping.abstract_entity_tree import AbstractEntityTree, build
from entity_mapping.state import assemble_aggregate, extract_state, merge_states, snapshot, states_equal


@attr.s(auto_attribs=True)
class Notes:
    lines: typing.List[str]


class NotesType(UserType[Notes]):
    sql_type = String
    returned_class = Notes

    def __init__(self) -> None:
        self.replaced: typing.List[typing.Tuple[typing.Any, typing.Any, typing.Any]] = []

    @property
    def is_mutable(self) -> bool:
        return True

    def equals(self, x: typing.Optional[Notes], y: typing.Optional[Notes]) -> bool:
        # persistence equality ignores blank lines
        def significant(notes: typing.Optional[Notes]) -> typing.Optional[typing.List[str]]:
            return None if notes is None else [line for line in notes.lines if line]

        return significant(x) == significant(y)

    def null_safe_get(self, value: typing.Any, dialect: typing.Optional[Dialect], owner: typing.Any = None) -> Notes:
        return None if value is None else Notes(value.split("\n"))

    def null_safe_set(self, value: typing.Optional[Notes], dialect: typing.Optional[Dialect]) -> typing.Any:
        return None if value is None else "\n".join(value.lines)

    def disassemble(self, value: typing.Optional[Notes]) -> typing.Any:
        return None if value is None else tuple(value.lines)

    def assemble(self, cached: typing.Any, owner: typing.Any) -> typing.Optional[Notes]:
        return None if cached is None else Notes(list(cached))

    def replace(self, detached: typing.Optional[Notes], managed: typing.Optional[Notes], owner: typing.Any) -> Notes:
        self.replaced.append((detached, managed, owner))
        return super().replace(detached, managed, owner)


NOTES_TYPE = NotesType()


class Address(ValueObject):
    city: str
    street: typing.Optional[str] = None


class Task(Entity):
    id: Identity[int]
    title: str
    notes: typing.Optional[Notes] = custom_type(NOTES_TYPE, default=None)


class Project(Entity):
    id: Identity[int]
    name: str
    tasks: typing.List[Task] = attr.ib(factory=list)
    address: typing.Optional[Address] = None
    notes: typing.Optional[Notes] = custom_type(NOTES_TYPE, default=None)


@pytest.fixture()
def aet() -> AbstractEntityTree:
    return build(Project)


@pytest.fixture()
def project() -> Project:
    return Project(
        id=1,
        name="Migration",
        tasks=[Task(1, "Plan", Notes(["first"])), Task(2, "Execute")],
        address=Address("Warsaw"),
        notes=Notes(["kick-off", ""]),
    )


def test_extracts_nested_state(aet: AbstractEntityTree, project: Project) -> None:
    assert extract_state(aet, project) == {
        "id": 1,
        "name": "Migration",
        "tasks": [
            {"id": 1, "title": "Plan", "notes": Notes(["first"])},
            {"id": 2, "title": "Execute", "notes": None},
        ],
        "address": {"city": "Warsaw", "street": None},
        "notes": Notes(["kick-off", ""]),
    }


def test_absent_value_object_is_none_in_state(aet: AbstractEntityTree) -> None:
    assert extract_state(aet, Project(id=2, name="Empty"))["address"] is None


def test_assembles_what_was_extracted(aet: AbstractEntityTree, project: Project) -> None:
    assert assemble_aggregate(aet, extract_state(aet, project)) == project


def test_disassembled_state_goes_through_user_type(aet: AbstractEntityTree, project: Project) -> None:
    def disassemble(field, value):
        return value if field.user_type is None else field.user_type.disassemble(value)

    def assemble(field, value):
        return value if field.user_type is None else field.user_type.assemble(value, owner=project.id)

    state = extract_state(aet, project, disassemble)

    assert state["notes"] == ("kick-off", "")
    assert state["tasks"][0]["notes"] == ("first",)
    assert assemble_aggregate(aet, state, assemble) == project


def test_snapshot_is_not_affected_by_later_changes(aet: AbstractEntityTree, project: Project) -> None:
    taken = snapshot(aet, project)

    project.notes.lines.append("late addition")

    assert taken["notes"] == Notes(["kick-off", ""])
    assert not states_equal(aet.root, taken, snapshot(aet, project))


def test_states_compare_user_typed_fields_with_user_type(aet: AbstractEntityTree, project: Project) -> None:
    taken = snapshot(aet, project)

    project.notes = Notes(["kick-off"])

    assert states_equal(aet.root, taken, snapshot(aet, project))


@pytest.mark.parametrize(
    "change",
    [
        lambda project: setattr(project, "name", "Rollback"),
        lambda project: setattr(project, "address", None),
        lambda project: project.tasks.pop(),
        lambda project: setattr(project.tasks[1], "title", "Ship"),
    ],
)
def test_states_differ_on_any_change(
    aet: AbstractEntityTree, project: Project, change: typing.Callable[[Project], None]
) -> None:
    taken = snapshot(aet, project)

    change(project)

    assert not states_equal(aet.root, taken, snapshot(aet, project))


def test_missing_state_differs_from_any_state(aet: AbstractEntityTree, project: Project) -> None:
    assert not states_equal(aet.root, None, snapshot(aet, project))


def test_merge_replaces_user_typed_values(aet: AbstractEntityTree, project: Project) -> None:
    NOTES_TYPE.replaced.clear()
    managed = Project(id=1, name="Old", tasks=[Task(1, "Plan", Notes(["old"]))], notes=Notes(["old"]))
    detached_state = extract_state(aet, project)

    merged = merge_states(aet.root, detached_state, extract_state(aet, managed), managed)

    assert assemble_aggregate(aet, merged) == project
    assert merged["notes"] is not project.notes
    assert (Notes(["kick-off", ""]), Notes(["old"]), managed) in NOTES_TYPE.replaced
    assert (Notes(["first"]), Notes(["old"]), managed) in NOTES_TYPE.replaced
    assert (None, None, managed) in NOTES_TYPE.replaced


def test_merge_without_managed_state_copies_detached(aet: AbstractEntityTree, project: Project) -> None:
    merged = merge_states(aet.root, extract_state(aet, project), None, None)

    assert assemble_aggregate(aet, merged) == project
