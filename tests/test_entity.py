"""Tests for generated entity classes."""

import pytest

from entity_mapper.entity import Entity
from entity_mapper.errors import UnknownField, UnresolvedRelation
from entity_mapper.ids import ID_LENGTH
from entity_mapper.models import EntityState
from entity_mapper.session import Session


@pytest.fixture
def models(session: Session) -> tuple[type[Entity], type[Entity]]:
    """Person and Pet with Person.pets / Pet.owner."""
    Person = session.define("Person", {"name": "TEXT", "age": "INT"})
    Pet = session.define("Pet", {"name": "TEXT", "indoor": "BOOL"})
    Person.has_many("pets", Pet, "owner")
    return Person, Pet


def test_construction(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test that initializer values become dirty fields of a transient instance."""
    Person, _ = models
    person = Person({"name": "Alice", "age": 30})
    assert person.name == "Alice"
    assert person.age == 30
    assert person.is_new
    assert person.state is EntityState.TRANSIENT
    assert person.dirty_fields == ("name", "age")
    assert person.entity_name == "Person"
    assert isinstance(person, Entity)


def test_construction_with_keywords(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person({"name": "Alice"}, age=31)
    assert person.dirty_fields == ("name", "age")
    assert person.age == 31


def test_ids_are_unique_and_fixed_length() -> None:
    """Test generated ids."""
    session = Session()
    Person = session.define("Person", {"name": "TEXT"})
    ids = {Person().id for _ in range(100)}
    assert len(ids) == 100
    assert all(len(entity_id) == ID_LENGTH for entity_id in ids)


def test_id_is_read_only(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person()
    with pytest.raises(AttributeError):
        person.id = "other"  # type: ignore[misc]


def test_unset_field_reads_none(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person()
    assert person.name is None
    assert person.dirty_fields == ()


def test_field_write_marks_dirty(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person()
    person.age = 5
    person.set("name", "Bob")
    assert person.dirty_fields == ("age", "name")
    assert person.get("name") == "Bob"


def test_unknown_field(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test that undeclared names are rejected."""
    Person, _ = models
    with pytest.raises(UnknownField):
        Person(email="alice@example.com")
    with pytest.raises(AttributeError):
        Person().set("email", "alice@example.com")


def test_has_one_with_instance(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test assigning a related instance."""
    Person, Pet = models
    alice = Person(name="Alice")
    rex = Pet(name="Rex")
    rex.owner = alice
    assert rex.owner is alice
    assert rex.foreign_key("owner") == alice.id
    assert "owner" in rex.dirty_fields


def test_has_one_with_bare_id(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test that a bare id sets the key without a resolved target."""
    Person, Pet = models
    alice = Person(name="Alice")
    rex = Pet(owner=alice)
    rex.owner = "f" * 32
    assert rex.foreign_key("owner") == "f" * 32
    assert "owner" in rex.dirty_fields
    with pytest.raises(UnresolvedRelation) as exc_info:
        rex.owner
    assert exc_info.value.key == "f" * 32


def test_has_one_cleared(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test that assigning None clears key and target."""
    Person, Pet = models
    rex = Pet(owner=Person(name="Alice"))
    rex.owner = None
    assert rex.foreign_key("owner") is None
    with pytest.raises(UnresolvedRelation):
        rex.owner


def test_unfetched_relations_raise(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test that unfetched relations fail instead of returning None."""
    Person, Pet = models
    with pytest.raises(UnresolvedRelation):
        Person(name="Alice").pets
    with pytest.raises(UnresolvedRelation):
        Pet(name="Rex").owner


def test_resolve(models: tuple[type[Entity], type[Entity]]) -> None:
    """Test attaching fetched relations without dirtying the instance."""
    Person, Pet = models
    alice = Person._materialize("a" * 32)
    rex = Pet._materialize("b" * 32)

    alice.resolve("pets", [rex])
    rex.resolve("owner", alice)

    assert alice.pets == [rex]
    assert rex.owner is alice
    assert rex.foreign_key("owner") == alice.id
    assert alice.dirty_fields == ()
    assert rex.dirty_fields == ()
    with pytest.raises(UnknownField):
        alice.resolve("friends", [])


def test_collection_not_assignable(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    with pytest.raises(AttributeError, match="not assignable"):
        Person().pets = []


def test_define_twice_returns_first_class(session: Session) -> None:
    """Test that redefinition is absorbed and the second field set has no effect."""
    Person = session.define("Person", {"name": "TEXT"})
    Again = session.define("Person", {"email": "TEXT"})
    assert Again is Person
    with pytest.raises(UnknownField):
        Again(email="alice@example.com")


@pytest.mark.parametrize("name", ["id", "remove", "is_new", "_data", "not valid"])
def test_reserved_field_names(session: Session, name: str) -> None:
    with pytest.raises(ValueError, match="Invalid field name"):
        session.define("Bad", {name: "TEXT"})


def test_sessions_are_isolated() -> None:
    """Test that two sessions keep separate definitions."""
    first = Session()
    second = Session()
    A = first.define("Person", {"name": "TEXT"})
    B = second.define("Person", {"email": "TEXT"})
    assert A is not B
    assert B(email="x").email == "x"
    assert first.get_meta("Person") is not second.get_meta("Person")


def test_state_transitions(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person._materialize("c" * 32)
    assert person.state is EntityState.CLEAN
    person.age = 40
    assert person.state is EntityState.DIRTY


def test_repr(models: tuple[type[Entity], type[Entity]]) -> None:
    Person, _ = models
    person = Person()
    assert repr(person) == f"<Person id={person.id} state=transient>"


def test_base_class_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError, match="not an entity class"):
        Entity()


def test_relation_name_clash_keeps_field(session: Session) -> None:
    """Test that a clashing inverse name leaves the existing field accessor in place."""
    Person = session.define("Person", {"name": "TEXT"})
    Pet = session.define("Pet", {"owner": "TEXT"})
    with pytest.raises(ValueError):
        Person.has_many("pets", Pet, "owner")

    pet = Pet(owner="Alice")
    assert pet.owner == "Alice"
    assert pet.dirty_fields == ("owner",)
    assert not hasattr(Person, "pets")
