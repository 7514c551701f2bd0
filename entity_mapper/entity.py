"""Entity instances with tracked field and relation accessors."""

from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

import structlog

from entity_mapper.errors import MapperError, UnknownField, UnresolvedRelation
from entity_mapper.models import EntityMeta, EntityState

if TYPE_CHECKING:
    from entity_mapper.driver import Transaction
    from entity_mapper.session import Session

logger = structlog.get_logger()


class FieldAccessor:
    """Reads and writes one declared field, marking it dirty on write."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, instance: "Entity | None", owner: type) -> Any:
        if instance is None:
            return self
        return instance._data.get(self.name)

    def __set__(self, instance: "Entity", value: Any) -> None:
        instance._data[self.name] = value
        instance._mark_dirty(self.name)


class HasOneAccessor:
    """Single-valued relation whose foreign key lives on the owning instance."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, instance: "Entity | None", owner: type) -> Any:
        if instance is None:
            return self
        if self.name in instance._refs:
            return instance._refs[self.name]
        raise UnresolvedRelation(instance.entity_name, self.name, instance._data.get(self.name))

    def __set__(self, instance: "Entity", value: Any) -> None:
        if value is None:
            instance._data[self.name] = None
            instance._refs.pop(self.name, None)
        elif isinstance(value, Entity):
            instance._data[self.name] = value.id
            instance._refs[self.name] = value
        else:
            instance._data[self.name] = value
            instance._refs.pop(self.name, None)
        instance._mark_dirty(self.name)


class HasManyAccessor:
    """Collection-valued relation, readable once a collection has been resolved."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __get__(self, instance: "Entity | None", owner: type) -> Any:
        if instance is None:
            return self
        if self.name in instance._refs:
            return instance._refs[self.name]
        raise UnresolvedRelation(instance.entity_name, self.name, instance.id)

    def __set__(self, instance: "Entity", value: Any) -> None:
        raise AttributeError(f"Collection '{self.name}' is not assignable, use resolve() to attach fetched items")


class Entity:
    """Base class of every generated entity class.

    Subclasses are produced by :func:`build_entity_class`, one per entity name
    and session. Each declared field and relation becomes a class-level
    accessor, so ``person.name = "Alice"`` stores the value and marks
    ``name`` dirty.
    """

    meta: ClassVar[EntityMeta]
    session: ClassVar["Session"]

    def __init__(self, values: Mapping[str, Any] | None = None, /, **kwargs: Any) -> None:
        """Create a transient instance.

        Args:
            values: Initial field and relation values
            **kwargs: More initial values, applied after ``values``
        """
        if not hasattr(type(self), "meta"):
            raise TypeError(f"{type(self).__name__} is not an entity class, create one with Session.define()")
        self._init_state(self.session.new_id(), is_new=True)
        initial = dict(values or {})
        initial.update(kwargs)
        for name, value in initial.items():
            self.set(name, value)

    def _init_state(self, entity_id: str, is_new: bool) -> None:
        self._id = entity_id
        self._new = is_new
        self._dirty: dict[str, None] = {}
        self._data: dict[str, Any] = {}
        self._refs: dict[str, Any] = {}

    @classmethod
    def _materialize(cls, entity_id: str) -> "Entity":
        """Build an already persisted instance without running the initializer."""
        instance = cls.__new__(cls)
        instance._init_state(entity_id, is_new=False)
        return instance

    @property
    def id(self) -> str:
        return self._id

    @property
    def entity_name(self) -> str:
        return self.meta.name

    @property
    def is_new(self) -> bool:
        return self._new

    @property
    def dirty_fields(self) -> tuple[str, ...]:
        """Names mutated since the last save, in mutation order."""
        return tuple(self._dirty)

    @property
    def state(self) -> EntityState:
        if self._new:
            return EntityState.TRANSIENT
        return EntityState.DIRTY if self._dirty else EntityState.CLEAN

    def get(self, name: str) -> Any:
        """Read a field or a resolved hasOne relation by name."""
        self._check_name(name)
        return getattr(self, name)

    def set(self, name: str, value: Any) -> None:
        """Assign a field or hasOne relation by name."""
        self._check_name(name)
        setattr(self, name, value)

    def foreign_key(self, name: str) -> Any:
        """Stored id of a hasOne relation, whether or not its target is resolved."""
        if name not in self.meta.has_one:
            raise UnknownField(self.entity_name, name)
        return self._data.get(name)

    def resolve(self, name: str, value: Any) -> None:
        """Attach an explicitly fetched relation target or collection.

        Nothing is marked dirty; this is how fetched data becomes readable
        through the relation accessors.
        """
        if name in self.meta.has_one:
            if isinstance(value, Entity):
                self._data[name] = value.id
            self._refs[name] = value
        elif name in self.meta.has_many:
            self._refs[name] = value
        else:
            raise UnknownField(self.entity_name, name)

    def remove(self, transaction: "Transaction", callback: Callable[[MapperError | None], None]) -> None:
        """Delete this instance's row. The instance must not be reused afterward."""
        self.session.remove(self, transaction, callback)

    @classmethod
    def has_many(cls, collection: str, target: "type[Entity]", inverse: str) -> None:
        """Declare a collection on this entity and the inverse hasOne on ``target``."""
        cls.session.has_many(collection, cls, target, inverse)

    def _check_name(self, name: str) -> None:
        if name not in self.meta.fields and name not in self.meta.has_one:
            raise UnknownField(self.entity_name, name)

    def _mark_dirty(self, name: str) -> None:
        self._dirty[name] = None

    def _take_dirty(self) -> tuple[str, ...]:
        """Return the dirty names and clear them."""
        names = tuple(self._dirty)
        self._dirty = {}
        return names

    def _mark_inserted(self) -> None:
        self._new = False

    def _restore_dirty(self, names: tuple[str, ...], is_new: bool) -> None:
        """Undo a save whose statement did not persist.

        ``names`` are marked dirty again ahead of any writes made since.
        """
        dirty = dict.fromkeys(names)
        dirty.update(self._dirty)
        self._dirty = dirty
        self._new = is_new

    def __repr__(self) -> str:
        return f"<{self.entity_name} id={self._id} state={self.state.value}>"


RESERVED_NAMES = frozenset(name for name in dir(Entity) if not name.startswith("__")) | {"id", "meta", "session"}


def check_names(entity_name: str, names: Iterable[str]) -> None:
    """Reject field or relation names that would shadow the entity API."""
    for name in names:
        if not name.isidentifier() or name.startswith("_") or name in RESERVED_NAMES:
            raise ValueError(f"Invalid field name for {entity_name}: {name!r}")


def build_entity_class(session: "Session", meta: EntityMeta) -> type[Entity]:
    """Generate the class for an entity, with one accessor per field and relation."""
    namespace: dict[str, Any] = {"meta": meta, "session": session, "__module__": __name__}
    for name in meta.fields:
        namespace[name] = FieldAccessor(name)
    for name in meta.has_one:
        namespace[name] = HasOneAccessor(name)
    for name in meta.has_many:
        namespace[name] = HasManyAccessor(name)
    logger.debug("Building entity class", entity=meta.name, fields=list(meta.fields))
    return type(meta.name, (Entity,), namespace)


def install_relation(owner: type[Entity], collection: str, target: type[Entity], inverse: str) -> None:
    """Add the accessors for a freshly declared hasMany/hasOne pair."""
    setattr(owner, collection, HasManyAccessor(collection))
    setattr(target, inverse, HasOneAccessor(inverse))
