"""Data models for entity mapper."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from entity_mapper.driver import Transaction
    from entity_mapper.errors import MapperError


class StorageType(Enum):
    """Column storage types an entity field may declare.

    The value of each member is the SQL column type used in CREATE TABLE.
    """

    TEXT = "TEXT"
    INT = "INT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    NUMERIC = "NUMERIC"
    BLOB = "BLOB"
    BOOL = "BOOL"
    KEY = "VARCHAR(32)"

    @classmethod
    def parse(cls, tag: "str | StorageType") -> "StorageType":
        """Turn a type tag such as ``"TEXT"`` or ``"bool"`` into a member."""
        if isinstance(tag, cls):
            return tag
        normalized = str(tag).strip().upper()
        for member in cls:
            if normalized in (member.name, member.value):
                return member
        raise ValueError(f"Unknown storage type: {tag!r}")


class DrainOrder(Enum):
    """Order in which schema sync, reset and flush process their work items."""

    DEPENDENCY = "dependency"
    REGISTRATION = "registration"


class EntityState(Enum):
    """Lifecycle state of an entity instance."""

    TRANSIENT = "transient"
    CLEAN = "clean"
    DIRTY = "dirty"


@dataclass(eq=False)
class EntityMeta:
    """Metadata describing one entity and the table it maps to."""

    name: str
    fields: dict[str, StorageType] = field(default_factory=dict)
    has_one: dict[str, "EntityMeta"] = field(default_factory=dict)
    has_many: dict[str, "EntityMeta"] = field(default_factory=dict)

    def columns(self) -> list[tuple[str, StorageType]]:
        """Columns of the entity's table, excluding the id primary key."""
        cols = list(self.fields.items())
        cols.extend((relation, StorageType.KEY) for relation in self.has_one)
        return cols

    def storage_type(self, name: str) -> StorageType | None:
        """Declared storage type of a field, or None for relations and unknown names."""
        return self.fields.get(name)

    def __repr__(self) -> str:
        return (
            f"EntityMeta(name={self.name!r}, fields={list(self.fields)}, "
            f"has_one={list(self.has_one)}, has_many={list(self.has_many)})"
        )


@dataclass
class Outcome:
    """Result of a sequenced run such as schema sync, reset or flush."""

    total: int
    completed: int = 0
    error: "MapperError | None" = None
    transaction: "Transaction | None" = None

    @property
    def ok(self) -> bool:
        return self.error is None
