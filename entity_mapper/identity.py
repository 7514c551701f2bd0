"""Identity cache guaranteeing one live instance per persisted id."""

from collections.abc import Callable, Iterator, Mapping
from typing import Any

import structlog

from entity_mapper.converters import from_storage
from entity_mapper.entity import Entity

logger = structlog.get_logger()


class IdentityCache:
    """Maps ids to the single live instance representing them.

    Instances in the cache are the ones the next flush saves.
    """

    def __init__(self, entity_class: Callable[[str], type[Entity]]) -> None:
        """Initialize the cache.

        Args:
            entity_class: Returns the generated class for an entity name
        """
        self._entity_class = entity_class
        self._instances: dict[str, Entity] = {}

    def add(self, instance: Entity) -> None:
        """Register an instance unless its id is already registered."""
        if instance.id not in self._instances:
            self._instances[instance.id] = instance

    def get(self, entity_id: str) -> Entity | None:
        return self._instances.get(entity_id)

    def discard(self, entity_id: str) -> None:
        self._instances.pop(entity_id, None)

    def snapshot(self) -> list[Entity]:
        """Instances currently cached, in registration order."""
        return list(self._instances.values())

    def from_row(self, entity_name: str, row: Mapping[str, Any], column_prefix: str = "") -> Entity:
        """Turn a result row into an entity instance.

        If the row's id is already cached, the cached instance is returned and
        the row's other columns are ignored.

        Args:
            entity_name: Name of the entity the row belongs to
            row: Column values keyed by column name
            column_prefix: Prefix of this entity's columns in the row, for joined results

        Returns:
            The live instance for the row's id
        """
        entity_id = row[f"{column_prefix}id"]
        cached = self._instances.get(entity_id)
        if cached is not None:
            logger.debug("Identity cache hit", entity=entity_name, entity_id=entity_id)
            return cached

        cls = self._entity_class(entity_name)
        meta = cls.meta
        instance = cls._materialize(entity_id)
        for column in row.keys():
            if not column.startswith(column_prefix):
                continue
            name = column[len(column_prefix) :]
            if name == "id":
                continue
            if name in meta.fields:
                setattr(instance, name, from_storage(row[column], meta.fields[name]))
            elif name in meta.has_one:
                setattr(instance, name, row[column])
            else:
                logger.debug("Skipping unmapped column", entity=entity_name, column=column)
        instance._take_dirty()

        self._instances[entity_id] = instance
        return instance

    def clear(self) -> None:
        """Forget every cached instance."""
        self._instances.clear()

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._instances

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._instances.values()))

    def __len__(self) -> int:
        return len(self._instances)
