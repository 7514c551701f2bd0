"""Persistence of dirty entity instances as INSERT, UPDATE and DELETE statements."""

from collections.abc import Callable
from typing import Any

import structlog

from entity_mapper.converters import to_storage
from entity_mapper.driver import Transaction
from entity_mapper.entity import Entity
from entity_mapper.errors import MapperError
from entity_mapper.identity import IdentityCache
from entity_mapper.models import DrainOrder, Outcome
from entity_mapper.registry import MetadataRegistry
from entity_mapper.sequencer import Sequencer

logger = structlog.get_logger()

Statement = tuple[str, list[Any]]
Done = Callable[[MapperError | None], Any]


def insert_statement(instance: Entity, names: tuple[str, ...]) -> Statement:
    """INSERT of the given columns plus the id."""
    columns = [f"`{name}`" for name in names] + ["id"]
    values = [_column_value(instance, name) for name in names] + [instance.id]
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO `{instance.entity_name}` ({', '.join(columns)}) VALUES ({placeholders})", values


def update_statement(instance: Entity, names: tuple[str, ...]) -> Statement:
    """UPDATE of exactly the given columns, keyed by id."""
    assignments = ", ".join(f"`{name}` = ?" for name in names)
    values = [_column_value(instance, name) for name in names] + [instance.id]
    return f"UPDATE `{instance.entity_name}` SET {assignments} WHERE id = ?", values


def delete_statement(instance: Entity) -> Statement:
    return f"DELETE FROM `{instance.entity_name}` WHERE id = ?", [instance.id]


def _column_value(instance: Entity, name: str) -> Any:
    if name in instance.meta.has_one:
        return to_storage(instance.foreign_key(name))
    return to_storage(instance.get(name), instance.meta.fields[name])


class PersistenceEngine:
    """Saves tracked instances and deletes removed ones."""

    def __init__(
        self,
        registry: MetadataRegistry,
        cache: IdentityCache,
        order: DrainOrder = DrainOrder.DEPENDENCY,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.order = order

    def track(self, instance: Entity) -> None:
        """Make an instance eligible for the next flush."""
        self.cache.add(instance)

    def save(self, instance: Entity, transaction: Transaction, callback: Done) -> None:
        """Persist the dirty fields of one instance.

        New instances are inserted, others updated. Without dirty fields no
        statement is issued and ``callback`` is called right away. If the
        statement fails the instance gets its dirty fields and ``is_new``
        back, so it can be saved again.
        """
        if not instance.dirty_fields:
            callback(None)
            return

        was_new = instance.is_new
        if was_new:
            sql, values = insert_statement(instance, instance.dirty_fields)
        else:
            sql, values = update_statement(instance, instance.dirty_fields)
        # Later mutations belong to the next save.
        names = instance._take_dirty()
        if was_new:
            instance._mark_inserted()

        def failed(error: MapperError) -> None:
            instance._restore_dirty(names, was_new)
            logger.warning("Save failed", entity=instance.entity_name, entity_id=instance.id, error=str(error))
            callback(error)

        logger.debug("Saving entity", entity=instance.entity_name, entity_id=instance.id, sql=sql)
        try:
            transaction.execute(sql, values, lambda rows: callback(None), failed)
        except MapperError:
            instance._restore_dirty(names, was_new)
            raise

    def delete(self, instance: Entity, transaction: Transaction, callback: Done) -> None:
        """Delete an instance's row. The identity cache is not touched."""
        sql, values = delete_statement(instance)
        logger.debug("Deleting entity", entity=instance.entity_name, entity_id=instance.id)
        transaction.execute(sql, values, lambda rows: callback(None), callback)

    def flush(self, transaction: Transaction, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Save every tracked instance, one at a time.

        A failed statement rolls the whole transaction back, so when the
        flush fails every instance it already saved is restored to its
        state before the flush.
        """
        instances = self.flush_order(self.cache.snapshot())
        saved: list[tuple[Entity, tuple[str, ...], bool]] = []

        def step(instance: Entity, complete: Callable[[MapperError | None], None]) -> None:
            record = (instance, instance.dirty_fields, instance.is_new)

            def done(error: MapperError | None) -> None:
                if error is None and record[1]:
                    saved.append(record)
                complete(error)

            self.save(instance, transaction, done)

        def finished(outcome: Outcome) -> None:
            if not outcome.ok:
                for instance, names, was_new in saved:
                    instance._restore_dirty(names, was_new)
                logger.warning("Flush failed", completed=outcome.completed, restored=len(saved))
            if callback is not None:
                callback(outcome)

        logger.info("Flushing tracked entities", count=len(instances))
        Sequencer(instances, step, finished, transaction=transaction, label="flush").run()

    def flush_order(self, instances: list[Entity]) -> list[Entity]:
        """Order instances for a flush.

        With ``DrainOrder.DEPENDENCY`` instances are grouped by entity so that
        referenced entities are written before the entities referring to them.
        Within an entity, tracking order is kept.
        """
        if self.order is DrainOrder.REGISTRATION:
            return instances
        rank = {meta.name: index for index, meta in enumerate(self.registry.ordered(self.order))}
        return sorted(instances, key=lambda instance: rank.get(instance.entity_name, len(rank)))
