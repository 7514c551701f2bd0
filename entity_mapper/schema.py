"""Schema synchronization from entity metadata."""

from collections.abc import Callable
from typing import Any

import structlog

from entity_mapper.driver import Connection, Transaction
from entity_mapper.models import DrainOrder, EntityMeta, Outcome, StorageType
from entity_mapper.registry import MetadataRegistry
from entity_mapper.sequencer import Complete, Sequencer

logger = structlog.get_logger()

ID_COLUMN = f"id {StorageType.KEY.value} PRIMARY KEY"


def create_table_statement(meta: EntityMeta) -> str:
    """CREATE TABLE statement for an entity: id, fields, then one key column per hasOne relation."""
    columns = [ID_COLUMN]
    columns.extend(f"{name} {storage_type.value}" for name, storage_type in meta.columns())
    return f"CREATE TABLE IF NOT EXISTS `{meta.name}` ({', '.join(columns)})"


def drop_table_statement(meta: EntityMeta) -> str:
    return f"DROP TABLE IF EXISTS `{meta.name}`"


class SchemaSynchronizer:
    """Creates and drops the tables of every registered entity."""

    def __init__(self, registry: MetadataRegistry, order: DrainOrder = DrainOrder.DEPENDENCY) -> None:
        self.registry = registry
        self.order = order

    def sync(self, connection: Connection, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Create missing tables, one statement at a time, in a single transaction.

        Existing tables are left untouched. ``callback`` receives the outcome,
        which carries the transaction the statements ran in.
        """
        metas = self.registry.ordered(self.order)
        logger.info("Synchronizing schema", entities=[meta.name for meta in metas])

        def run(tx: Transaction) -> None:
            Sequencer(
                metas,
                lambda meta, complete: self._execute(tx, create_table_statement(meta), complete),
                callback,
                transaction=tx,
                label="schema-sync",
            ).run()

        connection.transaction(run)

    def reset(self, transaction: Transaction, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Drop the table of every registered entity. The registry is left as is."""
        metas = list(reversed(self.registry.ordered(self.order)))
        logger.info("Dropping tables", entities=[meta.name for meta in metas])
        Sequencer(
            metas,
            lambda meta, complete: self._execute(transaction, drop_table_statement(meta), complete),
            callback,
            transaction=transaction,
            label="schema-reset",
        ).run()

    def _execute(self, tx: Transaction, sql: str, complete: Complete) -> None:
        tx.execute(sql, None, lambda rows: complete(None), complete)
