"""Session tying together metadata, identity cache, schema and persistence."""

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from entity_mapper.driver import Connection, Driver, Transaction
from entity_mapper.engine import Done, PersistenceEngine
from entity_mapper.entity import Entity, build_entity_class, check_names, install_relation
from entity_mapper.errors import NotConnected
from entity_mapper.identity import IdentityCache
from entity_mapper.ids import new_id
from entity_mapper.models import DrainOrder, EntityMeta, Outcome, StorageType
from entity_mapper.registry import MetadataRegistry
from entity_mapper.schema import SchemaSynchronizer

if TYPE_CHECKING:
    from entity_mapper.config import Config

logger = structlog.get_logger()

DEFAULT_SIZE = 5 * 1024 * 1024

EntityRef = type[Entity] | EntityMeta | str


class Session:
    """Persistence context holding entity definitions and live instances.

    Sessions share nothing: each has its own registry, entity classes and
    identity cache, so two sessions may define the same entity name
    differently.
    """

    def __init__(
        self,
        driver: Driver | None = None,
        *,
        order: DrainOrder = DrainOrder.DEPENDENCY,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        """Initialize a session.

        Args:
            driver: Store driver used by connect()
            order: Order of schema statements and flushed instances
            id_factory: Generates ids of new instances
        """
        self.driver = driver
        self.order = order
        self.new_id = id_factory
        self.registry = MetadataRegistry()
        self._classes: dict[str, type[Entity]] = {}
        self.cache = IdentityCache(self.entity_class)
        self.engine = PersistenceEngine(self.registry, self.cache, order)
        self.schema = SchemaSynchronizer(self.registry, order)
        self.connection: Connection | None = None

    @classmethod
    def from_config(cls, config: "Config") -> "Session":
        """Create a session from configuration and connect it to SQLite."""
        from entity_mapper.drivers import SQLiteDriver

        session = cls(SQLiteDriver(), order=config.drain_order)
        session.connect(config.database_name, config.database_description, config.database_size)
        return session

    def connect(self, name: str, description: str = "", size_bytes: int = DEFAULT_SIZE) -> Connection:
        """Connect to a database through the session's driver.

        Args:
            name: Database name
            description: Human-readable description of the database
            size_bytes: Maximum size of the database in bytes
        """
        if self.driver is None:
            raise NotConnected("Session has no driver to connect with")
        self.connection = self.driver.connect(name, description, size_bytes)
        logger.info("Session connected", database=name)
        return self.connection

    def transaction(self, fn: Callable[[Transaction], Any]) -> None:
        """Run ``fn`` inside a transaction on the session's connection."""
        self._require_connection().transaction(fn)

    def define(self, name: str, fields: Mapping[str, str | StorageType]) -> type[Entity]:
        """Define an entity and return its class.

        Defining a name that is already defined returns the existing class;
        the new fields are ignored.

        Args:
            name: Entity name, also used as the table name
            fields: Field names mapped to storage types, e.g. {"name": "TEXT", "age": "INT"}
        """
        if name not in self.registry:
            check_names(name, fields)
        meta = self.registry.define(name, fields)
        return self.entity_class(meta.name)

    def has_many(self, collection: str, owner: EntityRef, target: EntityRef, inverse: str) -> None:
        """Declare that ``owner`` has many ``target`` and each target has one ``owner``.

        Args:
            collection: Name of the collection on the owner
            owner: Owning entity (class, metadata or name)
            target: Entity holding the foreign key
            inverse: Name of the relation on the target pointing at the owner
        """
        owner_meta = self._meta_of(owner)
        target_meta = self._meta_of(target)
        check_names(owner_meta.name, [collection])
        check_names(target_meta.name, [inverse])
        self.registry.declare_has_many(collection, owner_meta, target_meta, inverse)
        install_relation(self.entity_class(owner_meta.name), collection, self.entity_class(target_meta.name), inverse)

    def get_meta(self, name: str) -> EntityMeta | None:
        return self.registry.get_meta(name)

    def entity_class(self, name: str) -> type[Entity]:
        """Generated class of a defined entity."""
        cls = self._classes.get(name)
        if cls is None:
            meta = self.registry.get_meta(name)
            if meta is None:
                raise KeyError(f"Entity {name} is not defined")
            cls = build_entity_class(self, meta)
            self._classes[name] = cls
        return cls

    def add(self, instance: Entity) -> None:
        """Track an instance so the next flush persists it."""
        self.engine.track(instance)

    track = add

    def save(self, instance: Entity, transaction: Transaction, callback: Done) -> None:
        self.engine.save(instance, transaction, callback)

    def remove(self, instance: Entity, transaction: Transaction, callback: Done, forget: bool = False) -> None:
        """Delete an instance's row.

        Args:
            instance: Instance to delete; it must not be reused afterward
            transaction: Transaction to delete in
            callback: Receives None or the statement failure
            forget: Also drop the instance from the identity cache
        """
        if forget:
            self.cache.discard(instance.id)
        self.engine.delete(instance, transaction, callback)

    def flush(self, transaction: Transaction, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Persist every tracked instance with unsaved changes."""
        self.engine.flush(transaction, callback)

    def schema_sync(self, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Create the tables of all defined entities that do not exist yet."""
        self.schema.sync(self._require_connection(), callback)

    def reset(self, transaction: Transaction, callback: Callable[[Outcome], Any] | None = None) -> None:
        """Drop the tables of all defined entities."""
        self.schema.reset(transaction, callback)

    def from_row(self, entity_name: str, row: Mapping[str, Any], column_prefix: str = "") -> Entity:
        return self.cache.from_row(entity_name, row, column_prefix)

    def clean(self) -> None:
        """Forget all tracked and loaded instances. Definitions are kept."""
        self.cache.clear()

    def clear_metadata(self) -> None:
        """Forget definitions, entity classes and instances."""
        self.cache.clear()
        self._classes.clear()
        self.registry.clear()

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def _require_connection(self) -> Connection:
        if self.connection is None:
            raise NotConnected("Session is not connected, call connect() first")
        return self.connection

    def _meta_of(self, ref: EntityRef) -> EntityMeta:
        if isinstance(ref, EntityMeta):
            return ref
        if isinstance(ref, str):
            meta = self.registry.get_meta(ref)
            if meta is None:
                raise KeyError(f"Entity {ref} is not defined")
            return meta
        return ref.meta
