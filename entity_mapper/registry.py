"""Registry of entity metadata."""

from collections.abc import Iterator, Mapping

import structlog

from entity_mapper.models import DrainOrder, EntityMeta, StorageType

logger = structlog.get_logger()


class MetadataRegistry:
    """Holds the metadata of every entity defined in a session.

    Definitions are keyed by entity name and never replaced: defining a name a
    second time returns the first definition and discards the new fields.
    """

    def __init__(self) -> None:
        self._metas: dict[str, EntityMeta] = {}

    def define(self, name: str, fields: Mapping[str, str | StorageType]) -> EntityMeta:
        """Register an entity, or return the existing metadata if ``name`` is taken.

        Args:
            name: Entity name, also used as the table name
            fields: Field names mapped to storage type tags, e.g. {"name": "TEXT", "age": "INT"}

        Returns:
            The entity's metadata
        """
        existing = self._metas.get(name)
        if existing is not None:
            if list(fields) != list(existing.fields):
                logger.warning("Entity already defined, ignoring new fields", entity=name, ignored=list(fields))
            return existing

        meta = EntityMeta(name=name, fields={key: StorageType.parse(tag) for key, tag in fields.items()})
        self._metas[name] = meta
        logger.debug("Entity defined", entity=name, fields=[f"{k}:{v.value}" for k, v in meta.fields.items()])
        return meta

    def declare_has_many(self, collection: str, owner: EntityMeta, target: EntityMeta, inverse: str) -> None:
        """Record a one-to-many relation and its inverse.

        Args:
            collection: Name of the collection on the owner
            owner: Entity holding the collection
            target: Entity whose rows carry the foreign key
            inverse: Name of the hasOne relation on the target pointing back at the owner
        """
        for meta in (owner, target):
            if self._metas.get(meta.name) is not meta:
                raise KeyError(f"Entity {meta.name} is not defined in this registry")
        if owner.has_many.get(collection) is target and target.has_one.get(inverse) is owner:
            logger.debug("Relation already declared", owner=owner.name, collection=collection)
            return
        if owner is target and collection == inverse:
            raise ValueError(f"Collection and inverse of {owner.name} share the name {collection!r}")
        self._check_free(owner, collection)
        self._check_free(target, inverse)
        owner.has_many[collection] = target
        target.has_one[inverse] = owner
        logger.debug("Relation declared", owner=owner.name, collection=collection, target=target.name, inverse=inverse)

    def _check_free(self, meta: EntityMeta, name: str) -> None:
        if name in meta.fields or name in meta.has_one or name in meta.has_many:
            raise ValueError(f"{meta.name} already has a field or relation named {name!r}")

    def get_meta(self, name: str) -> EntityMeta | None:
        return self._metas.get(name)

    def names(self) -> list[str]:
        return list(self._metas)

    def ordered(self, order: DrainOrder) -> list[EntityMeta]:
        """Entities in the order schema statements are issued.

        With ``DrainOrder.DEPENDENCY`` the target of every hasOne relation
        comes before the entity holding the foreign key. Cycles are broken by
        definition order.
        """
        metas = list(self._metas.values())
        if order is DrainOrder.REGISTRATION:
            return metas

        ordered: list[EntityMeta] = []
        visiting: set[str] = set()
        done: set[str] = set()

        def visit(meta: EntityMeta) -> None:
            if meta.name in done or meta.name in visiting:
                return
            visiting.add(meta.name)
            for target in meta.has_one.values():
                visit(target)
            visiting.discard(meta.name)
            done.add(meta.name)
            ordered.append(meta)

        for meta in metas:
            visit(meta)
        return ordered

    def clear(self) -> None:
        """Forget every definition."""
        self._metas.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._metas

    def __iter__(self) -> Iterator[EntityMeta]:
        return iter(self._metas.values())

    def __len__(self) -> int:
        return len(self._metas)
