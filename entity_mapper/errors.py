"""Exceptions raised by entity mapper."""

from collections.abc import Sequence
from typing import Any


class MapperError(Exception):
    """Base class for all entity mapper errors."""


class UnresolvedRelation(MapperError, LookupError):
    """A relation was read before its target was fetched or assigned."""

    def __init__(self, entity_name: str, relation: str, key: Any = None) -> None:
        self.entity_name = entity_name
        self.relation = relation
        self.key = key
        super().__init__(
            f"Property '{relation}' of {entity_name} with id: {key} not fetched, "
            "either prefetch it or fetch it manually."
        )


class UnknownField(MapperError, AttributeError):
    """A value was assigned to a name the entity does not declare."""

    def __init__(self, entity_name: str, name: str) -> None:
        self.entity_name = entity_name
        self.name = name
        super().__init__(f"{entity_name} has no field or relation named '{name}'")


class StatementFailure(MapperError):
    """A statement issued against the store failed."""

    def __init__(self, sql: str, params: Sequence[Any] | None = None, cause: BaseException | None = None) -> None:
        self.sql = sql
        self.params = list(params) if params is not None else []
        self.cause = cause
        message = f"Statement failed: {sql}"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message)


class NotConnected(MapperError):
    """A session operation needed a connection before connect() was called."""
