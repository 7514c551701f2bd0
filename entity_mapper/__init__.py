"""Entity mapper - map in-memory objects to relational tables."""

from entity_mapper.entity import Entity
from entity_mapper.errors import MapperError, NotConnected, StatementFailure, UnknownField, UnresolvedRelation
from entity_mapper.models import DrainOrder, EntityMeta, EntityState, Outcome, StorageType
from entity_mapper.session import Session

__all__ = [
    "DrainOrder",
    "Entity",
    "EntityMeta",
    "EntityState",
    "MapperError",
    "NotConnected",
    "Outcome",
    "Session",
    "StatementFailure",
    "StorageType",
    "UnknownField",
    "UnresolvedRelation",
]
