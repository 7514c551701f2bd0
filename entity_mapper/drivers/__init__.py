"""Driver implementations."""

from entity_mapper.drivers.sqlite import SQLiteDriver

__all__ = ["SQLiteDriver"]
