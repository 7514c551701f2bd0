"""Conversion of field values between their in-memory and storage forms."""

from collections.abc import Callable
from typing import Any

from entity_mapper.entity import Entity
from entity_mapper.models import StorageType

Conversion = Callable[[Any], Any]


def _passthrough(value: Any) -> Any:
    return value


def _bool_to_storage(value: Any) -> int:
    return 1 if value else 0


def _bool_from_storage(value: Any) -> bool:
    return value == 1


_CONVERTERS: dict[StorageType, tuple[Conversion, Conversion]] = {
    storage_type: (_passthrough, _passthrough) for storage_type in StorageType
}
_CONVERTERS[StorageType.BOOL] = (_bool_to_storage, _bool_from_storage)


def register_converter(storage_type: StorageType, to_storage: Conversion, from_storage: Conversion) -> None:
    """Bind a conversion pair to a storage type.

    Args:
        storage_type: Storage type whose conversions are replaced
        to_storage: Converts an in-memory value to its stored form
        from_storage: Converts a stored value back; must invert ``to_storage``
    """
    _CONVERTERS[storage_type] = (to_storage, from_storage)


def to_storage(value: Any, storage_type: StorageType | None = None) -> Any:
    """Convert an in-memory value to the value bound into a statement.

    Args:
        value: Field value, related entity instance, or None
        storage_type: Declared storage type, or None for relation keys

    Returns:
        Storage value
    """
    if value is None:
        return None
    if isinstance(value, Entity):
        return value.id
    if storage_type is None:
        return value
    return _CONVERTERS[storage_type][0](value)


def from_storage(value: Any, storage_type: StorageType | None = None) -> Any:
    """Convert a stored column value to its in-memory form."""
    if storage_type is None:
        return value
    return _CONVERTERS[storage_type][1](value)
