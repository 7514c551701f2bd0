"""Identifier generation for entity instances."""

import uuid

ID_LENGTH = 32


def new_id() -> str:
    """Return a fresh 32-character hex identifier."""
    return uuid.uuid4().hex
