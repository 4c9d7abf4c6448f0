# packsmith/core/ids.py
from __future__ import annotations

import uuid
import uuid6

__all__ = ["uuidv7", "uuidv4", "isUuid"]



def uuidv7(*, prefix: str = "") -> str:
    """Returns a UUIDv7 string (time-ordered), optionally prefixed."""
    return prefix + str(uuid6.uuid7())



def uuidv4(*, prefix: str = "") -> str:
    """Returns a pure random UUIDv4 string, optionally prefixed."""
    return prefix + str(uuid.uuid4())



def isUuid(value: object) -> bool:
    """True when value is a string in canonical 8-4-4-4-12 UUID form."""
    if not isinstance(value, str):
        return False
    try:
        return str(uuid.UUID(value)) == value.lower()
    except ValueError:
        return False
