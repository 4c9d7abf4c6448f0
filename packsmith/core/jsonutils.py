# packsmith/core/jsonutils.py
from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

__all__ = ["safeJsonDumps", "dumpManifest", "tryJSONify"]



# ------------------------------------------------
#                JSON serialization
# ------------------------------------------------

def safeJsonDumps(obj: object) -> str:
    """
    Serializes an object or pydantic model to a compact JSON string.
    Uses deterministic separators (",", ":") and disallows NaN/infinity.
    If direct JSON encoding fails, falls back to tryJSONify and retries.
    """
    payload: Any
    if isinstance(obj, BaseModel):
        payload = obj.model_dump(by_alias=True, exclude_none=True)
    else:
        payload = obj

    try:
        return json.dumps(payload, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError):
        safePayload = tryJSONify(payload)
        return json.dumps(safePayload, ensure_ascii=False, allow_nan=False, separators=(",", ":"))



def dumpManifest(model: BaseModel) -> str:
    """Pretty, strict JSON (4-space indent, trailing newline) for a pack manifest."""
    payload = model.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(payload, ensure_ascii=False, allow_nan=False, indent=4) + "\n"



# ------------------------------------------------
#              Generic JSON safety
# ------------------------------------------------

def tryJSONify(obj: Any, *, _seen: set[int] | None = None, _depth: int = 0, _maxDepth: int = 10) -> Any:
    """
    Attempts to make any object JSON-serializable.

    Rules:
      • Basic scalars (None, bool, int, float, str) are preserved.
      • Exceptions → {"type", "message"}.
      • Path → string path.
      • Enum → its value.
      • pydantic models → model_dump().
      • Mappings → dict with str keys; other iterables → list.
      • fallback → repr(obj)
    """
    if _seen is None:
        _seen = set()

    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, float):
        return obj if obj == obj and obj not in (float("inf"), float("-inf")) else repr(obj)

    oid = id(obj)
    if oid in _seen:
        return f"<circular_ref {type(obj).__name__}>"
    if _depth > _maxDepth:
        return f"<max_depth_exceeded {type(obj).__name__}>"
    _seen.add(oid)

    if isinstance(obj, BaseException):
        return {"type": type(obj).__name__, "message": str(obj)}

    if isinstance(obj, Path):
        return str(obj)

    if isinstance(obj, Enum):
        return tryJSONify(obj.value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth)

    if isinstance(obj, BaseModel):
        return tryJSONify(obj.model_dump(by_alias=True), _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth)

    if isinstance(obj, Mapping):
        return {
            str(key): tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth) for key, value in obj.items()
        }

    if isinstance(obj, (bytes, bytearray)):
        return repr(obj)

    if isinstance(obj, Iterable):
        return [tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth) for value in obj]

    # Last-ditch representation (avoid raising during logging)
    return repr(obj)
