# packsmith/core/logging/context.py
from __future__ import annotations
import contextvars

# Per-build log context (buildId, phase, file). Set by the pipeline as it advances.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("packsmith.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (buildId, phase, etc.)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a build has finished."""
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()
