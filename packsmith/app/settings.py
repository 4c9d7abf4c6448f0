# packsmith/app/settings.py
from __future__ import annotations
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import json5

from packsmith.app.paths import SETTINGS_FILE
from packsmith.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SETTINGS", "HOST_MODULES", "loadProjectSettings",
    "parseFilterSettings", "loadSettings", "deepMerge", "getSetting",
]



# Modules provided by the game at runtime; never bundled.
HOST_MODULES: tuple[str, ...] = (
    "@minecraft/server",
    "@minecraft/server-ui",
    "@minecraft/server-admin",
    "@minecraft/server-gametest",
    "@minecraft/server-net",
    "@minecraft/server-common",
    "@minecraft/server-editor",
    "@minecraft/debug-utilities",
)

DEFAULT_SETTINGS: dict[str, Any] = {
    "__source": "PACKSMITH_DEFAULTS",
    "logging": {"level": "INFO", "file": None, "maxBytes": 5 * 1024 * 1024, "backupCount": 3},
    "tools": {
        "swc": ["npx", "swc"],
        "esbuild": ["npx", "esbuild"],
        "timeoutSeconds": 120,
    },
    "scripts": {
        "maxConcurrency": 16,
        "hostModules": list(HOST_MODULES),
        "bundle": {"platform": "node", "target": "es2020", "format": "esm"},
    },
}



def loadProjectSettings(rootDir: Path) -> dict[str, Any]:
    """Reads <root>/packsmith.json5 if present. A file that exists but cannot be parsed is fatal."""
    filePath = rootDir / SETTINGS_FILE
    if not filePath.exists():
        return {}
    try:
        data = json5.loads(filePath.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise ConfigurationError(f"Failed to parse settings file '{filePath}': {err}") from err
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file '{filePath}' must contain an object")
    return data



def parseFilterSettings(raw: str | None) -> dict[str, Any]:
    """
    The pipeline runner passes per-filter settings as a JSON object in the
    first CLI argument. Missing or empty means no overrides.
    """
    if raw is None or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError as err:
        raise ConfigurationError(f"Filter settings argument is not valid JSON: {err}") from err
    if not isinstance(data, dict):
        raise ConfigurationError("Filter settings argument must be a JSON object")
    return data



def loadSettings(rootDir: Path, filterSettings: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Defaults <- packsmith.json5 <- filter settings (right wins)."""
    merged = deepMerge(DEFAULT_SETTINGS, loadProjectSettings(rootDir))
    if filterSettings:
        merged = deepMerge(merged, dict(filterSettings))
    logger.debug("Settings resolved: %s", sorted(key for key in merged if not key.startswith("__")))
    return merged



def deepMerge(first: Any, second: Any) -> Any:
    """
    Returns a new value where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are dicts.
    For all other types (lists, strings, numbers, booleans, null),
    the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, Any] = {}
        for key, value in first.items():
            out[key] = deepMerge(value, second[key]) if key in second else _copyJson(value)
        for key, value in second.items():
            if key not in first:
                out[key] = _copyJson(value)
        return out
    return _copyJson(second)



def _copyJson(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _copyJson(val) for key, val in value.items()}
    if isinstance(value, list):
        return [_copyJson(val) for val in value]
    return value



def getSetting(settings: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Dotted-path lookup ("tools.swc"). Returns default when any segment is missing."""
    node: Any = settings
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return default
        node = node[part]
    return default if node is None else node
