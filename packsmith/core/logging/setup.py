# packsmith/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .formatters import DevFormatter, JsonFormatter

__all__ = ["configureLogging"]



def configureLogging(settings: Mapping[str, Any] | None = None, *, baseDir: Path | None = None) -> None:
    """
    Initiate the global logging configuration from the "logging" settings section.

      - Console pretty logs at `logging.level` (default INFO)
      - Optional JSON file log at `logging.file` (relative to baseDir), rotated
    """
    section: Mapping[str, Any] = {}
    if settings is not None:
        raw = settings.get("logging")
        if isinstance(raw, Mapping):
            section = raw

    levelName = str(section.get("level", "INFO")).upper()
    rootLevel = getattr(logging, levelName, logging.INFO)
    if not isinstance(rootLevel, int):
        rootLevel = logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(rootLevel)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(DevFormatter())
    root.addHandler(consoleHandler)

    logFile = section.get("file")
    if logFile:
        logPath = Path(str(logFile))
        if baseDir is not None and not logPath.is_absolute():
            logPath = baseDir / logPath
        logPath.parent.mkdir(parents=True, exist_ok=True)
        fileHandler = logging.handlers.RotatingFileHandler(
            logPath,
            maxBytes=int(section.get("maxBytes", 5 * 1024 * 1024)),
            backupCount=int(section.get("backupCount", 3)),
            encoding="utf-8",
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(JsonFormatter())
        root.addHandler(fileHandler)

    # Per-logger tweaks (reduce noise)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
