# packsmith/core/fsutils.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

__all__ = ["FoundFile", "ensureDir", "findWithoutExtension", "writeTextDurable", "toRelPath"]



@dataclass(frozen=True, slots=True)
class FoundFile:
    path: Path
    baseName: str
    extension: str

    @property
    def fileName(self) -> str:
        return self.baseName + self.extension



def ensureDir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)



def findWithoutExtension(directory: Path, baseName: str) -> FoundFile | None:
    """
    Returns the first regular file in `directory` whose name without extension is
    `baseName` (e.g. "pack_icon" matches "pack_icon.png"). Files are checked in
    sorted order. A missing directory is treated as "not found".
    """
    if not directory.is_dir():
        return None

    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        if entry.stem == baseName:
            return FoundFile(path=entry, baseName=entry.stem, extension=entry.suffix)
    return None



def writeTextDurable(path: Path, text: str) -> None:
    """
    Writes text next to `path` in a temp file, fsyncs it and atomically replaces `path`.
    Readers either see the old file or the complete new one.
    """
    ensureDir(path.parent)
    fd, tmpName = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file:
            file.write(text)
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmpName, path)
    except BaseException:
        try:
            os.unlink(tmpName)
        except FileNotFoundError:
            pass
        raise



def toRelPath(base: Path, path: Path) -> str:
    """
    Returns a POSIX-style relative path string from base to path.
    """
    try:
        rel = os.path.relpath(path, base)
    except ValueError:
        rel = str(path)
    return Path(rel).as_posix()
