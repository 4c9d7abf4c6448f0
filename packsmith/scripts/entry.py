# packsmith/scripts/entry.py
from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

__all__ = [
    "INDEX_MODULE",
    "AGGREGATE_MODULE",
    "EntrySynthesis",
    "renderAggregationSource",
    "findAuthorIndex",
    "synthesizeEntry",
]



INDEX_MODULE = "index"
# Reserved name for the aggregation file when the author ships their own index
AGGREGATE_MODULE = "___index___"
_INDEX_CANDIDATES = (f"{INDEX_MODULE}.ts", f"{INDEX_MODULE}.js")



@dataclass(frozen=True, slots=True)
class EntrySynthesis:
    # The aggregation source file that was written
    sourcePath: Path
    # Module name of the working entry ("index" or "___index___")
    moduleName: str
    # Author-provided index that was left untouched, if any
    authorIndex: Path | None = None

    @property
    def compiledName(self) -> str:
        return f"{self.moduleName}.js"



def renderAggregationSource(entrypoints: Sequence[str]) -> str:
    """One side-effect import per entry module, in declared order."""
    return "".join(f"import {json.dumps(entry)};\n" for entry in entrypoints)



def findAuthorIndex(dataDir: Path) -> Path | None:
    for name in _INDEX_CANDIDATES:
        candidate = dataDir / name
        if candidate.is_file():
            return candidate
    return None



def synthesizeEntry(dataDir: Path, entrypoints: Sequence[str]) -> EntrySynthesis:
    """
    Writes the aggregation entry into the script source root.

    Without an author index it becomes index.ts. With one, the author's
    file is kept as-is and the aggregation goes to ___index___.ts instead.
    """
    dataDir.mkdir(parents=True, exist_ok=True)
    source = renderAggregationSource(entrypoints)
    authorIndex = findAuthorIndex(dataDir)

    moduleName = INDEX_MODULE if authorIndex is None else AGGREGATE_MODULE
    target = dataDir / f"{moduleName}.ts"
    target.write_text(source, encoding="utf-8")

    if authorIndex is not None:
        logger.info("Found author index '%s'; aggregation entry written to '%s'", authorIndex.name, target.name)
    else:
        logger.debug("Aggregation entry written to '%s' (%d imports)", target.name, len(entrypoints))

    return EntrySynthesis(sourcePath=target, moduleName=moduleName, authorIndex=authorIndex)
