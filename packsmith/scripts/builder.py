# packsmith/scripts/builder.py
from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import shutil
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import json5

from packsmith.addon.descriptor import ScriptOptions
from packsmith.app.context import BuildContext
from packsmith.app.paths import SCRIPTS_DIR_NAME
from packsmith.app.settings import HOST_MODULES, getSetting
from packsmith.core.errors import ConfigurationError
from packsmith.core.fsutils import ensureDir, toRelPath
from packsmith.core.logging import setLogContext
from packsmith.manifest.composer import ScriptModuleUpdate
from packsmith.manifest.models import ModuleDependency
from packsmith.manifest.templates import moduleDependencies
from packsmith.scripts.entry import INDEX_MODULE, EntrySynthesis, synthesizeEntry
from packsmith.scripts.services import (
    BundleOptions,
    BundleService,
    TransformOptions,
    TransformOutput,
    TransformService,
)

logger = logging.getLogger(__name__)

__all__ = [
    "SOURCE_SUFFIXES",
    "FileOutcome",
    "ScriptBuildResult",
    "ScriptBuilder",
    "loadPathAliases",
    "destinationFor",
    "relocateOutput",
]



SOURCE_SUFFIXES: tuple[str, ...] = (".ts", ".js")
BUNDLED_ENTRY = f"{SCRIPTS_DIR_NAME}/{INDEX_MODULE}.js"
_SOURCE_MAP_URL_RE = re.compile(r"^//# sourceMappingURL=.*$", re.MULTILINE)



@dataclass(frozen=True, slots=True)
class FileOutcome:
    source: Path
    destination: Path | None = None
    mapDestination: Path | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None



@dataclass(frozen=True, slots=True)
class ScriptBuildResult:
    """
    Outcome of one script export.

    entryPath is relative to the behavior pack and only set when the file
    it names was actually written. Per-file and bundle failures are kept
    here for reporting; they never raise out of ScriptBuilder.build().
    setupError is set when the sources could not be prepared at all; entry
    is None in that case.
    """
    entryPath: str | None
    bundled: bool
    entry: EntrySynthesis | None
    files: tuple[FileOutcome, ...] = ()
    bundleError: BaseException | None = None
    setupError: BaseException | None = None
    dependencies: tuple[ModuleDependency, ...] = field(default_factory=tuple)

    @property
    def failures(self) -> list[FileOutcome]:
        return [outcome for outcome in self.files if not outcome.ok]

    @property
    def viable(self) -> bool:
        return self.entryPath is not None

    def moduleUpdate(self) -> ScriptModuleUpdate:
        return ScriptModuleUpdate(entryPath=self.entryPath, dependencies=self.dependencies)



def loadPathAliases(tsconfigFile: Path) -> dict[str, list[str]]:
    """Returns tsconfig compilerOptions.paths, or {} when there is no tsconfig."""
    if not tsconfigFile.exists():
        return {}
    try:
        raw = json5.loads(tsconfigFile.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise ConfigurationError(f"tsconfig '{tsconfigFile}' could not be parsed: {err}") from err

    paths = (raw.get("compilerOptions") or {}).get("paths") if isinstance(raw, dict) else None
    if paths is None:
        return {}
    if not isinstance(paths, dict):
        raise ConfigurationError(f"tsconfig '{tsconfigFile}' compilerOptions.paths must be an object")
    return {str(alias): [str(target) for target in targets] for alias, targets in paths.items()}



def destinationFor(source: Path, sourceRoot: Path, outRoot: Path) -> Path:
    """Maps a source file onto the output tree, renaming .ts to .js."""
    rel = source.relative_to(sourceRoot)
    dest = outRoot / rel
    if dest.suffix == ".ts":
        dest = dest.with_suffix(".js")
    return dest



def relocateOutput(source: Path, dest: Path, output: TransformOutput) -> TransformOutput:
    """
    Points compiled output at its final location.

    The trailing sourceMappingURL comment is rewritten to "<dest>.map" (or
    dropped when there is no map). The map's "file" becomes the destination
    name and its "sources" the path from the destination back to `source`.
    """
    mapName = f"{dest.name}.map"
    code = output.code
    matches = list(_SOURCE_MAP_URL_RE.finditer(code))
    if matches:
        last = matches[-1]
        replacement = f"//# sourceMappingURL={mapName}" if output.map else ""
        code = code[: last.start()] + replacement + code[last.end():]

    sourceMap = output.map
    if sourceMap:
        try:
            data = json.loads(sourceMap)
        except ValueError as err:
            logger.warning("Source map for '%s' is not valid JSON, kept as-is: %s", source.name, err)
        else:
            if isinstance(data, dict):
                data["file"] = dest.name
                # Single-file transforms map exactly one source
                if len(data.get("sources") or []) <= 1:
                    data["sources"] = [Path(os.path.relpath(source, dest.parent)).as_posix()]
                data.pop("sourceRoot", None)
                sourceMap = json.dumps(data, ensure_ascii=False)

    return TransformOutput(code=code, map=sourceMap)



def _externalModules(settings: Mapping[str, Any], declared: Sequence[str]) -> tuple[str, ...]:
    hostModules = getSetting(settings, "scripts.hostModules", list(HOST_MODULES))
    out: list[str] = []
    for name in [*hostModules, *declared]:
        if name not in out:
            out.append(name)
    return tuple(out)



class ScriptBuilder:
    """
    Compiles the script sources staged in the data directory.

      1) write the aggregation entry (index.ts, or ___index___.ts next to an author index)
      2) transform every source file concurrently; each file settles on its own
      3) if bundling, run the bundler once after all files have settled
      4) report the entry path that actually exists, plus the dependency records
    """

    def __init__(
        self,
        context: BuildContext,
        options: ScriptOptions,
        *,
        transformer: TransformService,
        bundler: BundleService | None = None,
    ):
        if options.bundle and bundler is None:
            raise ValueError("bundling requested but no bundle service was given")
        self.context = context
        self.options = options
        self.transformer = transformer
        self.bundler = bundler

    # ----- Public -----

    async def build(self) -> ScriptBuildResult:
        setLogContext(phase="scripts")
        context = self.context

        try:
            entry = synthesizeEntry(context.dataDir, self.options.entrypoints)
            sources = self.discoverSources()
        except OSError as err:
            logger.error("Could not prepare script sources in '%s': %s", toRelPath(context.rootDir, context.dataDir), err)
            return ScriptBuildResult(
                entryPath=None,
                bundled=False,
                entry=None,
                setupError=err,
                dependencies=moduleDependencies(self.options),
            )

        outRoot = context.prebundleDir if self.options.bundle else context.scriptsOutDir
        transformOptions = self.transformOptions()
        sources, collisions = self._splitCollisions(sources, outRoot)

        startedAt = time.perf_counter()
        outcomes = [*collisions, *await self._transformAll(sources, outRoot, transformOptions)]
        failures = [outcome for outcome in outcomes if not outcome.ok]
        elapsedMs = int((time.perf_counter() - startedAt) * 1000)
        if failures:
            logger.warning(
                "Scripts compiled in %dms with %d of %d file(s) failing",
                elapsedMs, len(failures), len(outcomes),
            )
        else:
            logger.info("Scripts compiled in %dms (%d file(s))", elapsedMs, len(outcomes))

        entryPath = f"{SCRIPTS_DIR_NAME}/{entry.compiledName}"
        bundleError: BaseException | None = None
        bundled = False

        if self.options.bundle:
            setLogContext(phase="bundle")
            bundleError = await self._bundle(entry)
            if bundleError is None:
                bundled = True
                entryPath = BUNDLED_ENTRY
            else:
                self._promotePrebundle()

        if not (context.behaviorPackDir / entryPath).is_file():
            logger.error("Script entry '%s' was not produced; no usable script module", entryPath)
            entryPath = None

        return ScriptBuildResult(
            entryPath=entryPath,
            bundled=bundled,
            entry=entry,
            files=tuple(outcomes),
            bundleError=bundleError,
            dependencies=moduleDependencies(self.options),
        )

    def discoverSources(self) -> list[Path]:
        """All .ts/.js files under the data directory, declaration files excluded, sorted."""
        dataDir = self.context.dataDir
        if not dataDir.is_dir():
            return []
        found = [
            path
            for path in dataDir.rglob("*")
            if path.is_file() and path.suffix in SOURCE_SUFFIXES and not path.name.endswith(".d.ts")
        ]
        return sorted(found)

    def transformOptions(self) -> TransformOptions:
        return TransformOptions(
            baseUrl=self.context.dataDir,
            paths=loadPathAliases(self.context.tsconfigFile),
        )

    # ----- Per-file transform -----

    def _splitCollisions(self, sources: Sequence[Path], outRoot: Path) -> tuple[list[Path], list[FileOutcome]]:
        """
        Sources that map onto the same output file ("util.ts" and "util.js")
        are all reported as failed and none of them is compiled.
        """
        byDest: dict[Path, list[Path]] = {}
        for source in sources:
            byDest.setdefault(destinationFor(source, self.context.dataDir, outRoot), []).append(source)

        kept: list[Path] = []
        collisions: list[FileOutcome] = []
        for dest, group in byDest.items():
            if len(group) == 1:
                kept.append(group[0])
                continue
            names = ", ".join(toRelPath(self.context.dataDir, source) for source in group)
            logger.error("Sources %s all compile to '%s'; none of them is emitted", names, dest.name)
            for source in group:
                error = FileExistsError(f"'{source.name}' shares its output '{dest.name}' with another source")
                collisions.append(FileOutcome(source=source, error=error))
        return kept, collisions

    async def _transformAll(
        self,
        sources: Sequence[Path],
        outRoot: Path,
        options: TransformOptions,
    ) -> list[FileOutcome]:
        limit = max(1, int(getSetting(self.context.settings, "scripts.maxConcurrency", 16)))
        semaphore = asyncio.Semaphore(limit)

        results = await asyncio.gather(
            *(self._transformOne(source, outRoot, options, semaphore) for source in sources),
            return_exceptions=True,
        )

        outcomes: list[FileOutcome] = []
        for source, result in zip(sources, results):
            if isinstance(result, FileOutcome):
                outcomes.append(result)
            else:
                logger.error("Transform of '%s' failed unexpectedly: %s", source, result)
                outcomes.append(FileOutcome(source=source, error=result))
        return outcomes

    async def _transformOne(
        self,
        source: Path,
        outRoot: Path,
        options: TransformOptions,
        semaphore: asyncio.Semaphore,
    ) -> FileOutcome:
        rel = toRelPath(self.context.dataDir, source)
        try:
            async with semaphore:
                output = await self.transformer.transform(source, options)
            dest = destinationFor(source, self.context.dataDir, outRoot)
            output = relocateOutput(source, dest, output)
            mapDest = await asyncio.to_thread(self._writeOutput, dest, output)
        except Exception as err:
            logger.error("Failed to compile '%s': %s", rel, err)
            return FileOutcome(source=source, error=err)

        logger.debug("Compiled '%s' -> '%s'", rel, toRelPath(self.context.rootDir, dest))
        return FileOutcome(source=source, destination=dest, mapDestination=mapDest)

    @staticmethod
    def _writeOutput(dest: Path, output: TransformOutput) -> Path | None:
        # Siblings may create the same parent concurrently
        ensureDir(dest.parent)
        mapDest: Path | None = None
        if output.map:
            mapDest = dest.with_name(dest.name + ".map")
            mapDest.write_text(output.map, encoding="utf-8")
        dest.write_text(output.code, encoding="utf-8")
        return mapDest

    # ----- Bundling -----

    def bundleOptions(self) -> BundleOptions:
        context = self.context
        bundleCfg = getSetting(context.settings, "scripts.bundle", {})
        return BundleOptions(
            outfile=context.scriptsOutDir / f"{INDEX_MODULE}.js",
            workingDir=context.rootDir,
            external=_externalModules(context.settings, self.options.external),
            minify=self.options.minify,
            format=str(bundleCfg.get("format", "esm")),
            platform=str(bundleCfg.get("platform", "node")),
            target=str(bundleCfg.get("target", "es2020")),
            tsconfig=context.tsconfigFile if context.tsconfigFile.exists() else None,
        )

    async def _bundle(self, entry: EntrySynthesis) -> BaseException | None:
        if self.bundler is None:
            raise RuntimeError("bundling requested but no bundle service was given")
        entryFile = self.context.prebundleDir / entry.compiledName
        if not entryFile.is_file():
            err = FileNotFoundError(f"pre-bundle entry '{entryFile}' does not exist")
            logger.error("Skipping bundling: %s", err)
            return err

        logger.info("Started bundling the scripts from '%s'", entry.compiledName)
        startedAt = time.perf_counter()
        try:
            output = await self.bundler.bundle(entryFile, self.bundleOptions())
        except Exception as err:
            logger.error("Bundling failed: %s", err)
            return err

        logger.info(
            "Scripts bundled into '%s' in %dms",
            toRelPath(self.context.rootDir, output.outfile),
            int((time.perf_counter() - startedAt) * 1000),
        )
        return None

    def _promotePrebundle(self) -> None:
        """Falls back to the unbundled per-file outputs by copying them into the pack's scripts dir."""
        prebundle = self.context.prebundleDir
        if not prebundle.is_dir():
            return
        try:
            shutil.copytree(prebundle, self.context.scriptsOutDir, dirs_exist_ok=True)
        except OSError as err:
            logger.error("Could not copy unbundled scripts into the pack: %s", err)
            return
        logger.warning("Using unbundled scripts as fallback output")
