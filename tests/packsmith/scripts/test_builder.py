# tests/packsmith/scripts/test_builder.py
from __future__ import annotations

import asyncio
import json

import pytest

from packsmith.app.context import BuildContext
from packsmith.app.settings import DEFAULT_SETTINGS, HOST_MODULES, deepMerge
from packsmith.core.errors import ConfigurationError
from packsmith.scripts.builder import ScriptBuilder, destinationFor, loadPathAliases, relocateOutput
from packsmith.scripts.services import BundleOutput, TransformOutput


def _scripts(makeDescriptor, **scripts):
    return makeDescriptor(scripts={"export": True, "entrypoints": ["main"], **scripts}).scripts


# ----- Unbundled -----

@pytest.mark.asyncio
async def test_scriptBuilder_unbundled_entryIsIndex(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts", "world.say('hi');\n")
    transformer = fakeTransformer()
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=transformer)

    result = await builder.build()

    scriptsDir = project.context.scriptsOutDir
    assert result.entryPath == "scripts/index.js"
    assert result.viable
    assert not result.bundled
    assert (scriptsDir / "index.js").read_text(encoding="utf-8") == '// compiled\nimport "main";\n'
    assert (scriptsDir / "main.js").exists()
    assert result.failures == []


@pytest.mark.asyncio
async def test_scriptBuilder_unbundled_withAuthorIndex_entryIsAggregate(project, makeDescriptor, fakeTransformer):
    project.writeSource("index.ts", "// author index\n")
    project.writeSource("main.ts")
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=fakeTransformer())

    result = await builder.build()

    scriptsDir = project.context.scriptsOutDir
    assert result.entryPath == "scripts/___index___.js"
    assert (scriptsDir / "___index___.js").exists()
    # The author index is compiled like any other file
    assert (scriptsDir / "index.js").read_text(encoding="utf-8") == "// compiled\n// author index\n"
    assert (project.context.dataDir / "index.ts").read_text(encoding="utf-8") == "// author index\n"


@pytest.mark.asyncio
async def test_scriptBuilder_keepsDirectoryLayoutAndWritesMaps(project, makeDescriptor, fakeTransformer):
    project.writeSource("systems/combat.ts")
    project.writeSource("util.js")
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, entrypoints=["systems/combat", "util"]),
        transformer=fakeTransformer(),
    )

    result = await builder.build()

    scriptsDir = project.context.scriptsOutDir
    assert (scriptsDir / "systems" / "combat.js").exists()
    assert (scriptsDir / "systems" / "combat.js.map").exists()
    assert (scriptsDir / "util.js").exists()
    assert (scriptsDir / "util.js.map").exists()
    for outcome in result.files:
        assert outcome.mapDestination is not None and outcome.mapDestination.exists()


@pytest.mark.asyncio
async def test_scriptBuilder_withoutMaps_writesNoMapFiles(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=fakeTransformer(withMaps=False))

    result = await builder.build()

    assert list(project.context.scriptsOutDir.rglob("*.map")) == []
    assert all(outcome.mapDestination is None for outcome in result.files)


@pytest.mark.asyncio
async def test_scriptBuilder_oneFileFails_othersStillWritten(project, makeDescriptor, fakeTransformer):
    for name in ("a.ts", "b.ts", "c.ts"):
        project.writeSource(name)
    transformer = fakeTransformer(failOn={"b.ts"})
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, entrypoints=["a", "b", "c"]),
        transformer=transformer,
    )

    result = await builder.build()

    scriptsDir = project.context.scriptsOutDir
    assert (scriptsDir / "a.js").exists()
    assert (scriptsDir / "c.js").exists()
    assert not (scriptsDir / "b.js").exists()
    assert [outcome.source.name for outcome in result.failures] == ["b.ts"]
    assert isinstance(result.failures[0].error, RuntimeError)
    # index.ts is fine, so the build is still usable
    assert result.entryPath == "scripts/index.js"
    # Every file was attempted
    assert sorted(path.name for path in transformer.calls) == ["a.ts", "b.ts", "c.ts", "index.ts"]


@pytest.mark.asyncio
async def test_scriptBuilder_entryFails_buildIsNotViable(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=fakeTransformer(failOn={"index.ts"}))

    result = await builder.build()

    assert result.entryPath is None
    assert not result.viable
    assert result.moduleUpdate().entryPath is None


@pytest.mark.asyncio
async def test_scriptBuilder_skipsDeclarationFiles(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    project.writeSource("types/globals.d.ts", "declare const x: number;\n")
    transformer = fakeTransformer()
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=transformer)

    await builder.build()

    assert "globals.d.ts" not in [path.name for path in transformer.calls]
    assert not (project.context.scriptsOutDir / "types").exists()


@pytest.mark.asyncio
async def test_scriptBuilder_reportsDeclaredDependencies(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    options = _scripts(makeDescriptor, dependencies={"@minecraft/server": "1.8.0"})
    builder = ScriptBuilder(project.context, options, transformer=fakeTransformer())

    result = await builder.build()

    assert [(dep.moduleName, dep.version) for dep in result.dependencies] == [("@minecraft/server", "1.8.0")]


# ----- Bundled -----

@pytest.mark.asyncio
@pytest.mark.parametrize("authorIndex", [False, True])
async def test_scriptBuilder_bundled_entryIsAlwaysIndex(project, makeDescriptor, fakeTransformer, fakeBundler, authorIndex):
    project.writeSource("main.ts")
    if authorIndex:
        project.writeSource("index.ts", "// author index\n")
    bundler = fakeBundler()
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, bundle=True),
        transformer=fakeTransformer(),
        bundler=bundler,
    )

    result = await builder.build()

    assert result.bundled
    assert result.bundleError is None
    assert result.entryPath == "scripts/index.js"
    assert (project.context.scriptsOutDir / "index.js").exists()

    entry, options = bundler.calls[0]
    expectedEntry = "___index___.js" if authorIndex else "index.js"
    assert entry == project.context.prebundleDir / expectedEntry
    assert options.outfile == project.context.scriptsOutDir / "index.js"
    # Per-file outputs went to the pre-bundle area, not into the pack
    assert (project.context.prebundleDir / "main.js").exists()
    assert not (project.context.scriptsOutDir / "main.js").exists()


@pytest.mark.asyncio
async def test_scriptBuilder_bundleFails_fallsBackToPerFileOutput(project, makeDescriptor, fakeTransformer, fakeBundler):
    project.writeSource("main.ts")
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, bundle=True),
        transformer=fakeTransformer(),
        bundler=fakeBundler(fail=True),
    )

    result = await builder.build()

    assert not result.bundled
    assert isinstance(result.bundleError, RuntimeError)
    assert result.entryPath == "scripts/index.js"
    assert (project.context.scriptsOutDir / "main.js").exists()


@pytest.mark.asyncio
async def test_scriptBuilder_bundleSkippedWhenEntryMissing(project, makeDescriptor, fakeTransformer, fakeBundler):
    project.writeSource("main.ts")
    bundler = fakeBundler()
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, bundle=True),
        transformer=fakeTransformer(failOn={"index.ts"}),
        bundler=bundler,
    )

    result = await builder.build()

    assert bundler.calls == []
    assert isinstance(result.bundleError, FileNotFoundError)
    assert result.entryPath is None


def test_scriptBuilder_bundleOptions_externalsIncludeHostAndDeclared(project, makeDescriptor, fakeTransformer, fakeBundler):
    options = _scripts(makeDescriptor, bundle=True, minify=True, external=["lodash", "@minecraft/server"])
    builder = ScriptBuilder(project.context, options, transformer=fakeTransformer(), bundler=fakeBundler())

    bundleOptions = builder.bundleOptions()

    assert bundleOptions.external[: len(HOST_MODULES)] == HOST_MODULES
    assert bundleOptions.external.count("@minecraft/server") == 1
    assert "lodash" in bundleOptions.external
    assert bundleOptions.minify
    assert bundleOptions.treeShaking is False
    assert (bundleOptions.format, bundleOptions.platform, bundleOptions.target) == ("esm", "node", "es2020")
    assert bundleOptions.tsconfig is None


def test_scriptBuilder_bundleWithoutService_isRejected(project, makeDescriptor, fakeTransformer):
    with pytest.raises(ValueError):
        ScriptBuilder(project.context, _scripts(makeDescriptor, bundle=True), transformer=fakeTransformer())


# ----- tsconfig -----

@pytest.mark.asyncio
async def test_scriptBuilder_passesTsconfigPathsToTransformer(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    project.context.tsconfigFile.write_text(
        "{\n  // comments are fine\n  compilerOptions: { paths: { '@lib/*': ['lib/*'] } },\n}\n",
        encoding="utf-8",
    )
    transformer = fakeTransformer()
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=transformer)

    await builder.build()

    assert transformer.options
    for options in transformer.options:
        assert options.paths == {"@lib/*": ["lib/*"]}
        assert options.baseUrl == project.context.dataDir
        assert options.decorators and options.legacyDecorator and options.decoratorMetadata


def test_loadPathAliases_missingFileIsEmpty(tmp_path):
    assert loadPathAliases(tmp_path / "tsconfig.json") == {}


def test_loadPathAliases_malformedIsConfigurationError(tmp_path):
    path = tmp_path / "tsconfig.json"
    path.write_text("{ compilerOptions: ", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        loadPathAliases(path)


def test_loadPathAliases_withoutPathsIsEmpty(tmp_path):
    path = tmp_path / "tsconfig.json"
    path.write_text(json.dumps({"compilerOptions": {"strict": True}}), encoding="utf-8")
    assert loadPathAliases(path) == {}


def test_destinationFor_renamesTypeScriptOnly(tmp_path):
    src = tmp_path / "src"
    out = tmp_path / "out"
    assert destinationFor(src / "a" / "b.ts", src, out) == out / "a" / "b.js"
    assert destinationFor(src / "c.js", src, out) == out / "c.js"


# ----- Output collisions -----

@pytest.mark.asyncio
async def test_scriptBuilder_sourcesSharingAnOutput_areAllRejected(project, makeDescriptor, fakeTransformer):
    project.writeSource("util.ts", "export const a = 1;\n")
    project.writeSource("util.js", "export const a = 2;\n")
    project.writeSource("main.ts")
    transformer = fakeTransformer()
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, entrypoints=["main", "util"]),
        transformer=transformer,
    )

    result = await builder.build()

    assert sorted(outcome.source.name for outcome in result.failures) == ["util.js", "util.ts"]
    assert all(isinstance(outcome.error, FileExistsError) for outcome in result.failures)
    assert sorted(path.name for path in transformer.calls) == ["index.ts", "main.ts"]
    assert not (project.context.scriptsOutDir / "util.js").exists()
    assert result.entryPath == "scripts/index.js"


# ----- Unpreparable sources -----

@pytest.mark.asyncio
async def test_scriptBuilder_dataDirUnusable_reportsNonViable(project, makeDescriptor, fakeTransformer):
    dataDir = project.context.dataDir
    dataDir.rmdir()
    dataDir.write_text("not a directory", encoding="utf-8")
    transformer = fakeTransformer()
    options = _scripts(makeDescriptor, dependencies={"@minecraft/server": "1.8.0"})

    result = await ScriptBuilder(project.context, options, transformer=transformer).build()

    assert not result.viable
    assert result.entry is None
    assert isinstance(result.setupError, OSError)
    assert transformer.calls == []
    assert [dep.moduleName for dep in result.dependencies] == ["@minecraft/server"]


# ----- Source map locations -----

class _ScratchTransformer:
    """Mimics a compiler that wrote into a scratch directory as out.js."""

    async def transform(self, source, options):
        code = "compiled();\n//# sourceMappingURL=out.js.map\n"
        sourceMap = json.dumps({
            "version": 3,
            "file": "out.js",
            "sourceRoot": "/tmp/scratch",
            "sources": ["../../tmp/scratch/" + source.name],
            "mappings": "AAAA",
        })
        return TransformOutput(code=code, map=sourceMap)


@pytest.mark.asyncio
async def test_scriptBuilder_rewritesMapReferencesToFinalLocation(project, makeDescriptor):
    project.writeSource("systems/combat.ts")
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, entrypoints=["systems/combat"]),
        transformer=_ScratchTransformer(),
    )

    await builder.build()

    out = project.context.scriptsOutDir / "systems" / "combat.js"
    assert out.read_text(encoding="utf-8") == "compiled();\n//# sourceMappingURL=combat.js.map\n"
    sourceMap = json.loads((out.parent / "combat.js.map").read_text(encoding="utf-8"))
    assert sourceMap["file"] == "combat.js"
    assert sourceMap["sources"] == ["../../../data/systems/combat.ts"]
    assert "sourceRoot" not in sourceMap
    assert sourceMap["mappings"] == "AAAA"


@pytest.mark.asyncio
async def test_scriptBuilder_bundled_mapsPointFromPrebundleArea(project, makeDescriptor, fakeBundler):
    project.writeSource("main.ts")
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, bundle=True),
        transformer=_ScratchTransformer(),
        bundler=fakeBundler(),
    )

    await builder.build()

    prebundle = project.context.prebundleDir
    assert (prebundle / "main.js").read_text(encoding="utf-8").endswith("//# sourceMappingURL=main.js.map\n")
    sourceMap = json.loads((prebundle / "main.js.map").read_text(encoding="utf-8"))
    assert sourceMap["sources"] == ["../data/main.ts"]


def test_relocateOutput_withoutMap_dropsStaleReference(tmp_path):
    output = TransformOutput(code="a();\n//# sourceMappingURL=out.js.map\n", map=None)

    relocated = relocateOutput(tmp_path / "src" / "a.ts", tmp_path / "out" / "a.js", output)

    assert relocated.code == "a();\n\n"
    assert relocated.map is None


def test_relocateOutput_keepsUnparsableMap(tmp_path):
    output = TransformOutput(code="a();\n", map="not json")

    relocated = relocateOutput(tmp_path / "a.ts", tmp_path / "a.js", output)

    assert relocated == output


# ----- Concurrency -----

class _SlowTransformer:
    """Holds every transform open for a while and records how many overlap."""

    def __init__(self, *, slowest: str = "", delay: float = 0.02):
        self.slowest = slowest
        self.delay = delay
        self.inFlight = 0
        self.maxInFlight = 0
        self.completed: list[str] = []

    async def transform(self, source, options):
        self.inFlight += 1
        self.maxInFlight = max(self.maxInFlight, self.inFlight)
        try:
            await asyncio.sleep(self.delay * (5 if source.name == self.slowest else 1))
        finally:
            self.inFlight -= 1
        self.completed.append(source.name)
        return TransformOutput(code="// compiled\n")


class _OrderCheckingBundler:
    """Records how many transforms had finished when bundling started."""

    def __init__(self, transformer: _SlowTransformer):
        self.transformer = transformer
        self.completedAtStart: int | None = None

    async def bundle(self, entry, options):
        self.completedAtStart = len(self.transformer.completed)
        options.outfile.parent.mkdir(parents=True, exist_ok=True)
        options.outfile.write_text("// bundle", encoding="utf-8")
        return BundleOutput(outfile=options.outfile)


def _contextWithConcurrency(project, limit: int) -> BuildContext:
    settings = deepMerge(DEFAULT_SETTINGS, {"scripts": {"maxConcurrency": limit}})
    return BuildContext.create(project.root, settings=settings)


@pytest.mark.asyncio
async def test_scriptBuilder_transformsOverlap(project, makeDescriptor):
    for index in range(5):
        project.writeSource(f"mod{index}.ts")
    transformer = _SlowTransformer()
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=transformer)

    await builder.build()

    assert transformer.maxInFlight >= 2
    assert len(transformer.completed) == 6


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [1, 2, 3])
async def test_scriptBuilder_maxConcurrencyBoundsTransforms(project, makeDescriptor, limit):
    for index in range(5):
        project.writeSource(f"mod{index}.ts")
    transformer = _SlowTransformer()
    builder = ScriptBuilder(_contextWithConcurrency(project, limit), _scripts(makeDescriptor), transformer=transformer)

    result = await builder.build()

    assert transformer.maxInFlight == limit
    assert len(transformer.completed) == 6
    assert result.failures == []


@pytest.mark.asyncio
async def test_scriptBuilder_bundlesOnlyAfterSlowestTransform(project, makeDescriptor):
    for index in range(4):
        project.writeSource(f"mod{index}.ts")
    transformer = _SlowTransformer(slowest="mod2.ts")
    bundler = _OrderCheckingBundler(transformer)
    builder = ScriptBuilder(
        project.context,
        _scripts(makeDescriptor, bundle=True),
        transformer=transformer,
        bundler=bundler,
    )

    result = await builder.build()

    assert result.bundled
    assert transformer.completed[-1] == "mod2.ts"
    assert bundler.completedAtStart == 5


@pytest.mark.asyncio
async def test_scriptBuilder_bundleStepWithoutServiceRaises(project, makeDescriptor, fakeTransformer):
    project.writeSource("main.ts")
    builder = ScriptBuilder(project.context, _scripts(makeDescriptor), transformer=fakeTransformer())
    result = await builder.build()

    with pytest.raises(RuntimeError):
        await builder._bundle(result.entry)
