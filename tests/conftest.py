import sys
from pathlib import Path
from typing import Any

import json5
import pytest

from packsmith.app.context import BuildContext
from packsmith.app.settings import DEFAULT_SETTINGS
from packsmith.scripts.services import BundleOptions, BundleOutput, TransformOptions, TransformOutput



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



# ----------------------------
# Project tree helpers
# ----------------------------

def baseDescriptor(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": "Test Addon",
        "description": "An add-on used in tests",
        "version": "1.2.0",
        "target": "beta",
        "engine": "1.20.0",
        "packs": {"behavior": True, "resource": True},
        "scripts": {
            "export": False,
            "entrypoints": [],
            "bundle": False,
            "minify": False,
            "external": [],
            "dependencies": {},
        },
    }
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return data



class ProjectTree:
    """A throwaway project root laid out the way the pipeline runner stages it."""

    def __init__(self, root: Path):
        self.root = root
        self.context = BuildContext.create(root, settings=DEFAULT_SETTINGS)
        for directory in (self.context.behaviorPackDir, self.context.resourcePackDir, self.context.dataDir):
            directory.mkdir(parents=True, exist_ok=True)

    def writeDescriptor(self, **overrides: Any) -> dict[str, Any]:
        data = baseDescriptor(**overrides)
        path = self.context.descriptorFile
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("// addon descriptor\n" + json5.dumps(data, indent=2), encoding="utf-8")
        return data

    def writeSource(self, rel: str, text: str = "export {};\n") -> Path:
        path = self.context.dataDir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path



@pytest.fixture()
def project(tmp_path: Path) -> ProjectTree:
    return ProjectTree(tmp_path / "project")



# ----------------------------
# Fake external services
# ----------------------------

class FakeTransformer:
    """Echoes sources back as 'compiled' code; files whose name is in failOn raise."""

    def __init__(self, *, failOn: set[str] | None = None, withMaps: bool = True):
        self.failOn = failOn or set()
        self.withMaps = withMaps
        self.calls: list[Path] = []
        self.options: list[TransformOptions] = []

    async def transform(self, source: Path, options: TransformOptions) -> TransformOutput:
        self.calls.append(source)
        self.options.append(options)
        if source.name in self.failOn:
            raise RuntimeError(f"syntax error in {source.name}")
        code = "// compiled\n" + source.read_text(encoding="utf-8")
        sourceMap = '{"version":3,"sources":["%s"]}' % source.name if self.withMaps else None
        return TransformOutput(code=code, map=sourceMap)



class FakeBundler:
    """Concatenates nothing; just writes the outfile (and map) unless told to fail."""

    def __init__(self, *, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[Path, BundleOptions]] = []

    async def bundle(self, entry: Path, options: BundleOptions) -> BundleOutput:
        self.calls.append((entry, options))
        if self.fail:
            raise RuntimeError("bundler exploded")
        options.outfile.parent.mkdir(parents=True, exist_ok=True)
        options.outfile.write_text("// bundle of " + entry.name, encoding="utf-8")
        mapFile = options.outfile.with_name(options.outfile.name + ".map")
        mapFile.write_text("{}", encoding="utf-8")
        return BundleOutput(outfile=options.outfile, mapfile=mapFile)



@pytest.fixture()
def fakeTransformer() -> type[FakeTransformer]:
    return FakeTransformer



@pytest.fixture()
def fakeBundler() -> type[FakeBundler]:
    return FakeBundler



@pytest.fixture()
def makeDescriptor():
    from packsmith.addon.descriptor import AddonDescriptor

    def _make(**overrides: Any) -> AddonDescriptor:
        return AddonDescriptor.model_validate(baseDescriptor(**overrides))
    return _make
