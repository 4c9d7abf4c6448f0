# packsmith/scripts/services.py
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

__all__ = [
    "TransformOptions",
    "TransformOutput",
    "TransformService",
    "BundleOptions",
    "BundleOutput",
    "BundleService",
]



@dataclass(frozen=True, slots=True, kw_only=True)
class TransformOptions:
    """Per-file compile settings. Identical for every file of one build."""
    baseUrl: Path
    # tsconfig "compilerOptions.paths": alias pattern -> candidate paths
    paths: Mapping[str, Sequence[str]] = field(default_factory=dict)
    syntax: Literal["typescript", "ecmascript"] = "typescript"
    tsx: bool = False
    decorators: bool = True
    legacyDecorator: bool = True
    decoratorMetadata: bool = True
    target: str = "esnext"
    moduleType: str = "es6"
    resolveFully: bool = True
    sourceMaps: bool = True

    def toSwcConfig(self) -> dict[str, Any]:
        """The equivalent .swcrc document."""
        return {
            "jsc": {
                "parser": {
                    "syntax": self.syntax,
                    "tsx": self.tsx,
                    "decorators": self.decorators,
                },
                "transform": {
                    "legacyDecorator": self.legacyDecorator,
                    "decoratorMetadata": self.decoratorMetadata,
                },
                "target": self.target,
                "baseUrl": str(self.baseUrl),
                "paths": {alias: list(targets) for alias, targets in self.paths.items()},
            },
            "module": {
                "type": self.moduleType,
                "resolveFully": self.resolveFully,
            },
            "sourceMaps": self.sourceMaps,
        }



@dataclass(frozen=True, slots=True)
class TransformOutput:
    code: str
    map: str | None = None



class TransformService(Protocol):
    """Compiles one source file. Raises on failure; never writes into the output tree."""
    async def transform(self, source: Path, options: TransformOptions) -> TransformOutput:
        ...



@dataclass(frozen=True, slots=True, kw_only=True)
class BundleOptions:
    outfile: Path
    workingDir: Path
    external: tuple[str, ...] = ()
    minify: bool = False
    format: str = "esm"
    platform: str = "node"
    target: str = "es2020"
    # Registration code in the host runtime is side-effecting; nothing may be pruned
    treeShaking: bool = False
    sourcemap: bool = True
    tsconfig: Path | None = None



@dataclass(frozen=True, slots=True)
class BundleOutput:
    outfile: Path
    mapfile: Path | None = None



class BundleService(Protocol):
    """Consolidates the module graph reachable from `entry` into options.outfile."""
    async def bundle(self, entry: Path, options: BundleOptions) -> BundleOutput:
        ...
