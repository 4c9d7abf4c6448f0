# packsmith/manifest/templates.py
from __future__ import annotations

from packsmith.addon.descriptor import ScriptOptions
from packsmith.manifest.models import (
    ManifestHeader,
    ManifestModule,
    ModuleDependency,
)

__all__ = [
    "SCRIPT_LANGUAGE",
    "header",
    "dataModule",
    "scriptModule",
    "resourcesModule",
    "moduleDependencies",
]

# Every function here returns a fresh model. Nothing is shared between builds.

SCRIPT_LANGUAGE = "javascript"



def header(*, uuid: str, name: str, description: str, version: str, engine: tuple[int, int, int]) -> ManifestHeader:
    return ManifestHeader(
        name=name,
        description=description,
        uuid=uuid,
        version=version,
        minEngineVersion=engine,
    )



def dataModule(*, uuid: str, version: str, description: str) -> ManifestModule:
    return ManifestModule(type="data", uuid=uuid, version=version, description=description)



def scriptModule(*, uuid: str, version: str, description: str, entry: str) -> ManifestModule:
    return ManifestModule(
        type="script",
        language=SCRIPT_LANGUAGE,
        uuid=uuid,
        version=version,
        description=description,
        entry=entry,
    )



def resourcesModule(*, uuid: str, version: str, description: str) -> ManifestModule:
    return ManifestModule(type="resources", uuid=uuid, version=version, description=description)



def moduleDependencies(scripts: ScriptOptions) -> tuple[ModuleDependency, ...]:
    """One record per declared host module dependency, in declaration order."""
    return tuple(
        ModuleDependency(moduleName=name, version=version)
        for name, version in scripts.dependencies.items()
    )
