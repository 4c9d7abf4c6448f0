# packsmith/manifest/models.py
from __future__ import annotations
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "FORMAT_VERSION",
    "ModuleKind",
    "ManifestHeader",
    "ManifestModule",
    "ModuleDependency",
    "PackDependency",
    "ManifestDependency",
    "ManifestDocument",
]



FORMAT_VERSION = 2

ModuleKind = Literal["data", "script", "resources"]

_STRICT = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)



class ManifestHeader(BaseModel):
    model_config = _STRICT

    name: str
    description: str
    uuid: str
    version: str
    minEngineVersion: tuple[int, int, int] = Field(alias="min_engine_version")



class ManifestModule(BaseModel):
    """One capability unit of a pack. Script modules carry a language and an entry path."""
    model_config = _STRICT

    type: ModuleKind
    language: Literal["javascript"] | None = None
    uuid: str
    version: str
    description: str
    entry: str | None = None

    @model_validator(mode="after")
    def checkEntry(self) -> "ManifestModule":
        if self.type == "script":
            if not self.entry:
                raise ValueError("script module requires an entry path")
            if self.language is None:
                raise ValueError("script module requires a language")
        elif self.entry is not None or self.language is not None:
            raise ValueError(f"{self.type} module cannot declare entry or language")
        return self



class ModuleDependency(BaseModel):
    """Dependency on a named host module (e.g. "@minecraft/server")."""
    model_config = _STRICT

    moduleName: str = Field(alias="module_name")
    version: str



class PackDependency(BaseModel):
    """Dependency on another pack, by header uuid."""
    model_config = _STRICT

    uuid: str
    version: str



ManifestDependency = ModuleDependency | PackDependency



class ManifestDocument(BaseModel):
    """
    A complete pack manifest.

    Invariants checked on construction:
      - module uuids are unique and differ from the header uuid
      - a data module, when present, is the first module
      - at most one script module
      - no dependency is listed twice
    """
    model_config = _STRICT

    formatVersion: int = Field(default=FORMAT_VERSION, alias="format_version")
    header: ManifestHeader
    modules: tuple[ManifestModule, ...]
    dependencies: tuple[ManifestDependency, ...] = ()

    @model_validator(mode="after")
    def checkInvariants(self) -> "ManifestDocument":
        if not self.modules:
            raise ValueError("manifest must declare at least one module")

        seen = {self.header.uuid}
        for module in self.modules:
            if module.uuid in seen:
                raise ValueError(f"uuid {module.uuid} is used more than once")
            seen.add(module.uuid)

        kinds = [module.type for module in self.modules]
        if "data" in kinds and kinds[0] != "data":
            raise ValueError("data module must be the first module")
        if kinds.count("script") > 1:
            raise ValueError("only one script module is allowed")

        keys = [
            ("module", dep.moduleName) if isinstance(dep, ModuleDependency) else ("pack", dep.uuid)
            for dep in self.dependencies
        ]
        if len(keys) != len(set(keys)):
            raise ValueError("duplicate dependency entry")
        return self

    def modulesOfKind(self, kind: ModuleKind) -> list[ManifestModule]:
        return [module for module in self.modules if module.type == kind]

    def packDependencies(self) -> list[PackDependency]:
        return [dep for dep in self.dependencies if isinstance(dep, PackDependency)]
