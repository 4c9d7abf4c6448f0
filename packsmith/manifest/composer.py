# packsmith/manifest/composer.py
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from packsmith.addon.descriptor import AddonDescriptor
from packsmith.identity.store import IdentityRecord, IdentitySlot
from packsmith.manifest import templates
from packsmith.manifest.models import (
    ManifestDependency,
    ManifestDocument,
    ModuleDependency,
    PackDependency,
)

logger = logging.getLogger(__name__)

__all__ = ["ScriptModuleUpdate", "ManifestPair", "composeManifests"]



@dataclass(frozen=True, slots=True)
class ScriptModuleUpdate:
    """
    What the script build settled on for the manifest.

    entryPath is None when no viable script output was produced; the
    script module is then left out of the behavior manifest.
    """
    entryPath: str | None
    dependencies: tuple[ModuleDependency, ...] = field(default_factory=tuple)



@dataclass(frozen=True, slots=True)
class ManifestPair:
    behavior: ManifestDocument | None
    resource: ManifestDocument | None

    def included(self) -> list[tuple[str, ManifestDocument]]:
        out: list[tuple[str, ManifestDocument]] = []
        if self.behavior is not None:
            out.append(("behavior", self.behavior))
        if self.resource is not None:
            out.append(("resource", self.resource))
        return out



def composeManifests(
    identity: IdentityRecord,
    descriptor: AddonDescriptor,
    *,
    scripts: ScriptModuleUpdate | None = None,
) -> ManifestPair:
    """
    Builds the behavior and resource manifests for one build.

    Both bases are built independently first. Cross-pack dependencies are
    wired afterwards, once per side, only when both packs are included.
    Pure: no I/O, no shared state.
    """
    version = descriptor.composedVersion

    behavior = _behaviorBase(identity, descriptor, version, scripts) if descriptor.packs.behavior else None
    resource = _resourceBase(identity, descriptor, version) if descriptor.packs.resource else None

    if behavior is not None and resource is not None:
        behavior = _withDependencies(
            behavior,
            [PackDependency(uuid=identity.get(IdentitySlot.RESOURCE_HEADER), version=version)],
        )
        resource = _withDependencies(
            resource,
            [PackDependency(uuid=identity.get(IdentitySlot.BEHAVIOR_HEADER), version=version)],
        )

    return ManifestPair(behavior=behavior, resource=resource)



def _behaviorBase(
    identity: IdentityRecord,
    descriptor: AddonDescriptor,
    version: str,
    scripts: ScriptModuleUpdate | None,
) -> ManifestDocument:
    description = descriptor.description
    # The data module is always first; the script module may only follow it.
    modules = [
        templates.dataModule(
            uuid=identity.get(IdentitySlot.BEHAVIOR_DATA_MODULE),
            version=version,
            description=description,
        )
    ]
    dependencies: list[ManifestDependency] = []

    if descriptor.scripts.export:
        if scripts is not None and scripts.entryPath:
            modules.append(
                templates.scriptModule(
                    uuid=identity.get(IdentitySlot.BEHAVIOR_SCRIPT_MODULE),
                    version=version,
                    description=description,
                    entry=scripts.entryPath,
                )
            )
        else:
            logger.warning("Script export requested but no script entry was produced; script module omitted")

        dependencies.extend(
            scripts.dependencies if scripts is not None else templates.moduleDependencies(descriptor.scripts)
        )

    return ManifestDocument(
        header=templates.header(
            uuid=identity.get(IdentitySlot.BEHAVIOR_HEADER),
            name=descriptor.name,
            description=description,
            version=version,
            engine=descriptor.engineVersion,
        ),
        modules=tuple(modules),
        dependencies=tuple(dependencies),
    )



def _resourceBase(identity: IdentityRecord, descriptor: AddonDescriptor, version: str) -> ManifestDocument:
    return ManifestDocument(
        header=templates.header(
            uuid=identity.get(IdentitySlot.RESOURCE_HEADER),
            name=descriptor.name,
            description=descriptor.description,
            version=version,
            engine=descriptor.engineVersion,
        ),
        modules=(
            templates.resourcesModule(
                uuid=identity.get(IdentitySlot.RESOURCE_MODULE),
                version=version,
                description=descriptor.description,
            ),
        ),
    )



def _withDependencies(document: ManifestDocument, extra: Sequence[ManifestDependency]) -> ManifestDocument:
    # Constructor re-runs the document invariants
    return ManifestDocument(
        formatVersion=document.formatVersion,
        header=document.header,
        modules=document.modules,
        dependencies=(*document.dependencies, *extra),
    )
