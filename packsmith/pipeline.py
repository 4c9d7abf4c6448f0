# packsmith/pipeline.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from packsmith.addon.descriptor import AddonDescriptor, loadAddonDescriptor
from packsmith.addon.project import loadProjectConfig
from packsmith.app.context import BuildContext
from packsmith.core.ids import uuidv7
from packsmith.core.logging import setLogContext
from packsmith.identity.store import IdentityRecord, IdentityStore
from packsmith.manifest.composer import ManifestPair, composeManifests
from packsmith.packaging.assembler import AssemblyReport, PackageAssembler
from packsmith.scripts.builder import ScriptBuilder, ScriptBuildResult
from packsmith.scripts.esbuild import EsbuildBundleService
from packsmith.scripts.services import BundleService, TransformService
from packsmith.scripts.swc import SwcTransformService

logger = logging.getLogger(__name__)

__all__ = ["BuildReport", "runBuild"]



@dataclass(frozen=True, slots=True)
class BuildReport:
    buildId: str
    descriptor: AddonDescriptor
    identity: IdentityRecord
    manifests: ManifestPair
    assembly: AssemblyReport
    scripts: ScriptBuildResult | None = None

    @property
    def ok(self) -> bool:
        """False only when scripts were requested and nothing usable came out."""
        return self.scripts is None or self.scripts.viable



async def runBuild(
    context: BuildContext,
    *,
    transformer: TransformService | None = None,
    bundler: BundleService | None = None,
) -> BuildReport:
    """
    One packaging run:
      descriptor -> identity -> scripts (optional) -> manifests -> pack files

    Configuration problems (descriptor, identity file, tsconfig) raise before
    anything is written into the packs. Script failures are reported in the
    returned BuildReport.
    """
    buildId = uuidv7()
    setLogContext(buildId=buildId, phase="load")

    project = loadProjectConfig(context.projectConfigFile)
    descriptor = loadAddonDescriptor(context.descriptorFile)
    logger.info(
        "Exporting add-on '%s' %s%s",
        descriptor.name,
        descriptor.composedVersion,
        f" (project '{project.name}' by {project.author})" if project and project.name else "",
    )
    if context.filterDir is not None:
        logger.info("Filter directory: %s", context.filterDir)

    setLogContext(phase="identity")
    identity = IdentityStore(context.identityFile).ensure()

    scripts: ScriptBuildResult | None = None
    if descriptor.packs.behavior and descriptor.scripts.export:
        builder = ScriptBuilder(
            context,
            descriptor.scripts,
            transformer=transformer or SwcTransformService.fromSettings(context.settings),
            bundler=(bundler or EsbuildBundleService.fromSettings(context.settings)) if descriptor.scripts.bundle else None,
        )
        scripts = await builder.build()

    setLogContext(phase="compose")
    manifests = composeManifests(
        identity,
        descriptor,
        scripts=scripts.moduleUpdate() if scripts is not None else None,
    )

    assembly = await PackageAssembler(context).assemble(manifests)

    report = BuildReport(
        buildId=buildId,
        descriptor=descriptor,
        identity=identity,
        manifests=manifests,
        assembly=assembly,
        scripts=scripts,
    )
    if report.ok:
        logger.info("Add-on exported (%s)", ", ".join(pack.pack for pack in assembly.packs) or "no packs")
    else:
        logger.error("Add-on exported without a usable script module")
    return report
