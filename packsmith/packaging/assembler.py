# packsmith/packaging/assembler.py
from __future__ import annotations

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from packsmith.app.context import BuildContext
from packsmith.app.paths import LICENSE_OUT_NAME, MANIFEST_FILE_NAME, PACK_ICON_BASENAME
from packsmith.core.errors import ManifestWriteError
from packsmith.core.fsutils import ensureDir, findWithoutExtension, toRelPath
from packsmith.core.jsonutils import dumpManifest
from packsmith.core.logging import setLogContext
from packsmith.manifest.composer import ManifestPair
from packsmith.manifest.models import ManifestDocument

logger = logging.getLogger(__name__)

__all__ = ["PackReport", "AssemblyReport", "PackageAssembler"]



@dataclass(slots=True)
class PackReport:
    pack: str
    packDir: Path
    manifestPath: Path
    copied: list[Path] = field(default_factory=list)



@dataclass(slots=True)
class AssemblyReport:
    packs: list[PackReport] = field(default_factory=list)

    def byPack(self, pack: str) -> PackReport | None:
        return next((report for report in self.packs if report.pack == pack), None)



class PackageAssembler:
    """
    Writes each included manifest to its pack and copies the optional assets.

      - <pack>/manifest.json        strict JSON, one per included pack
      - <pack>/LICENSE.txt          when <root>/LICENSE exists
      - <pack>/pack_icon.<ext>      when src/main/resources/pack_icon.* exists

    Missing optional assets are not an error. A manifest that cannot be
    written raises ManifestWriteError.
    """

    def __init__(self, context: BuildContext):
        self.context = context

    def packDir(self, pack: str) -> Path:
        if pack == "behavior":
            return self.context.behaviorPackDir
        if pack == "resource":
            return self.context.resourcePackDir
        raise ValueError(f"Unknown pack '{pack}'")

    async def assemble(self, manifests: ManifestPair) -> AssemblyReport:
        setLogContext(phase="assemble")
        included = manifests.included()
        # One worker thread per pack
        reports = await asyncio.gather(
            *(asyncio.to_thread(self._assembleOne, pack, document) for pack, document in included)
        )
        return AssemblyReport(packs=list(reports))

    def _assembleOne(self, pack: str, document: ManifestDocument) -> PackReport:
        packDir = self.packDir(pack)
        manifestPath = packDir / MANIFEST_FILE_NAME
        try:
            ensureDir(packDir)
            manifestPath.write_text(dumpManifest(document), encoding="utf-8")
        except OSError as err:
            raise ManifestWriteError(f"Could not write {pack} manifest '{manifestPath}': {err}") from err
        logger.info("Wrote %s manifest '%s'", pack, toRelPath(self.context.rootDir, manifestPath))

        report = PackReport(pack=pack, packDir=packDir, manifestPath=manifestPath)
        report.copied.extend(self._copyAssets(packDir))
        return report

    def _copyAssets(self, packDir: Path) -> list[Path]:
        copied: list[Path] = []

        license = self.context.licenseFile
        if license.is_file():
            copied.append(self._copyOptional(license, packDir / LICENSE_OUT_NAME))

        icon = findWithoutExtension(self.context.resourcesDir, PACK_ICON_BASENAME)
        if icon is not None:
            copied.append(self._copyOptional(icon.path, packDir / icon.fileName))

        return [path for path in copied if path is not None]

    def _copyOptional(self, source: Path, dest: Path) -> Path | None:
        try:
            shutil.copyfile(source, dest)
        except OSError as err:
            logger.warning("Could not copy '%s' into '%s': %s", source.name, dest.parent.name, err)
            return None
        logger.debug("Copied '%s' -> '%s'", source.name, toRelPath(self.context.rootDir, dest))
        return dest
