# packsmith/scripts/esbuild.py
from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from packsmith.app.settings import getSetting
from packsmith.core.errors import ToolInvocationError
from packsmith.scripts.process import runTool
from packsmith.scripts.services import BundleOptions, BundleOutput

logger = logging.getLogger(__name__)

__all__ = ["EsbuildBundleService", "buildEsbuildArgs"]



def buildEsbuildArgs(command: Sequence[str], entry: Path, options: BundleOptions) -> list[str]:
    args = [
        *command,
        str(entry),
        "--bundle",
        f"--outfile={options.outfile}",
        f"--format={options.format}",
        f"--platform={options.platform}",
        f"--target={options.target}",
        f"--tree-shaking={'true' if options.treeShaking else 'false'}",
        "--allow-overwrite",
        "--log-level=info",
    ]
    if options.sourcemap:
        args.append("--sourcemap")
    if options.minify:
        args.append("--minify")
    if options.tsconfig is not None:
        args.append(f"--tsconfig={options.tsconfig}")
    args += [f"--external:{name}" for name in options.external]
    return args



class EsbuildBundleService:
    """Bundles a module graph with the esbuild command line."""

    def __init__(self, command: Sequence[str] = ("npx", "esbuild"), *, timeout: float | None = 120.0):
        self.command = tuple(command)
        self.timeout = timeout

    @classmethod
    def fromSettings(cls, settings: Mapping[str, Any]) -> "EsbuildBundleService":
        return cls(
            getSetting(settings, "tools.esbuild", ["npx", "esbuild"]),
            timeout=float(getSetting(settings, "tools.timeoutSeconds", 120)),
        )

    async def bundle(self, entry: Path, options: BundleOptions) -> BundleOutput:
        args = buildEsbuildArgs(self.command, entry, options)
        result = await runTool(args, cwd=options.workingDir, timeout=self.timeout)
        if result.stderr.strip():
            # esbuild reports its summary on stderr at log-level=info
            logger.info("esbuild: %s", result.stderr.strip())

        if not options.outfile.exists():
            raise ToolInvocationError(args, result.returncode, reason=f"bundle output '{options.outfile}' was not written")

        mapFile = options.outfile.with_name(options.outfile.name + ".map")
        return BundleOutput(outfile=options.outfile, mapfile=mapFile if mapFile.exists() else None)
