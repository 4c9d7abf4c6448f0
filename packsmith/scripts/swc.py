# packsmith/scripts/swc.py
from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from packsmith.app.settings import getSetting
from packsmith.core.errors import ToolInvocationError
from packsmith.scripts.process import runTool
from packsmith.scripts.services import TransformOptions, TransformOutput

logger = logging.getLogger(__name__)

__all__ = ["SwcTransformService", "buildSwcArgs"]



def buildSwcArgs(command: Sequence[str], source: Path, *, configFile: Path, outFile: Path, sourceMaps: bool) -> list[str]:
    args = [
        *command,
        str(source),
        "--no-swcrc",
        "--config-file", str(configFile),
        "--out-file", str(outFile),
    ]
    if sourceMaps:
        args += ["--source-maps", "true"]
    return args



class SwcTransformService:
    """
    Compiles single files with the swc command line.

    Each call works in its own scratch directory (config + output), so
    concurrent calls never share files. Output is read back and returned;
    placing it in the pack is the caller's job.
    """

    def __init__(self, command: Sequence[str] = ("npx", "swc"), *, timeout: float | None = 120.0):
        self.command = tuple(command)
        self.timeout = timeout

    @classmethod
    def fromSettings(cls, settings: Mapping[str, Any]) -> "SwcTransformService":
        return cls(
            getSetting(settings, "tools.swc", ["npx", "swc"]),
            timeout=float(getSetting(settings, "tools.timeoutSeconds", 120)),
        )

    async def transform(self, source: Path, options: TransformOptions) -> TransformOutput:
        with tempfile.TemporaryDirectory(prefix="packsmith-swc-") as scratch:
            scratchDir = Path(scratch)
            configFile = scratchDir / ".swcrc"
            # Same base name as the final output file
            outFile = scratchDir / f"{source.stem}.js"
            configFile.write_text(json.dumps(options.toSwcConfig(), indent=2), encoding="utf-8")

            args = buildSwcArgs(
                self.command,
                source,
                configFile=configFile,
                outFile=outFile,
                sourceMaps=options.sourceMaps,
            )
            await runTool(args, cwd=options.baseUrl, timeout=self.timeout)

            if not outFile.exists():
                raise ToolInvocationError(args, 0, reason=f"no output produced for '{source}'")

            code = outFile.read_text(encoding="utf-8")
            mapFile = outFile.with_name(outFile.name + ".map")
            sourceMap = mapFile.read_text(encoding="utf-8") if mapFile.exists() else None

        return TransformOutput(code=code, map=sourceMap)
