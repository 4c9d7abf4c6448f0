# packsmith/scripts/process.py
from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from packsmith.core.errors import ToolInvocationError

logger = logging.getLogger(__name__)

__all__ = ["ToolResult", "resolveCommand", "runTool"]



@dataclass(frozen=True, slots=True)
class ToolResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str



def resolveCommand(args: Sequence[str]) -> list[str]:
    """Resolves the executable of `args` on PATH. Relative or bare names must be found; absolute paths are kept."""
    if not args:
        raise ValueError("tool command requires at least one argument")

    head, *rest = args
    headPath = Path(head)
    if headPath.is_absolute():
        return [str(headPath), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        raise ToolInvocationError(args, None, reason=f"executable '{head}' was not found on PATH")
    return [resolved, *rest]



async def runTool(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = True,
) -> ToolResult:
    """
    Runs an external tool without a shell and collects its output.

    Raises ToolInvocationError when the executable is missing, the process
    times out, or (with check=True) it exits non-zero.
    """
    command = resolveCommand(args)
    logger.debug("Running: %s", " ".join(command))

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as err:
        raise ToolInvocationError(command, None, reason=str(err)) from err

    try:
        stdoutBytes, stderrBytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as err:
        proc.kill()
        await proc.wait()
        raise ToolInvocationError(command, None, reason=f"timed out after {timeout}s") from err

    result = ToolResult(
        command=tuple(command),
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdoutBytes.decode("utf-8", errors="replace"),
        stderr=stderrBytes.decode("utf-8", errors="replace"),
    )

    if check and result.returncode != 0:
        raise ToolInvocationError(command, result.returncode, result.stderr)
    return result
