# packsmith/core/errors.py
from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "PackagingError",
    "ConfigurationError",
    "IdentityStoreError",
    "DescriptorError",
    "ManifestWriteError",
    "ToolInvocationError",
]



class PackagingError(Exception):
    """Base for every error that aborts a packaging run."""
    pass



class ConfigurationError(PackagingError):
    """Raised when required build context (environment, settings) is missing or unreadable."""
    pass



class IdentityStoreError(PackagingError):
    """Raised when the persisted identity file cannot be trusted."""
    pass



class DescriptorError(PackagingError):
    """Raised when the addon descriptor is missing or invalid."""
    pass



class ManifestWriteError(PackagingError):
    """Raised when a manifest document cannot be written to its pack."""
    pass



class ToolInvocationError(RuntimeError):
    """
    Raised when an external tool (swc, esbuild) is missing or exits with a non-zero status.

    Not a PackagingError: callers catch it at the per-file or bundle boundary
    and turn it into a reported outcome.
    """
    def __init__(
        self,
        command: Sequence[str],
        returncode: int | None,
        stderr: str | None = None,
        *,
        reason: str | None = None,
    ) -> None:
        head = command[0] if command else "<empty>"
        if reason:
            msg = f"Command '{head}' failed: {reason}"
        else:
            msg = f"Command '{head}' exited with status {returncode}. stderr: {(stderr or '').strip() or '<none>'}"
        super().__init__(msg)
        self.command = tuple(command)
        self.returncode = returncode
        self.stderr = stderr
