# packsmith/app/context.py
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from packsmith.app import paths
from packsmith.app.settings import loadSettings
from packsmith.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

__all__ = ["BuildContext", "ROOT_DIR_ENV", "FILTER_DIR_ENV"]



ROOT_DIR_ENV = "ROOT_DIR"
FILTER_DIR_ENV = "FILTER_DIR"



def _freeze(value: Any) -> Any:
    """Read-only view of a settings tree: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(val) for key, val in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(val) for val in value)
    return value



@dataclass(frozen=True, slots=True, kw_only=True)
class BuildContext:
    """
    Everything a packaging run needs to know about where it runs.

    Built once at entry and handed to every component. Nothing in the
    pipeline changes the process working directory; all paths below are
    absolute and derived from rootDir. Settings are frozen all the way
    down: nested mappings are read-only proxies and lists are tuples.
    """
    rootDir: Path
    filterDir: Path | None = None
    settings: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        rootDir: Path | str,
        *,
        filterDir: Path | str | None = None,
        settings: Mapping[str, Any] | None = None,
    ) -> "BuildContext":
        root = Path(rootDir).resolve()
        resolved = dict(settings) if settings is not None else loadSettings(root)
        return cls(
            rootDir=root,
            filterDir=Path(filterDir) if filterDir else None,
            settings=_freeze(resolved),
        )

    @classmethod
    def fromEnvironment(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        filterSettings: Mapping[str, Any] | None = None,
    ) -> "BuildContext":
        """Reads ROOT_DIR (required) and FILTER_DIR (informational) from the environment."""
        env = os.environ if environ is None else environ
        rootDir = env.get(ROOT_DIR_ENV)
        if not rootDir:
            raise ConfigurationError(
                f"{ROOT_DIR_ENV} environment variable not found. Is the filter running outside the pipeline runner?"
            )
        root = Path(rootDir)
        if not root.is_dir():
            raise ConfigurationError(f"{ROOT_DIR_ENV} '{rootDir}' is not a directory")
        return cls.create(
            root,
            filterDir=env.get(FILTER_DIR_ENV) or None,
            settings=loadSettings(root.resolve(), filterSettings),
        )

    # ----- Derived paths -----

    def _at(self, rel) -> Path:
        return self.rootDir / Path(rel)

    @property
    def behaviorPackDir(self) -> Path:
        return self._at(paths.BEHAVIOR_PACK_DIR)

    @property
    def resourcePackDir(self) -> Path:
        return self._at(paths.RESOURCE_PACK_DIR)

    @property
    def dataDir(self) -> Path:
        return self._at(paths.DATA_DIR)

    @property
    def prebundleDir(self) -> Path:
        return self._at(paths.PREBUNDLE_DIR)

    @property
    def scriptsOutDir(self) -> Path:
        return self.behaviorPackDir / paths.SCRIPTS_DIR_NAME

    @property
    def resourcesDir(self) -> Path:
        return self._at(paths.RESOURCES_DIR)

    @property
    def identityFile(self) -> Path:
        return self._at(paths.IDENTITY_FILE)

    @property
    def descriptorFile(self) -> Path:
        return self._at(paths.ADDON_DESCRIPTOR_FILE)

    @property
    def projectConfigFile(self) -> Path:
        return self._at(paths.PROJECT_CONFIG_FILE)

    @property
    def tsconfigFile(self) -> Path:
        return self._at(paths.TSCONFIG_FILE)

    @property
    def licenseFile(self) -> Path:
        return self._at(paths.LICENSE_FILE)
