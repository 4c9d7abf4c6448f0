# packsmith/addon/descriptor.py
from __future__ import annotations

import logging
from pathlib import Path

import json5
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from packsmith.core.errors import DescriptorError
from packsmith.core.versions import composeVersion, parseEngineVersion, parseSemVer

logger = logging.getLogger(__name__)

__all__ = ["PackSelection", "ScriptOptions", "AddonDescriptor", "loadAddonDescriptor"]



class PackSelection(BaseModel):
    """Which of the two packs this add-on ships."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    behavior: bool = False
    resource: bool = False



class ScriptOptions(BaseModel):
    """The "scripts" section: what to compile and how."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    export: bool = False
    entrypoints: tuple[str, ...] = ()
    bundle: bool = False
    minify: bool = False
    external: tuple[str, ...] = ()
    # Named host modules and the version each is required at, in declaration order
    dependencies: dict[str, str] = Field(default_factory=dict)

    @field_validator("entrypoints", "external")
    @classmethod
    def rejectBlankNames(cls, values: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(value.strip() for value in values)
        if any(not value for value in cleaned):
            raise ValueError("names must not be empty")
        return cleaned

    @model_validator(mode="after")
    def requireEntrypoints(self) -> "ScriptOptions":
        if self.export and not self.entrypoints:
            raise ValueError("scripts.export is set but scripts.entrypoints is empty")
        return self



class AddonDescriptor(BaseModel):
    """
    Validated contents of vermillion.addon.json.

    Versions are checked on construction: `version` must be a full SemVer and
    `engine` a "major.minor.patch" triple.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    description: str = ""
    version: str
    target: str
    engine: str
    packs: PackSelection = Field(default_factory=PackSelection)
    scripts: ScriptOptions = Field(default_factory=ScriptOptions)

    @field_validator("version")
    @classmethod
    def checkVersion(cls, value: str) -> str:
        parseSemVer(value)
        return value.strip()

    @field_validator("engine")
    @classmethod
    def checkEngine(cls, value: str) -> str:
        parseEngineVersion(value)
        return value

    @model_validator(mode="after")
    def checkTarget(self) -> "AddonDescriptor":
        composeVersion(self.version, self.target)
        return self

    @property
    def composedVersion(self) -> str:
        return composeVersion(self.version, self.target)

    @property
    def engineVersion(self) -> tuple[int, int, int]:
        return parseEngineVersion(self.engine)



def loadAddonDescriptor(path: Path) -> AddonDescriptor:
    """Reads and validates the add-on descriptor (JSON5, comments allowed)."""
    if not path.exists():
        raise DescriptorError(f"Add-on descriptor not found at '{path}'")
    try:
        raw = json5.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as err:
        raise DescriptorError(f"Add-on descriptor '{path}' could not be parsed: {err}") from err

    try:
        descriptor = AddonDescriptor.model_validate(raw)
    except ValidationError as err:
        raise DescriptorError(f"Add-on descriptor '{path}' is invalid: {err}") from err

    logger.debug(
        "Add-on descriptor loaded: name=%r version=%s packs=%s scripts.export=%s",
        descriptor.name,
        descriptor.composedVersion,
        descriptor.packs.model_dump(),
        descriptor.scripts.export,
    )
    return descriptor
