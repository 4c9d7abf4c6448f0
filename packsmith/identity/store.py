# packsmith/identity/store.py
from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path

import json5
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from packsmith.core.errors import IdentityStoreError
from packsmith.core.fsutils import writeTextDurable
from packsmith.core.ids import isUuid, uuidv4

logger = logging.getLogger(__name__)

__all__ = [
    "IdentitySlot",
    "BehaviorIdentity",
    "ResourceIdentity",
    "IdentityRecord",
    "IdentityStore",
]



IDENTITY_FILE_BANNER = "// This file was generated automatically. DO NOT modify it unless necessary.\n"



class IdentitySlot(Enum):
    BEHAVIOR_HEADER = "behavior-header"
    BEHAVIOR_DATA_MODULE = "behavior-data-module"
    BEHAVIOR_SCRIPT_MODULE = "behavior-script-module"
    RESOURCE_HEADER = "resource-header"
    RESOURCE_MODULE = "resource-module"



def _checkUuid(value: str) -> str:
    if not isUuid(value):
        raise ValueError(f"not a UUID: {value!r}")
    return value



class BehaviorIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    header: str
    data: str
    script: str

    @field_validator("header", "data", "script")
    @classmethod
    def checkUuids(cls, value: str) -> str:
        return _checkUuid(value)



class ResourceIdentity(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    header: str
    resources: str

    @field_validator("header", "resources")
    @classmethod
    def checkUuids(cls, value: str) -> str:
        return _checkUuid(value)



class IdentityRecord(BaseModel):
    """
    Stable identifiers for every addressable unit of the two packs.

    Persisted as {"BP": {...}, "RP": {...}} so identity files written by
    earlier builds keep loading; `get(slot)` is the slot-name view over it.
    """
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    behavior: BehaviorIdentity = Field(alias="BP")
    resource: ResourceIdentity = Field(alias="RP")

    @model_validator(mode="after")
    def checkDistinct(self) -> "IdentityRecord":
        seen: dict[str, str] = {}
        for slot in IdentitySlot:
            value = self.get(slot).lower()
            if value in seen:
                raise ValueError(f"slots '{seen[value]}' and '{slot.value}' share the identifier {value}")
            seen[value] = slot.value
        return self

    @classmethod
    def generate(cls) -> "IdentityRecord":
        return cls(
            behavior=BehaviorIdentity(header=uuidv4(), data=uuidv4(), script=uuidv4()),
            resource=ResourceIdentity(header=uuidv4(), resources=uuidv4()),
        )

    def get(self, slot: IdentitySlot) -> str:
        match slot:
            case IdentitySlot.BEHAVIOR_HEADER:
                return self.behavior.header
            case IdentitySlot.BEHAVIOR_DATA_MODULE:
                return self.behavior.data
            case IdentitySlot.BEHAVIOR_SCRIPT_MODULE:
                return self.behavior.script
            case IdentitySlot.RESOURCE_HEADER:
                return self.resource.header
            case IdentitySlot.RESOURCE_MODULE:
                return self.resource.resources
        raise KeyError(slot)

    def slots(self) -> dict[str, str]:
        return {slot.value: self.get(slot) for slot in IdentitySlot}



class IdentityStore:
    """
    Owns the identity file of one project.

      - load():   the persisted record, or None when the file does not exist
      - ensure(): the persisted record, or a freshly generated one that has
                  already been written to disk when this returns

    Existing records are never rewritten. A record that cannot be parsed or
    validated raises IdentityStoreError; the build must not go on with
    identifiers it cannot trust.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> IdentityRecord | None:
        if not self.path.exists():
            return None

        try:
            text = self.path.read_text(encoding="utf-8")
            raw = json5.loads(text)
        except (OSError, ValueError) as err:
            raise IdentityStoreError(f"Identity file '{self.path}' could not be read: {err}") from err

        if not isinstance(raw, dict):
            raise IdentityStoreError(f"Identity file '{self.path}' must contain an object")

        try:
            return IdentityRecord.model_validate(raw)
        except ValidationError as err:
            raise IdentityStoreError(f"Identity file '{self.path}' is malformed: {err}") from err

    def ensure(self) -> IdentityRecord:
        record = self.load()
        if record is not None:
            logger.debug("Loaded identity record from '%s'", self.path)
            return record

        record = IdentityRecord.generate()
        self._persist(record)
        logger.info("Generated new identity record at '%s'", self.path)
        return record

    def _persist(self, record: IdentityRecord) -> None:
        payload = record.model_dump(by_alias=True)
        text = IDENTITY_FILE_BANNER + json.dumps(payload, indent=4) + "\n"
        try:
            writeTextDurable(self.path, text)
        except OSError as err:
            raise IdentityStoreError(f"Identity file '{self.path}' could not be written: {err}") from err
