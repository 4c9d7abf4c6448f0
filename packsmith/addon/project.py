# packsmith/addon/project.py
from __future__ import annotations

from pathlib import Path

import json5
from pydantic import BaseModel, ConfigDict, ValidationError

from packsmith.core.errors import ConfigurationError

__all__ = ["ProjectConfig", "loadProjectConfig"]



class ProjectConfig(BaseModel):
    """The few fields of the pipeline runner's config.json this filter reads."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str | None = None
    author: str | None = None



def loadProjectConfig(path: Path) -> ProjectConfig | None:
    if not path.exists():
        return None
    try:
        raw = json5.loads(path.read_text(encoding="utf-8"))
        return ProjectConfig.model_validate(raw)
    except (OSError, ValueError, ValidationError) as err:
        raise ConfigurationError(f"Project config '{path}' could not be read: {err}") from err
