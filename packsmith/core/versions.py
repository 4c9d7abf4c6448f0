# packsmith/core/versions.py
from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "SemVer",
    "parseSemVer",
    "parseEngineVersion",
    "composeVersion",
    "TARGET_SEPARATOR",
]



SEMVER_PATTERN_RE = re.compile(
    r"^(?P<major>0|[1-9]\d*)"
    r"\.(?P<minor>0|[1-9]\d*)"
    r"\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*)"
    r"(?:\.(?:0|[1-9]\d*|[0-9A-Za-z-]*[A-Za-z-][0-9A-Za-z-]*))*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Build qualifiers are restricted to what SemVer allows after "+"
_TARGET_RE = re.compile(r"^[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*$")

TARGET_SEPARATOR = "+"



@dataclass(frozen=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: tuple[str, ...] = ()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        prerelease = f"-{'.'.join(self.prerelease)}" if self.prerelease else ""
        build = f"+{'.'.join(self.build)}" if self.build else ""
        return f"{base}{prerelease}{build}"



def parseSemVer(raw: str) -> SemVer:
    """
    Parse a full "major.minor.patch[-prerelease][+build]" version string.

    Unlike pack requirements, add-on versions must spell out all three numbers:
    "1.2" and "v1.2.3" are rejected, as are leading zeroes ("01.2.3").
    """
    if not isinstance(raw, str):
        raise TypeError(f"Version string must be a string type, got {type(raw).__name__}")

    raw = raw.strip()
    if not raw:
        raise ValueError("Version string cannot be empty or whitespace only")

    match = SEMVER_PATTERN_RE.match(raw)
    if match is None:
        raise ValueError(f"Invalid semantic version {raw!r}")

    prerelease = match.group("prerelease")
    build = match.group("build")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(prerelease.split(".")) if prerelease else (),
        build=tuple(build.split(".")) if build else (),
    )



def parseEngineVersion(raw: str) -> tuple[int, int, int]:
    """
    Parse a minimum engine version ("1.20.50") into the triple manifests expect.
    Whitespace around the string and around each component is ignored.
    """
    if not isinstance(raw, str):
        raise TypeError(f"Engine version must be a string type, got {type(raw).__name__}")

    parts = [part.strip() for part in raw.strip().split(".")]
    if len(parts) != 3 or any(not part.isdigit() for part in parts):
        raise ValueError(f"Engine version must look like 'major.minor.patch', got {raw!r}")

    major, minor, patch = (int(part) for part in parts)
    return (major, minor, patch)



def composeVersion(version: str, target: str) -> str:
    """
    Returns the single version string stamped on every manifest field of one build:
    "<version>+<target>". Fails when the result would not be a valid SemVer.
    """
    semver = parseSemVer(version)
    if semver.build:
        raise ValueError(f"Version {version!r} already carries build metadata; the target is appended as build metadata")
    if not isinstance(target, str) or not _TARGET_RE.match(target):
        raise ValueError(f"Invalid target qualifier {target!r}")
    return f"{semver}{TARGET_SEPARATOR}{target}"
