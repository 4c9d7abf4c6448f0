# packsmith/app/paths.py
from __future__ import annotations
from pathlib import PurePosixPath



# Project layout, relative to ROOT_DIR
STAGING_DIR = PurePosixPath(".regolith/tmp")               # prepared by the pipeline runner
BEHAVIOR_PACK_DIR = STAGING_DIR / "BP"                     # behavior pack staging root
RESOURCE_PACK_DIR = STAGING_DIR / "RP"                     # resource pack staging root
DATA_DIR = STAGING_DIR / "data"                            # script sources
PREBUNDLE_DIR = STAGING_DIR / "temp"                       # per-file output when bundling

RESOURCES_DIR = PurePosixPath("src/main/resources")        # descriptor + pack icon
ADDON_DESCRIPTOR_FILE = RESOURCES_DIR / "vermillion.addon.json"
IDENTITY_FILE = PurePosixPath("uuids.json")
PROJECT_CONFIG_FILE = PurePosixPath("config.json")
TSCONFIG_FILE = PurePosixPath("tsconfig.json")
SETTINGS_FILE = PurePosixPath("packsmith.json5")
LICENSE_FILE = PurePosixPath("LICENSE")

# Inside a pack
MANIFEST_FILE_NAME = "manifest.json"
LICENSE_OUT_NAME = "LICENSE.txt"
PACK_ICON_BASENAME = "pack_icon"
SCRIPTS_DIR_NAME = "scripts"
