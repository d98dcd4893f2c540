"""Read local configuration yamls.

The yaml specifies deployment-specific settings such as where boundary and
track files live, the tile server to use, and rendering constants.  Anything
not present in the yaml falls back to DEFAULTS."""

import copy
import logging
import os

import yaml
from .util import safe_path

logger = logging.getLogger(__name__)

# don't rely on the cwd to find the config file
CONFIGPATH = safe_path("../../config.yaml")

DEFAULTS = {
    "boundary_kml": "data/tmnp.kml",
    "tracks_dir": "data/uploads",
    "output_dir": "data/flight-maps",
    "owners_json": None,
    "zone_label": "NP17",
    "canvas_size": 800,
    "cluster_radius_px": 50,
    "warning_icon": None,
    "log_level": "INFO",
    "log_file": None,
    "tiles": {
        "url": "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
        "timeout": 5,
        "user_agent": "airspace-intrusions/0.1",
        "max_workers": 8,
        "cache_dir": None,
        "attribution": "© OpenStreetMap contributors",
    },
}

def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged

class Config:
    def __init__(self, path=None, yaml_data=None):
        """Load settings from yaml_data, or from the yaml file at path.

        With neither given, the project-level config.yaml is used if it
        exists, otherwise the built-in defaults."""
        if yaml_data is None:
            path = path or CONFIGPATH
            if path == CONFIGPATH and not os.path.exists(path):
                logger.info("No config.yaml found, using defaults")
                yaml_data = {}
            else:
                with open(path, "r", encoding="utf-8") as f:
                    yaml_data = yaml.safe_load(f) or {}
        if not isinstance(yaml_data, dict):
            raise ValueError("Config yaml must be a mapping, got " +
                             type(yaml_data).__name__)
        self.vars = _merge(DEFAULTS, yaml_data)

    def __getitem__(self, key):
        return self.vars[key]

    def get(self, key, default=None):
        return self.vars.get(key, default)

    @property
    def tiles(self) -> dict:
        return self.vars["tiles"]
