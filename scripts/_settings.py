"""
Placement settings: built-in defaults <- configs/spot_elevation.toml <- request.
"""

import copy
import tomllib
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "spot_elevation.toml"

DEFAULTS = {
    "leader": {
        "bend_offset": 3.0,
        "end_offset": 7.0,
        "shoulder": 1.0,
    },
    "matching": {
        "allow_anti_aligned": True,
        "detail_level": "fine",
        "fallback_any_face": True,
    },
    "views": {
        "view_types": ["section"],
        "include_templates": False,
        "require_printable": True,
    },
    "style": {},
    "report": {
        "max_failures": 10,
        "match_log": "output/spot_elevation_match_log.json",
        "pdf": None,
    },
}


def deep_merge(base, override):
    """Recursively merge override into base (copy)."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def load_toml(path):
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_settings(path=None, overrides=None):
    """Return merged settings dict.

    path=None reads the project default file if it exists; an explicit path
    that does not exist is an error.
    """
    settings = copy.deepcopy(DEFAULTS)

    if path is None:
        if DEFAULT_CONFIG_PATH.exists():
            settings = deep_merge(settings, load_toml(DEFAULT_CONFIG_PATH))
    else:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        settings = deep_merge(settings, load_toml(path))

    if overrides:
        settings = deep_merge(settings, overrides)

    _validate(settings)
    return settings


def _validate(settings):
    leader = settings["leader"]
    for key in ("bend_offset", "end_offset", "shoulder"):
        if not isinstance(leader.get(key), (int, float)):
            raise ValueError(f"leader.{key} must be a number, got {leader.get(key)!r}")
    views = settings["views"]
    view_types = views.get("view_types")
    if isinstance(view_types, str):
        views["view_types"] = view_types = [view_types]
    if (not isinstance(view_types, list) or not view_types
            or not all(isinstance(t, str) for t in view_types)):
        raise ValueError(f"views.view_types must be a non-empty list of strings, "
                         f"got {view_types!r}")
    max_failures = settings["report"].get("max_failures")
    if not isinstance(max_failures, int) or max_failures < 0:
        raise ValueError(f"report.max_failures must be a non-negative integer, "
                         f"got {max_failures!r}")


def resolve_output_path(path):
    """Relative output paths are anchored at the project root."""
    p = Path(path)
    if not p.is_absolute():
        p = PROJECT_ROOT / p
    return p
