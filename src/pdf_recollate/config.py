"""
Configuration helpers for YAML-backed command options.
"""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from .utils import ConfigurationError, ensure_file_exists


DEFAULT_RECOLLATE: dict[str, Any] = {
    "dpi": 300,
    "quality": 95,
    "image_format": "png",
    "workers": 0,
    "executor": "process",
    "page_counter": "auto",
    "work_dir": None,
    "overwrite": False,
    "dry_run": False,
    "manifest": None,
}

CONFIG_SECTION = "recollate"


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file into a dictionary."""

    ensure_file_exists(path, "Config file")
    try:
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse YAML config {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Failed to read config {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Config {path} must contain a YAML mapping/object at top level."
        )
    return loaded


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """
    Recursively merge dictionaries where overlay values win.
    """

    merged = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in merged
            and isinstance(merged[key], dict)
            and isinstance(value, dict)
        ):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def validate_keys(cfg: dict[str, Any], allowed: set[str], ctx: str) -> None:
    """
    Validate dictionary keys and fail fast on unknown entries.
    """

    unknown = sorted(str(key) for key in cfg.keys() if key not in allowed)
    if unknown:
        allowed_list = ", ".join(sorted(allowed))
        unknown_list = ", ".join(unknown)
        raise ConfigurationError(
            f"Unknown keys in {ctx}: {unknown_list}. Allowed keys: {allowed_list}."
        )


def extract_recollate_section(loaded: dict[str, Any]) -> dict[str, Any]:
    """Support either root config keys or a `recollate:` wrapper."""

    allowed = set(DEFAULT_RECOLLATE.keys())
    if CONFIG_SECTION in loaded:
        section = loaded[CONFIG_SECTION]
        if not isinstance(section, dict):
            raise ConfigurationError(f"config.{CONFIG_SECTION} must be a mapping/object.")
        validate_keys(section, allowed, f"config.{CONFIG_SECTION}")
        return section

    validate_keys(loaded, allowed, "config")
    return loaded


def dump_default_recollate_yaml() -> str:
    """Serialize wrapped recollate defaults as YAML."""

    return yaml.safe_dump({CONFIG_SECTION: DEFAULT_RECOLLATE}, sort_keys=False).rstrip()
