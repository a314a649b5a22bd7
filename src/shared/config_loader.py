"""YAML configuration loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "monitor.yaml"


def load_yaml(path: str | Path) -> dict[str, Any]:
    """Read a YAML file and return its content as a dict.

    Args:
        path: Path to the file.

    Returns:
        File content as a dictionary (empty for an empty file).

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    with p.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    log.debug("Loaded config %s (%d top-level keys)", p.name, len(data or {}))
    return data or {}


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load the monitor config; a missing default file yields an empty config.

    An explicitly given path that does not exist is still an error.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            log.info("No %s found, using built-in defaults", DEFAULT_CONFIG_PATH)
            return {}
        path = DEFAULT_CONFIG_PATH
    return load_yaml(path)


def section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    """Return ``cfg[name]`` as a dict, tolerating a missing or null section."""
    value = cfg.get(name)
    return value if isinstance(value, dict) else {}
