from __future__ import annotations
import logging
import os
from typing import Any, Dict, Optional
import yaml  # type: ignore
from ..utils.paths import settings_path

logger = logging.getLogger('diskmgt.config')

DEFAULT_SETTINGS: Dict[str, Any] = {
    "log_level": "WARNING",
    "registry_file": "drives.json",
    # None keeps external queries blocking (a wedged USB device blocks the tool)
    "command_timeout": None,
    "audit": True,
}


def load_settings(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from <config>/settings.yml if present, else return DEFAULT_SETTINGS.
    """
    path = path or settings_path()
    settings = dict(DEFAULT_SETTINGS)
    if not os.path.exists(path):
        return settings
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return settings
    if not isinstance(doc, dict):
        logger.warning(f"Ignoring settings file {path}: expected a mapping")
        return settings
    settings.update({k: v for k, v in doc.items() if k in DEFAULT_SETTINGS})
    timeout = settings.get("command_timeout")
    if timeout is not None:
        try:
            settings["command_timeout"] = float(timeout)
        except (TypeError, ValueError):
            settings["command_timeout"] = None
    return settings
