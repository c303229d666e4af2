from __future__ import annotations
import os
from pathlib import Path

"""
Path resolver for the drive registry, XDG compliant with env overrides.
Priority:
1) Explicit env overrides: DISKMGT_CONFIG_DIR, DISKMGT_LOG_DIR
2) XDG (user scope, also under sudo since drives are tracked per user):
   - CONFIG (registry + settings.yml): $XDG_CONFIG_HOME/diskmgt or ~/.config/diskmgt
   - STATE:  $XDG_STATE_HOME/diskmgt or ~/.local/state/diskmgt
   - LOGS:   <STATE>/log (audit trail lives under <LOGS>/audit)
"""


def config_dir() -> str:
    if os.environ.get("DISKMGT_CONFIG_DIR"):
        return os.environ["DISKMGT_CONFIG_DIR"]
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.join(Path.home(), ".config")
    return os.path.join(xdg, "diskmgt")


def state_dir() -> str:
    x = os.environ.get("XDG_STATE_HOME") or os.path.join(Path.home(), ".local", "state")
    return os.path.join(x, "diskmgt")


def log_dir() -> str:
    if os.environ.get("DISKMGT_LOG_DIR"):
        return os.environ["DISKMGT_LOG_DIR"]
    return os.path.join(state_dir(), "log")


def registry_path(filename: str = "drives.json") -> str:
    """Registry document location; absolute filenames are used as given."""
    if os.path.isabs(filename):
        return filename
    return os.path.join(config_dir(), filename)


def settings_path() -> str:
    return os.path.join(config_dir(), "settings.yml")


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def log_subdir(*parts: str) -> str:
    p = os.path.join(log_dir(), *parts)
    ensure_dir(p)
    return p
