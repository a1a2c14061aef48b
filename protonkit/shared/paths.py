"""
Path Utilities

Centralised location of the protonkit config, cache and log directories.
Follows the XDG base directory variables when they are set.
"""

import os
from pathlib import Path

APP_NAME = "protonkit"


def _xdg_dir(variable: str, fallback: str) -> Path:
    value = os.environ.get(variable)
    if value:
        return Path(value) / APP_NAME
    return Path.home() / fallback / APP_NAME


def get_config_dir() -> Path:
    """Return ~/.config/protonkit (or $XDG_CONFIG_HOME/protonkit)."""
    return _xdg_dir("XDG_CONFIG_HOME", ".config")


def get_verbs_dir() -> Path:
    """Directory scanned for user-authored verb definitions."""
    return get_config_dir() / "verbs"


def get_cache_dir() -> Path:
    """Return ~/.cache/protonkit (or $XDG_CACHE_HOME/protonkit)."""
    return _xdg_dir("XDG_CACHE_HOME", ".cache")


def get_verb_cache_dir() -> Path:
    """Download cache shared by all verb executions."""
    return get_cache_dir() / "verbs"


def get_logs_dir() -> Path:
    """Return ~/.local/state/protonkit/logs (or $XDG_STATE_HOME/protonkit/logs)."""
    return _xdg_dir("XDG_STATE_HOME", ".local/state") / "logs"
