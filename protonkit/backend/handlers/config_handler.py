#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Handler Module
Handles application settings and configuration
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Optional

from packaging import version

from protonkit.shared.paths import get_config_dir, get_verb_cache_dir

# Initialize logger
logger = logging.getLogger(__name__)

CONFIG_VERSION = "0.3.0"


class ConfigHandler:
    """
    Handles application configuration and settings
    Singleton pattern ensures all code shares the same instance
    """
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigHandler, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration handler with default settings"""
        # Only initialize once (singleton pattern)
        if ConfigHandler._initialized:
            return
        ConfigHandler._initialized = True

        self.config_dir = get_config_dir()
        self.config_file = self.config_dir / "config.json"
        self.settings = {
            "version": CONFIG_VERSION,
            "steam_path": None,
            "steam_libraries": [],
            "default_proton": None,  # Display name of the preferred Proton build
            "default_arch": "win64",
            "cache_dir": None,  # None = XDG cache directory
            "download_fallback_requests": True,  # Stream with requests when curl/wget are missing
            "download_timeout": 30,
        }

        # Load configuration if exists
        self._load_config()

        # Perform version migrations
        self._migrate_config()

        # If steam_path is not set, detect it
        if not self.settings["steam_path"]:
            self.settings["steam_path"] = self._detect_steam_path()

    @classmethod
    def reset(cls):
        """Drop the shared instance so the next construction reloads from disk."""
        cls._instance = None
        cls._initialized = False

    def _detect_steam_path(self) -> Optional[str]:
        """
        Detect the Steam installation path

        Returns:
            str: Path to the Steam installation or None if not found
        """
        steam_dir = os.environ.get("STEAM_DIR")
        if steam_dir and os.path.isdir(os.path.join(steam_dir, "steamapps")):
            logger.info(f"Using Steam installation from STEAM_DIR: {steam_dir}")
            return steam_dir

        steam_paths = [
            os.path.expanduser("~/.steam/steam"),
            os.path.expanduser("~/.local/share/Steam"),
            os.path.expanduser("~/.steam/root"),
            os.path.expanduser("~/.var/app/com.valvesoftware.Steam/.steam/steam"),
        ]

        for path in steam_paths:
            if os.path.isdir(os.path.join(path, "steamapps")):
                logger.info(f"Found Steam installation at: {path}")
                return path

        logger.debug("Steam installation not found")
        return None

    def _load_config(self):
        """Load configuration from file and update in-memory settings."""
        try:
            if self.config_file.exists():
                with open(self.config_file, 'r') as f:
                    saved_config = json.load(f)
                    # Update settings with saved values while preserving defaults
                    self.settings.update(saved_config)
                    logger.debug("Loaded configuration from file")
            else:
                logger.debug("No configuration file found, using defaults")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading configuration: {e}")

    def _migrate_config(self):
        """
        Migrate configuration between versions
        Handles renamed keys and data format updates
        """
        current_version = self.settings.get("version") or "0.0.0"

        if current_version == CONFIG_VERSION:
            return

        logger.info(f"Migrating config from {current_version} to {CONFIG_VERSION}")

        # v0.2.x stored the preferred runtime under proton_version and cached
        # downloads under winetricks_cache
        if version.parse(current_version) < version.parse("0.3.0"):
            legacy_proton = self.settings.pop("proton_version", None)
            if legacy_proton and not self.settings.get("default_proton"):
                self.settings["default_proton"] = legacy_proton
            legacy_cache = self.settings.pop("winetricks_cache", None)
            if legacy_cache and not self.settings.get("cache_dir"):
                self.settings["cache_dir"] = legacy_cache

        self.settings["version"] = CONFIG_VERSION
        self.save_config()
        logger.info("Config migration completed")

    def _create_config_dir(self):
        """Create configuration directory if it doesn't exist"""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Error creating configuration directory: {e}")

    def save_config(self) -> bool:
        """Save current configuration to file"""
        try:
            self._create_config_dir()
            with open(self.config_file, 'w') as f:
                json.dump(self.settings, f, indent=2)
            logger.debug("Saved configuration to file")
            return True
        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key."""
        return self.settings.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """Set a configuration value"""
        self.settings[key] = value
        return True

    def add_steam_library(self, path: str) -> bool:
        """Add a Steam library path to configuration"""
        if path not in self.settings["steam_libraries"]:
            self.settings["steam_libraries"].append(path)
            logger.debug(f"Added Steam library: {path}")
            return True
        return False

    def get_cache_dir(self) -> Path:
        """Download cache directory, honouring a configured override."""
        configured = self.settings.get("cache_dir")
        if configured:
            return Path(os.path.expanduser(configured))
        return get_verb_cache_dir()
