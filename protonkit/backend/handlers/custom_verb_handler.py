#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Custom Verb Handler Module
Loads user-authored verbs from shell scripts and TOML definitions
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from protonkit.backend.core.errors import ConfigurationError
from protonkit.backend.models.verb import (
    ApplyRegistryPatch,
    DllOverride,
    LocalFile,
    RunConfigTool,
    RunLocalInstaller,
    RunScript,
    SetDllOverride,
    Verb,
    VerbAction,
    VerbCategory,
)

logger = logging.getLogger(__name__)

METADATA_SCAN_LINES = 20


def _expand_path(value: str, base_dir: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _string_list(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    return (str(value),)


def parse_script_metadata(content: str, default_title: str) -> Tuple[str, str, str]:
    """Read '# Title:', '# Publisher:' and '# Year:' from the leading comment lines."""
    title, publisher, year = default_title, "", ""
    for line in content.splitlines()[:METADATA_SCAN_LINES]:
        line = line.strip()
        if not line.startswith("#"):
            continue
        line = line.lstrip("#").strip()
        if line.startswith("Title:"):
            title = line[len("Title:"):].strip()
        elif line.startswith("Publisher:"):
            publisher = line[len("Publisher:"):].strip()
        elif line.startswith("Year:"):
            year = line[len("Year:"):].strip()
    return title, publisher, year


def load_script_verb(script_path: Path) -> Verb:
    """A *.sh file becomes a CUSTOM verb named after the file that runs the script."""
    name = script_path.stem
    content = script_path.read_text(encoding="utf-8", errors="replace")
    title, publisher, year = parse_script_metadata(content, name)
    return Verb(name, VerbCategory.CUSTOM, title, publisher, year, (RunScript(script_path),))


def _build_action(entry: Dict[str, Any], base_dir: Path) -> Optional[VerbAction]:
    action_type = entry.get("type", "")
    if action_type in ("local_installer", "script") and not entry.get("path"):
        raise ConfigurationError(f"{action_type} action requires 'path'")
    if action_type == "local_installer":
        path = _expand_path(str(entry["path"]), base_dir)
        return RunLocalInstaller(LocalFile(path, str(entry.get("name") or path.name)), _string_list(entry.get("args")))
    if action_type == "script":
        return RunScript(_expand_path(str(entry["path"]), base_dir))
    if action_type == "override":
        dll = entry.get("dll")
        if not dll:
            raise ConfigurationError("override action requires 'dll'")
        return SetDllOverride(str(dll), str(entry.get("mode", DllOverride.NATIVE)))
    if action_type == "registry":
        return ApplyRegistryPatch(str(entry.get("content", "")))
    if action_type == "winecfg":
        return RunConfigTool(_string_list(entry.get("args")))
    logger.warning(f"Skipping unknown action type '{action_type}'")
    return None


def parse_toml_verb(content: str, base_dir: Path) -> Verb:
    """
    Build a verb from a TOML definition.

    Raises:
        ConfigurationError: invalid TOML or a missing verb name
    """
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}")

    section = data.get("verb") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("[verb] must be a table")
    name = str(section.get("name", "")).strip()
    if not name:
        raise ConfigurationError("[verb] section must define a name")

    actions = []
    for entry in data.get("actions", []):
        if not isinstance(entry, dict):
            raise ConfigurationError("[[actions]] entries must be tables")
        action = _build_action(entry, base_dir)
        if action is not None:
            actions.append(action)

    return Verb(
        name=name,
        category=VerbCategory.parse(str(section.get("category", "app"))),
        title=str(section.get("title") or name),
        publisher=str(section.get("publisher", "")),
        year=str(section.get("year", "")),
        actions=tuple(actions),
    )


def load_toml_verb(toml_path: Path) -> Verb:
    return parse_toml_verb(toml_path.read_text(encoding="utf-8"), toml_path.parent)


def load_custom_verbs(verbs_dir: Optional[Path]) -> List[Verb]:
    """
    Load every *.sh and *.toml verb in verbs_dir, in filename order.

    Files that cannot be read or parsed are logged and skipped.
    """
    if not verbs_dir:
        return []
    verbs_dir = Path(verbs_dir)
    if not verbs_dir.is_dir():
        logger.debug(f"Custom verbs directory {verbs_dir} does not exist")
        return []

    verbs = []
    for path in sorted(verbs_dir.iterdir()):
        if not path.is_file():
            continue
        suffix = path.suffix.lower()
        try:
            if suffix == ".sh":
                verbs.append(load_script_verb(path))
            elif suffix == ".toml":
                verbs.append(load_toml_verb(path))
        except (OSError, UnicodeDecodeError, ConfigurationError) as e:
            logger.warning(f"Failed to load custom verb {path.name}: {e}")

    logger.debug(f"Loaded {len(verbs)} custom verbs from {verbs_dir}")
    return verbs
