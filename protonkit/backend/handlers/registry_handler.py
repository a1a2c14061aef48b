#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Registry Handler Module
Reads, sanitizes and patches the registry of a prefix
"""

import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from protonkit.backend.core.errors import SubprocessError

logger = logging.getLogger(__name__)

REG_HEADER = "Windows Registry Editor Version 5.00"

# Key suffixes whose absolute-path values are stripped when a prefix is seeded
FILTER_REGISTRY_KEYS = (
    r"Software\Microsoft\Windows\CurrentVersion\Fonts",
    r"Software\Microsoft\Windows NT\CurrentVersion\Fonts",
    r"Software\Wine\Fonts\External Fonts",
)


def parse_registry_key_line(line: str) -> Optional[str]:
    """
    Return the key of an exported key line such as '[Software\\\\Key] 12345'.

    Lines without a trailing timestamp are not key lines.
    """
    stripped = line.strip()
    if not stripped.startswith("["):
        return None
    bracket_pos = stripped.find("] ")
    if bracket_pos == -1:
        return None
    if not stripped[bracket_pos + 2:].isdigit():
        return None
    return stripped[1:bracket_pos]


def parse_registry_value_line(line: str) -> Optional[Tuple[str, str]]:
    """Return (name, value) for a quoted string value line, else None."""
    stripped = line.strip()
    if not stripped.startswith('"'):
        return None
    rest = stripped[1:]
    name_end = rest.find('"')
    if name_end == -1:
        return None
    name = rest[:name_end]
    after_name = rest[name_end + 1:]
    eq_pos = after_name.find("=")
    if eq_pos == -1:
        return None
    after_eq = after_name[eq_pos + 1:].strip()
    if not after_eq.startswith('"') or len(after_eq) < 2:
        return None
    value_end = after_eq.rfind('"')
    if value_end == 0:
        return None
    return name, after_eq[1:value_end]


def _collapse_backslashes(text: str) -> str:
    return text.replace("\\\\", "\\")


def filter_registry_file(filename: Union[str, Path], filter_keys: Iterable[str] = FILTER_REGISTRY_KEYS) -> None:
    """
    Drop drive-letter paths from font keys of an exported registry file.

    Inside a filtered key, a string value longer than two characters whose
    second character is ':' is removed. Every other line is kept verbatim.
    The result is written to '<file>.tmp' and renamed over the original.

    Raises:
        OSError: the file cannot be read, written or replaced
    """
    filename = Path(filename)
    keys = [_collapse_backslashes(k) for k in filter_keys]
    tmp_path = filename.with_name(filename.name + ".tmp")

    removed = 0
    filtering = False
    try:
        with open(filename, "r", encoding="utf-8", errors="surrogateescape", newline="") as src, \
                open(tmp_path, "w", encoding="utf-8", errors="surrogateescape", newline="") as dst:
            for line in src:
                key = parse_registry_key_line(line)
                if key is not None:
                    collapsed = _collapse_backslashes(key)
                    filtering = any(k in collapsed for k in keys)
                    dst.write(line)
                    continue

                if filtering:
                    parsed = parse_registry_value_line(line)
                    if parsed is not None:
                        value = parsed[1]
                        if len(value) > 2 and value[1] == ":":
                            removed += 1
                            continue
                dst.write(line)
        os.replace(tmp_path, filename)
    except OSError:
        if tmp_path.exists():
            tmp_path.unlink()
        raise

    logger.debug(f"Filtered {removed} absolute font paths from {filename.name}")


class RegType(Enum):
    """Registry value types and their .reg text encodings."""
    STRING = "REG_SZ"
    DWORD = "REG_DWORD"
    BINARY = "REG_BINARY"
    EXPAND_STRING = "REG_EXPAND_SZ"
    MULTI_STRING = "REG_MULTI_SZ"

    def format_value(self, value: str) -> str:
        if self is RegType.STRING:
            escaped = value.replace("\\", "\\\\").replace('"', '\\"')
            return f'"{escaped}"'
        if self is RegType.DWORD:
            if value.isascii() and value.isdigit() and int(value) <= 0xFFFFFFFF:
                return f"dword:{int(value):08x}"
            if value.startswith("0x"):
                return f"dword:{value[2:]}"
            return f"dword:{value}"
        if self is RegType.BINARY:
            return "hex:" + ",".join(f"{b:02x}" for b in value.encode("utf-8"))
        prefix = "hex(2):" if self is RegType.EXPAND_STRING else "hex(7):"
        return prefix + self._utf16_hex(value)

    @staticmethod
    def _utf16_hex(value: str) -> str:
        data = (value + "\0").encode("utf-16-le")
        return ",".join(f"{b:02x}" for b in data)


class RegistryEditor:
    """
    Applies registry patches to the prefix of an EnvironmentContext through regedit.
    """

    def __init__(self, context):
        self.context = context

    def apply_file(self, reg_file: Union[str, Path]) -> None:
        """Import a .reg file directly."""
        result = self.context.run_regedit(reg_file)
        if not result.success:
            raise SubprocessError(f"regedit failed to import {Path(reg_file).name} (exit {result.returncode})",
                                  result.returncode)

    def apply_content(self, content: str) -> None:
        """Write content to a unique temporary .reg file, import it and always delete it."""
        fd, temp_name = tempfile.mkstemp(prefix="protonkit_reg_", suffix=".reg")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            self.apply_file(temp_name)
        finally:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass

    def set_value(self, key: str, name: str, value: str, value_type: RegType = RegType.STRING) -> None:
        self.apply_content(f'{REG_HEADER}\n\n[{key}]\n"{name}"={value_type.format_value(value)}\n')

    def delete_value(self, key: str, name: str) -> None:
        self.apply_content(f'{REG_HEADER}\n\n[{key}]\n"{name}"=-\n')

    def delete_key(self, key: str) -> None:
        self.apply_content(f"{REG_HEADER}\n\n[-{key}]\n")


class WindowsVersion(Enum):
    """Windows releases the prefix can report, with their registry identity."""
    WIN11 = ("win11", "Microsoft Windows 11", "", "22000", "6.3", 0)
    WIN10 = ("win10", "Microsoft Windows 10", "", "19041", "6.3", 0)
    WIN81 = ("win81", "Microsoft Windows 8.1", "", "9600", "6.3", 0)
    WIN8 = ("win8", "Microsoft Windows 8", "", "9200", "6.2", 0)
    WIN7 = ("win7", "Microsoft Windows 7", "Service Pack 1", "7601", "6.1", 0x100)
    VISTA = ("vista", "Microsoft Windows Vista", "Service Pack 2", "6002", "6.0", 0x200)
    WINXP = ("winxp", "Microsoft Windows XP", "Service Pack 3", "2600", "5.1", 0x300)

    def __init__(self, short_name, product_name, csd_version, build, current_version, csd_dword):
        self.short_name = short_name
        self.product_name = product_name
        self.csd_version = csd_version
        self.build = build
        self.current_version = current_version
        self.csd_dword = csd_dword

    @classmethod
    def parse(cls, text: str) -> Optional["WindowsVersion"]:
        return _WINDOWS_VERSION_ALIASES.get(text.strip().lower())

    def to_reg(self) -> str:
        return (
            f"{REG_HEADER}\n\n"
            "[HKEY_LOCAL_MACHINE\\Software\\Microsoft\\Windows NT\\CurrentVersion]\n"
            f'"ProductName"="{self.product_name}"\n'
            f'"CSDVersion"="{self.csd_version}"\n'
            f'"CurrentBuild"="{self.build}"\n'
            f'"CurrentBuildNumber"="{self.build}"\n'
            f'"CurrentVersion"="{self.current_version}"\n\n'
            "[HKEY_LOCAL_MACHINE\\System\\CurrentControlSet\\Control\\Windows]\n"
            f'"CSDVersion"=dword:{self.csd_dword:08x}\n'
        )


_WINDOWS_VERSION_ALIASES = {
    "win11": WindowsVersion.WIN11, "windows11": WindowsVersion.WIN11, "11": WindowsVersion.WIN11,
    "win10": WindowsVersion.WIN10, "windows10": WindowsVersion.WIN10, "10": WindowsVersion.WIN10,
    "win81": WindowsVersion.WIN81, "windows81": WindowsVersion.WIN81, "8.1": WindowsVersion.WIN81,
    "win8": WindowsVersion.WIN8, "windows8": WindowsVersion.WIN8, "8": WindowsVersion.WIN8,
    "win7": WindowsVersion.WIN7, "windows7": WindowsVersion.WIN7, "7": WindowsVersion.WIN7,
    "vista": WindowsVersion.VISTA, "winvista": WindowsVersion.VISTA,
    "winxp": WindowsVersion.WINXP, "xp": WindowsVersion.WINXP,
}


def set_windows_version(context, version: WindowsVersion) -> None:
    """Make the prefix report the given Windows release to applications."""
    logger.info(f"Setting Windows version to {version.short_name} in {context.prefix_path}")
    RegistryEditor(context).apply_content(version.to_reg())
