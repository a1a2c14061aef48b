"""
Proton Discovery Service

Locates Steam installations, their library folders, the Proton runtimes
installed in them and the games that own a Proton prefix. Steam's text
manifests are parsed with the vdf library.
"""

import os
import re
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import vdf

from ..models.proton import ProtonInstallation
from ..models.steam_app import SteamApp

logger = logging.getLogger(__name__)

FLATPAK_STEAM = Path(".var/app/com.valvesoftware.Steam")


def _get_ci(data: Dict[str, Any], key: str) -> Any:
    """Case-insensitive dict lookup; Steam is inconsistent about key casing."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for k, v in data.items():
        if k.lower() == lowered:
            return v
    return None


def _load_vdf(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return vdf.load(f)
    except (OSError, SyntaxError, ValueError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return None


def _tool_display_name(tool: str) -> str:
    """Map Steam's internal tool names (proton_9, proton_513, proton_experimental) to app names."""
    match = re.fullmatch(r"proton_(\w+)", tool)
    if not match:
        return tool
    suffix = match.group(1)
    if not suffix.isdigit():
        return f"Proton {suffix.replace('_', ' ').title()}"
    major_len = 2 if suffix.startswith("1") else 1
    major, minor = suffix[:major_len], suffix[major_len:]
    return f"Proton {major}.{minor}" if minor else f"Proton {major}"


class ProtonDiscoveryService:
    """Finds Proton installations across every Steam library on the system."""

    def __init__(self, steam_path: Optional[Path] = None, extra_libraries: Optional[Iterable] = None,
                 home: Optional[Path] = None):
        """
        Args:
            steam_path: Explicit Steam root, tried before the standard locations
            extra_libraries: Additional library roots from configuration
            home: Home directory used for the standard locations
        """
        self.home = Path(home) if home else Path.home()
        self.steam_path = Path(steam_path).expanduser() if steam_path else None
        self.extra_libraries = [Path(p).expanduser() for p in (extra_libraries or [])]

    # --- Steam roots and libraries -----------------------------------------

    def candidate_steam_roots(self) -> List[Path]:
        candidates = []
        if self.steam_path:
            candidates.append(self.steam_path)
        env_dir = os.environ.get("STEAM_DIR")
        if env_dir:
            candidates.append(Path(env_dir).expanduser())
        candidates += [
            self.home / ".steam/steam",
            self.home / ".local/share/Steam",
            self.home / ".steam/root",
            self.home / FLATPAK_STEAM / ".steam/steam",
            self.home / FLATPAK_STEAM / ".local/share/Steam",
        ]
        return candidates

    def find_steam_roots(self) -> List[Path]:
        """Existing Steam roots (directories containing steamapps), symlinks collapsed."""
        roots = []
        seen = set()
        for candidate in self.candidate_steam_roots():
            if not (candidate / "steamapps").is_dir():
                continue
            real = candidate.resolve()
            if real in seen:
                continue
            seen.add(real)
            roots.append(candidate)
        logger.debug(f"Steam roots: {roots}")
        return roots

    @staticmethod
    def parse_library_folders(vdf_path: Path) -> List[Path]:
        """Library paths listed in steamapps/libraryfolders.vdf (old and new formats)."""
        data = _load_vdf(vdf_path)
        if not data:
            return []
        folders = _get_ci(data, "libraryfolders") or {}
        paths = []
        for key, value in folders.items():
            if not key.isdigit():
                continue
            if isinstance(value, dict):
                path = _get_ci(value, "path")
            else:
                path = value
            if path:
                paths.append(Path(path))
        return paths

    def get_library_paths(self) -> List[Path]:
        """Every Steam library root: each Steam root first, then its listed libraries, then extras."""
        libraries: List[Path] = []

        def add(path: Path):
            if path.is_dir() and all(path.resolve() != p.resolve() for p in libraries):
                libraries.append(path)

        for root in self.find_steam_roots():
            add(root)
            for library in self.parse_library_folders(root / "steamapps" / "libraryfolders.vdf"):
                add(library)

        for library in self.extra_libraries:
            add(library)
        return libraries

    def get_compatibility_tool_paths(self) -> List[Path]:
        """Existing compatibilitytools.d directories, including STEAM_EXTRA_COMPAT_TOOLS_PATHS."""
        paths = [root / "compatibilitytools.d" for root in self.find_steam_roots()]
        paths += [
            self.home / ".steam/steam/compatibilitytools.d",
            self.home / ".local/share/Steam/compatibilitytools.d",
            self.home / ".steam/root/compatibilitytools.d",
            self.home / FLATPAK_STEAM / ".local/share/Steam/compatibilitytools.d",
        ]
        extra = os.environ.get("STEAM_EXTRA_COMPAT_TOOLS_PATHS", "")
        paths += [Path(p) for p in extra.split(":") if p]

        result = []
        seen = set()
        for path in paths:
            if path.is_dir():
                real = path.resolve()
                if real not in seen:
                    seen.add(real)
                    result.append(path)
        return result

    # --- runtimes -----------------------------------------------------------

    @staticmethod
    def parse_app_manifest(manifest: Path, library: Path) -> Optional[ProtonInstallation]:
        """Return the installation described by an appmanifest when it is a Proton runtime."""
        data = _load_vdf(manifest)
        if not data:
            return None
        state = _get_ci(data, "AppState") or {}
        name = _get_ci(state, "name") or ""
        installdir = _get_ci(state, "installdir")
        if not name.startswith("Proton") or not installdir:
            return None
        try:
            appid = int(_get_ci(state, "appid") or 0)
        except ValueError:
            appid = 0
        return ProtonInstallation(name, appid, library / "steamapps" / "common" / installdir)

    def scan_steam_protons(self) -> List[ProtonInstallation]:
        found: Dict[int, ProtonInstallation] = {}
        for library in self.get_library_paths():
            steamapps = library / "steamapps"
            for manifest in sorted(steamapps.glob("appmanifest_*.acf")):
                proton = self.parse_app_manifest(manifest, library)
                if proton and proton.appid not in found:
                    found[proton.appid] = proton
                    logger.debug(f"Found {proton.name} ({proton.appid}) at {proton.install_path}")
        return list(found.values())

    def scan_custom_protons(self) -> List[ProtonInstallation]:
        """Custom runtimes (GE-Proton and friends): directories with a 'proton' launcher."""
        found = []
        for compat_path in self.get_compatibility_tool_paths():
            for tool_dir in sorted(compat_path.iterdir()):
                if tool_dir.is_dir() and (tool_dir / "proton").is_file():
                    found.append(ProtonInstallation(tool_dir.name, 0, tool_dir))
        return found

    def list_protons(self, ready_only: bool = False) -> List[ProtonInstallation]:
        """All discovered runtimes sorted by name."""
        protons = self.scan_steam_protons()
        names = {p.name for p in protons}
        protons += [p for p in self.scan_custom_protons() if p.name not in names]
        if ready_only:
            protons = [p for p in protons if p.is_ready]
        return sorted(protons, key=lambda p: p.name.lower())

    def find_proton_by_name(self, name: str) -> Optional[ProtonInstallation]:
        """Case-insensitive match: an exact name wins, else the first substring match."""
        protons = self.list_protons()
        query = name.lower()
        for proton in protons:
            if proton.name.lower() == query:
                return proton
        for proton in protons:
            if query in proton.name.lower():
                return proton
        return None

    def find_default_proton(self, preferred: Optional[str] = None) -> Optional[ProtonInstallation]:
        """
        Pick a runtime: PROTON_VERSION, then preferred (config), then the
        last ready runtime by name.
        """
        for wanted in (os.environ.get("PROTON_VERSION"), preferred):
            if wanted:
                proton = self.find_proton_by_name(wanted)
                if proton:
                    return proton
                logger.warning(f"Proton '{wanted}' not found")
        ready = self.list_protons(ready_only=True)
        return ready[-1] if ready else None

    # --- Steam apps ---------------------------------------------------------

    def _find_compatdata_prefix(self, appid: int, library: Path) -> Optional[Path]:
        """compatdata/<appid>/pfx in the game's own library first, then in each Steam root."""
        for base in [library] + self.find_steam_roots():
            prefix = base / "steamapps" / "compatdata" / str(appid) / "pfx"
            if prefix.is_dir():
                return prefix
        return None

    def read_steam_app(self, manifest: Path, library: Path) -> Optional[SteamApp]:
        data = _load_vdf(manifest)
        if not data:
            return None
        state = _get_ci(data, "AppState") or {}
        name = _get_ci(state, "name")
        installdir = _get_ci(state, "installdir")
        try:
            appid = int(_get_ci(state, "appid") or 0)
        except ValueError:
            appid = 0
        if not name or not installdir or not appid:
            return None

        app = SteamApp(name, appid, library / "steamapps" / "common" / installdir)
        if not app.is_proton:
            app.prefix_path = self._find_compatdata_prefix(appid, library)
        return app

    def get_steam_apps(self) -> List[SteamApp]:
        """Every installed app across all libraries; the first manifest of an appid wins."""
        found: Dict[int, SteamApp] = {}
        for library in self.get_library_paths():
            for manifest in sorted((library / "steamapps").glob("appmanifest_*.acf")):
                app = self.read_steam_app(manifest, library)
                if app and app.appid not in found:
                    found[app.appid] = app
        return list(found.values())

    def list_windows_apps(self, query: Optional[str] = None) -> List[SteamApp]:
        """Games that own a Proton prefix, optionally filtered by a case-insensitive name query."""
        apps = [app for app in self.get_steam_apps() if app.is_windows_app]
        if query:
            apps = [app for app in apps if app.name_contains(query)]
        return sorted(apps, key=lambda app: app.name.lower())

    def find_app(self, appid: int) -> Optional[SteamApp]:
        for app in self.get_steam_apps():
            if app.appid == appid:
                return app
        return None

    def get_compat_tool_name(self, appid: int) -> Optional[str]:
        """The compatibility tool Steam maps an app to in config/config.vdf, if any."""
        keys = ("InstallConfigStore", "Software", "Valve", "Steam", "CompatToolMapping", str(appid))
        for root in self.find_steam_roots():
            config_path = root / "config" / "config.vdf"
            if not config_path.is_file():
                continue
            node = _load_vdf(config_path)
            for key in keys:
                if not isinstance(node, dict):
                    break
                node = _get_ci(node, key)
            if isinstance(node, dict) and _get_ci(node, "name"):
                return _get_ci(node, "name")
        return None

    def find_proton_for_app(self, appid: int, preferred: Optional[str] = None) -> Optional[ProtonInstallation]:
        """
        Pick the runtime for a Steam game: PROTON_VERSION, then the tool
        Steam is configured to use for it, then the default.
        """
        tool = None if os.environ.get("PROTON_VERSION") else self.get_compat_tool_name(appid)
        if tool:
            proton = self.find_proton_by_name(tool) or self.find_proton_by_name(_tool_display_name(tool))
            if proton:
                logger.info(f"Using {proton.name}, configured in Steam for {appid}")
                return proton
            logger.warning(f"Compatibility tool '{tool}' configured for {appid} not found")
        return self.find_default_proton(preferred)
