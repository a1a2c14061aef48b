"""
ProtonKit Service

High-level session object for one prefix, orchestrating the prefix,
registry, verb and environment handlers.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.errors import ConfigurationError, NotFoundError, ProtonKitError
from ..handlers.config_handler import ConfigHandler
from ..handlers.prefix_handler import PrefixHandler
from ..handlers.registry_handler import WindowsVersion, set_windows_version
from ..handlers.wine_environment import CommandResult, EnvironmentContext, WineArch
from ..models.prefix import PrefixMetadata
from ..models.proton import ProtonInstallation
from ..models.steam_app import SteamApp
from ..models.verb import Verb, VerbCategory
from .proton_discovery_service import ProtonDiscoveryService
from .verb_service import VerbExecutor, VerbRegistry, VerbResult

logger = logging.getLogger(__name__)


class ProtonKit:
    """
    A prefix bound to a runtime installation.

    Bundles the installation, prefix path, environment context, verb registry
    and executor. The context is shared by every verb run through this object.
    """

    def __init__(self, installation: ProtonInstallation, prefix_path: Union[str, Path],
                 arch: WineArch = WineArch.WIN64, registry: Optional[VerbRegistry] = None,
                 cache_dir: Optional[Path] = None, config: Optional[ConfigHandler] = None):
        self.config = config or ConfigHandler()
        self.installation = installation
        self.prefix_path = Path(prefix_path)
        self.arch = arch
        self.app: Optional[SteamApp] = None
        self.context = EnvironmentContext.from_proton(installation.install_path, self.prefix_path, arch)

        if registry is None:
            from protonkit.shared.paths import get_verbs_dir
            registry = VerbRegistry().load_defaults(get_verbs_dir())
        self.registry = registry
        self.executor = VerbExecutor(
            registry,
            Path(cache_dir) if cache_dir else self.config.get_cache_dir(),
            allow_requests_fallback=bool(self.config.get("download_fallback_requests", True)),
            timeout=int(self.config.get("download_timeout", 30)),
        )

    # --- prefix lifecycle ---------------------------------------------------

    @classmethod
    def create_prefix(cls, installation: ProtonInstallation, prefix_path: Union[str, Path],
                      arch: WineArch = WineArch.WIN64, run_wineboot: bool = True, **kwargs) -> "ProtonKit":
        """
        Initialize a new prefix from the installation and record its metadata.

        Raises:
            ConfigurationError: the installation has no runtime tree yet
            FilesystemError: seeding or drive mapping failed
        """
        if not installation.is_ready:
            raise ConfigurationError(
                f"{installation.name} is not ready. Launch a game with this Proton version first."
            )
        kit = cls(installation, prefix_path, arch, **kwargs)
        logger.info(f"Creating prefix at {kit.prefix_path} with {installation.name} ({arch.value})")

        dist_dir = PrefixHandler.resolve_dist_dir(installation.install_path)
        PrefixHandler.init_prefix(kit.prefix_path, dist_dir, run_wineboot=run_wineboot, context=kit.context)

        metadata = PrefixMetadata(installation.name, installation.install_path, arch.value)
        try:
            metadata.write(kit.prefix_path)
        except OSError as e:
            logger.warning(f"Failed to write prefix metadata: {e}")
        return kit

    @classmethod
    def open_prefix(cls, prefix_path: Union[str, Path], discovery: Optional[ProtonDiscoveryService] = None,
                    proton_name: Optional[str] = None, arch: Optional[WineArch] = None, **kwargs) -> "ProtonKit":
        """
        Rebuild a session for an existing prefix.

        The runtime is chosen from proton_name, then the prefix metadata,
        then the configured default.

        Raises:
            NotFoundError: the prefix or a usable runtime cannot be found
        """
        prefix_path = Path(prefix_path)
        if not prefix_path.is_dir():
            raise NotFoundError(f"Prefix not found: {prefix_path}")

        config = kwargs.get("config") or ConfigHandler()
        metadata = PrefixMetadata.read(prefix_path)
        discovery = discovery or ProtonDiscoveryService(config.get("steam_path"), config.get("steam_libraries"))

        installation = None
        if proton_name:
            installation = discovery.find_proton_by_name(proton_name)
            if installation is None:
                raise NotFoundError(f"Proton version '{proton_name}' not found.")
        elif metadata and metadata.proton_name:
            installation = discovery.find_proton_by_name(metadata.proton_name)
            if installation is None and metadata.proton_path and metadata.proton_path.is_dir():
                installation = ProtonInstallation(metadata.proton_name, 0, metadata.proton_path)
            if installation:
                logger.info(f"Using saved Proton version: {installation.name}")
        if installation is None:
            installation = discovery.find_default_proton(config.get("default_proton"))
        if installation is None:
            raise NotFoundError("No Proton installation found")

        if arch is None:
            saved = metadata.arch if metadata else config.get("default_arch")
            arch = WineArch.parse(saved) or WineArch.WIN64
        return cls(installation, prefix_path, arch, **kwargs)

    @classmethod
    def open_app(cls, appid: int, discovery: Optional[ProtonDiscoveryService] = None,
                 proton_name: Optional[str] = None, **kwargs) -> "ProtonKit":
        """
        Open the prefix Steam created for a game (compatdata/<appid>/pfx).

        The runtime is chosen from proton_name, then the tool Steam maps the
        game to, then the configured default. Steam prefixes are always 64-bit.

        Raises:
            NotFoundError: the game, its prefix or a runtime cannot be found
            ConfigurationError: the runtime has no binary tree yet
        """
        config = kwargs.get("config") or ConfigHandler()
        discovery = discovery or ProtonDiscoveryService(config.get("steam_path"), config.get("steam_libraries"))

        app = discovery.find_app(appid)
        if app is None or not app.is_windows_app:
            raise NotFoundError(
                f"Steam app {appid} could not be found. Is it installed and have you launched it at least once?"
            )

        if proton_name:
            installation = discovery.find_proton_by_name(proton_name)
            if installation is None:
                raise NotFoundError(f"Proton version '{proton_name}' not found.")
        else:
            installation = discovery.find_proton_for_app(appid, config.get("default_proton"))
            if installation is None:
                raise NotFoundError("No Proton installation found")
        if not installation.is_ready:
            raise ConfigurationError(
                f"{installation.name} is not ready. Launch a game with this Proton version first."
            )

        logger.info(f"Opening {app.name} ({appid}) prefix {app.prefix_path} with {installation.name}")
        kit = cls(installation, app.prefix_path, WineArch.WIN64, **kwargs)
        kit.app = app
        return kit

    def delete_prefix(self) -> None:
        """Stop the prefix's background server and remove the prefix directory."""
        try:
            self.context.kill_wineserver()
        except ProtonKitError as e:
            logger.debug(f"wineserver kill failed: {e}")
        PrefixHandler.delete_prefix(self.prefix_path)

    # --- verbs --------------------------------------------------------------

    def run_verb(self, name: str) -> None:
        self.executor.execute(name, self.context)

    def run_verbs(self, names: Sequence[str], stop_on_error: bool = True) -> List[VerbResult]:
        return self.executor.run_verbs(names, self.context, stop_on_error=stop_on_error)

    def list_verbs(self, category: Optional[VerbCategory] = None) -> List[Verb]:
        return self.registry.list(category)

    def search_verbs(self, query: str) -> List[Verb]:
        return self.registry.search(query)

    # --- runtime ------------------------------------------------------------

    def run_executable(self, exe_path: Union[str, Path], args: Sequence[str] = (),
                       cwd: Optional[Path] = None) -> CommandResult:
        """Run an executable and wait for the server; cwd defaults to the executable's directory."""
        if cwd is None:
            result = self.context.run_executable(exe_path, args)
        else:
            result = self.context.run([str(exe_path), *args], cwd=cwd)
        self.context.wait_for_wineserver()
        return result

    def set_windows_version(self, version: Union[str, WindowsVersion]) -> WindowsVersion:
        if isinstance(version, str):
            parsed = WindowsVersion.parse(version)
            if parsed is None:
                raise ConfigurationError(f"Unknown Windows version: {version}")
            version = parsed
        set_windows_version(self.context, version)
        return version
