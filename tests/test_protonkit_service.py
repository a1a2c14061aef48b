"""
Tests for the ProtonKit session object.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from protonkit.backend.core.errors import ConfigurationError, NotFoundError
from protonkit.backend.handlers.wine_environment import WineArch
from protonkit.backend.models.prefix import PrefixMetadata
from protonkit.backend.models.proton import ProtonInstallation
from protonkit.backend.models.steam_app import SteamApp
from protonkit.backend.models.verb import CustomProcedure, Verb, VerbCategory
from protonkit.backend.services.protonkit_service import ProtonKit
from protonkit.backend.services.verb_service import VerbRegistry


@pytest.fixture
def installation(proton_install: Path) -> ProtonInstallation:
    return ProtonInstallation("Proton 9.0", 2805730, proton_install)


@pytest.fixture
def registry() -> VerbRegistry:
    return VerbRegistry()


@pytest.fixture
def discovery(installation: ProtonInstallation) -> MagicMock:
    service = MagicMock()
    service.find_proton_by_name.side_effect = lambda name: installation if name == installation.name else None
    service.find_default_proton.return_value = installation
    return service


class TestCreatePrefix:
    def test_not_ready(self, tmp_path: Path, registry: VerbRegistry):
        installation = ProtonInstallation("Proton 9.0", 1, tmp_path / "empty")
        with pytest.raises(ConfigurationError):
            ProtonKit.create_prefix(installation, tmp_path / "pfx", registry=registry)
        assert not (tmp_path / "pfx").exists()

    def test_seeds_and_records_metadata(self, installation: ProtonInstallation, proton_install: Path,
                                        tmp_path: Path, registry: VerbRegistry):
        template = proton_install / "files" / "share" / "default_pfx" / "drive_c" / "windows"
        template.mkdir(parents=True)
        (template / "win.ini").write_text("[fonts]\n")

        kit = ProtonKit.create_prefix(installation, tmp_path / "new", WineArch.WIN32,
                                      run_wineboot=False, registry=registry)

        assert (tmp_path / "new" / "drive_c" / "windows" / "win.ini").is_file()
        assert (tmp_path / "new" / "dosdevices" / "c:").is_symlink()
        metadata = PrefixMetadata.read(tmp_path / "new")
        assert (metadata.proton_name, metadata.proton_path, metadata.arch) == ("Proton 9.0", proton_install, "win32")
        assert kit.context.arch is WineArch.WIN32

    def test_first_boot(self, installation: ProtonInstallation, tmp_path: Path,
                        registry: VerbRegistry, fake_run):
        ProtonKit.create_prefix(installation, tmp_path / "booted", registry=registry)
        assert fake_run.commands_with("wineboot")
        assert [c[-1] for c in fake_run.commands_with("wineserver")] == ["-w"]


class TestOpenPrefix:
    def test_missing_prefix(self, tmp_path: Path, discovery, registry: VerbRegistry):
        with pytest.raises(NotFoundError):
            ProtonKit.open_prefix(tmp_path / "absent", discovery, registry=registry)

    def test_uses_saved_runtime_and_arch(self, prefix_dir: Path, discovery, registry: VerbRegistry,
                                         installation: ProtonInstallation):
        PrefixMetadata("Proton 9.0", installation.install_path, "win32").write(prefix_dir)
        kit = ProtonKit.open_prefix(prefix_dir, discovery, registry=registry)
        assert kit.installation is installation
        assert kit.arch is WineArch.WIN32
        discovery.find_default_proton.assert_not_called()

    def test_saved_path_used_when_discovery_misses(self, prefix_dir: Path, proton_install: Path,
                                                   registry: VerbRegistry):
        PrefixMetadata("Custom Build", proton_install).write(prefix_dir)
        discovery = MagicMock()
        discovery.find_proton_by_name.return_value = None
        kit = ProtonKit.open_prefix(prefix_dir, discovery, registry=registry)
        assert kit.installation.name == "Custom Build"
        assert kit.installation.install_path == proton_install

    def test_falls_back_to_default(self, prefix_dir: Path, discovery, registry: VerbRegistry,
                                   installation: ProtonInstallation):
        kit = ProtonKit.open_prefix(prefix_dir, discovery, registry=registry)
        assert kit.installation is installation
        assert kit.arch is WineArch.WIN64

    def test_unknown_requested_runtime(self, prefix_dir: Path, discovery, registry: VerbRegistry):
        with pytest.raises(NotFoundError):
            ProtonKit.open_prefix(prefix_dir, discovery, proton_name="GE-Proton", registry=registry)

    def test_no_runtime_anywhere(self, prefix_dir: Path, registry: VerbRegistry):
        discovery = MagicMock()
        discovery.find_default_proton.return_value = None
        with pytest.raises(NotFoundError):
            ProtonKit.open_prefix(prefix_dir, discovery, registry=registry)


class TestOpenApp:
    @pytest.fixture
    def game(self, prefix_dir: Path, tmp_path: Path) -> SteamApp:
        return SteamApp("The Witcher 3", 292030, tmp_path / "common" / "The Witcher 3", prefix_dir)

    def test_opens_compatdata_prefix(self, discovery, game: SteamApp, installation: ProtonInstallation,
                                     registry: VerbRegistry):
        discovery.find_app.return_value = game
        discovery.find_proton_for_app.return_value = installation

        kit = ProtonKit.open_app(292030, discovery, registry=registry)

        assert kit.prefix_path == game.prefix_path
        assert kit.app is game
        assert kit.installation is installation
        assert kit.arch is WineArch.WIN64
        discovery.find_proton_for_app.assert_called_once_with(292030, None)

    def test_requested_runtime_wins(self, discovery, game: SteamApp, installation: ProtonInstallation,
                                    registry: VerbRegistry):
        discovery.find_app.return_value = game
        kit = ProtonKit.open_app(292030, discovery, proton_name="Proton 9.0", registry=registry)
        assert kit.installation is installation
        discovery.find_proton_for_app.assert_not_called()

    @pytest.mark.parametrize("found", [None, SteamApp("Half-Life 2", 220, Path("/lib/common/hl2"))])
    def test_game_without_prefix(self, discovery, registry: VerbRegistry, found):
        discovery.find_app.return_value = found
        with pytest.raises(NotFoundError, match="launched it at least once"):
            ProtonKit.open_app(220, discovery, registry=registry)

    def test_no_runtime(self, discovery, game: SteamApp, registry: VerbRegistry):
        discovery.find_app.return_value = game
        discovery.find_proton_for_app.return_value = None
        with pytest.raises(NotFoundError):
            ProtonKit.open_app(292030, discovery, registry=registry)

    def test_runtime_not_ready(self, discovery, game: SteamApp, tmp_path: Path, registry: VerbRegistry):
        discovery.find_app.return_value = game
        discovery.find_proton_for_app.return_value = ProtonInstallation("Proton 8.0", 1, tmp_path / "empty")
        with pytest.raises(ConfigurationError):
            ProtonKit.open_app(292030, discovery, registry=registry)

    def test_opened_prefix_has_no_app(self, prefix_dir: Path, discovery, registry: VerbRegistry):
        assert ProtonKit.open_prefix(prefix_dir, discovery, registry=registry).app is None


class TestSession:
    @pytest.fixture
    def kit(self, installation: ProtonInstallation, prefix_dir: Path, registry: VerbRegistry,
            cache_dir: Path) -> ProtonKit:
        return ProtonKit(installation, prefix_dir, registry=registry, cache_dir=cache_dir)

    def test_unknown_windows_version(self, kit: ProtonKit, fake_run):
        with pytest.raises(ConfigurationError):
            kit.set_windows_version("win95")
        assert not fake_run.calls

    def test_set_windows_version(self, kit: ProtonKit, fake_run):
        version = kit.set_windows_version("win7")
        assert version.short_name == "win7"
        assert '"ProductName"="Microsoft Windows 7"' in fake_run.reg_contents[0]

    def test_run_verbs_share_context(self, kit: ProtonKit, registry: VerbRegistry):
        seen = []

        def set_override(context, cache, tmp_dir):
            context.set_dll_override("d3d11", "native")

        def record(context, cache, tmp_dir):
            seen.append(context.dll_overrides.get("d3d11"))

        registry.register(Verb("first", VerbCategory.CUSTOM, "First", actions=[CustomProcedure(set_override)]))
        registry.register(Verb("second", VerbCategory.CUSTOM, "Second", actions=[CustomProcedure(record)]))

        results = kit.run_verbs(["first", "second", "missing"])

        assert [(r.name, r.ok) for r in results] == [("first", True), ("second", True), ("missing", False)]
        assert seen == ["native"]

    def test_search_and_list(self, kit: ProtonKit, registry: VerbRegistry):
        registry.register(Verb("tahoma", VerbCategory.FONT, "MS Tahoma"))
        assert [v.name for v in kit.list_verbs(VerbCategory.FONT)] == ["tahoma"]
        assert [v.name for v in kit.search_verbs("TAHO")] == ["tahoma"]

    def test_delete_prefix(self, kit: ProtonKit, prefix_dir: Path, fake_run):
        kit.delete_prefix()
        assert not prefix_dir.exists()
        assert [c[-1] for c in fake_run.commands_with("wineserver")] == ["-k"]

    def test_run_executable_in_explicit_directory(self, kit: ProtonKit, tmp_path: Path, fake_run):
        game_dir = tmp_path / "game"
        game_dir.mkdir()
        kit.run_executable("witcher.exe", ["-skip"], cwd=game_dir)
        command, kwargs = fake_run.calls[0]
        assert command[-2:] == ["witcher.exe", "-skip"]
        assert kwargs["cwd"] == str(game_dir)
