"""
Tests for Steam library and Proton runtime discovery.
"""

import textwrap
from pathlib import Path

import pytest

from protonkit.backend.models.proton import ProtonInstallation
from protonkit.backend.models.steam_app import SteamApp
from protonkit.backend.services.proton_discovery_service import ProtonDiscoveryService, _tool_display_name


def write_manifest(library: Path, appid: int, name: str, installdir: str, ready: bool = True) -> Path:
    steamapps = library / "steamapps"
    steamapps.mkdir(parents=True, exist_ok=True)
    (steamapps / f"appmanifest_{appid}.acf").write_text(textwrap.dedent(f"""\
        "AppState"
        {{
            "appid"		"{appid}"
            "name"		"{name}"
            "installdir"		"{installdir}"
        }}
    """))
    install = steamapps / "common" / installdir
    install.mkdir(parents=True, exist_ok=True)
    if ready:
        (install / "files").mkdir(exist_ok=True)
    return install


@pytest.fixture
def steam(isolated_environment: Path) -> Path:
    """~/.local/share/Steam with a second library listed in libraryfolders.vdf."""
    root = isolated_environment / ".local/share/Steam"
    (root / "steamapps").mkdir(parents=True)
    second = isolated_environment / "games" / "SteamLibrary"
    (second / "steamapps").mkdir(parents=True)
    (root / "steamapps" / "libraryfolders.vdf").write_text(textwrap.dedent(f"""\
        "libraryfolders"
        {{
            "0"
            {{
                "path"		"{root}"
                "label"		""
            }}
            "1"
            {{
                "path"		"{second}"
            }}
        }}
    """))
    return root


@pytest.fixture
def second_library(isolated_environment: Path) -> Path:
    return isolated_environment / "games" / "SteamLibrary"


class TestLibraries:
    def test_new_format(self, steam: Path, second_library: Path):
        paths = ProtonDiscoveryService.parse_library_folders(steam / "steamapps" / "libraryfolders.vdf")
        assert paths == [steam, second_library]

    def test_old_format(self, tmp_path: Path):
        vdf_file = tmp_path / "libraryfolders.vdf"
        vdf_file.write_text(textwrap.dedent("""\
            "LibraryFolders"
            {
                "TimeNextStatsReport"		"1700000000"
                "ContentStatsID"		"123"
                "1"		"/mnt/games"
            }
        """))
        assert ProtonDiscoveryService.parse_library_folders(vdf_file) == [Path("/mnt/games")]

    def test_unparseable_file(self, tmp_path: Path, caplog):
        vdf_file = tmp_path / "libraryfolders.vdf"
        vdf_file.write_text('"libraryfolders"\n{\n"0"\n{\n')
        assert ProtonDiscoveryService.parse_library_folders(vdf_file) == []

    def test_missing_file(self, tmp_path: Path):
        assert ProtonDiscoveryService.parse_library_folders(tmp_path / "absent.vdf") == []

    def test_library_paths_deduplicated(self, steam: Path, second_library: Path, isolated_environment: Path):
        extra = isolated_environment / "extra"
        extra.mkdir()
        service = ProtonDiscoveryService(extra_libraries=[second_library, extra])
        assert service.get_library_paths() == [steam, second_library, extra]

    def test_steam_dir_environment(self, tmp_path: Path, monkeypatch, isolated_environment: Path):
        custom = tmp_path / "custom-steam"
        (custom / "steamapps").mkdir(parents=True)
        monkeypatch.setenv("STEAM_DIR", str(custom))
        assert ProtonDiscoveryService().find_steam_roots() == [custom]

    def test_symlinked_roots_collapse(self, steam: Path, isolated_environment: Path):
        (isolated_environment / ".steam").mkdir()
        (isolated_environment / ".steam" / "steam").symlink_to(steam)
        roots = ProtonDiscoveryService().find_steam_roots()
        assert len(roots) == 1


class TestProtons:
    def test_scan_steam_protons(self, steam: Path, second_library: Path):
        write_manifest(steam, 2805730, "Proton 9.0", "Proton 9.0")
        write_manifest(second_library, 1493710, "Proton Experimental", "Proton - Experimental")
        write_manifest(second_library, 220, "Half-Life 2", "Half-Life 2")

        protons = ProtonDiscoveryService().list_protons()

        assert [(p.name, p.appid) for p in protons] == [("Proton 9.0", 2805730), ("Proton Experimental", 1493710)]
        assert protons[1].install_path == second_library / "steamapps" / "common" / "Proton - Experimental"

    def test_duplicate_appids_keep_first(self, steam: Path, second_library: Path):
        write_manifest(steam, 2805730, "Proton 9.0", "Proton 9.0")
        write_manifest(second_library, 2805730, "Proton 9.0", "Proton 9.0")
        protons = ProtonDiscoveryService().scan_steam_protons()
        assert len(protons) == 1
        assert protons[0].install_path.is_relative_to(steam)

    def test_custom_protons(self, steam: Path):
        tools = steam / "compatibilitytools.d"
        ge = tools / "GE-Proton9-20"
        (ge / "files").mkdir(parents=True)
        (ge / "proton").write_text("#!/usr/bin/env python3\n")
        (tools / "not-a-tool").mkdir()

        protons = ProtonDiscoveryService().scan_custom_protons()
        assert [(p.name, p.appid, p.is_custom) for p in protons] == [("GE-Proton9-20", 0, True)]

    def test_extra_compat_tool_paths(self, tmp_path: Path, monkeypatch):
        tools = tmp_path / "tools"
        (tools / "Proton-Custom").mkdir(parents=True)
        (tools / "Proton-Custom" / "proton").write_text("")
        monkeypatch.setenv("STEAM_EXTRA_COMPAT_TOOLS_PATHS", str(tools))
        assert [p.name for p in ProtonDiscoveryService().scan_custom_protons()] == ["Proton-Custom"]

    def test_ready_filter(self, steam: Path):
        write_manifest(steam, 1, "Proton 8.0", "Proton 8.0", ready=False)
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        service = ProtonDiscoveryService()
        assert [p.name for p in service.list_protons()] == ["Proton 8.0", "Proton 9.0"]
        assert [p.name for p in service.list_protons(ready_only=True)] == ["Proton 9.0"]

    def test_find_by_name(self, steam: Path):
        write_manifest(steam, 1, "Proton 9.0", "Proton 9.0")
        write_manifest(steam, 2, "Proton 9.0 (Beta)", "Proton 9.0 Beta")
        service = ProtonDiscoveryService()
        assert service.find_proton_by_name("proton 9.0").appid == 1
        assert service.find_proton_by_name("beta").appid == 2
        assert service.find_proton_by_name("GE") is None

    def test_default_prefers_environment_then_config(self, steam: Path, monkeypatch):
        write_manifest(steam, 1, "Proton 8.0", "Proton 8.0")
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        service = ProtonDiscoveryService()
        assert service.find_default_proton().name == "Proton 9.0"
        assert service.find_default_proton("8.0").name == "Proton 8.0"
        monkeypatch.setenv("PROTON_VERSION", "Proton 9.0")
        assert service.find_default_proton("8.0").name == "Proton 9.0"

    def test_default_when_nothing_installed(self):
        assert ProtonDiscoveryService().find_default_proton() is None



def write_compat_mapping(steam: Path, appid: int, tool: str) -> None:
    config = steam / "config"
    config.mkdir(parents=True, exist_ok=True)
    (config / "config.vdf").write_text(textwrap.dedent(f"""\
        "InstallConfigStore"
        {{
            "Software"
            {{
                "Valve"
                {{
                    "steam"
                    {{
                        "CompatToolMapping"
                        {{
                            "{appid}"
                            {{
                                "name"		"{tool}"
                                "config"		""
                                "priority"		"250"
                            }}
                        }}
                    }}
                }}
            }}
        }}
    """))


def make_prefix(library: Path, appid: int) -> Path:
    prefix = library / "steamapps" / "compatdata" / str(appid) / "pfx"
    prefix.mkdir(parents=True)
    return prefix


class TestSteamApps:
    def test_games_with_prefix_are_windows_apps(self, steam: Path, second_library: Path):
        write_manifest(steam, 2805730, "Proton 9.0", "Proton 9.0")
        write_manifest(second_library, 292030, "The Witcher 3", "The Witcher 3")
        write_manifest(steam, 220, "Half-Life 2", "Half-Life 2")
        prefix = make_prefix(second_library, 292030)

        apps = ProtonDiscoveryService().list_windows_apps()

        assert apps == [SteamApp("The Witcher 3", 292030,
                                 second_library / "steamapps" / "common" / "The Witcher 3", prefix)]

    def test_prefix_falls_back_to_steam_root(self, steam: Path, second_library: Path):
        write_manifest(second_library, 489830, "Skyrim Special Edition", "Skyrim")
        prefix = make_prefix(steam, 489830)
        assert ProtonDiscoveryService().find_app(489830).prefix_path == prefix

    def test_runtime_never_has_prefix(self, steam: Path):
        write_manifest(steam, 2805730, "Proton 9.0", "Proton 9.0")
        make_prefix(steam, 2805730)
        app = ProtonDiscoveryService().find_app(2805730)
        assert app.is_proton and not app.is_windows_app

    def test_search_is_case_insensitive(self, steam: Path):
        for appid, name in ((1, "The Witcher 3"), (2, "Witcher 2"), (3, "Portal")):
            write_manifest(steam, appid, name, name)
            make_prefix(steam, appid)
        service = ProtonDiscoveryService()
        assert [a.name for a in service.list_windows_apps("WITCHER")] == ["The Witcher 3", "Witcher 2"]
        assert [a.appid for a in service.list_windows_apps()] == [3, 1, 2]

    def test_unknown_app(self, steam: Path):
        assert ProtonDiscoveryService().find_app(42) is None

    def test_incomplete_manifest_skipped(self, steam: Path):
        (steam / "steamapps" / "appmanifest_7.acf").write_text('"AppState"\n{\n"appid" "7"\n}\n')
        assert ProtonDiscoveryService().get_steam_apps() == []

    def test_configured_tool_by_internal_name(self, steam: Path):
        write_manifest(steam, 1, "Proton 8.0", "Proton 8.0")
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        write_compat_mapping(steam, 292030, "proton_8")
        service = ProtonDiscoveryService()
        assert service.get_compat_tool_name(292030) == "proton_8"
        assert service.find_proton_for_app(292030).name == "Proton 8.0"

    def test_configured_custom_tool(self, steam: Path):
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        ge = steam / "compatibilitytools.d" / "GE-Proton9-20"
        (ge / "files").mkdir(parents=True)
        (ge / "proton").write_text("")
        write_compat_mapping(steam, 292030, "GE-Proton9-20")
        assert ProtonDiscoveryService().find_proton_for_app(292030).name == "GE-Proton9-20"

    def test_unmapped_app_uses_default(self, steam: Path):
        write_manifest(steam, 1, "Proton 8.0", "Proton 8.0")
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        write_compat_mapping(steam, 292030, "proton_8")
        service = ProtonDiscoveryService()
        assert service.get_compat_tool_name(489830) is None
        assert service.find_proton_for_app(489830).name == "Proton 9.0"

    def test_missing_configured_tool_falls_back(self, steam: Path, caplog):
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        write_compat_mapping(steam, 292030, "proton_63")
        assert ProtonDiscoveryService().find_proton_for_app(292030).name == "Proton 9.0"
        assert "proton_63" in caplog.text

    def test_environment_overrides_mapping(self, steam: Path, monkeypatch):
        write_manifest(steam, 1, "Proton 8.0", "Proton 8.0")
        write_manifest(steam, 2, "Proton 9.0", "Proton 9.0")
        write_compat_mapping(steam, 292030, "proton_8")
        monkeypatch.setenv("PROTON_VERSION", "Proton 9.0")
        assert ProtonDiscoveryService().find_proton_for_app(292030).name == "Proton 9.0"

    @pytest.mark.parametrize("tool,expected", [
        ("proton_9", "Proton 9"),
        ("proton_513", "Proton 5.13"),
        ("proton_63", "Proton 6.3"),
        ("proton_10", "Proton 10"),
        ("proton_experimental", "Proton Experimental"),
        ("GE-Proton9-20", "GE-Proton9-20"),
    ])
    def test_tool_display_name(self, tool, expected):
        assert _tool_display_name(tool) == expected


class TestProtonInstallation:
    def test_readiness(self, tmp_path: Path):
        proton = ProtonInstallation("Proton 9.0", 1, str(tmp_path))
        assert isinstance(proton.install_path, Path)
        assert not proton.is_ready
        (tmp_path / "dist").mkdir()
        assert proton.is_ready

    def test_to_dict(self, tmp_path: Path):
        assert ProtonInstallation("GE", 0, tmp_path).to_dict() == {
            "name": "GE", "appid": 0, "install_path": str(tmp_path), "is_ready": False,
        }
