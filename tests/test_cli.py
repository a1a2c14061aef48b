"""
Tests for the command-line frontend.
"""

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from protonkit import __version__
from protonkit.backend.core.errors import ConfigurationError, NotFoundError, SubprocessError
from protonkit.backend.models.steam_app import SteamApp
from protonkit.backend.services.verb_service import VerbResult
from protonkit.frontends.cli.main import main

KIT_PATH = "protonkit.frontends.cli.main.ProtonKit"


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)


class TestBasics:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["-V"])
        assert exc.value.code == 0
        assert f"protonkit version {__version__}" in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage: protonkit" in capsys.readouterr().out

    def test_list_category(self, capsys):
        assert main(["list", "--category", "fonts"]) == 0
        out = capsys.readouterr().out
        assert "tahoma" in out
        assert "MS Tahoma (Microsoft, 1999)" in out
        assert "vcrun2022" not in out

    def test_search(self, capsys):
        assert main(["search", "dxvk"]) == 0
        assert "DXVK (latest)" in capsys.readouterr().out

    def test_search_without_match(self, capsys):
        assert main(["search", "no-such-verb-anywhere"]) == 0
        assert "No verbs found." in capsys.readouterr().out

    def test_protons_none_found(self, capsys):
        assert main(["protons"]) == 1
        assert "No Proton installations found." in capsys.readouterr().out

    def test_logs_written(self, isolated_environment: Path, capsys):
        main(["search", "tahoma"])
        capsys.readouterr()
        assert main(["logs"]) == 0
        assert (isolated_environment / ".local/state" / "protonkit" / "logs").is_dir()


class TestPrefixCommands:
    def test_run_reports_each_verb(self, capsys):
        kit = MagicMock()
        kit.run_verbs.return_value = [VerbResult("tahoma", True), VerbResult("d3dx9", False, "Download failed")]
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit) as open_prefix:
            assert main(["run", "/games/pfx", "tahoma", "d3dx9", "win10"]) == 1

        assert open_prefix.call_args.args == ("/games/pfx",)
        kit.run_verbs.assert_called_once_with(["tahoma", "d3dx9", "win10"], stop_on_error=True)
        out = capsys.readouterr().out
        assert "[OK]" in out and "tahoma" in out
        assert "[FAILED]" in out and "Download failed" in out
        assert "1 verb(s) not attempted" in out

    def test_run_keep_going_success(self):
        kit = MagicMock()
        kit.run_verbs.return_value = [VerbResult("win7", True)]
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["run", "/games/pfx", "win7", "--keep-going"]) == 0
        kit.run_verbs.assert_called_once_with(["win7"], stop_on_error=False)

    def test_backend_error_is_reported(self, capsys):
        with patch(f"{KIT_PATH}.open_prefix", side_effect=NotFoundError("Prefix not found: /nowhere")):
            assert main(["run", "/nowhere", "tahoma"]) == 1
        assert "Error: Prefix not found: /nowhere" in capsys.readouterr().out

    def test_winver(self, capsys):
        kit = MagicMock()
        kit.set_windows_version.side_effect = ConfigurationError("Unknown Windows version: win95")
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["winver", "/games/pfx", "win95"]) == 1
        assert "Unknown Windows version" in capsys.readouterr().out

    def test_exec_passes_arguments(self):
        kit = MagicMock()
        kit.run_executable.return_value.success = True
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["exec", "/games/pfx", "C:\\setup.exe", "/S", "/D=C:\\Game"]) == 0
        kit.run_executable.assert_called_once_with("C:\\setup.exe", ["/S", "/D=C:\\Game"], cwd=None)

    def test_delete_refuses_non_prefix(self, tmp_path: Path, capsys):
        target = tmp_path / "documents"
        target.mkdir()
        assert main(["delete-prefix", str(target), "--yes"]) == 1
        assert target.is_dir()
        assert "refusing" in capsys.readouterr().out

    def test_delete_without_runtime(self, prefix_dir: Path):
        with patch(f"{KIT_PATH}.open_prefix", side_effect=NotFoundError("No Proton installation found")):
            assert main(["delete-prefix", str(prefix_dir), "-y"]) == 0
        assert not prefix_dir.exists()

    def test_delete_cancelled(self, prefix_dir: Path, monkeypatch):
        monkeypatch.setattr("builtins.input", lambda prompt: "n")
        assert main(["delete-prefix", str(prefix_dir)]) == 1
        assert prefix_dir.is_dir()

    def test_clear_cache(self, isolated_environment: Path, capsys):
        cache = isolated_environment / ".cache" / "protonkit" / "verbs"
        (cache / "tmp").mkdir(parents=True)
        (cache / "arial32.exe").write_bytes(b"MZ")
        assert main(["clear-cache"]) == 0
        assert f"Removed 2 cached entries from {cache}" in capsys.readouterr().out
        assert list(cache.iterdir()) == []

    def test_numeric_argument_opens_steam_game(self, capsys):
        kit = MagicMock()
        kit.run_verbs.return_value = [VerbResult("d3dx9", True)]
        with patch(f"{KIT_PATH}.open_app", return_value=kit) as open_app, \
                patch(f"{KIT_PATH}.open_prefix") as open_prefix:
            assert main(["run", "292030", "d3dx9"]) == 0
        assert open_app.call_args.args == (292030,)
        open_prefix.assert_not_called()

    def test_numeric_existing_path_is_a_prefix(self, tmp_path: Path, monkeypatch):
        (tmp_path / "1234").mkdir()
        monkeypatch.chdir(tmp_path)
        kit = MagicMock()
        kit.run_verbs.return_value = [VerbResult("win7", True)]
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit) as open_prefix, \
                patch(f"{KIT_PATH}.open_app") as open_app:
            assert main(["run", "1234", "win7"]) == 0
        assert open_prefix.call_args.args == ("1234",)
        open_app.assert_not_called()

    def test_run_command_instead_of_verbs(self):
        kit = MagicMock()
        kit.run_executable.return_value.success = True
        with patch(f"{KIT_PATH}.open_app", return_value=kit):
            assert main(["run", "292030", "-c", "winecfg"]) == 0
        kit.run_executable.assert_called_once_with("winecfg", cwd=None)
        kit.run_verbs.assert_not_called()

    def test_run_needs_verbs_or_command(self, capsys):
        with patch(f"{KIT_PATH}.open_prefix") as open_prefix:
            assert main(["run", "/games/pfx"]) == 1
            assert main(["run", "/games/pfx", "win7", "-c", "winecfg"]) == 1
        open_prefix.assert_not_called()
        assert "Pass either verbs or -c/--command" in capsys.readouterr().out

    def test_background_wineserver_starts_before_running(self):
        kit = MagicMock()
        calls = []
        kit.context.server.start.side_effect = lambda: calls.append("server")
        kit.run_verbs.side_effect = lambda *a, **kw: calls.append("verbs") or [VerbResult("win7", True)]
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["run", "/games/pfx", "win7", "--background-wineserver"]) == 0
        assert calls == ["server", "verbs"]

    def test_background_wineserver_failure_is_a_warning(self, capsys):
        kit = MagicMock()
        kit.context.server.start.side_effect = SubprocessError("Failed to start wineserver: nope")
        kit.run_executable.return_value.success = True
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["exec", "--background-wineserver", "/games/pfx", "setup.exe"]) == 0
        assert "Failed to start background wineserver" in capsys.readouterr().out
        kit.run_executable.assert_called_once()

    def test_server_not_started_by_default(self):
        kit = MagicMock()
        kit.run_executable.return_value.success = True
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            main(["exec", "/games/pfx", "setup.exe"])
        kit.context.server.start.assert_not_called()

    def test_cwd_app_uses_game_directory(self, tmp_path: Path):
        kit = MagicMock()
        kit.app = SteamApp("Witcher", 292030, tmp_path / "common" / "Witcher", tmp_path / "pfx")
        kit.run_executable.return_value.success = True
        with patch(f"{KIT_PATH}.open_app", return_value=kit):
            assert main(["exec", "--cwd-app", "292030", "witcher.exe"]) == 0
        kit.run_executable.assert_called_once_with("witcher.exe", [], cwd=tmp_path / "common" / "Witcher")

    def test_exec_exit_code_is_returned(self, capsys):
        kit = MagicMock()
        kit.run_executable.return_value.success = False
        kit.run_executable.return_value.returncode = 5
        with patch(f"{KIT_PATH}.open_prefix", return_value=kit):
            assert main(["exec", "/games/pfx", "setup.exe"]) == 5
        assert "setup.exe exited with code 5" in capsys.readouterr().out


class TestAppCommands:
    @pytest.fixture
    def discovery(self):
        with patch("protonkit.frontends.cli.main.ProtonDiscoveryService") as service:
            yield service

    def test_lists_games(self, discovery, capsys):
        discovery.return_value.list_windows_apps.return_value = [
            SteamApp("Skyrim Special Edition", 489830, Path("/lib/common/Skyrim"), Path("/pfx")),
            SteamApp("The Witcher 3", 292030, Path("/lib/common/Witcher 3"), Path("/pfx2")),
        ]
        assert main(["apps"]) == 0
        discovery.return_value.list_windows_apps.assert_called_once_with(None)
        out = capsys.readouterr().out
        assert "Skyrim Special Edition (489830)" in out
        assert "The Witcher 3 (292030)" in out

    def test_search_passes_query(self, discovery, capsys):
        discovery.return_value.list_windows_apps.return_value = []
        assert main(["apps", "-s", "witcher"]) == 0
        discovery.return_value.list_windows_apps.assert_called_once_with("witcher")
        assert "Found no games." in capsys.readouterr().out

    def test_extra_steam_libraries(self, discovery):
        discovery.return_value.list_windows_apps.return_value = []
        main(["-S", "/mnt/games", "-S", "/mnt/more", "apps"])
        assert discovery.call_args.args[1] == ["/mnt/games", "/mnt/more"]
