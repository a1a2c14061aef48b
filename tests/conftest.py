"""
Shared test fixtures and configuration.

Nothing here launches a real runtime or touches the network: subprocess.run
is replaced by a recording fake, and every XDG directory points into tmp_path.
"""

import logging
import subprocess
from pathlib import Path

import pytest

from protonkit.backend.handlers.config_handler import ConfigHandler
from protonkit.backend.handlers.wine_environment import EnvironmentContext, WineArch


class FakeRunner:
    """
    Stand-in for subprocess.run that records every command.

    Exit codes are chosen by substring: the first entry of `returncodes`
    whose key appears in any argument wins. regedit imports are captured
    so tests can inspect the patch text after the temp file is gone.
    """

    def __init__(self):
        self.calls = []
        self.returncodes = {}
        self.outputs = {}
        self.reg_contents = []
        self.side_effects = {}

    def __call__(self, cmd, **kwargs):
        cmd = [str(part) for part in cmd]
        self.calls.append((cmd, kwargs))

        if any(part == "regedit" for part in cmd):
            reg_path = Path(cmd[-1])
            if reg_path.exists():
                self.reg_contents.append(reg_path.read_text(encoding="utf-8"))

        for needle, effect in self.side_effects.items():
            if any(needle in part for part in cmd):
                effect(cmd)

        code = 0
        for needle, rc in self.returncodes.items():
            if any(needle in part for part in cmd):
                code = rc
                break

        stdout = ""
        for needle, out in self.outputs.items():
            if any(needle in part for part in cmd):
                stdout = out
                break
        return subprocess.CompletedProcess(cmd, code, stdout=stdout, stderr="")

    @property
    def commands(self):
        return [cmd for cmd, _ in self.calls]

    def commands_with(self, needle):
        return [cmd for cmd in self.commands if any(needle in part for part in cmd)]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch):
    """Point HOME and the XDG directories at tmp_path and drop runtime variables."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / ".local/state"))
    for var in ("STEAM_DIR", "PROTON_VERSION", "STEAM_EXTRA_COMPAT_TOOLS_PATHS", "WINEDLLOVERRIDES"):
        monkeypatch.delenv(var, raising=False)

    ConfigHandler.reset()
    yield home
    ConfigHandler.reset()

    # The CLI detaches these loggers from the root; undo that between tests
    for name in ("protonkit", "protonkit.exec"):
        log = logging.getLogger(name)
        for handler in list(log.handlers):
            log.removeHandler(handler)
            handler.close()
        log.propagate = True
        log.setLevel(logging.NOTSET)


@pytest.fixture
def fake_run(monkeypatch) -> FakeRunner:
    """Replace subprocess.run everywhere with a recording fake."""
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


@pytest.fixture
def proton_install(tmp_path: Path) -> Path:
    """A fake Proton installation using the files/ layout."""
    root = tmp_path / "steamapps" / "common" / "Proton 9.0"
    files = root / "files"
    (files / "bin").mkdir(parents=True)
    for binary in ("wine", "wine64", "wineserver"):
        (files / "bin" / binary).write_text("#!/bin/sh\n")
    (files / "lib64" / "wine" / "x86_64-windows").mkdir(parents=True)
    (files / "lib" / "wine" / "i386-windows").mkdir(parents=True)
    (files / "lib" / "wine" / "dxvk").mkdir(parents=True)
    (root / "proton").write_text("#!/usr/bin/env python3\n")
    return root


@pytest.fixture
def prefix_dir(tmp_path: Path) -> Path:
    """An already initialized 64-bit prefix."""
    prefix = tmp_path / "pfx"
    (prefix / "drive_c" / "windows" / "system32").mkdir(parents=True)
    (prefix / "drive_c" / "windows" / "syswow64").mkdir(parents=True)
    (prefix / "drive_c" / "windows" / "Fonts").mkdir(parents=True)
    return prefix


@pytest.fixture
def context(proton_install: Path, prefix_dir: Path) -> EnvironmentContext:
    return EnvironmentContext.from_proton(proton_install, prefix_dir, WineArch.WIN64)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"
