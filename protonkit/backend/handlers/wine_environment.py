#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wine Environment Module
Derives the launch environment for a prefix from a Proton installation and
launches the runtime's binaries inside it
"""

import os
import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from protonkit.backend.core.errors import SubprocessError
from .logging_handler import log_executable_output
from .subprocess_utils import ProcessManager, get_clean_subprocess_env

logger = logging.getLogger(__name__)

# Installer exit code meaning "success, reboot required"
EXIT_REBOOT_REQUIRED = 3010

# Library search sub-paths, relative to the runtime directory, in preference order
DLL_PATH_SUBDIRS = [
    "lib64/wine/x86_64-unix",
    "lib64/wine/x86_64-windows",
    "lib64/wine/i386-unix",
    "lib64/wine/i386-windows",
    "lib/wine/x86_64-unix",
    "lib/wine/x86_64-windows",
    "lib/wine/i386-unix",
    "lib/wine/i386-windows",
    "lib/wine/dxvk",
    "lib/wine/vkd3d-proton",
    "lib/wine/vkd3d-proton/x86_64-windows",
    "lib/wine/vkd3d-proton/i386-windows",
    "lib/wine/nvapi",
    "lib/wine/nvapi/x86_64-windows",
    "lib/wine/nvapi/i386-windows",
    "lib/vkd3d/x86_64-windows",
    "lib/vkd3d/i386-windows",
]


class WineArch(Enum):
    """Target CPU width of a prefix."""
    WIN32 = "win32"
    WIN64 = "win64"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["WineArch"]:
        """Parse 'win32', '32', 'x86', 'win64', '64' or 'x64'."""
        if not value:
            return None
        lowered = value.strip().lower()
        if lowered in ("win32", "32", "x86"):
            return cls.WIN32
        if lowered in ("win64", "64", "x64"):
            return cls.WIN64
        return None


class CwdPolicy(Enum):
    """Working directory policies for runtime launches (an explicit path is the third)."""
    INHERIT = "inherit"
    AUTO = "auto"


@dataclass
class CommandResult:
    """Captured result of a finished process."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def check_installer(self, name: str) -> None:
        """Raise SubprocessError unless an installer finished cleanly or only asked for a reboot."""
        if self.returncode == EXIT_REBOOT_REQUIRED:
            logger.info(f"{name} requested a reboot, continuing")
        elif not self.success:
            raise SubprocessError(f"{name} exited with code {self.returncode}", self.returncode)


class BackgroundServer:
    """
    Handle on the runtime's persistent background server (wineserver).

    start() is fire-and-forget; wait() blocks until the server exits on its
    own; kill() terminates it. A persistent server started here never exits
    on its own, so wait() returns at once while it is up.
    """

    def __init__(self, wineserver_path: Path, env: Dict[str, str]):
        self.wineserver_path = Path(wineserver_path)
        self.env = env
        self._process: Optional[ProcessManager] = None
        self.persistent = False

    def start(self) -> "BackgroundServer":
        """Spawn a persistent server (-p) without waiting for it."""
        if self.is_running():
            return self
        try:
            self._process = ProcessManager([self.wineserver_path, "-p"], env=self.env)
        except OSError as e:
            raise SubprocessError(f"Failed to start wineserver: {e}")
        self.persistent = True
        logger.debug(f"Started persistent wineserver (pid {self._process.proc.pid})")
        return self

    def wait(self) -> CommandResult:
        """Block until the server has exited (-w)."""
        if self.persistent:
            logger.debug("Persistent wineserver started, not waiting for it")
            return CommandResult([str(self.wineserver_path), "-w"], 0)
        return self._control("-w")

    def kill(self) -> CommandResult:
        """Forcibly terminate the server and its clients (-k)."""
        result = self._control("-k")
        self.persistent = False
        if self._process:
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.cancel()
            self._process = None
        return result

    def is_running(self) -> bool:
        return self._process is not None and self._process.is_running()

    def _control(self, flag: str) -> CommandResult:
        cmd = [str(self.wineserver_path), flag]
        try:
            proc = subprocess.run(cmd, env=self.env, capture_output=True, text=True, errors="replace")
        except OSError as e:
            raise SubprocessError(f"Failed to run wineserver {flag}: {e}")
        return CommandResult(cmd, proc.returncode, proc.stdout, proc.stderr)


class EnvironmentContext:
    """
    Launch environment for one prefix.

    Built from a runtime installation, a prefix directory and a CPU width.
    Construction only computes paths; nothing is checked or created. DLL
    overrides may be added at any time and are merged in at launch.
    """

    def __init__(self, wine_path: Path, wine64_path: Path, wineserver_path: Path,
                 prefix_path: Path, proton_path: Path, arch: WineArch = WineArch.WIN64,
                 env: Optional[Dict[str, str]] = None):
        self.wine_path = Path(wine_path)
        self.wine64_path = Path(wine64_path)
        self.wineserver_path = Path(wineserver_path)
        self.prefix_path = Path(prefix_path)
        self.proton_path = Path(proton_path)
        self.arch = arch
        self.dll_overrides: Dict[str, str] = {}
        self.env: Dict[str, str] = dict(env or {})
        self._server: Optional[BackgroundServer] = None

    @staticmethod
    def runtime_dir(install_root: Path) -> Path:
        """Return <install>/dist when present, else <install>/files."""
        install_root = Path(install_root)
        dist_dir = install_root / "dist"
        if dist_dir.exists():
            return dist_dir
        return install_root / "files"

    @staticmethod
    def build_dll_path(runtime_dir: Path) -> str:
        """Colon-joined library search path made of existing sub-paths only."""
        existing = [str(Path(runtime_dir) / sub) for sub in DLL_PATH_SUBDIRS if (Path(runtime_dir) / sub).exists()]
        return ":".join(existing)

    @classmethod
    def from_proton(cls, install_root: Union[str, Path], prefix_path: Union[str, Path],
                    arch: WineArch = WineArch.WIN64) -> "EnvironmentContext":
        """
        Derive the context for a Proton installation.

        Args:
            install_root: Proton installation directory (contains dist/ or files/)
            prefix_path: Target prefix directory
            arch: Target CPU width, 64-bit by default

        Returns:
            EnvironmentContext: never fails, paths may not exist yet
        """
        install_root = Path(install_root)
        prefix_path = Path(prefix_path)
        runtime = cls.runtime_dir(install_root)
        bin_dir = runtime / "bin"

        wine_path = bin_dir / "wine"
        wine64_path = bin_dir / "wine64"
        wineserver_path = bin_dir / "wineserver"

        env = {
            "WINE": str(wine_path),
            "WINE64": str(wine64_path),
            "WINESERVER": str(wineserver_path),
            "WINELOADER": str(wine_path),
            "WINEPREFIX": str(prefix_path),
            "WINEDLLPATH": cls.build_dll_path(runtime),
            "WINEARCH": arch.value,
        }
        return cls(wine_path, wine64_path, wineserver_path, prefix_path, install_root, arch, env)

    # --- overrides and environment -----------------------------------------

    def set_env(self, key: str, value: str) -> None:
        self.env[key] = value

    def set_dll_override(self, dll: str, mode: str) -> None:
        """Record a DLL override; mode is free text such as 'native' or 'native,builtin'."""
        self.dll_overrides[dll] = mode
        logger.debug(f"DLL override set: {dll}={mode}")

    def build_dll_overrides_string(self) -> str:
        return ";".join(f"{dll}={mode}" for dll, mode in self.dll_overrides.items())

    def build_environment(self) -> Dict[str, str]:
        """Child environment: cleaned process env, derived variables, then overrides."""
        env = get_clean_subprocess_env(self.env)
        if self.dll_overrides:
            overrides = self.build_dll_overrides_string()
            existing = os.environ.get("WINEDLLOVERRIDES")
            env["WINEDLLOVERRIDES"] = f"{existing};{overrides}" if existing else overrides
        return env

    # --- launching ----------------------------------------------------------

    @staticmethod
    def _auto_cwd(args: Sequence[str]) -> Optional[Path]:
        if not args:
            return None
        first = args[0]
        if not (os.path.isabs(first) or "/" in first or "\\" in first):
            return None
        parent = Path(first.replace("\\", "/")).parent
        if str(parent) in ("", ".") or not parent.is_dir():
            return None
        return parent

    def run(self, args: Sequence[Union[str, Path]],
            cwd: Union[CwdPolicy, str, Path, None] = CwdPolicy.AUTO) -> CommandResult:
        """
        Launch the primary loader with args and wait for it.

        Args:
            args: Arguments passed to wine
            cwd: CwdPolicy.AUTO, CwdPolicy.INHERIT / None, or an explicit directory

        Returns:
            CommandResult: captured output and exit code

        Raises:
            SubprocessError: if the loader could not be spawned
        """
        str_args = [str(a) for a in args]
        if cwd is CwdPolicy.AUTO:
            workdir = self._auto_cwd(str_args)
        elif cwd is None or cwd is CwdPolicy.INHERIT:
            workdir = None
        else:
            workdir = Path(cwd)

        cmd = [str(self.wine_path)] + str_args
        logger.debug(f"Running: {' '.join(cmd)} (cwd={workdir})")
        try:
            proc = subprocess.run(
                cmd,
                env=self.build_environment(),
                cwd=str(workdir) if workdir else None,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise SubprocessError(f"Failed to launch {self.wine_path}: {e}")

        executable = Path(str_args[0]).name if str_args else self.wine_path.name
        log_executable_output(executable, proc.stdout, proc.stderr, proc.returncode)
        return CommandResult(cmd, proc.returncode, proc.stdout, proc.stderr)

    def run_wineboot(self, init: bool = True) -> CommandResult:
        return self.run(["wineboot", "--init" if init else "--update"], cwd=CwdPolicy.INHERIT)

    def run_regedit(self, reg_file: Union[str, Path]) -> CommandResult:
        return self.run(["regedit", "/S", str(reg_file)])

    def run_winecfg(self, args: Sequence[str] = ()) -> CommandResult:
        return self.run(["winecfg", *args])

    def run_regsvr32(self, dll_path: Union[str, Path]) -> CommandResult:
        return self.run(["regsvr32", "/s", str(dll_path)])

    def run_msiexec(self, msi_path: Union[str, Path], args: Sequence[str] = ()) -> CommandResult:
        return self.run(["msiexec", "/i", str(msi_path), *args])

    def run_executable(self, exe_path: Union[str, Path], args: Sequence[str] = ()) -> CommandResult:
        """Run a Windows executable with its own directory as cwd."""
        return self.run([str(exe_path), *args], cwd=CwdPolicy.AUTO)

    # --- background server --------------------------------------------------

    @property
    def server(self) -> BackgroundServer:
        if self._server is None:
            self._server = BackgroundServer(self.wineserver_path, self.build_environment())
        else:
            self._server.env = self.build_environment()
        return self._server

    def wait_for_wineserver(self) -> CommandResult:
        return self.server.wait()

    def kill_wineserver(self) -> CommandResult:
        return self.server.kill()

    # --- prefix paths -------------------------------------------------------

    @property
    def drive_c(self) -> Path:
        return self.prefix_path / "drive_c"

    @property
    def windows_path(self) -> Path:
        return self.drive_c / "windows"

    @property
    def system32_path(self) -> Path:
        return self.windows_path / "system32"

    @property
    def syswow64_path(self) -> Path:
        return self.windows_path / "syswow64"

    @property
    def fonts_path(self) -> Path:
        return self.windows_path / "Fonts"

    @property
    def program_files(self) -> Path:
        return self.drive_c / "Program Files"

    @property
    def program_files_x86(self) -> Path:
        return self.drive_c / "Program Files (x86)"

    def __repr__(self) -> str:
        return f"EnvironmentContext(prefix={self.prefix_path}, proton={self.proton_path}, arch={self.arch.value})"
