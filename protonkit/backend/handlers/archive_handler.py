"""
Archive extraction and DLL placement helpers.

Extraction is delegated to external tools (unzip, 7z, tar, cabextract,
msiextract), tried in order of preference per archive type.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from protonkit.backend.core.errors import FilesystemError, SubprocessError, ToolUnavailableError
from .subprocess_utils import get_clean_subprocess_env, which

logger = logging.getLogger(__name__)

TAR_SUFFIXES = ("tar", "gz", "tgz", "bz2", "xz", "zst")


def _run_tool(tool: str, args: List[str]) -> Optional[int]:
    """Run an extraction tool if installed. Returns its exit code, or None when it is not on PATH."""
    binary = which(tool)
    if not binary:
        logger.debug(f"{tool} not found on PATH")
        return None
    cmd = [binary] + args
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        proc = subprocess.run(cmd, env=get_clean_subprocess_env(), capture_output=True, text=True, errors="replace")
    except OSError as e:
        raise SubprocessError(f"Failed to run {tool}: {e}")
    if proc.returncode != 0:
        logger.warning(f"{tool} exited with code {proc.returncode}: {proc.stderr.strip()}")
    return proc.returncode


def _extract_with(archive: Path, attempts: Sequence[Tuple[str, List[str]]], missing: str) -> None:
    """
    Try each (tool, args) in turn until one succeeds.

    Raises:
        SubprocessError: every installed tool failed; carries the last exit code
        ToolUnavailableError: none of the tools is installed
    """
    failure = None
    for tool, args in attempts:
        returncode = _run_tool(tool, args)
        if returncode is None:
            continue
        if returncode == 0:
            return
        failure = (tool, returncode)
    if failure:
        tool, returncode = failure
        raise SubprocessError(f"{tool} failed to extract {archive.name} (exit code {returncode})", returncode)
    raise ToolUnavailableError(missing)


def _seven_zip_args(archive: Path, dest: Path) -> List[str]:
    return ["x", "-y", f"-o{dest}", str(archive)]


def extract_zip(archive: Path, dest: Path) -> None:
    _extract_with(archive, [
        ("unzip", ["-o", "-q", str(archive), "-d", str(dest)]),
        ("7z", _seven_zip_args(archive, dest)),
    ], "No zip extraction tool available (unzip or 7z required)")


def extract_7z(archive: Path, dest: Path) -> None:
    _extract_with(archive, [("7z", _seven_zip_args(archive, dest))], "7z not available for extraction")


def extract_tar(archive: Path, dest: Path) -> None:
    args = ["-xf", str(archive), "-C", str(dest)]
    if archive.suffix.lower() == ".zst":
        args.insert(0, "--zstd")
    _extract_with(archive, [("tar", args)], "tar not available for extraction")


def extract_exe(archive: Path, dest: Path) -> None:
    _extract_with(archive, [
        ("7z", _seven_zip_args(archive, dest)),
        ("cabextract", ["-d", str(dest), str(archive)]),
    ], "No exe extraction tool available (7z or cabextract required)")


def extract_cab(archive: Path, dest: Path, file_filter: Optional[str] = None) -> None:
    """Extract a cabinet (or self-extracting exe) with cabextract, optionally filtered by glob."""
    args = ["-d", str(dest)]
    if file_filter:
        args += ["-F", file_filter]
    args.append(str(archive))
    _extract_with(Path(archive), [("cabextract", args)], "cabextract not available")


def extract_msi(archive: Path, dest: Path) -> None:
    _extract_with(archive, [
        ("msiextract", ["--directory", str(dest), str(archive)]),
        ("7z", _seven_zip_args(archive, dest)),
    ], "No msi extraction tool available (msiextract or 7z required)")


def extract_archive(archive, dest) -> None:
    """
    Extract archive into dest, choosing the tool from the file extension.

    Raises:
        FilesystemError: the extension is not a supported archive type
        SubprocessError: an installed tool failed on the archive
        ToolUnavailableError: no tool able to extract it is installed
    """
    archive = Path(archive)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    ext = archive.suffix.lower().lstrip(".")

    if ext == "zip":
        extract_zip(archive, dest)
    elif ext == "7z":
        extract_7z(archive, dest)
    elif ext in TAR_SUFFIXES:
        extract_tar(archive, dest)
    elif ext == "exe":
        extract_exe(archive, dest)
    elif ext == "cab":
        extract_cab(archive, dest)
    elif ext == "msi":
        extract_msi(archive, dest)
    else:
        raise FilesystemError(f"Unsupported archive format: {ext or archive.name}")


def copy_dll_to_system(dll_path: Path, prefix_path: Path, is_32bit: bool) -> Path:
    """Copy a DLL into syswow64 (32-bit) or system32 (64-bit) of the prefix."""
    windows = Path(prefix_path) / "drive_c" / "windows"
    dest_dir = windows / ("syswow64" if is_32bit else "system32")
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        dest = dest_dir / Path(dll_path).name
        shutil.copy2(dll_path, dest)
    except OSError as e:
        raise FilesystemError(f"Failed to copy {Path(dll_path).name}: {e}")
    return dest
