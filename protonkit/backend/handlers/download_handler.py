#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Download Handler Module
Filename-keyed download cache with optional SHA256 verification
"""

import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

import requests
from tqdm import tqdm

from protonkit.backend.core.errors import DownloadError, ToolUnavailableError, VerificationError
from .subprocess_utils import get_clean_subprocess_env, stream_is_tty, which

logger = logging.getLogger(__name__)


class DownloadCache:
    """
    Local store of downloaded files, keyed by the filename chosen by the verb author.

    Downloads go through curl, then wget. Digests are checked with sha256sum,
    then openssl. When neither digest tool exists the check passes.
    """

    def __init__(self, cache_dir, allow_requests_fallback: bool = True, timeout: int = 30, logger=None):
        self.logger = logger or logging.getLogger(__name__)
        self._cache_dir = Path(cache_dir)
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        self.allow_requests_fallback = allow_requests_fallback
        self.timeout = timeout

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def cached_path(self, filename: str) -> Path:
        return self._cache_dir / filename

    def is_cached(self, filename: str) -> bool:
        return self.cached_path(filename).is_file()

    def fetch(self, url: str, filename: str, sha256: Optional[str] = None) -> Path:
        """
        Return the cached copy of url, downloading it when needed.

        Args:
            url: Remote location
            filename: Name of the file inside the cache directory
            sha256: Expected hex digest, or None to trust any cached copy

        Returns:
            Path: location of the verified file

        Raises:
            VerificationError: the freshly downloaded file does not match sha256
            DownloadError / ToolUnavailableError: the download itself failed
        """
        cached = self.cached_path(filename)

        if cached.exists():
            if sha256 is None:
                self.logger.debug(f"Cache hit: {filename}")
                return cached
            if self.verify_sha256(cached, sha256):
                self.logger.debug(f"Cache hit (verified): {filename}")
                return cached
            self.logger.warning(f"Cached {filename} failed checksum, downloading again")
            cached.unlink()

        self._download_file(url, cached)

        if sha256 is not None and not self.verify_sha256(cached, sha256):
            cached.unlink(missing_ok=True)
            raise VerificationError(f"SHA256 verification failed for {filename}")

        return cached

    def clear(self) -> int:
        """Delete every cached entry. Returns the number of entries removed."""
        removed = 0
        for entry in self._cache_dir.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        self.logger.info(f"Cleared {removed} entries from {self._cache_dir}")
        return removed

    # --- transfer -----------------------------------------------------------

    def _download_file(self, url: str, dest: Path) -> None:
        """Download url straight to dest with curl, falling back to wget."""
        self.logger.info(f"Downloading {dest.name} from {url}")
        tools = []
        curl = which("curl")
        if curl:
            tools.append([curl, "-L", "-f", "-o", str(dest), "--progress-bar", url])
        wget = which("wget")
        if wget:
            tools.append([wget, "-O", str(dest), "--progress=bar", url])

        if not tools:
            if self.allow_requests_fallback:
                self._download_with_requests(url, dest)
                return
            raise ToolUnavailableError("No download tool available (curl or wget required)")

        for cmd in tools:
            try:
                status = subprocess.run(cmd, env=get_clean_subprocess_env()).returncode
            except OSError as e:
                self.logger.warning(f"Failed to run {Path(cmd[0]).name}: {e}")
                continue
            if status == 0:
                return
            self.logger.warning(f"{Path(cmd[0]).name} exited with code {status} for {url}")

        dest.unlink(missing_ok=True)
        raise DownloadError(f"Failed to download {url}")

    def _download_with_requests(self, url: str, dest: Path) -> None:
        """Stream url into a .part file, then move it into place."""
        temp_path = dest.with_suffix(dest.suffix + ".part")
        try:
            with requests.get(url, stream=True, timeout=self.timeout) as r:
                r.raise_for_status()
                total = int(r.headers.get("content-length", 0)) or None
                with open(temp_path, "wb") as f, tqdm(
                    total=total, unit="B", unit_scale=True, desc=dest.name,
                    disable=not stream_is_tty(sys.stderr),
                ) as bar:
                    for chunk in r.iter_content(chunk_size=8192):
                        if chunk:
                            f.write(chunk)
                            bar.update(len(chunk))
            shutil.move(str(temp_path), str(dest))
        except requests.exceptions.RequestException as e:
            temp_path.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {e}")

    # --- verification -------------------------------------------------------

    def verify_sha256(self, path: Path, expected: str) -> bool:
        """
        Compare the file's SHA256 with expected (case-insensitive).

        Returns True when no digest tool is available.
        """
        computed = self._compute_sha256(path)
        if computed is None:
            self.logger.warning(f"No checksum tool available, skipping verification of {path.name}")
            return True
        matches = computed.lower() == expected.strip().lower()
        if not matches:
            self.logger.debug(f"Checksum mismatch for {path.name}: expected {expected}, got {computed}")
        return matches

    def _compute_sha256(self, path: Path) -> Optional[str]:
        sha256sum = which("sha256sum")
        if sha256sum:
            proc = subprocess.run([sha256sum, str(path)], capture_output=True, text=True)
            if proc.returncode == 0 and proc.stdout.strip():
                return proc.stdout.split()[0]

        openssl = which("openssl")
        if openssl:
            proc = subprocess.run([openssl, "dgst", "-sha256", str(path)], capture_output=True, text=True)
            if proc.returncode == 0 and "=" in proc.stdout:
                return proc.stdout.rsplit("=", 1)[-1].strip()

        return None
