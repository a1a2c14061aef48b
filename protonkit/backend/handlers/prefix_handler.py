#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Prefix Handler Module
Creates new prefixes by seeding them from the runtime's template tree
"""

import os
import logging
import shutil
from pathlib import Path
from typing import Optional, Set

from protonkit.backend.core.errors import FilesystemError, ProtonKitError
from .registry_handler import FILTER_REGISTRY_KEYS, filter_registry_file

logger = logging.getLogger(__name__)

TEMPLATE_SUBDIR = Path("share") / "default_pfx"
DRIVE_LINKS = {
    "c:": "../drive_c",
    "z:": "/",
}


class PrefixHandler:
    """
    One-time setup of a prefix: seed, drive-map, first boot, sanitize.
    """

    @staticmethod
    def resolve_dist_dir(install_root: Path) -> Path:
        """Runtime tree used as the seeding source: files/ when present, else dist/."""
        install_root = Path(install_root)
        files_dir = install_root / "files"
        if files_dir.exists():
            return files_dir
        return install_root / "dist"

    @staticmethod
    def copy_prefix_template(src: Path, dst: Path) -> None:
        """
        Recursively copy a template prefix, dereferencing symlinks.

        The dosdevices directory is skipped. Dangling links, and links that
        resolve into a directory already being copied, are skipped.

        Raises:
            OSError: on any create/copy failure
        """
        PrefixHandler._copy_tree(Path(src), Path(dst), set())

    @staticmethod
    def _copy_tree(src: Path, dst: Path, active: Set[str]) -> None:
        real_src = os.path.realpath(src)
        active = active | {real_src}
        dst.mkdir(parents=True, exist_ok=True)

        for entry in sorted(src.iterdir()):
            if entry.name == "dosdevices":
                continue
            target = dst / entry.name

            if entry.is_symlink():
                link = Path(os.readlink(entry))
                resolved = link if link.is_absolute() else entry.parent / link
                if resolved.is_dir():
                    real_resolved = os.path.realpath(resolved)
                    if any(Path(a).is_relative_to(real_resolved) for a in active):
                        logger.debug(f"Skipping recursive symlink {entry} -> {link}")
                        continue
                    PrefixHandler._copy_tree(resolved, target, active)
                elif resolved.is_file():
                    shutil.copyfile(resolved, target)
                else:
                    logger.debug(f"Skipping dangling symlink {entry} -> {link}")
            elif entry.is_dir():
                PrefixHandler._copy_tree(entry, target, active)
            else:
                shutil.copyfile(entry, target)

    @staticmethod
    def create_dosdevices(prefix_dir: Path) -> None:
        """Create dosdevices/ with the c: and z: drive links, leaving existing entries alone."""
        dosdevices = Path(prefix_dir) / "dosdevices"
        dosdevices.mkdir(parents=True, exist_ok=True)
        for drive, target in DRIVE_LINKS.items():
            link = dosdevices / drive
            if link.exists() or link.is_symlink():
                continue
            os.symlink(target, link)

    @staticmethod
    def init_prefix(prefix_dir, dist_dir, run_wineboot: bool = True, context=None) -> None:
        """
        Initialize a prefix from a runtime distribution directory.

        Args:
            prefix_dir: Prefix to create or complete
            dist_dir: Runtime tree holding share/default_pfx (files/ or dist/)
            run_wineboot: Run the first-boot sequence when a context is given
            context: EnvironmentContext used for first boot

        Raises:
            FilesystemError: seeding or drive mapping failed
        """
        prefix_dir = Path(prefix_dir)
        template = Path(dist_dir) / TEMPLATE_SUBDIR

        try:
            if template.exists():
                logger.info(f"Copying default prefix from {template}")
                PrefixHandler.copy_prefix_template(template, prefix_dir)
            else:
                logger.info("No default_pfx found, creating fresh prefix")
                prefix_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to seed prefix {prefix_dir}: {e}")

        try:
            logger.info("Creating drive links")
            PrefixHandler.create_dosdevices(prefix_dir)
        except OSError as e:
            raise FilesystemError(f"Failed to create drive links in {prefix_dir}: {e}")

        if run_wineboot:
            if context is not None:
                PrefixHandler._first_boot(context)
            else:
                logger.debug("No environment context provided, skipping wineboot")

        for reg_name in ("user.reg", "system.reg"):
            reg_file = prefix_dir / reg_name
            if not reg_file.exists():
                continue
            try:
                filter_registry_file(reg_file, FILTER_REGISTRY_KEYS)
            except OSError as e:
                logger.warning(f"Failed to filter {reg_name}: {e}")

        logger.info(f"Prefix initialization complete: {prefix_dir}")

    @staticmethod
    def _first_boot(context) -> None:
        logger.info("Running wineboot to initialize prefix")
        try:
            result = context.run_wineboot(init=True)
            if not result.success:
                logger.warning(f"wineboot returned non-zero exit code {result.returncode}")
        except ProtonKitError as e:
            logger.warning(f"Failed to run wineboot: {e}")

        try:
            context.wait_for_wineserver()
        except ProtonKitError as e:
            logger.debug(f"wineserver wait failed: {e}")

    @staticmethod
    def delete_prefix(prefix_dir: Path) -> None:
        """Remove a prefix directory tree."""
        prefix_dir = Path(prefix_dir)
        if not prefix_dir.exists():
            raise FilesystemError(f"Prefix does not exist: {prefix_dir}")
        try:
            shutil.rmtree(prefix_dir)
        except OSError as e:
            raise FilesystemError(f"Failed to delete prefix {prefix_dir}: {e}")
        logger.info(f"Deleted prefix {prefix_dir}")

    @staticmethod
    def is_prefix(path: Optional[Path]) -> bool:
        """A directory looks like a prefix when it has drive_c or a system.reg."""
        if not path:
            return False
        path = Path(path)
        return (path / "drive_c").is_dir() or (path / "system.reg").is_file()
