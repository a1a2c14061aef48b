"""
Proton Installation Model
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


@dataclass
class ProtonInstallation:
    """A runtime installation found in a Steam library or compatibilitytools.d."""
    name: str
    appid: int
    install_path: Path

    def __post_init__(self):
        if isinstance(self.install_path, str):
            self.install_path = Path(self.install_path)

    @property
    def is_ready(self) -> bool:
        """True once the runtime's binary tree (dist/ or files/) exists."""
        return (self.install_path / "dist").is_dir() or (self.install_path / "files").is_dir()

    @property
    def is_custom(self) -> bool:
        return self.appid == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'appid': self.appid,
            'install_path': str(self.install_path),
            'is_ready': self.is_ready,
        }
