"""
Steam App Model
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class SteamApp:
    """An installed Steam app read from its appmanifest."""
    name: str
    appid: int
    install_path: Path
    prefix_path: Optional[Path] = None

    @property
    def is_proton(self) -> bool:
        return self.name.startswith("Proton")

    @property
    def is_windows_app(self) -> bool:
        """True for games run through Proton: they own a compatdata prefix."""
        return self.prefix_path is not None and not self.is_proton

    def name_contains(self, query: str) -> bool:
        return query.lower() in self.name.lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'appid': self.appid,
            'install_path': str(self.install_path),
            'prefix_path': str(self.prefix_path) if self.prefix_path else None,
        }
