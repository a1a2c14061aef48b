"""
Prefix Data Models

Metadata persisted next to a prefix so later sessions can rebuild its
environment without asking for the runtime again.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

METADATA_FILENAME = ".protonkit"


@dataclass
class PrefixMetadata:
    """Contents of the .protonkit file: plain key=value lines."""
    proton_name: Optional[str] = None
    proton_path: Optional[Path] = None
    arch: str = "win64"
    created: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self):
        if isinstance(self.proton_path, str):
            self.proton_path = Path(self.proton_path)

    @staticmethod
    def metadata_path(prefix_dir: Path) -> Path:
        return Path(prefix_dir) / METADATA_FILENAME

    def to_text(self) -> str:
        return (
            f"proton_name={self.proton_name or ''}\n"
            f"proton_path={self.proton_path or ''}\n"
            f"arch={self.arch}\n"
            f"created={self.created}\n"
        )

    @classmethod
    def from_text(cls, text: str) -> "PrefixMetadata":
        """Parse key=value lines; missing or malformed keys fall back to defaults."""
        values: Dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition("=")
            if sep:
                values[key.strip()] = value.strip()

        try:
            created = int(values.get("created", ""))
        except ValueError:
            created = 0

        return cls(
            proton_name=values.get("proton_name") or None,
            proton_path=Path(values["proton_path"]) if values.get("proton_path") else None,
            arch=values.get("arch") or "win64",
            created=created,
        )

    @classmethod
    def read(cls, prefix_dir: Path) -> Optional["PrefixMetadata"]:
        """Load metadata from a prefix, or None when the file is absent or unreadable."""
        path = cls.metadata_path(prefix_dir)
        try:
            return cls.from_text(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            return None

    def write(self, prefix_dir: Path) -> Path:
        path = self.metadata_path(prefix_dir)
        path.write_text(self.to_text(), encoding="utf-8")
        return path
