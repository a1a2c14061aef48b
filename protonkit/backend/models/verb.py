"""
Verb Data Models

A verb is a named, installable unit (library, font, application or setting)
made of an ordered list of actions. Actions form a closed set of frozen
dataclasses and are dispatched by pattern matching in the executor.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union


class VerbCategory(Enum):
    """Grouping tag for listing and filtering. Has no effect on execution."""
    APPLICATION = "apps"
    DYNAMIC_LIBRARY = "dlls"
    FONT = "fonts"
    SETTING = "settings"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, text: str) -> "VerbCategory":
        """Parse singular or plural names; anything unknown maps to CUSTOM."""
        return _CATEGORY_ALIASES.get(text.strip().lower(), cls.CUSTOM)

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]


_CATEGORY_ALIASES = {
    "app": VerbCategory.APPLICATION, "apps": VerbCategory.APPLICATION,
    "application": VerbCategory.APPLICATION, "applications": VerbCategory.APPLICATION,
    "dll": VerbCategory.DYNAMIC_LIBRARY, "dlls": VerbCategory.DYNAMIC_LIBRARY,
    "font": VerbCategory.FONT, "fonts": VerbCategory.FONT,
    "setting": VerbCategory.SETTING, "settings": VerbCategory.SETTING,
    "custom": VerbCategory.CUSTOM,
}

_CATEGORY_LABELS = {
    VerbCategory.APPLICATION: "Applications",
    VerbCategory.DYNAMIC_LIBRARY: "DLLs & Runtimes",
    VerbCategory.FONT: "Fonts",
    VerbCategory.SETTING: "Settings",
    VerbCategory.CUSTOM: "Custom",
}


class DllOverride:
    """Override modes understood by the runtime's WINEDLLOVERRIDES."""
    NATIVE = "native"
    BUILTIN = "builtin"
    NATIVE_BUILTIN = "native,builtin"
    BUILTIN_NATIVE = "builtin,native"
    DISABLED = ""


@dataclass(frozen=True)
class RemoteFile:
    """Downloadable file stored in the cache under filename."""
    url: str
    filename: str
    sha256: Optional[str] = None


@dataclass(frozen=True)
class LocalFile:
    path: Path
    name: str = ""

    def __post_init__(self):
        if isinstance(self.path, str):
            object.__setattr__(self, "path", Path(self.path))


# --- actions -------------------------------------------------------------


@dataclass(frozen=True)
class RunInstaller:
    """Download an installer and run it through the runtime."""
    file: RemoteFile
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RunLocalInstaller:
    """Run an installer that must already exist on disk."""
    file: LocalFile
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RunScript:
    script_path: Path


@dataclass(frozen=True)
class Extract:
    """Download an archive and unpack it under the prefix (empty dest = prefix root)."""
    file: RemoteFile
    dest: str = ""


@dataclass(frozen=True)
class ExtractFiltered:
    """Download a cabinet and unpack only the entries matching filter (empty dest = scratch dir)."""
    file: RemoteFile
    dest: str
    filter: str


@dataclass(frozen=True)
class SetDllOverride:
    dll: str
    mode: str = DllOverride.NATIVE


@dataclass(frozen=True)
class ApplyRegistryPatch:
    content: str


@dataclass(frozen=True)
class RunConfigTool:
    args: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RegisterFont:
    filename: str
    name: str


@dataclass(frozen=True)
class CallVerb:
    """Dependency on another verb, executed before the owning verb's actions."""
    name: str


@dataclass(frozen=True)
class CustomProcedure:
    """Escape hatch: func(context, cache, tmp_dir) performs the work."""
    func: Callable[[Any, Any, Path], None] = field(compare=False)
    description: str = ""


VerbAction = Union[
    RunInstaller,
    RunLocalInstaller,
    RunScript,
    Extract,
    ExtractFiltered,
    SetDllOverride,
    ApplyRegistryPatch,
    RunConfigTool,
    RegisterFont,
    CallVerb,
    CustomProcedure,
]


@dataclass(frozen=True)
class Verb:
    """Immutable, named list of actions."""
    name: str
    category: VerbCategory
    title: str
    publisher: str = ""
    year: str = ""
    actions: Tuple[VerbAction, ...] = ()

    def __post_init__(self):
        if not isinstance(self.actions, tuple):
            object.__setattr__(self, "actions", tuple(self.actions))

    @property
    def dependencies(self) -> List[str]:
        """Names of verbs referenced by CallVerb, in declaration order."""
        return [action.name for action in self.actions if isinstance(action, CallVerb)]
