"""
Verb Service

In-memory verb registry and the executor that resolves verb dependencies and
runs each verb's actions against an EnvironmentContext.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..core.errors import (
    FilesystemError,
    NotFoundError,
    ProtonKitError,
    SubprocessError,
    VerbCycleError,
    VerbNotFoundError,
)
from ..data.builtin_verbs import register_builtin_verbs
from ..handlers.archive_handler import extract_archive, extract_cab
from ..handlers.custom_verb_handler import load_custom_verbs
from ..handlers.download_handler import DownloadCache
from ..handlers.logging_handler import log_executable_output
from ..handlers.registry_handler import REG_HEADER, RegistryEditor
from ..models.verb import (
    ApplyRegistryPatch,
    CallVerb,
    CustomProcedure,
    Extract,
    ExtractFiltered,
    RegisterFont,
    RunConfigTool,
    RunInstaller,
    RunLocalInstaller,
    RunScript,
    SetDllOverride,
    Verb,
    VerbAction,
    VerbCategory,
)

logger = logging.getLogger(__name__)

FONTS_KEY = r"HKEY_LOCAL_MACHINE\Software\Microsoft\Windows NT\CurrentVersion\Fonts"


class VerbRegistry:
    """Name-keyed verb catalog. Registering an existing name replaces it."""

    def __init__(self):
        self._verbs: Dict[str, Verb] = {}

    def register(self, verb: Verb) -> None:
        if verb.name in self._verbs:
            logger.info(f"Verb '{verb.name}' redefined, replacing previous definition")
        self._verbs[verb.name] = verb

    def get(self, name: str) -> Optional[Verb]:
        return self._verbs.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._verbs

    def __len__(self) -> int:
        return len(self._verbs)

    def list(self, category: Optional[VerbCategory] = None) -> List[Verb]:
        """All verbs, or those of one category, sorted by name."""
        verbs = self._verbs.values()
        if category is not None:
            verbs = [v for v in verbs if v.category == category]
        return sorted(verbs, key=lambda v: v.name)

    def search(self, query: str) -> List[Verb]:
        """Case-insensitive substring match over name and title."""
        q = query.lower()
        return [v for v in self.list() if q in v.name.lower() or q in v.title.lower()]

    def load_defaults(self, verbs_dir: Optional[Path] = None) -> "VerbRegistry":
        """Register the built-in catalog, then user verbs from verbs_dir."""
        count = register_builtin_verbs(self)
        custom = load_custom_verbs(verbs_dir)
        for verb in custom:
            self.register(verb)
        logger.debug(f"Verb registry loaded: {count} built-in, {len(custom)} custom")
        return self


@dataclass
class VerbResult:
    """Outcome of one requested verb."""
    name: str
    ok: bool
    error: Optional[str] = None


class VerbExecutor:
    """
    Runs verbs against a single EnvironmentContext.

    The same context object is handed to every action of every verb in an
    execution, so DLL overrides set by one action apply to all later launches.
    """

    def __init__(self, registry: VerbRegistry, cache_dir: Path,
                 allow_requests_fallback: bool = True, timeout: int = 30):
        self.registry = registry
        self.cache_dir = Path(cache_dir)
        self.allow_requests_fallback = allow_requests_fallback
        self.timeout = timeout
        self._cache: Optional[DownloadCache] = None

    @property
    def tmp_dir(self) -> Path:
        return self.cache_dir / "tmp"

    @property
    def cache(self) -> DownloadCache:
        if self._cache is None:
            self._cache = DownloadCache(self.cache_dir, self.allow_requests_fallback, self.timeout)
        return self._cache

    # --- planning -----------------------------------------------------------

    def resolve(self, name: str) -> List[Verb]:
        """
        Execution order for a verb: dependencies depth-first in declaration
        order, then the verb itself.

        Raises:
            VerbNotFoundError: name or any dependency is not registered
            VerbCycleError: a verb depends on itself, directly or transitively
        """
        plan: List[Verb] = []
        self._resolve(name, [], plan)
        return plan

    def _resolve(self, name: str, stack: List[str], plan: List[Verb]) -> None:
        if name in stack:
            raise VerbCycleError(stack[stack.index(name):] + [name])
        verb = self.registry.get(name)
        if verb is None:
            raise VerbNotFoundError(name)
        for dependency in verb.dependencies:
            self._resolve(dependency, stack + [name], plan)
        plan.append(verb)

    # --- execution ----------------------------------------------------------

    def execute(self, name: str, context) -> None:
        """
        Run a verb and its dependencies.

        Stops at the first failing action; already applied actions are not
        rolled back.
        """
        plan = self.resolve(name)
        try:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Failed to create {self.tmp_dir}: {e}") from e
        for verb in plan:
            logger.info(f"Executing verb '{verb.name}' ({verb.title})")
            for action in verb.actions:
                self._run_action(action, context)
        logger.info(f"Verb '{name}' completed")

    def run_verbs(self, names: Iterable[str], context, stop_on_error: bool = True) -> List[VerbResult]:
        """Execute several verbs in order, collecting one result per attempted verb."""
        results = []
        for name in names:
            try:
                self.execute(name, context)
                results.append(VerbResult(name, True))
            except ProtonKitError as e:
                logger.error(f"Verb '{name}' failed: {e}")
                results.append(VerbResult(name, False, str(e)))
                if stop_on_error:
                    break
        return results

    def _run_action(self, action: VerbAction, context) -> None:
        try:
            self._dispatch(action, context)
        except OSError as e:
            raise FilesystemError(f"{type(action).__name__} failed: {e}") from e

    def _dispatch(self, action: VerbAction, context) -> None:
        tmp_dir = self.tmp_dir
        match action:
            case RunInstaller(file=remote, args=args):
                installer = self.cache.fetch(remote.url, remote.filename, remote.sha256)
                self._run_installer(context, installer, args)
            case RunLocalInstaller(file=local, args=args):
                if not local.path.exists():
                    raise NotFoundError(
                        f"Local installer not found: {local.name or local.path.name} ({local.path}). "
                        "Place the installer at this path for offline installation."
                    )
                self._run_installer(context, local.path, args)
            case RunScript(script_path=script):
                self._run_script(Path(script), context, tmp_dir)
            case Extract(file=remote, dest=dest):
                archive = self.cache.fetch(remote.url, remote.filename, remote.sha256)
                extract_archive(archive, self._destination(context, dest, context.prefix_path))
            case ExtractFiltered(file=remote, dest=dest, filter=pattern):
                archive = self.cache.fetch(remote.url, remote.filename, remote.sha256)
                extract_cab(archive, self._destination(context, dest, tmp_dir), pattern or None)
            case SetDllOverride(dll=dll, mode=mode):
                context.set_dll_override(dll, mode)
            case ApplyRegistryPatch(content=content):
                RegistryEditor(context).apply_content(content)
            case RunConfigTool(args=args):
                result = context.run_winecfg(list(args))
                if not result.success:
                    raise SubprocessError(f"winecfg exited with code {result.returncode}", result.returncode)
                self._wait_for_server(context)
            case RegisterFont(filename=filename, name=font_name):
                content = f'{REG_HEADER}\n\n[{FONTS_KEY}]\n"{font_name} (TrueType)"="{filename}"\n'
                RegistryEditor(context).apply_content(content)
            case CallVerb():
                # Dependencies already ran during resolution order
                pass
            case CustomProcedure(func=func, description=description):
                logger.debug(f"Running custom procedure: {description or func.__name__}")
                func(context, self.cache, tmp_dir)
            case _:
                raise TypeError(f"Unsupported verb action: {action!r}")

    @staticmethod
    def _destination(context, dest: str, default: Path) -> Path:
        target = Path(context.prefix_path) / dest if dest else Path(default)
        target.mkdir(parents=True, exist_ok=True)
        return target

    @staticmethod
    def _wait_for_server(context) -> None:
        try:
            context.wait_for_wineserver()
        except ProtonKitError as e:
            logger.debug(f"Ignoring wineserver wait failure: {e}")

    def _run_installer(self, context, installer: Path, args) -> None:
        if installer.suffix.lower() == ".msi":
            result = context.run_msiexec(installer, list(args))
        else:
            result = context.run_executable(installer, list(args))
        self._wait_for_server(context)
        result.check_installer(installer.name)

    def _run_script(self, script: Path, context, tmp_dir: Path) -> None:
        if not script.exists():
            raise NotFoundError(f"Script not found: {script}")

        env = context.build_environment()
        env.update({
            "WINEPREFIX": str(context.prefix_path),
            "WINE": str(context.wine_path),
            "WINESERVER": str(context.wineserver_path),
            "PROTON_PATH": str(context.proton_path),
            "W_TMP": str(tmp_dir),
            "W_CACHE": str(self.cache_dir),
            "W_SYSTEM32_DLLS": str(context.system32_path),
            "W_SYSTEM64_DLLS": str(context.syswow64_path),
        })
        logger.info(f"Running script {script}")
        try:
            proc = subprocess.run(["bash", str(script)], env=env, capture_output=True, text=True, errors="replace")
        except OSError as e:
            raise SubprocessError(f"Failed to run script {script.name}: {e}")

        log_executable_output(script.name, proc.stdout, proc.stderr, proc.returncode)
        if proc.returncode != 0:
            raise SubprocessError(f"Script exited with code: {proc.returncode}", proc.returncode)
