#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ProtonKit CLI Frontend - Main Entry Point

Command-line interface for protonkit that drives the backend services.
"""

import sys
import argparse
import logging
from pathlib import Path

from protonkit import __version__ as protonkit_version
from protonkit.backend.core.errors import NotFoundError, ProtonKitError
from protonkit.backend.handlers.config_handler import ConfigHandler
from protonkit.backend.handlers.download_handler import DownloadCache
from protonkit.backend.handlers.prefix_handler import PrefixHandler
from protonkit.backend.handlers.wine_environment import WineArch
from protonkit.backend.models.verb import VerbCategory
from protonkit.backend.services.proton_discovery_service import ProtonDiscoveryService
from protonkit.backend.services.protonkit_service import ProtonKit
from protonkit.backend.services.verb_service import VerbRegistry
from protonkit.shared.colors import COLOR_ERROR, COLOR_INFO, COLOR_PROMPT, COLOR_RESET, COLOR_SUCCESS, COLOR_WARNING

logger = logging.getLogger(__name__)

CATEGORY_CHOICES = [c.value for c in VerbCategory]
ARCH_CHOICES = [a.value for a in WineArch]


class ProtonKitCLI:
    """Main application class for the protonkit CLI frontend"""

    def __init__(self):
        self._debug_mode = False
        self.verbose = False

        # Quiet until the arguments say otherwise
        self._configure_logging_early()

        self.config = ConfigHandler()
        self.parser = None
        self.args = None

    def _debug_print(self, message):
        """Print debug message only if debug mode is enabled"""
        if self._debug_mode:
            logger.debug(message)

    def _configure_logging_early(self):
        """Configure logging to be quiet during initialization, will be adjusted after arg parsing"""
        logging.getLogger().setLevel(logging.WARNING)

        if not logging.getLogger().handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            handler.setFormatter(formatter)
            logging.getLogger().addHandler(handler)

    def _configure_logging_final(self):
        """Configure final logging level based on parsed arguments"""
        from protonkit.backend.handlers.logging_handler import LoggingHandler

        if self.args.debug:
            console_level = logging.DEBUG
        elif self.args.verbose:
            console_level = logging.INFO
        else:
            console_level = logging.ERROR

        # Process output goes to its own file so verb runs can be diagnosed later
        logging_handler = LoggingHandler()
        logging_handler.setup_logger('protonkit', console_level=console_level)
        logging_handler.setup_logger('protonkit.exec', 'protonkit-exec.log', console_level=console_level)

        if self.args.debug:
            print("Debug logging enabled for console and file")
        elif self.args.verbose:
            print("Verbose logging enabled for console and file")

    def run(self, argv=None) -> int:
        self.parser, self.args = self._parse_args(argv)
        self._debug_mode = self.args.debug
        self.verbose = self.args.verbose or self.args.debug

        self._configure_logging_final()
        self._debug_print(f'Parsed args: {self.args}')

        if not getattr(self.args, 'command', None):
            self.parser.print_help()
            return 1

        try:
            return self._run_command(self.args.command, self.args)
        except ProtonKitError as e:
            logger.debug("Command failed", exc_info=True)
            print(f"{COLOR_ERROR}Error: {e}{COLOR_RESET}")
            return 1
        except KeyboardInterrupt:
            print(f"\n{COLOR_WARNING}Interrupted{COLOR_RESET}")
            return 130

    def _parse_args(self, argv=None):
        """Parse command-line arguments"""
        parser = argparse.ArgumentParser(prog="protonkit", description="ProtonKit: Proton prefix manager and verb installer")
        parser.add_argument("-V", "--version", action="store_true", help="Show protonkit version and exit")
        parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging (implies verbose)")
        parser.add_argument("-v", "--verbose", action="store_true", help="Enable informational console output")
        parser.add_argument("-S", "--steam-library", action="append", default=[], metavar="PATH",
                            help="Additional Steam library path (repeatable)")

        subparsers = parser.add_subparsers(dest="command", help="Command to run")

        list_parser = subparsers.add_parser("list", help="List available verbs")
        list_parser.add_argument("--category", choices=CATEGORY_CHOICES, help="Only show verbs of this category")

        search_parser = subparsers.add_parser("search", help="Search verbs by name or title")
        search_parser.add_argument("query")

        protons_parser = subparsers.add_parser("protons", help="List discovered Proton installations")
        protons_parser.add_argument("--all", action="store_true", help="Include installations that are not ready")

        apps_parser = subparsers.add_parser("apps", help="List installed Steam games that have a Proton prefix")
        apps_parser.add_argument("-s", "--search", metavar="NAME", help="Only show games whose name contains NAME")

        create_parser = subparsers.add_parser("create-prefix", help="Create a new prefix")
        create_parser.add_argument("prefix")
        create_parser.add_argument("--proton", help="Proton version name (default: configured or newest)")
        create_parser.add_argument("--arch", choices=ARCH_CHOICES, help="Prefix architecture")
        create_parser.add_argument("--no-boot", action="store_true", help="Skip the first wineboot")

        delete_parser = subparsers.add_parser("delete-prefix", help="Delete a prefix")
        delete_parser.add_argument("prefix")
        delete_parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

        run_parser = subparsers.add_parser("run", help="Install verbs into a prefix, or run a command in it")
        run_parser.add_argument("prefix", help="Prefix path or Steam APPID")
        run_parser.add_argument("verbs", nargs="*")
        run_parser.add_argument("-c", "--command", dest="run_command", metavar="COMMAND",
                                help="Run a command with the prefix environment instead of verbs")
        run_parser.add_argument("--proton", help="Proton version name")
        run_parser.add_argument("--keep-going", action="store_true", help="Continue with the next verb after a failure")
        self._add_launch_options(run_parser)

        exec_parser = subparsers.add_parser("exec", help="Run a Windows executable inside a prefix")
        exec_parser.add_argument("prefix", help="Prefix path or Steam APPID")
        exec_parser.add_argument("executable")
        exec_parser.add_argument("exe_args", nargs=argparse.REMAINDER)
        exec_parser.add_argument("--proton", help="Proton version name")
        self._add_launch_options(exec_parser)

        winver_parser = subparsers.add_parser("winver", help="Set the Windows version reported by a prefix")
        winver_parser.add_argument("prefix", help="Prefix path or Steam APPID")
        winver_parser.add_argument("version")
        winver_parser.add_argument("--proton", help="Proton version name")

        subparsers.add_parser("clear-cache", help="Delete every cached download")

        logs_parser = subparsers.add_parser("logs", help="Show the tail of the current log file")
        logs_parser.add_argument("--lines", type=int, default=50)

        args = parser.parse_args(argv)
        if args.version:
            print(f"protonkit version {protonkit_version}")
            sys.exit(0)

        return parser, args

    @staticmethod
    def _add_launch_options(subparser) -> None:
        subparser.add_argument("--background-wineserver", action="store_true",
                               help="Start a persistent wineserver before running anything")
        subparser.add_argument("--cwd-app", action="store_true",
                               help="Use the Steam game's install directory as working directory")

    def _run_command(self, command, args) -> int:
        """Run a specific command"""
        if command == "list":
            return self._cmd_list(args)
        elif command == "search":
            return self._cmd_search(args)
        elif command == "protons":
            return self._cmd_protons(args)
        elif command == "apps":
            return self._cmd_apps(args)
        elif command == "create-prefix":
            return self._cmd_create_prefix(args)
        elif command == "delete-prefix":
            return self._cmd_delete_prefix(args)
        elif command == "run":
            return self._cmd_run(args)
        elif command == "exec":
            return self._cmd_exec(args)
        elif command == "winver":
            return self._cmd_winver(args)
        elif command == "clear-cache":
            return self._cmd_clear_cache(args)
        elif command == "logs":
            return self._cmd_logs(args)
        else:
            print(f"Unknown command: {command}")
            return 1

    # --- helpers ------------------------------------------------------------

    def _discovery(self) -> ProtonDiscoveryService:
        libraries = list(self.config.get("steam_libraries") or [])
        libraries += getattr(self.args, 'steam_library', None) or []
        return ProtonDiscoveryService(self.config.get("steam_path"), libraries)

    def _registry(self) -> VerbRegistry:
        from protonkit.shared.paths import get_verbs_dir
        return VerbRegistry().load_defaults(get_verbs_dir())

    def _open(self, args) -> ProtonKit:
        """Open a prefix path, or a Steam game's prefix when given a numeric APPID that is not a path."""
        proton_name = getattr(args, 'proton', None)
        if args.prefix.isdigit() and not Path(args.prefix).exists():
            return ProtonKit.open_app(int(args.prefix), discovery=self._discovery(),
                                      proton_name=proton_name, config=self.config)
        return ProtonKit.open_prefix(args.prefix, discovery=self._discovery(),
                                     proton_name=proton_name, config=self.config)

    @staticmethod
    def _prepare_launch(kit: ProtonKit, args):
        """Apply --background-wineserver and return the working directory --cwd-app asks for."""
        if args.background_wineserver:
            try:
                kit.context.server.start()
            except ProtonKitError as e:
                print(f"{COLOR_WARNING}Warning: Failed to start background wineserver: {e}{COLOR_RESET}")
        if args.cwd_app:
            if kit.app is None:
                print(f"{COLOR_WARNING}--cwd-app only applies to Steam games, ignoring it{COLOR_RESET}")
            else:
                return kit.app.install_path
        return None

    @staticmethod
    def _print_verbs(verbs) -> None:
        if not verbs:
            print("No verbs found.")
            return
        width = max(len(v.name) for v in verbs)
        for verb in verbs:
            details = ", ".join(p for p in (verb.publisher, verb.year) if p)
            suffix = f" ({details})" if details else ""
            print(f"  {verb.name.ljust(width)}  {verb.title}{suffix}")

    # --- commands -----------------------------------------------------------

    def _cmd_list(self, args) -> int:
        registry = self._registry()
        if args.category:
            categories = [VerbCategory(args.category)]
        else:
            categories = list(VerbCategory)

        for category in categories:
            verbs = registry.list(category)
            if not verbs:
                continue
            print(f"{COLOR_INFO}{category.label}{COLOR_RESET}")
            self._print_verbs(verbs)
        return 0

    def _cmd_search(self, args) -> int:
        self._print_verbs(self._registry().search(args.query))
        return 0

    def _cmd_protons(self, args) -> int:
        protons = self._discovery().list_protons(ready_only=not args.all)
        if not protons:
            print(f"{COLOR_WARNING}No Proton installations found.{COLOR_RESET}")
            return 1
        for proton in protons:
            state = "" if proton.is_ready else f" {COLOR_WARNING}(not ready){COLOR_RESET}"
            kind = "custom" if proton.is_custom else f"appid {proton.appid}"
            print(f"  {proton.name} [{kind}] {proton.install_path}{state}")
        return 0

    def _cmd_create_prefix(self, args) -> int:
        discovery = self._discovery()
        if args.proton:
            installation = discovery.find_proton_by_name(args.proton)
            if installation is None:
                raise NotFoundError(f"Proton version '{args.proton}' not found.")
        else:
            installation = discovery.find_default_proton(self.config.get("default_proton"))
            if installation is None:
                raise NotFoundError("No Proton installation found")

        arch = WineArch.parse(args.arch or self.config.get("default_arch")) or WineArch.WIN64
        print(f"{COLOR_INFO}Creating prefix {args.prefix} with {installation.name} ({arch.value})...{COLOR_RESET}")
        ProtonKit.create_prefix(installation, args.prefix, arch, run_wineboot=not args.no_boot, config=self.config)
        print(f"{COLOR_SUCCESS}Prefix created at {args.prefix}{COLOR_RESET}")
        return 0

    def _cmd_delete_prefix(self, args) -> int:
        prefix = Path(args.prefix)
        if not PrefixHandler.is_prefix(prefix):
            print(f"{COLOR_ERROR}{prefix} does not look like a prefix, refusing to delete it.{COLOR_RESET}")
            return 1

        if not args.yes:
            answer = input(f"{COLOR_PROMPT}Delete {prefix} and everything in it? (y/N): {COLOR_RESET}").strip().lower()
            if answer not in ("y", "yes"):
                print("Cancelled.")
                return 1

        try:
            self._open(args).delete_prefix()
        except NotFoundError as e:
            # No usable runtime to stop the server with; remove the files anyway
            logger.debug(f"Deleting without a runtime: {e}")
            PrefixHandler.delete_prefix(prefix)
        print(f"{COLOR_SUCCESS}Deleted {prefix}{COLOR_RESET}")
        return 0

    def _cmd_apps(self, args) -> int:
        apps = self._discovery().list_windows_apps(args.search)
        if apps:
            print("Found the following games:")
            for app in apps:
                print(f"  {app.name} ({app.appid})")
            print("\nTo manage a game's prefix, run:")
            print("  protonkit run APPID VERB [VERB...]")
        else:
            print(f"{COLOR_WARNING}Found no games.{COLOR_RESET}")
        print("\nNOTE: A game must be launched at least once before protonkit can find it.")
        return 0

    def _cmd_run(self, args) -> int:
        if bool(args.verbs) == bool(args.run_command):
            print(f"{COLOR_ERROR}Pass either verbs or -c/--command{COLOR_RESET}")
            return 1

        kit = self._open(args)
        cwd = self._prepare_launch(kit, args)
        if args.run_command:
            result = kit.run_executable(args.run_command, cwd=cwd)
            return self._report_exit(args.run_command, result)

        results = kit.run_verbs(args.verbs, stop_on_error=not args.keep_going)
        failed = 0
        for result in results:
            if result.ok:
                print(f"{COLOR_SUCCESS}[OK]{COLOR_RESET} {result.name}")
            else:
                failed += 1
                print(f"{COLOR_ERROR}[FAILED]{COLOR_RESET} {result.name}: {result.error}")
        skipped = len(args.verbs) - len(results)
        if skipped:
            print(f"{COLOR_WARNING}{skipped} verb(s) not attempted{COLOR_RESET}")
        return 0 if failed == 0 and skipped == 0 else 1

    def _cmd_exec(self, args) -> int:
        kit = self._open(args)
        cwd = self._prepare_launch(kit, args)
        result = kit.run_executable(args.executable, args.exe_args, cwd=cwd)
        return self._report_exit(args.executable, result)

    @staticmethod
    def _report_exit(name, result) -> int:
        if not result.success:
            print(f"{COLOR_ERROR}{name} exited with code {result.returncode}{COLOR_RESET}")
        return 0 if result.success else result.returncode

    def _cmd_winver(self, args) -> int:
        version = self._open(args).set_windows_version(args.version)
        print(f"{COLOR_SUCCESS}Windows version set to {version.short_name}{COLOR_RESET}")
        return 0

    def _cmd_clear_cache(self, args) -> int:
        cache = DownloadCache(self.config.get_cache_dir())
        removed = cache.clear()
        print(f"Removed {removed} cached entries from {cache.cache_dir}")
        return 0

    def _cmd_logs(self, args) -> int:
        from protonkit.backend.handlers.logging_handler import LoggingHandler
        handler = LoggingHandler()
        lines = handler.get_log_content(lines=args.lines)
        if not lines:
            print(f"No log entries in {handler.get_current_log_path()}")
            return 0
        sys.stdout.write("".join(lines))
        return 0


def main(argv=None) -> int:
    return ProtonKitCLI().run(argv)
