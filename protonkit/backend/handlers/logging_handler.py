"""
LoggingHandler module for managing logging operations.
This module handles log file creation, rotation, and management, and records
the output of every process launched through the runtime.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from protonkit.backend.data.known_errors import KNOWN_ERRORS

DEFAULT_LOG_FILE = "protonkit.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5

exec_logger = logging.getLogger("protonkit.exec")


class LoggingHandler:
    """
    Central logging handler for protonkit.
    - Uses ~/.local/state/protonkit/logs/ as the log directory.
    - Handles log rotation and log directory creation.
    Usage:
        logger = LoggingHandler().setup_logger('protonkit', 'protonkit.log')
    """
    def __init__(self, log_dir: Optional[Path] = None):
        from protonkit.shared.paths import get_logs_dir
        self.log_dir = Path(log_dir) if log_dir else get_logs_dir()
        self.ensure_log_directory()

    def ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"Failed to create log directory: {e}")

    def setup_logger(self, name: str, log_file: Optional[str] = None, console_level: int = logging.ERROR) -> logging.Logger:
        """Set up a logger with a rotating file handler and a console handler."""
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        console_formatter = logging.Formatter(
            '%(levelname)s: %(message)s'
        )

        # Console handler (ERROR and above unless verbose)
        existing_console = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        if existing_console:
            for handler in existing_console:
                handler.setLevel(console_level)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(console_level)
            console_handler.setFormatter(console_formatter)
            logger.addHandler(console_handler)

        file_path = self.log_dir / (log_file or DEFAULT_LOG_FILE)
        if not any(isinstance(h, logging.handlers.RotatingFileHandler) and getattr(h, 'baseFilename', None) == str(file_path) for h in logger.handlers):
            file_handler = logging.handlers.RotatingFileHandler(
                file_path, mode='a', encoding='utf-8', maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(file_formatter)
            logger.addHandler(file_handler)

        return logger

    def get_current_log_path(self) -> Path:
        return self.log_dir / DEFAULT_LOG_FILE

    def get_log_files(self) -> List[Path]:
        """Get a list of all log files, rotated backups included."""
        return sorted(self.log_dir.glob("*.log*"))

    def get_log_content(self, log_file: Optional[Path] = None, lines: int = 100) -> List[str]:
        """Get the last N lines of a log file."""
        log_file = log_file or self.get_current_log_path()
        try:
            with open(log_file, 'r', encoding='utf-8', errors='replace') as f:
                return f.readlines()[-lines:]
        except OSError as e:
            print(f"Failed to read log file {log_file}: {e}")
            return []

    def search_logs(self, pattern: str) -> Dict[Path, List[str]]:
        """Search all log files for a pattern."""
        results = {}
        for log_file in self.get_log_files():
            try:
                with open(log_file, 'r', encoding='utf-8', errors='replace') as f:
                    matches = [line for line in f if pattern in line]
                    if matches:
                        results[log_file] = matches
            except OSError as e:
                print(f"Failed to search log file {log_file}: {e}")
        return results


def scan_for_errors(output: str) -> List[Tuple[str, str]]:
    """Return (code, description) for every known error signature in output."""
    lowered = output.lower()
    return [(code, description) for pattern, code, description in KNOWN_ERRORS if pattern.lower() in lowered]


def log_executable_output(executable: str, stdout: str, stderr: str, returncode: int) -> List[Tuple[str, str]]:
    """
    Record the result of a launched process.

    Called after every runtime launch. Purely observational: the return value
    lists the known issues detected so callers may display them.
    """
    exec_logger.info(f"Executed: {executable} (exit code: {returncode})")
    for stream_name, text in (("stdout", stdout), ("stderr", stderr)):
        if text and text.strip():
            for line in text.splitlines():
                exec_logger.debug(f"[{executable}] {stream_name}: {line}")

    matches = scan_for_errors(f"{stdout or ''}\n{stderr or ''}")
    for code, description in matches:
        exec_logger.warning(f"[{executable}] Known issue detected: {code} - {description}")

    if returncode != 0:
        exec_logger.error(f"[{executable}] Exited with code {returncode}")
    return matches
