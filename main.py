"""
Main entry point for the FileSync command line tool.

This module handles:
- Command line argument parsing
- Logging configuration
- Settings loading and overrides
- Console progress output
- Exception handling
"""

from __future__ import annotations

import argparse
import faulthandler
import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, List, TextIO

from PyQt6.QtCore import QCoreApplication

from filesync import __version__
from filesync.core.folder.scanner import DirectoryNotFoundError
from filesync.core.folder.sync import FolderSync, SyncOptions
from filesync.core.models import ProgressPhase, ProgressReport, SyncMode, SyncOutcome
from filesync.services.settings import SettingsManager, SyncSettings


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "FileSync"
APP_VERSION = __version__
APP_ORGANIZATION = "FileSync"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments. None means "use the settings file"."""
    source_path: str = ""
    destination_path: str = ""
    mode: Optional[SyncMode] = None
    threads: Optional[int] = None
    verbose: bool = False
    dry_run: bool = False
    follow_symlinks: bool = False
    quiet: bool = False
    config_file: Optional[str] = None
    log_level: Optional[str] = None
    log_file: Optional[str] = None


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Custom log formatter with colors for console."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True, stream: Optional[TextIO] = None):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        stream = stream or sys.stdout
        self.use_colors = use_colors and hasattr(stream, 'isatty') and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> logging.Logger:
    """
    Configure application logging.

    Args:
        level: Log level string
        log_file: Optional file path for logging

    Returns:
        Root logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    # Console handler; stdout carries the progress line
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(use_colors=True, stream=sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_file,
            encoding='utf-8'
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(LogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    return root_logger


# =============================================================================
# Exception Handling
# =============================================================================

class ExceptionHandler:
    """Global handler that logs unhandled exceptions."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def handle_exception(
        self,
        exc_type: type,
        exc_value: BaseException,
        exc_tb
    ) -> None:
        """Handle an unhandled exception."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return

        self.logger.critical(
            "Unhandled exception",
            exc_info=(exc_type, exc_value, exc_tb)
        )


# =============================================================================
# Console Progress
# =============================================================================

def _format_bytes(size: int) -> str:
    value = float(size)
    for unit in ('B', 'KB', 'MB', 'GB'):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == 'B' else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


class ConsoleProgress:
    """
    Renders progress reports as a single, rewritten console line.

    Called from pool threads; the lock keeps the phase check and the
    write together so two threads never both open a new phase line.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self._interactive = hasattr(self.stream, 'isatty') and self.stream.isatty()
        self._last_phase: Optional[ProgressPhase] = None
        self._lock = threading.Lock()

    def __call__(self, report: ProgressReport) -> None:
        line = self.format_report(report)

        with self._lock:
            if self._interactive:
                end = "\n" if report.phase == ProgressPhase.FINISHED else ""
                self.stream.write(f"\r\033[K{line}{end}")
            elif report.phase != self._last_phase or report.phase == ProgressPhase.FINISHED:
                # Non-terminal output gets one line per phase
                self.stream.write(f"{line}\n")

            self._last_phase = report.phase
            self.stream.flush()

    @staticmethod
    def format_report(report: ProgressReport) -> str:
        elapsed = int(report.elapsed.total_seconds())
        clock = f"{elapsed // 60:02d}:{elapsed % 60:02d}"

        if report.is_indeterminate:
            counts = f"{report.items_processed} items"
        else:
            counts = f"{report.items_processed}/{report.total_items} ({report.percent_items:.0f}%)"

        parts = [f"[{clock}]", f"{report.phase.label}:", counts]

        if report.total_bytes > 0:
            parts.append(f"{_format_bytes(report.bytes_processed)}/{_format_bytes(report.total_bytes)}")

        if report.current_item and report.phase != ProgressPhase.FINISHED:
            parts.append(report.current_item)

        return " ".join(parts)


def print_summary(outcome: SyncOutcome, stream: Optional[TextIO] = None) -> None:
    """Print the closing summary of a run."""
    stream = stream or sys.stdout
    plan = outcome.plan
    result = outcome.result

    if plan.is_empty:
        stream.write("Directories are already in sync.\n")
        return

    status = "cancelled" if result.cancelled else "done"
    stream.write(
        f"Sync {status}: {result.items_succeeded}/{plan.total_items} actions succeeded, "
        f"{result.items_failed} failed, {_format_bytes(result.bytes_copied)} copied "
        f"in {result.duration:.1f}s\n"
    )

    for mismatch in plan.type_mismatches:
        stream.write(f"  skipped: {mismatch.describe()}\n")

    for error in result.errors:
        stream.write(f"  failed: {error.kind.label} {error.path}: {error.message}\n")

    stream.flush()


# =============================================================================
# Command Line Parsing
# =============================================================================

def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid thread count: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(
            f"thread count must be a positive integer (value provided: {number})"
        )
    return number


def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        prog=APP_NAME.lower(),
        description="One-way directory synchronization based on file metadata",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s src dst                       Copy new and newer files to dst
  %(prog)s --oneway src dst              Make dst an exact mirror of src
  %(prog)s --threads 8 -v src dst        Eight workers, per-action logging
  %(prog)s --oneway --dry-run src dst    Show what a mirror would change
"""
    )

    parser.add_argument('source', help='Source directory (never modified)')
    parser.add_argument('destination', help='Destination directory')

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        '--update',
        dest='mode',
        action='store_const',
        const=SyncMode.UPDATE_ONLY,
        help='Copy new and newer files only, never delete (default)'
    )
    mode_group.add_argument(
        '--oneway', '--mirror',
        dest='mode',
        action='store_const',
        const=SyncMode.MIRROR,
        help='Mirror the source, deleting destination-only items'
    )

    parser.add_argument(
        '-t', '--threads',
        type=_positive_int,
        metavar='N',
        help='Number of parallel workers (default: CPU count)'
    )

    parser.add_argument(
        '-v', '--test', '--verbose',
        dest='verbose',
        action='store_true',
        help='Log every scan, plan and action step'
    )

    parser.add_argument(
        '-n', '--dry-run',
        action='store_true',
        help='Plan and report, but do not touch the destination'
    )

    parser.add_argument(
        '--follow-symlinks',
        action='store_true',
        help='Descend into symlinked directories instead of copying links'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Do not print progress'
    )

    parser.add_argument(
        '-c', '--config',
        metavar='FILE',
        help='Use a specific settings file'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        type=str.upper,
        help='Set logging level'
    )

    parser.add_argument(
        '--log-file',
        metavar='FILE',
        help='Also write the log to FILE'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    parsed = parser.parse_args(args)

    result = CommandLineArgs()
    result.source_path = parsed.source
    result.destination_path = parsed.destination
    result.mode = parsed.mode
    result.threads = parsed.threads
    result.verbose = parsed.verbose
    result.dry_run = parsed.dry_run
    result.follow_symlinks = parsed.follow_symlinks
    result.quiet = parsed.quiet
    result.config_file = parsed.config
    result.log_level = parsed.log_level
    result.log_file = parsed.log_file

    return result


def build_options(args: CommandLineArgs, settings: SyncSettings) -> SyncOptions:
    """Merge command line arguments over the stored settings."""
    return SyncOptions(
        mode=args.mode or settings.mode,
        concurrency=args.threads or settings.threads,
        follow_symlinks=args.follow_symlinks or settings.follow_symlinks,
        verbose=args.verbose or settings.verbose,
        dry_run=args.dry_run,
    )


def resolve_log_level(args: CommandLineArgs, settings: SyncSettings) -> str:
    if args.log_level:
        return args.log_level
    if args.verbose and settings.log_level != "DEBUG":
        return "INFO"
    return settings.log_level


# =============================================================================
# Main Function
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main entry point.

    Returns:
        Exit code (0 for success)
    """
    args = parse_arguments(argv)

    settings_manager = SettingsManager(Path(args.config_file) if args.config_file else None)
    settings = settings_manager.settings

    log_file = args.log_file or settings.log_file
    logger = setup_logging(
        resolve_log_level(args, settings),
        Path(log_file) if log_file else None
    )
    logger.debug(f"Starting {APP_NAME} v{APP_VERSION}")

    exception_handler = ExceptionHandler(logger)
    sys.excepthook = exception_handler.handle_exception

    # The worker pool is a QThreadPool; it needs a core application
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_ORGANIZATION)

    try:
        options = build_options(args, settings)
        sync = FolderSync(options)
    except ValueError as e:
        logger.error(f"Invalid options: {e}")
        return EXIT_ERROR

    if options.dry_run:
        logger.info("Dry run: the destination will not be modified")

    progress = None if args.quiet else ConsoleProgress()

    try:
        outcome = sync.sync(args.source_path, args.destination_path, progress)
    except DirectoryNotFoundError as e:
        logger.error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        sync.cancel()
        logger.warning("Interrupted, synchronization stopped")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.critical(f"Fatal error during synchronization: {e}", exc_info=True)
        return EXIT_ERROR

    if not args.quiet:
        print_summary(outcome)

    if outcome.result.has_errors:
        logger.warning(f"{outcome.result.items_failed} action(s) failed, see the log above")

    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    faulthandler.enable()
    sys.exit(main())


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == '__main__':
    run()
