"""
Command-line entry point: run a drop-folder pipeline until interrupted.

Usage:
    filedrop-watch /srv/incoming --pattern "*.csv" --archive-dir /srv/archive

Or via a config file / environment variables:
    FILEDROP_MAX_ATTEMPTS=10 filedrop-watch --config filedrop.yaml
"""

import argparse
import logging
import shutil
import signal
import sys
import threading
from pathlib import Path
from typing import Callable, Optional, Sequence

from filedrop import __version__
from filedrop.config import (
    PROBER_KINDS,
    PipelineConfig,
    apply_env_overrides,
    get_default_config_path,
    load_config,
)
from filedrop.errors import FiledropError, PipelineStartupError
from filedrop.logging_config import setup_logging
from filedrop.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="filedrop-watch",
        description="Watch a directory, process each new file once fully written, then delete it",
    )
    parser.add_argument(
        "watch_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Directory to watch (created if missing; default from config)",
    )
    parser.add_argument("--pattern", default=None, help="Glob for file names (e.g. '*.txt')")
    parser.add_argument(
        "--recursive",
        action="store_true",
        default=None,
        help="Also watch subdirectories",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Stability probes before a file is abandoned (default: 5)",
    )
    parser.add_argument(
        "--retry-delay-ms",
        type=int,
        default=None,
        help="Milliseconds between stability probes (default: 5000)",
    )
    parser.add_argument(
        "--prober",
        choices=PROBER_KINDS,
        default=None,
        help=(
            "Stability check (default: lock). lock: exclusive lock, advisory flock on "
            "POSIX, so only writers that lock the file are detected; size: size/mtime "
            "settling, the effective choice on Linux"
        ),
    )
    parser.add_argument(
        "--process-existing",
        action="store_true",
        default=None,
        help="Also process matching files already in the directory at startup",
    )
    parser.add_argument(
        "--archive-dir",
        type=Path,
        default=None,
        help="Copy each stable file here before it is deleted",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"YAML config file (default: {get_default_config_path()})",
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Write daily log files here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    """Merge config file, environment, and command-line flags (flags win)."""
    if args.config is not None and not args.config.exists():
        raise ValueError(f"Config file not found: {args.config}")
    config = load_config(args.config or get_default_config_path())
    apply_env_overrides(config)

    flags = {
        "watch_dir": args.watch_dir,
        "pattern": args.pattern,
        "recursive": args.recursive,
        "max_attempts": args.max_attempts,
        "retry_delay_ms": args.retry_delay_ms,
        "prober": args.prober,
        "process_existing": args.process_existing,
        "log_dir": args.log_dir,
    }
    config.update({k: v for k, v in flags.items() if v is not None})
    if args.verbose:
        config.log_level = "DEBUG"
    return config.validate()


def make_archive_callback(archive_dir: Optional[Path]) -> Callable[[str], None]:
    """Build the processing callback: copy to archive_dir, or just log."""
    if archive_dir is None:

        def log_only(path: str) -> None:
            logger.info(f"Received {path} ({Path(path).stat().st_size} bytes)")

        return log_only

    archive_dir.mkdir(parents=True, exist_ok=True)

    def archive(path: str) -> None:
        target = archive_dir / Path(path).name
        shutil.copy2(path, target)
        logger.info(f"Archived {path} -> {target}")

    return archive


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except (ValueError, OSError) as e:
        parser.error(str(e))

    setup_logging(
        log_dir=config.log_dir,
        level=logging.getLevelName(config.log_level.upper()),
        console=True,
    )

    shutdown = threading.Event()

    def _request_shutdown(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        shutdown.set()

    previous_handlers = {
        sig: signal.signal(sig, _request_shutdown) for sig in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        try:
            pipeline = IngestionPipeline(config, make_archive_callback(args.archive_dir))
            pipeline.start()
        except (PipelineStartupError, OSError) as e:
            logger.error(f"Startup failed: {e}")
            return 1

        try:
            while not shutdown.wait(1.0):
                pass
        finally:
            pipeline.stop()
            logger.info(f"Final stats: {pipeline.stats.to_dict()}")
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    return 0


def main_cli() -> None:
    """Console-script entry point."""
    try:
        sys.exit(main())
    except FiledropError as e:
        sys.stderr.write(f"filedrop: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main_cli()
