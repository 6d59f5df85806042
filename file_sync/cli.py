"""Command-line front end for File Sync.

Usage:
    file-sync [options] <local_path> <remote_host> <remote_path>

Positional values may be omitted when they are set in the config file.
Options given on the command line override the config file for this run
only; they are not saved.
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import sys
from pathlib import Path

from file_sync import __app_name__, __version__
from file_sync.config import Config, ConfigError
from file_sync.service import SyncService

logger = logging.getLogger(__name__)

EXIT_USAGE = 2

_installed_handlers: list[logging.Handler] = []


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="file-sync",
        description="Watch a local directory and mirror changes to a remote host with rsync.",
        epilog=(
            "examples:\n"
            "  file-sync /home/user/docs user@server.com /backup/docs\n"
            "  file-sync -k ~/.ssh/id_rsa -e '*.tmp' -e .git /project user@server /backup/project"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("local_path", nargs="?", help="local directory to watch")
    parser.add_argument("remote_host", nargs="?", help="remote host (user@host)")
    parser.add_argument("remote_path", nargs="?", help="directory on the remote host")
    parser.add_argument("-k", "--ssh-key", help="ssh private key")
    parser.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=None,
        metavar="PATTERN",
        help="exclude pattern (may be given several times)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--batch-size", type=int, help="unique paths that force a flush")
    parser.add_argument(
        "--batch-timeout", type=float, help="seconds of quiet before a batch flushes"
    )
    parser.add_argument("--tick-interval", type=float, help="scheduler cadence in seconds")
    parser.add_argument("--config", type=Path, help="JSON config file")
    parser.add_argument("--log-file", help="log file path")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def build_config(args: argparse.Namespace) -> Config:
    """Load the config file and layer the command-line values over it."""
    config = Config(args.config)
    config.apply_overrides(
        local_path=args.local_path,
        remote_host=args.remote_host,
        remote_path=args.remote_path,
        ssh_key=args.ssh_key,
        exclude_patterns=args.exclude,
        batch_size=args.batch_size,
        batch_timeout=args.batch_timeout,
        tick_interval=args.tick_interval,
        log_file=args.log_file,
    )
    if args.verbose:
        config.log_level = "DEBUG"
    config.validate()
    return config


def _setup_logging(config: Config) -> None:
    """Configure rotating file log and stderr handler."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root_logger.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    log_path = config.log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=config.max_log_size_mb * 1024 * 1024,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)

    for handler in (fh, sh):
        root_logger.addHandler(handler)
        _installed_handlers.append(handler)


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the service and return the exit code."""
    args = build_parser().parse_args(argv)
    try:
        config = build_config(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_USAGE

    _setup_logging(config)
    logger.debug("%s %s, config file %s", __app_name__, __version__, config.path)
    return SyncService(config).run()
