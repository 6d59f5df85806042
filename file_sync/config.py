"""Configuration management for File Sync.

Stores and retrieves settings from a JSON config file in the
platform-appropriate application data directory.  Command-line options
are layered on top with :meth:`Config.apply_overrides`.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from file_sync.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from file_sync.platform_utils import (
    get_log_path as _platform_log_path,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_TIMEOUT = 2.0
DEFAULT_TICK_INTERVAL = 0.1
# Batches with more unique paths than this are sent as one full mirror
DEFAULT_SELECTIVE_SYNC_LIMIT = 5

DEFAULT_CONFIG: dict[str, Any] = {
    "local_path": "",
    "remote_host": "",  # user@host
    "remote_path": "",
    "ssh_key": "",  # blank = ssh default identity
    "exclude_patterns": [],  # rsync/glob patterns (e.g. ["*.tmp", ".git"])
    # ---- batching ----
    "batch_size": DEFAULT_BATCH_SIZE,
    "batch_timeout_seconds": DEFAULT_BATCH_TIMEOUT,
    "tick_interval_seconds": DEFAULT_TICK_INTERVAL,
    "selective_sync_limit": DEFAULT_SELECTIVE_SYNC_LIMIT,
    # ---- transfer ----
    "rsync_args": ["-avz"],
    "connect_timeout_seconds": 10,
    # ---- logging ----
    "log_level": "INFO",
    "log_file": "",  # blank = platform default
    "max_log_size_mb": 10,
    "log_backup_count": 3,
}


class ConfigError(Exception):
    """Raised when the configuration is incomplete or invalid."""


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_log_path() -> Path:
    """Return the path to the default log file."""
    return _platform_log_path()


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                if not isinstance(stored, dict):
                    raise ValueError("top-level JSON value is not an object")
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, ValueError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- endpoints ----

    @property
    def local_path(self) -> str:
        """Return the watched local directory."""
        return self._data["local_path"]

    @local_path.setter
    def local_path(self, value: str) -> None:
        self._data["local_path"] = str(value).strip()

    @property
    def remote_host(self) -> str:
        """Return the remote host (``user@host``)."""
        return self._data["remote_host"]

    @remote_host.setter
    def remote_host(self, value: str) -> None:
        self._data["remote_host"] = str(value).strip()

    @property
    def remote_path(self) -> str:
        """Return the target directory on the remote host."""
        return self._data["remote_path"]

    @remote_path.setter
    def remote_path(self, value: str) -> None:
        self._data["remote_path"] = str(value).strip()

    @property
    def ssh_key(self) -> str:
        """Return the ssh private key path (blank = ssh default)."""
        return self._data.get("ssh_key", "")

    @ssh_key.setter
    def ssh_key(self, value: str) -> None:
        self._data["ssh_key"] = str(value or "").strip()

    @property
    def exclude_patterns(self) -> list[str]:
        """Return patterns excluded from watching and transfer."""
        return self._data.get("exclude_patterns", [])

    @exclude_patterns.setter
    def exclude_patterns(self, value: list[str]) -> None:
        self._data["exclude_patterns"] = [p.strip() for p in value if p.strip()]

    # ---- batching ----

    @property
    def batch_size(self) -> int:
        """Return the unique-path count that forces an immediate flush."""
        return int(self._data.get("batch_size", DEFAULT_BATCH_SIZE))

    @batch_size.setter
    def batch_size(self, value: int) -> None:
        """Set the batch size (minimum 1)."""
        self._data["batch_size"] = max(1, int(value))

    @property
    def batch_timeout(self) -> float:
        """Return the quiet period in seconds before a partial batch flushes."""
        return float(self._data.get("batch_timeout_seconds", DEFAULT_BATCH_TIMEOUT))

    @batch_timeout.setter
    def batch_timeout(self, value: float) -> None:
        """Set the batch timeout (minimum 0 s)."""
        self._data["batch_timeout_seconds"] = max(0.0, float(value))

    @property
    def tick_interval(self) -> float:
        """Return the flush scheduler cadence in seconds."""
        return float(self._data.get("tick_interval_seconds", DEFAULT_TICK_INTERVAL))

    @tick_interval.setter
    def tick_interval(self, value: float) -> None:
        """Set the scheduler cadence (minimum 10 ms)."""
        self._data["tick_interval_seconds"] = max(0.01, float(value))

    @property
    def selective_sync_limit(self) -> int:
        """Return the largest batch still synced path by path."""
        return int(
            self._data.get("selective_sync_limit", DEFAULT_SELECTIVE_SYNC_LIMIT)
        )

    @selective_sync_limit.setter
    def selective_sync_limit(self, value: int) -> None:
        self._data["selective_sync_limit"] = max(0, int(value))

    # ---- transfer ----

    @property
    def rsync_args(self) -> list[str]:
        """Return the base rsync flags."""
        return list(self._data.get("rsync_args", ["-avz"]))

    @rsync_args.setter
    def rsync_args(self, value: list[str]) -> None:
        self._data["rsync_args"] = [a for a in value if a]

    @property
    def connect_timeout(self) -> int:
        """Return the ssh connect timeout for the startup connection check."""
        return int(self._data.get("connect_timeout_seconds", 10))

    @connect_timeout.setter
    def connect_timeout(self, value: int) -> None:
        """Set the ssh connect timeout (minimum 1 s)."""
        self._data["connect_timeout_seconds"] = max(1, int(value))

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value.upper()

    @property
    def log_file(self) -> Path:
        """Return the log file path, falling back to the platform default."""
        value = self._data.get("log_file", "")
        return Path(value).expanduser() if value else get_log_path()

    @log_file.setter
    def log_file(self, value: str) -> None:
        self._data["log_file"] = str(value or "")

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    def apply_overrides(self, **overrides: Any) -> None:
        """Apply non-``None`` values through the property setters (not saved)."""
        for key, value in overrides.items():
            if value is None:
                continue
            if not isinstance(getattr(type(self), key, None), property):
                raise AttributeError(f"Unknown configuration option: {key}")
            setattr(self, key, value)

    def validate(self) -> None:
        """Check required values and normalise the local path.

        Raises :class:`ConfigError` when something is missing or the local
        path is not a directory.
        """
        missing = [
            name
            for name in ("local_path", "remote_host", "remote_path")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")
        if not os.path.isdir(self.local_path):
            raise ConfigError(
                f"Local path does not exist or is not a directory: {self.local_path}"
            )
        self.local_path = os.path.realpath(self.local_path)
