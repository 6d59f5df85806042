"""
Transfer layer for File Sync.

Wraps the two external commands the engine depends on:

- ``rsync`` mirrors either the whole watched root (with ``--delete``) or a
  single relative path (with ``--relative`` so the remote layout matches).
- ``ssh`` checks the remote host once at startup.

Every rsync run is captured in a :class:`SyncRecord` and aggregated in
:class:`SyncStats`.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
import time
from dataclasses import dataclass, field
from typing import Protocol

logger = logging.getLogger(__name__)

_STDERR_TAIL = 500  # characters of stderr kept in a failed record


@dataclass
class SyncRecord:
    """Record of a single rsync invocation."""
    path: str | None = None  # relative path requested; None = full mirror
    command: list[str] = field(default_factory=list)
    started: float = 0.0
    finished: float = 0.0
    returncode: int | None = None
    success: bool = False
    full_mirror: bool = True
    error: str = ""

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


@dataclass
class SyncStats:
    """Aggregated sync statistics."""
    total_full: int = 0
    total_selective: int = 0
    total_failed: int = 0
    last_error: str = ""
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, rec: SyncRecord) -> None:
        with self._lock:
            if not rec.success:
                self.total_failed += 1
                self.last_error = rec.error
            elif rec.full_mirror:
                self.total_full += 1
            else:
                self.total_selective += 1


class SyncRunner(Protocol):
    """Interface the dispatcher expects from a transfer backend."""

    def sync(self, path: str | None = None) -> SyncRecord:
        """Mirror the whole root (``path=None``) or one relative path."""
        ...


class RsyncRunner:
    """
    Runs rsync/ssh against one local root and one remote target.

    Parameters
    ----------
    local_path : str
        Absolute path of the watched root.
    remote_host : str
        Remote host in ``user@host`` form.
    remote_path : str
        Target directory on the remote host.
    ssh_key : str
        Optional private key passed to ssh with ``-i``.
    exclude_patterns : list of str
        Patterns passed to rsync as ``--exclude``.
    rsync_args : list of str
        Base rsync flags (default ``["-avz"]``).
    connect_timeout : int
        ssh ``ConnectTimeout`` used by :meth:`check_connection`.
    """

    def __init__(
        self,
        local_path: str,
        remote_host: str,
        remote_path: str,
        ssh_key: str = "",
        exclude_patterns: list[str] | None = None,
        rsync_args: list[str] | None = None,
        connect_timeout: int = 10,
    ):
        self.local_path = os.path.abspath(local_path)
        self.remote_host = remote_host
        self.remote_path = remote_path
        self._ssh_key = ssh_key
        self._exclude_patterns = list(exclude_patterns or [])
        self._rsync_args = list(rsync_args) if rsync_args is not None else ["-avz"]
        self._connect_timeout = connect_timeout
        self.stats = SyncStats()

    @property
    def target(self) -> str:
        """rsync destination, always with a trailing slash."""
        return f"{self.remote_host}:{self.remote_path.rstrip('/')}/"

    # ---- command lines ----

    def build_command(self, path: str | None = None) -> list[str]:
        """Return the rsync argv for a full mirror or for one relative *path*."""
        cmd = ["rsync", *self._rsync_args, "--delete"]
        for pattern in self._exclude_patterns:
            cmd.append(f"--exclude={pattern}")
        if self._ssh_key:
            cmd += ["-e", f"ssh -i {shlex.quote(self._ssh_key)}"]
        if path:
            # "root/./rel" tells --relative to recreate only "rel" remotely
            cmd.append("--relative")
            cmd.append(f"{self.local_path}/./{path}")
        else:
            cmd.append(f"{self.local_path}/")
        cmd.append(self.target)
        return cmd

    def build_check_command(self) -> list[str]:
        """Return the ssh argv used to test the remote connection."""
        cmd = [
            "ssh",
            "-o", f"ConnectTimeout={self._connect_timeout}",
            "-o", "BatchMode=yes",
        ]
        if self._ssh_key:
            cmd += ["-i", self._ssh_key]
        cmd += [self.remote_host, "true"]
        return cmd

    # ---- operations ----

    def check_connection(self) -> bool:
        """Return True when a non-interactive ssh login to the host works."""
        logger.info("Testing connection to %s…", self.remote_host)
        cmd = self.build_check_command()
        logger.debug("Running: %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self._connect_timeout + 5,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("Connection to %s timed out", self.remote_host)
            return False
        except OSError as exc:
            logger.error("Could not run ssh: %s", exc)
            return False
        if result.returncode != 0:
            logger.error(
                "Connection to %s failed (exit %d): %s",
                self.remote_host,
                result.returncode,
                result.stderr.strip()[-_STDERR_TAIL:],
            )
            return False
        logger.info("Connection to %s OK", self.remote_host)
        return True

    def sync(self, path: str | None = None) -> SyncRecord:
        """
        Run rsync and return the outcome.  Never raises for command failures.

        A *path* that vanished after dispatch cannot be copied, so the whole
        root is mirrored instead; that propagates the deletion.
        """
        rec = SyncRecord(path=path)
        rel = path
        if rel and not os.path.lexists(os.path.join(self.local_path, rel)):
            logger.info("%s no longer exists locally; mirroring full tree", rel)
            rel = None
        rec.full_mirror = rel is None
        rec.command = self.build_command(rel)
        logger.debug("Running: %s", shlex.join(rec.command))

        rec.started = time.time()
        try:
            result = subprocess.run(
                rec.command,
                capture_output=True,
                text=True,
                check=False,
            )
            rec.returncode = result.returncode
            rec.success = result.returncode == 0
            if not rec.success:
                stderr = (result.stderr or "").strip()
                rec.error = stderr[-_STDERR_TAIL:] or f"rsync exited with {result.returncode}"
        except OSError as exc:
            rec.error = str(exc)
        rec.finished = time.time()

        if rec.success:
            if rec.full_mirror:
                logger.info("Full sync complete in %.1fs", rec.duration)
            else:
                logger.info("Synced %s in %.1fs", rel, rec.duration)
        else:
            logger.error(
                "Sync failed for %s: %s",
                rel or "full tree",
                rec.error,
            )

        self.stats.record(rec)
        return rec
