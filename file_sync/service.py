"""
Foreground service runner for File Sync.

Owns the whole run: dependency and connection checks, the initial full
mirror, then the watcher and the batching loop running side by side
until SIGINT/SIGTERM.  The event journal is closed on every exit path.

States: STARTING -> RUNNING -> TERMINATING -> TERMINATED.  A failure
while STARTING goes straight to TERMINATED with a non-zero exit code.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from file_sync import __app_name__, __version__
from file_sync.config import Config
from file_sync.dispatcher import SyncDispatcher, SyncError
from file_sync.engine import BatchSyncLoop
from file_sync.journal import EventJournal
from file_sync.platform_utils import find_missing_tools
from file_sync.rsync import RsyncRunner, SyncRecord
from file_sync.watcher import FolderWatcher

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

# How often the supervisor checks that the watcher is still alive
_HEALTH_INTERVAL = 0.5
# Upper bound on waiting for the loop thread; an rsync in flight is not awaited
_LOOP_JOIN_TIMEOUT = 1.0


class ServiceState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


class StartupError(RuntimeError):
    """Raised when a startup precondition fails."""


class Transport(Protocol):
    """What the service needs from the transfer layer."""

    def check_connection(self) -> bool:
        ...

    def sync(self, path: str | None = None) -> SyncRecord:
        ...


class SyncService:
    """Runs one sync session for a validated :class:`Config`."""

    def __init__(
        self,
        config: Config,
        runner: Transport | None = None,
        check_dependencies: bool = True,
        watcher_factory: Callable[..., Any] = FolderWatcher,
    ) -> None:
        self._config = config
        self._runner = runner or RsyncRunner(
            local_path=config.local_path,
            remote_host=config.remote_host,
            remote_path=config.remote_path,
            ssh_key=config.ssh_key,
            exclude_patterns=config.exclude_patterns,
            rsync_args=config.rsync_args,
            connect_timeout=config.connect_timeout,
        )
        self._check_dependencies = check_dependencies
        self._watcher_factory = watcher_factory
        self._dispatcher = SyncDispatcher(
            self._runner,
            selective_limit=config.selective_sync_limit,
            root=config.local_path,
        )
        self._stop = threading.Event()
        self._state = ServiceState.STARTING
        self._journal: EventJournal | None = None
        self._watcher: Any | None = None
        self._loop: BatchSyncLoop | None = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def journal(self) -> EventJournal | None:
        return self._journal

    @property
    def loop(self) -> BatchSyncLoop | None:
        return self._loop

    def request_stop(self) -> None:
        """Ask :meth:`run` to shut down.  Safe from any thread or signal handler."""
        self._stop.set()

    # ---- lifecycle ----

    def run(self) -> int:
        """Run until stopped and return the process exit code."""
        cfg = self._config
        self._state = ServiceState.STARTING
        self._journal = EventJournal()
        logger.info("%s %s starting.", __app_name__, __version__)
        logger.info("Local path: %s", cfg.local_path)
        logger.info("Remote: %s:%s", cfg.remote_host, cfg.remote_path)
        if cfg.exclude_patterns:
            logger.info("Exclude patterns: %s", " ".join(cfg.exclude_patterns))

        previous_handlers = self._install_signal_handlers()
        try:
            try:
                started = self._startup()
            except (StartupError, SyncError, OSError) as exc:
                # rsync/ssh interrupted by the same Ctrl-C also fail here
                if self._stop.is_set():
                    logger.info("Stopped during startup")
                    return EXIT_OK
                logger.error("Startup failed: %s", exc)
                return EXIT_FAILURE
            if not started:
                logger.info("Stopped during startup")
                return EXIT_OK

            self._state = ServiceState.RUNNING
            return self._wait()
        finally:
            self._shutdown()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def _startup(self) -> bool:
        """Run the startup steps.  Returns False if a stop was requested."""
        if self._check_dependencies:
            missing = find_missing_tools()
            if missing:
                raise StartupError(f"Missing dependencies: {', '.join(missing)}")
        if not self._runner.check_connection():
            raise StartupError(f"Cannot connect to {self._config.remote_host}")
        if self._stop.is_set():
            return False
        self._dispatcher.initial_sync()
        if self._stop.is_set():
            return False

        self._watcher = self._watcher_factory(
            self._config.local_path,
            self._journal,
            exclude_patterns=self._config.exclude_patterns,
        )
        self._loop = BatchSyncLoop(
            self._journal,
            self._dispatcher,
            batch_size=self._config.batch_size,
            batch_timeout=self._config.batch_timeout,
            tick_interval=self._config.tick_interval,
        )
        self._watcher.start()
        self._loop.start()
        return True

    def _wait(self) -> int:
        logger.info("%s running (press Ctrl-C to stop)", __app_name__)
        while not self._stop.wait(timeout=_HEALTH_INTERVAL):
            if self._watcher is not None and not self._watcher.is_running:
                logger.error("File watcher stopped unexpectedly")
                return EXIT_FAILURE
        return EXIT_OK

    def _shutdown(self) -> None:
        if self._state is ServiceState.RUNNING:
            self._state = ServiceState.TERMINATING
            logger.info("Stopping…")
        if self._loop is not None:
            self._loop.stop()
        if self._watcher is not None:
            try:
                self._watcher.stop()
            except Exception:
                logger.exception("Error stopping watcher")
        if self._loop is not None:
            self._loop.join(timeout=_LOOP_JOIN_TIMEOUT)
            if self._loop.is_running:
                logger.info("Sync in progress left to finish in the background")
        if self._journal is not None:
            self._journal.close()
        stats = getattr(self._runner, "stats", None)
        if stats is not None:
            logger.info(
                "Syncs this session: %d full, %d selective, %d failed",
                stats.total_full,
                stats.total_selective,
                stats.total_failed,
            )
            if stats.last_error:
                logger.info("Last sync error: %s", stats.last_error)
        self._state = ServiceState.TERMINATED
        logger.info("%s stopped.", __app_name__)

    def _install_signal_handlers(self) -> dict[int, Any]:
        # signal.signal only works in the main thread
        if threading.current_thread() is not threading.main_thread():
            return {}

        def _handler(signum, frame):
            logger.info("Received %s, shutting down", signal.Signals(signum).name)
            self.request_stop()

        previous = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, _handler)
        return previous
