"""Main watchdog process orchestrator."""

import logging
import signal
import threading
from typing import List, Optional

from .config import WatchdogConfig
from .exceptions import WatchdogAlreadyRunningError
from .pipeline import TreePipeline

logger = logging.getLogger(__name__)


class WatchdogProcess:
    """
    Supervises one pipeline per watched tree.

    A single stop event is the supervision context: every stage thread
    checks it, and shutdown joins every thread before returning so that no
    sync script outlives the process.
    """

    def __init__(self, config: WatchdogConfig):
        """
        Initialize the watchdog process.

        Args:
            config: Loaded configuration; the working directory must already
                be config.current_dir
        """
        self.config = config
        self._stop_event = threading.Event()
        self._pipelines: List[TreePipeline] = []
        self._running = False
        self._has_run = False
        self._lock = threading.Lock()

        for name in config.missing_scripts():
            logger.warning(f"Sync script {config.scripts_dir / name} is missing or not executable")

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    @property
    def pipelines(self) -> List[TreePipeline]:
        return list(self._pipelines)

    def _start_pipelines(self) -> None:
        with self._lock:
            if self._running:
                raise WatchdogAlreadyRunningError("Watchdog is already running")
            self._running = True
            # A stop requested before the first start is kept
            if self._has_run:
                self._stop_event = threading.Event()
            self._has_run = True

        try:
            for watched_dir in self.config.watched_dirs:
                pipeline = TreePipeline(
                    watched_dir,
                    self.config.scripts_dir,
                    self._stop_event,
                    self.config.kill_delay_ms,
                )
                pipeline.start()
                self._pipelines.append(pipeline)
        except Exception:
            self.stop()
            raise

    def start(self) -> None:
        """
        Start watching (blocking).

        Blocks until stop() is called or a handled signal arrives.

        Raises:
            WatchdogAlreadyRunningError: If already running
            WatcherStartError: If a notifier cannot be created
            RootNotFoundError: If a watched root does not exist
        """
        self._start_pipelines()
        try:
            while not self._stop_event.is_set():
                self._stop_event.wait(timeout=0.5)
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()

    def start_async(self) -> None:
        """
        Start watching in background threads and return immediately.

        Raises:
            WatchdogAlreadyRunningError: If already running
        """
        self._start_pipelines()

    def stop(self) -> None:
        """
        Cancel all pipelines and wait for them to finish.

        Running scripts get SIGTERM, then SIGKILL after the kill delay.
        Safe to call more than once.
        """
        self._stop_event.set()
        self._shutdown()

    def _shutdown(self) -> None:
        """Internal shutdown procedure."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            pipelines, self._pipelines = self._pipelines, []

        for pipeline in pipelines:
            pipeline.join()
        logger.info("All pipelines stopped")

    def install_signal_handlers(self) -> None:
        """Turn SIGTERM and SIGINT into cancellation. Main thread only."""
        signal.signal(signal.SIGTERM, self._handle_signal)
        signal.signal(signal.SIGINT, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        """Check if the watchdog is running."""
        return self._running

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the stop event is set; returns whether it was."""
        return self._stop_event.wait(timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
