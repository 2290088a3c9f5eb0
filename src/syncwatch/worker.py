"""Third pipeline stage: running one sync script per work package."""

import logging
import signal
import subprocess
import threading
from pathlib import Path
from typing import List, Sequence, Tuple, Union

from .exceptions import ScriptInterruptedError
from .models import EventType, NodeType, WorkPackage
from .queue import POLL_INTERVAL, HandoffQueue

logger = logging.getLogger(__name__)


BULK_SYNC = "bulk_sync"
COPY = "copy"
DELETE = "delete"
SCRIPT_NAMES = (BULK_SYNC, COPY, DELETE)

# Sourced by sync scripts to forward SIGTERM to their background commands
SIGNAL_PROPAGATION_SCRIPT = Path(__file__).with_name("signal_propagation.sh")


def longest_prefix(paths: Sequence[Union[str, Path]]) -> Path:
    """
    Longest common path-component prefix of the given paths.

    Args:
        paths: Non-empty sequence of paths

    Returns:
        The deepest common ancestor, or Path(".") if there is none

    Raises:
        ValueError: If paths is empty
    """
    if not paths:
        raise ValueError("longest_prefix: no paths given")

    longest = list(Path(paths[0]).parts)
    for path in paths[1:]:
        components = Path(path).parts
        longest = longest[:len(components)]
        for i, component in enumerate(components[:len(longest)]):
            if component != longest[i]:
                longest = longest[:i]
                break
        if not longest:
            break

    return Path(*longest)


def select_command(package: WorkPackage) -> Tuple[str, Path]:
    """
    Decide which script handles a package.

    Returns:
        (script name, path argument)
    """
    if len(package) > 1:
        logger.info(f"Calling {BULK_SYNC} due to {len(package)} changes")
        return BULK_SYNC, longest_prefix(package.paths)

    item = package[0]
    if item.event_type == EventType.DELETED:
        logger.info(f"Calling {DELETE}")
        return DELETE, item.path
    if item.node_type == NodeType.FILE:
        logger.info(f"Calling {COPY}")
        return COPY, item.path
    logger.info(f"Calling {BULK_SYNC} because non-file was changed")
    return BULK_SYNC, item.path


def wait_or_stop(
    process: subprocess.Popen,
    stop_event: threading.Event,
    interrupt: int = signal.SIGTERM,
    kill_delay: float = 0.1,
    poll_interval: float = POLL_INTERVAL,
) -> int:
    """
    Wait for a started child, interrupting it if the stop event is set.

    On cancellation the child receives `interrupt`; if kill_delay is
    positive and the child is still alive after that many seconds, it is
    killed. The child is always reaped before returning.

    Args:
        process: Started child process
        stop_event: Supervision stop event
        interrupt: Signal sent first on cancellation
        kill_delay: Seconds between interrupt and kill, 0 to never kill
        poll_interval: Seconds between stop event checks

    Returns:
        0, the exit status of a successful child

    Raises:
        ScriptInterruptedError: If the child was interrupted
        subprocess.CalledProcessError: If the child exited non-zero
    """
    while True:
        try:
            returncode = process.wait(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            if not stop_event.is_set():
                continue

        try:
            process.send_signal(interrupt)
        except ProcessLookupError:
            # Exited between the last wait and the signal
            returncode = process.wait()
            break

        if kill_delay > 0:
            try:
                process.wait(timeout=kill_delay)
            except subprocess.TimeoutExpired:
                logger.warning(f"Child {process.pid} ignored signal {interrupt}, killing it")
                process.kill()
        process.wait()
        raise ScriptInterruptedError(
            f"{process.args} interrupted by shutdown (exit status {process.returncode})"
        )

    if returncode != 0:
        raise subprocess.CalledProcessError(returncode, process.args)
    return returncode


class Worker:
    """
    Consumes work packages and runs the matching script for each.

    Strictly serial: at most one child process at a time.
    """

    def __init__(
        self,
        packages: HandoffQueue,
        scripts_dir: Path,
        stop_event: threading.Event,
        kill_delay_ms: int = 100,
    ):
        """
        Initialize the worker.

        Args:
            packages: Queue fed by the WorkMarshaller
            scripts_dir: Directory holding bulk_sync, copy and delete
            stop_event: Supervision stop event
            kill_delay_ms: Grace period between SIGTERM and SIGKILL
        """
        self.packages = packages
        self.scripts_dir = scripts_dir
        self.stop_event = stop_event
        self.kill_delay_ms = kill_delay_ms

    def build_command(self, package: WorkPackage) -> List[str]:
        script, argument = select_command(package)
        return [str(self.scripts_dir / script), str(argument)]

    def dispatch(self, package: WorkPackage) -> None:
        """Run the script for one package to completion or interruption."""
        command = self.build_command(package)
        logger.info(f"Running {' '.join(command)}")

        try:
            process = subprocess.Popen(command)
        except OSError as e:
            logger.error(f"Cannot start {command[0]}: {e}")
            return

        try:
            wait_or_stop(
                process,
                self.stop_event,
                interrupt=signal.SIGTERM,
                kill_delay=self.kill_delay_ms / 1000.0,
            )
        except (ScriptInterruptedError, subprocess.CalledProcessError) as e:
            logger.warning(f"External command error: {e}")

    def run(self) -> None:
        """Worker loop; returns once the packages queue is closed."""
        logger.info("Worker: Starting")
        try:
            for package in self.packages:
                if self.stop_event.is_set():
                    logger.info(f"Discarding package of {len(package)} item(s) received during shutdown")
                    continue
                logger.debug("Worker: New work")
                self.dispatch(package)
                logger.debug("Worker: Finished, waiting for new work")
        finally:
            logger.info("Worker: Shutting down")
