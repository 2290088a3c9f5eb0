"""
Syncwatch Package

Watches directory trees and mirrors changes to remote destinations by
running user-supplied sync scripts.

Features:
- Recursive watching with per-directory watches, extended on new directories
- Regex exclusion of paths
- Deduplication and time agglomeration of change events
- One script invocation per work package: bulk_sync, copy or delete
- Graceful shutdown: SIGTERM, then SIGKILL after a grace period
"""

from .models import (
    NodeType,
    EventType,
    Op,
    RawFSEvent,
    WorkItem,
    WorkPackage,
)

from .config import WatchdogConfig, WatchedDirConfig

from .exceptions import (
    WatchdogError,
    ConfigurationError,
    WatcherStartError,
    RootNotFoundError,
    QueueError,
    QueueClosedError,
    QueueTimeout,
    PipelineCancelled,
    ScriptInterruptedError,
    WatchdogAlreadyRunningError,
)

from .paths import is_excluded, classify
from .queue import HandoffQueue
from .fs_watcher import Notifier, FSEventHandler
from .event_watcher import EventWatcher
from .marshaller import WorkMarshaller, append_work_item
from .worker import (
    SIGNAL_PROPAGATION_SCRIPT,
    Worker,
    longest_prefix,
    select_command,
    wait_or_stop,
)
from .pipeline import TreePipeline
from .process import WatchdogProcess


__all__ = [
    # Models
    "NodeType",
    "EventType",
    "Op",
    "RawFSEvent",
    "WorkItem",
    "WorkPackage",
    # Config
    "WatchdogConfig",
    "WatchedDirConfig",
    # Exceptions
    "WatchdogError",
    "ConfigurationError",
    "WatcherStartError",
    "RootNotFoundError",
    "QueueError",
    "QueueClosedError",
    "QueueTimeout",
    "PipelineCancelled",
    "ScriptInterruptedError",
    "WatchdogAlreadyRunningError",
    # Components
    "is_excluded",
    "classify",
    "HandoffQueue",
    "Notifier",
    "FSEventHandler",
    "EventWatcher",
    "WorkMarshaller",
    "append_work_item",
    "Worker",
    "longest_prefix",
    "select_command",
    "wait_or_stop",
    "SIGNAL_PROPAGATION_SCRIPT",
    "TreePipeline",
    # Main Process
    "WatchdogProcess",
]

__version__ = "0.1.0"
