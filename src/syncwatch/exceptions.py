"""Custom exceptions for the syncwatch package."""


class WatchdogError(Exception):
    """Base exception for all syncwatch errors."""
    pass


class ConfigurationError(WatchdogError):
    """configuration.yaml is missing, unreadable or invalid."""
    pass


class WatcherStartError(WatchdogError):
    """The OS notification handle could not be created."""
    pass


class RootNotFoundError(WatchdogError):
    """A watched root does not exist or is not a directory."""
    pass


class QueueError(WatchdogError):
    """Error related to a handoff queue."""
    pass


class QueueClosedError(QueueError):
    """The queue was closed and holds no more items."""
    pass


class QueueTimeout(QueueError):
    """No item arrived before the timeout expired."""
    pass


class PipelineCancelled(WatchdogError):
    """The stop event was set while waiting."""
    pass


class ScriptInterruptedError(WatchdogError):
    """A sync script was interrupted because the watchdog is shutting down."""
    pass


class WatchdogAlreadyRunningError(WatchdogError):
    """Watchdog process is already running."""
    pass
