"""Data models for the syncwatch package."""

from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from pathlib import Path
from typing import Iterator, List
import time


class NodeType(Enum):
    """Best-effort classification of a changed path."""
    UNKNOWN = "unknown"
    DIRECTORY = "directory"
    FILE = "file"


class EventType(Enum):
    """Collapsed kind of a change."""
    MODIFIED = "modified"
    DELETED = "deleted"


class Op(Flag):
    """Operation mask of a raw notification."""
    CREATE = auto()
    WRITE = auto()
    REMOVE = auto()
    RENAME = auto()
    CHMOD = auto()


MODIFYING_OPS = Op.CREATE | Op.WRITE | Op.CHMOD


@dataclass
class RawFSEvent:
    """
    Raw notification as delivered by the notifier.

    Attributes:
        path: Path reported by the notifier
        op: Operation mask
        timestamp: Unix timestamp when the event was observed
    """
    path: Path
    op: Op
    timestamp: float = field(default_factory=time.time)

    @property
    def event_type(self) -> EventType:
        """Logical event type; any modifying bit wins over rename/remove."""
        if self.op & MODIFYING_OPS:
            return EventType.MODIFIED
        return EventType.DELETED

    @property
    def is_create(self) -> bool:
        return bool(self.op & Op.CREATE)


@dataclass(frozen=True)
class WorkItem:
    """
    A single classified change.

    Attributes:
        path: Path reported by the notifier
        node_type: FILE, DIRECTORY or UNKNOWN at the time of observation
        event_type: MODIFIED or DELETED

    node_type carries no meaning for DELETED items.
    """
    path: Path
    node_type: NodeType = NodeType.UNKNOWN
    event_type: EventType = EventType.MODIFIED

    def __str__(self) -> str:
        return f"{self.event_type.value} {self.node_type.value} {self.path}"


@dataclass
class WorkPackage:
    """
    Ordered, non-empty batch of work items dispatched as one script call.

    Attributes:
        items: Work items in first-observed order
        created_at: Unix timestamp when the package was flushed
    """
    items: List[WorkItem]
    created_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.items:
            raise ValueError("a work package must contain at least one item")

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[WorkItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> WorkItem:
        return self.items[index]

    @property
    def paths(self) -> List[Path]:
        return [item.path for item in self.items]
