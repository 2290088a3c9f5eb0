"""Exclusion filtering and node classification of changed paths."""

import logging
import os
import stat
from pathlib import Path
from typing import Pattern, Sequence, Union

from .models import NodeType

logger = logging.getLogger(__name__)


def is_excluded(path: Union[str, Path], patterns: Sequence[Pattern]) -> bool:
    """
    Check whether any exclusion pattern matches a path.

    Patterns are searched, not anchored, against the full path string.

    Args:
        path: Path to check
        patterns: Compiled exclusion patterns of the watched tree

    Returns:
        True if the path is excluded
    """
    path_str = str(path)
    return any(pattern.search(path_str) for pattern in patterns)


def classify(path: Union[str, Path]) -> NodeType:
    """
    Classify a modified path by calling stat on it.

    Args:
        path: Path that was reported as modified

    Returns:
        DIRECTORY or FILE, or UNKNOWN if the path cannot be stat'ed
    """
    try:
        info = os.stat(path)
    except OSError as e:
        logger.warning(f"Cannot stat {path}: {e}")
        return NodeType.UNKNOWN

    if stat.S_ISDIR(info.st_mode):
        return NodeType.DIRECTORY
    return NodeType.FILE
