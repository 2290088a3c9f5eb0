"""Configuration for the syncwatch package."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Pattern, Union

import yaml

from .exceptions import ConfigurationError
from .worker import SCRIPT_NAMES


CONFIG_FILENAME = "configuration.yaml"
DEFAULT_AGGLOMERATION_MS = 10
DEFAULT_KILL_DELAY_MS = 100


def _parse_ms(value: Any, key: str, default: int) -> int:
    """Parse a non-negative millisecond count given as integer or string."""
    if value is None or value == "":
        return default
    if isinstance(value, (bool, float)):
        raise ConfigurationError(f"'{key}' must be an integer, got {value!r}")
    try:
        ms = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{key}' must be an integer, got {value!r}") from None
    if ms < 0:
        raise ConfigurationError(f"'{key}' must not be negative, got {ms}")
    return ms


@dataclass
class WatchedDirConfig:
    """
    Configuration of one watched tree.

    Attributes:
        root: Tree root, relative to the current dir or absolute
        agglomeration_ms: Debounce window in milliseconds
        excludes: Compiled exclusion patterns, searched in full paths
    """
    root: Path
    agglomeration_ms: int = DEFAULT_AGGLOMERATION_MS
    excludes: List[Pattern] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "WatchedDirConfig":
        if not isinstance(data, dict):
            raise ConfigurationError(f"watched dir entry must be a mapping, got {data!r}")

        root = data.get("root")
        if not root:
            raise ConfigurationError("every watched dir needs a 'root'")

        patterns = data.get("excludes")
        if patterns is None:
            patterns = []
        if not isinstance(patterns, list):
            raise ConfigurationError(f"'excludes' must be a list of patterns, got {patterns!r}")

        excludes = []
        for pattern in patterns:
            if not isinstance(pattern, str):
                raise ConfigurationError(f"exclude pattern must be a string, got {pattern!r}")
            try:
                excludes.append(re.compile(pattern))
            except re.error as e:
                raise ConfigurationError(f"invalid exclude pattern {pattern!r}: {e}") from e

        return cls(
            root=Path(str(root)),
            agglomeration_ms=_parse_ms(
                data.get("agglomeration ms"), "agglomeration ms", DEFAULT_AGGLOMERATION_MS
            ),
            excludes=excludes,
        )


@dataclass
class WatchdogConfig:
    """
    Process-wide configuration.

    Attributes:
        current_dir: Working directory of the process after startup
        watched_dirs: One entry per watched tree
        scripts_dir: Absolute directory holding bulk_sync, copy and delete
        kill_delay_ms: Grace period between SIGTERM and SIGKILL of a child
    """
    current_dir: Path
    watched_dirs: List[WatchedDirConfig]
    scripts_dir: Path
    kill_delay_ms: int = DEFAULT_KILL_DELAY_MS

    @classmethod
    def from_dict(cls, data: Any, scripts_dir: Path) -> "WatchdogConfig":
        """
        Build and validate a configuration from parsed YAML.

        Raises:
            ConfigurationError: If the data is invalid
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"{CONFIG_FILENAME} must contain a mapping")

        current_dir = data.get("current dir")
        if not current_dir:
            raise ConfigurationError("'current dir' must be set")

        watched_dirs = data.get("watched dirs")
        if not watched_dirs or not isinstance(watched_dirs, list):
            raise ConfigurationError("'watched dirs' must be a non-empty list")

        return cls(
            current_dir=Path(str(current_dir)),
            watched_dirs=[WatchedDirConfig.from_dict(item) for item in watched_dirs],
            scripts_dir=scripts_dir,
            kill_delay_ms=_parse_ms(data.get("kill delay ms"), "kill delay ms", DEFAULT_KILL_DELAY_MS),
        )

    @classmethod
    def load(cls, config_dir: Union[str, Path]) -> "WatchdogConfig":
        """
        Read <config_dir>/configuration.yaml.

        Args:
            config_dir: Configuration directory, which also holds the scripts

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        config_dir = Path(config_dir).resolve()
        config_file = config_dir / CONFIG_FILENAME
        try:
            with open(config_file, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigurationError(f"Cannot read {config_file}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

        return cls.from_dict(data, scripts_dir=config_dir)

    def missing_scripts(self) -> List[str]:
        """Names of sync scripts that are absent or not executable."""
        return [
            name for name in SCRIPT_NAMES
            if not os.access(self.scripts_dir / name, os.X_OK)
        ]
