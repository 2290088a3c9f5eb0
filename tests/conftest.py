"""Shared fixtures: sync scripts that record their invocations."""

import stat
import time
from pathlib import Path

import pytest


SCRIPT_TEMPLATE = """#!/bin/sh
echo "{name} $1" >> "{log}"
"""


def write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def invocation_log(tmp_path) -> Path:
    return tmp_path / "invocations.log"


@pytest.fixture
def scripts_dir(tmp_path, invocation_log) -> Path:
    """Directory with bulk_sync, copy and delete appending to invocation_log."""
    directory = tmp_path / "config"
    directory.mkdir()
    for name in ("bulk_sync", "copy", "delete"):
        write_script(directory / name, SCRIPT_TEMPLATE.format(name=name, log=invocation_log))
    return directory


def read_invocations(log: Path) -> list:
    if not log.exists():
        return []
    return log.read_text().splitlines()


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll predicate until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
