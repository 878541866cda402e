"""
Shared pytest fixtures and configuration for keel tests.

This module provides:
- Settings cache isolation
- Unique guard namespaces so concurrent test runs never share a segment
- PIDs of an exited-and-reaped child and of an exited-but-unreaped one
- An environment for spawning ``python -m keel`` subprocesses
"""

import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Generator
from uuid import uuid4

import psutil
import pytest
import structlog

SRC_DIR = Path(__file__).parent.parent / "src"

# Ensure keel package is importable
sys.path.insert(0, str(SRC_DIR))

from keel.core.settings import clear_settings_cache  # noqa: E402


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path) or "process" in test_path.name:
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Clear cached settings before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo configure_logging() so a handler never outlives its captured stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def namespace() -> str:
    """A guard namespace no other test (or test run) uses."""
    return f"KeelTest{uuid4().hex[:12]}"


# =============================================================================
# Process Fixtures
# =============================================================================


@pytest.fixture
def dead_pid() -> int:
    """PID of a process that has already exited and been reaped."""
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


@pytest.fixture
def zombie_pid() -> Generator[int, None, None]:
    """PID of a killed child that has not been reaped yet."""
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(60)"])
    proc.kill()
    deadline = time.monotonic() + 10.0
    while psutil.Process(proc.pid).status() != psutil.STATUS_ZOMBIE:
        if time.monotonic() > deadline:
            pytest.fail(f"child {proc.pid} never became a zombie")
        time.sleep(0.01)
    yield proc.pid
    proc.wait()


@pytest.fixture
def keel_env() -> dict[str, str]:
    """Environment for ``python -m keel`` subprocesses."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in [str(SRC_DIR), env.get("PYTHONPATH", "")] if p
    )
    env["KEEL_JSON_LOGS"] = "true"
    return env
