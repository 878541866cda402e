"""Cross-process tests for the instance guard, using real ``python -m keel`` holders."""

from __future__ import annotations

import os
import signal
import subprocess
import sys
import time
from collections.abc import Callable

import psutil
import pytest

from keel.core.guard import InstanceGuard, instance_exists

pytestmark = pytest.mark.slow

posix_only = pytest.mark.skipif(os.name != "posix", reason="POSIX shared memory semantics")


def _spawn_claim(flag: str, namespace: str, env: dict[str, str], hold: float = 60.0) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "keel", "guard", "claim", flag, "--namespace", namespace, "--hold", str(hold)],
        env=env,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


def _wait_until(predicate: Callable[[], bool], timeout: float = 30.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


@pytest.fixture
def procs(namespace):
    spawned: list[subprocess.Popen] = []
    yield spawned
    for proc in spawned:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
    # a killed holder leaves its POSIX segment behind; claiming reclaims it
    sweeper = InstanceGuard("app", namespace=namespace)
    sweeper.claim()
    sweeper.release()


class TestAcrossProcesses:
    def test_exactly_one_process_wins(self, namespace, keel_env, procs):
        procs.extend(_spawn_claim("app", namespace, keel_env) for _ in range(4))

        assert _wait_until(lambda: sum(p.poll() is not None for p in procs) == 3)
        losers = [p for p in procs if p.poll() is not None]
        winners = [p for p in procs if p.poll() is None]

        assert [p.returncode for p in losers] == [1, 1, 1]
        assert len(winners) == 1
        assert instance_exists("app", namespace=namespace) is True

    def test_holder_blocks_local_claim(self, namespace, keel_env, procs):
        procs.append(_spawn_claim("app", namespace, keel_env))
        assert _wait_until(lambda: instance_exists("app", namespace=namespace))

        guard = InstanceGuard("app", namespace=namespace)
        assert guard.claim() is False

    def test_killed_holder_frees_the_token(self, namespace, keel_env, procs):
        holder = _spawn_claim("app", namespace, keel_env)
        procs.append(holder)
        assert _wait_until(lambda: instance_exists("app", namespace=namespace))

        holder.kill()
        holder.wait()

        assert instance_exists("app", namespace=namespace) is False
        guard = InstanceGuard("app", namespace=namespace)
        try:
            assert guard.claim() is True
        finally:
            guard.release()

    @posix_only
    def test_killed_unreaped_holder_frees_the_token(self, namespace, keel_env, procs):
        holder = _spawn_claim("app", namespace, keel_env)
        procs.append(holder)
        assert _wait_until(lambda: instance_exists("app", namespace=namespace))

        # leave the holder a zombie: no poll() or wait() until teardown
        os.kill(holder.pid, signal.SIGKILL)
        assert _wait_until(lambda: psutil.Process(holder.pid).status() == psutil.STATUS_ZOMBIE)

        guard = InstanceGuard("app", namespace=namespace)
        try:
            assert guard.claim() is True
        finally:
            guard.release()

    def test_clean_exit_frees_the_token(self, namespace, keel_env, procs):
        holder = _spawn_claim("app", namespace, keel_env, hold=1.0)
        procs.append(holder)
        assert _wait_until(lambda: instance_exists("app", namespace=namespace))

        assert holder.wait(timeout=30) == 0
        assert instance_exists("app", namespace=namespace) is False

    def test_local_holder_blocks_subprocess(self, namespace, keel_env):
        guard = InstanceGuard("app", namespace=namespace)
        assert guard.claim() is True
        try:
            result = subprocess.run(
                [sys.executable, "-m", "keel", "guard", "exists", "app", "--namespace", namespace],
                env=keel_env,
                capture_output=True,
                timeout=60,
            )
            assert result.returncode == 0
        finally:
            guard.release()
