from __future__ import annotations

import json
import os
import signal
import subprocess
import sys
import threading
import time
from pathlib import Path

import pytest

from build_wheel_pipeline.concurrency import (
    ProcessKeyLock,
    SingleFlightRegistry,
    SingleFlightScheduler,
    owner_record,
)
from build_wheel_pipeline.core import CancellationToken, PipelineCancelled


def test_registry_acquire_cancels_previous_holder() -> None:
    reg = SingleFlightRegistry()
    first = reg.acquire("build-wheel-push-refs/heads/master")
    second = reg.acquire("build-wheel-push-refs/heads/master")
    other = reg.acquire("build-wheel-push-refs/heads/branch-2.9")

    assert first.cancelled and "superseded" in (first.reason or "")
    assert not second.cancelled
    assert not other.cancelled
    assert reg.current("build-wheel-push-refs/heads/master") is second

    reg.release("build-wheel-push-refs/heads/master", first)
    assert reg.current("build-wheel-push-refs/heads/master") is second
    reg.release("build-wheel-push-refs/heads/master", second)
    assert reg.keys() == ["build-wheel-push-refs/heads/branch-2.9"]


def test_second_submission_cancels_in_flight_run() -> None:
    started = threading.Event()

    def _slow(token: CancellationToken) -> str:
        started.set()
        for _ in range(200):
            token.raise_if_cancelled()
            time.sleep(0.01)
        return "finished"

    def _fast(token: CancellationToken) -> str:
        return "fresh"

    with SingleFlightScheduler(max_workers=2) as sched:
        first = sched.submit("key", _slow)
        assert started.wait(2)
        second = sched.submit("key", _fast)

        assert second.result(timeout=5) == "fresh"
        exc = first.exception(timeout=5)
        assert isinstance(exc, PipelineCancelled)



def _sleeper() -> subprocess.Popen:
    return subprocess.Popen([sys.executable, "-c", "import time; time.sleep(30)"])


def _stop(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        proc.kill()
        proc.wait()


def test_process_lock_claims_and_releases(tmp_path: Path) -> None:
    lock = ProcessKeyLock(tmp_path, "build-wheel-push-refs/heads/master")
    assert lock.path.parent == tmp_path / "_concurrency"
    assert "/" not in lock.path.name

    with lock:
        owner = json.loads(lock.path.read_text())
        assert owner["pid"] == os.getpid()
        assert owner["key"] == "build-wheel-push-refs/heads/master"
        assert owner["create_time"] is not None
        assert lock.claim() is None
    assert not lock.path.exists()


def test_process_lock_signals_live_previous_owner(tmp_path: Path) -> None:
    proc = _sleeper()
    try:
        lock = ProcessKeyLock(tmp_path, "k")
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text(json.dumps(owner_record("k", proc.pid)))

        assert lock.claim() == proc.pid
        assert proc.wait(timeout=5) == -signal.SIGTERM
        assert json.loads(lock.path.read_text())["pid"] == os.getpid()
    finally:
        _stop(proc)


def test_process_lock_leaves_reused_pid_alone(tmp_path: Path) -> None:
    bystander = _sleeper()
    try:
        # A crashed owner's record whose pid now belongs to another process.
        record = owner_record("k", bystander.pid)
        record["create_time"] = float(record["create_time"]) - 3600
        lock = ProcessKeyLock(tmp_path, "k")
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text(json.dumps(record))

        assert lock.claim() is None
        time.sleep(0.2)
        assert bystander.poll() is None
        assert json.loads(lock.path.read_text())["pid"] == os.getpid()
    finally:
        _stop(bystander)


@pytest.mark.parametrize("content", ["{pid}\n", '{{"pid": {pid}, "key": "other"}}'])
def test_process_lock_ignores_unverifiable_owner(tmp_path: Path, content: str) -> None:
    bystander = _sleeper()
    try:
        lock = ProcessKeyLock(tmp_path, "k")
        lock.path.parent.mkdir(parents=True)
        lock.path.write_text(content.format(pid=bystander.pid))

        assert lock.claim() is None
        time.sleep(0.2)
        assert bystander.poll() is None
    finally:
        _stop(bystander)


def test_process_lock_ignores_exited_owner(tmp_path: Path) -> None:
    proc = subprocess.Popen([sys.executable, "-c", "import time; time.sleep(0.5)"])
    record = owner_record("k", proc.pid)
    proc.wait()

    lock = ProcessKeyLock(tmp_path, "k")
    lock.path.parent.mkdir(parents=True)
    lock.path.write_text(json.dumps(record))
    assert lock.claim() is None


def test_concurrent_claims_leave_one_valid_owner(tmp_path: Path) -> None:
    locks = [ProcessKeyLock(tmp_path, "k") for _ in range(8)]
    barrier = threading.Barrier(len(locks))

    def _claim(lock: ProcessKeyLock) -> None:
        barrier.wait()
        lock.claim()

    threads = [threading.Thread(target=_claim, args=(lk,)) for lk in locks]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    owner = json.loads(locks[0].path.read_text())
    assert (owner["pid"], owner["key"]) == (os.getpid(), "k")
    assert locks[0].lock_path.exists()
