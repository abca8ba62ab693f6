from __future__ import annotations

import fcntl
import json
import os
import re
import signal
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

import psutil
import structlog

from build_wheel_pipeline.core import CancellationToken, atomic_write_text, safe_unlink

log = structlog.get_logger(__name__)

T = TypeVar("T")


class SingleFlightRegistry:
    """
    At most one live token per key: acquiring a key cancels the previous holder.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def acquire(self, key: str) -> CancellationToken:
        token = CancellationToken(key)
        with self._lock:
            previous = self._tokens.get(key)
            self._tokens[key] = token
        if previous is not None:
            previous.cancel(f"superseded by a newer run for {key}")
            log.info("singleflight.superseded", key=key)
        return token

    def release(self, key: str, token: CancellationToken) -> None:
        with self._lock:
            if self._tokens.get(key) is token:
                del self._tokens[key]

    def current(self, key: str) -> CancellationToken | None:
        with self._lock:
            return self._tokens.get(key)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._tokens)


class SingleFlightScheduler:
    """
    Runs jobs on a thread pool; a new submission for a key cancels the in-flight one.
    """

    def __init__(self, *, max_workers: int = 4) -> None:
        self.registry = SingleFlightRegistry()
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="single-flight"
        )

    def submit(self, key: str, fn: Callable[[CancellationToken], T]) -> Future[T]:
        token = self.registry.acquire(key)

        def _run() -> T:
            try:
                return fn(token)
            finally:
                self.registry.release(key, token)

        return self._pool.submit(_run)

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "SingleFlightScheduler":
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown(wait=True)


_unsafe_re = re.compile(r"[^a-zA-Z0-9._\-]+")

# psutil reports create_time as a float derived from boot time; allow jitter.
_START_TIME_TOLERANCE_S = 0.05


def _start_time(pid: int) -> float | None:
    try:
        return psutil.Process(pid).create_time()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None


def owner_record(key: str, pid: int | None = None) -> dict[str, object]:
    """Identity written to the pid file: pid plus its start time and the key."""
    pid = os.getpid() if pid is None else pid
    return {"pid": pid, "create_time": _start_time(pid), "key": key}


class ProcessKeyLock:
    """
    Single-flight across processes: {root}/_concurrency/{key}.pid names the owner.

    Claiming a key sends SIGTERM to the previous owner only while the recorded
    pid still belongs to the same process (same start time and key); the CLI
    maps SIGTERM to cancelling its token. Read, signal and write happen under an
    exclusive flock on {key}.lock.
    """

    def __init__(self, root: Path, key: str) -> None:
        self.key = key
        name = _unsafe_re.sub("_", key).strip("_") or "default"
        self.path = Path(root) / "_concurrency" / f"{name}.pid"
        self.lock_path = self.path.with_suffix(".lock")
        self.pid = os.getpid()

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock_path.open("a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _read_owner(self) -> dict[str, Any] | None:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (FileNotFoundError, ValueError):
            return None
        if not isinstance(raw, dict) or not isinstance(raw.get("pid"), int):
            return None
        return raw

    def _is_live_owner(self, owner: dict[str, Any]) -> bool:
        if owner.get("key") != self.key:
            return False
        recorded = owner.get("create_time")
        if not isinstance(recorded, (int, float)):
            return False
        actual = _start_time(int(owner["pid"]))
        return actual is not None and abs(actual - recorded) <= _START_TIME_TOLERANCE_S

    def claim(self) -> int | None:
        """Take the key; returns the pid that was told to stop, if any."""
        with self._exclusive():
            owner = self._read_owner()
            signalled: int | None = None
            if owner is not None and owner["pid"] != self.pid:
                pid = int(owner["pid"])
                if self._is_live_owner(owner):
                    try:
                        psutil.Process(pid).send_signal(signal.SIGTERM)
                    except psutil.NoSuchProcess:
                        log.info("singleflight.owner_exited", key=self.key, pid=pid)
                    else:
                        signalled = pid
                        log.info("singleflight.signalled", key=self.key, pid=pid)
                else:
                    log.info("singleflight.stale_owner", key=self.key, pid=pid)
            atomic_write_text(
                self.path, json.dumps(owner_record(self.key, self.pid)) + "\n"
            )
        return signalled

    def release(self) -> None:
        with self._exclusive():
            owner = self._read_owner()
            if owner is not None and owner["pid"] == self.pid:
                safe_unlink(self.path)

    def __enter__(self) -> "ProcessKeyLock":
        self.claim()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
