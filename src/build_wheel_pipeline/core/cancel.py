from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from .errors import JobTimeoutError, PipelineCancelled


class CancellationToken:
    """
    One-shot cancellation signal shared between a scheduler and a running job.
    """

    def __init__(self, key: str | None = None) -> None:
        self.key = key
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self._reason or "cancelled")


@dataclass(slots=True)
class Deadline:
    """Wall-clock ceiling for a job, measured on the monotonic clock."""

    timeout_s: float | None
    _t0: float = field(default_factory=time.monotonic, init=False)
    _paused_at: float | None = field(default=None, init=False)
    _paused_s: float = field(default=0.0, init=False)

    def elapsed_s(self) -> float:
        now = self._paused_at if self._paused_at is not None else time.monotonic()
        return now - self._t0 - self._paused_s

    def pause(self) -> None:
        """Stop the clock, e.g. while a finished job waits at the publish gate."""
        if self._paused_at is None:
            self._paused_at = time.monotonic()

    def resume(self) -> None:
        if self._paused_at is not None:
            self._paused_s += time.monotonic() - self._paused_at
            self._paused_at = None

    def remaining_s(self) -> float | None:
        if self.timeout_s is None:
            return None
        return self.timeout_s - self.elapsed_s()

    @property
    def expired(self) -> bool:
        r = self.remaining_s()
        return r is not None and r <= 0

    def raise_if_expired(self) -> None:
        if self.expired:
            raise JobTimeoutError(
                f"Job exceeded its wall-clock ceiling of {self.timeout_s:.0f}s"
            )
