from __future__ import annotations

import time

import pytest

from build_wheel_pipeline.core import (
    CancellationToken,
    Deadline,
    JobTimeoutError,
    PipelineCancelled,
)


def test_token_cancels_once_and_keeps_first_reason() -> None:
    token = CancellationToken("build-wheel-push-refs/heads/master")
    assert not token.cancelled
    token.raise_if_cancelled()

    token.cancel("superseded")
    token.cancel("second")
    assert token.cancelled
    assert token.reason == "superseded"
    assert token.wait(0)

    with pytest.raises(PipelineCancelled, match="superseded"):
        token.raise_if_cancelled()


def test_deadline_without_limit_never_expires() -> None:
    d = Deadline(None)
    assert d.remaining_s() is None
    assert not d.expired
    d.raise_if_expired()


def test_deadline_expires() -> None:
    d = Deadline(0.01)
    time.sleep(0.05)
    assert d.expired
    with pytest.raises(JobTimeoutError):
        d.raise_if_expired()


def test_paused_deadline_does_not_count_waiting_time() -> None:
    d = Deadline(0.2)
    d.pause()
    time.sleep(0.3)
    assert not d.expired
    d.resume()
    assert d.remaining_s() is not None and d.remaining_s() > 0.1

    time.sleep(0.25)
    assert d.expired
