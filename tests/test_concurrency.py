from __future__ import annotations

import threading
import time

import pytest

from adaptive_rag.cancellation import CancellationToken, check
from adaptive_rag.concurrency import run_bounded
from adaptive_rag.errors import PipelineCancelled


def test_run_bounded_preserves_input_order():
    def slow_square(value):
        time.sleep(0.01 * (5 - value))
        return value * value

    assert run_bounded(slow_square, [1, 2, 3, 4], max_workers=4) == [1, 4, 9, 16]


def test_run_bounded_limits_concurrency():
    lock = threading.Lock()
    active = [0]
    peak = [0]

    def track(value):
        with lock:
            active[0] += 1
            peak[0] = max(peak[0], active[0])
        time.sleep(0.02)
        with lock:
            active[0] -= 1
        return value

    run_bounded(track, list(range(8)), max_workers=2)

    assert peak[0] <= 2


def test_run_bounded_waits_for_all_then_raises():
    finished = []

    def task(value):
        if value == 0:
            raise ConnectionError("backend down")
        time.sleep(0.02)
        finished.append(value)
        return value

    with pytest.raises(ConnectionError):
        run_bounded(task, [0, 1, 2], max_workers=3)

    assert sorted(finished) == [1, 2]


def test_run_bounded_edge_cases():
    assert run_bounded(lambda v: v, []) == []
    assert run_bounded(lambda v: v + 1, [1], max_workers=1) == [2]
    with pytest.raises(ValueError):
        run_bounded(lambda v: v, [1], max_workers=0)


def test_cancellation_token():
    token = CancellationToken()
    assert not token.cancelled
    assert check(token) is None
    assert check(None) is None

    token.cancel("user abort")

    assert token.cancelled
    error = check(token)
    assert isinstance(error, PipelineCancelled)
    assert error.reason == "user abort"
    with pytest.raises(PipelineCancelled):
        token.raise_if_cancelled()


def test_cancellation_deadline():
    token = CancellationToken(timeout=0)

    assert token.cancelled
    assert token.reason == "deadline exceeded"
    assert token.remaining() == 0.0
    assert CancellationToken().remaining() is None
