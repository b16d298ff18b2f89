"""
Tests for the generic retry loop and status health scoring.
"""
import pytest

from shopsync.services.sync_status_service import health_score_for
from shopsync.utils.retry import RetryStats, calculate_backoff, call_with_retry


class Transient(Exception):
    pass


class Fatal(Exception):
    pass


def _flaky(failures):
    state = {"calls": 0}

    def func():
        state["calls"] += 1
        if state["calls"] <= len(failures):
            raise failures[state["calls"] - 1]
        return "ok"

    return func, state


def test_succeeds_after_transient_failures():
    func, state = _flaky([Transient(), Transient()])
    sleeps = []
    stats = RetryStats()

    result = call_with_retry(func, max_attempts=3, is_retryable=lambda e: isinstance(e, Transient),
                             delay_for=lambda attempt, e: attempt * 1.5, sleep=sleeps.append, stats=stats)

    assert result == "ok"
    assert state["calls"] == 3
    assert sleeps == [1.5, 3.0]
    assert stats.success is True
    assert stats.total_delay_seconds == 4.5


def test_non_retryable_error_raises_immediately():
    func, state = _flaky([Fatal()])
    sleeps = []

    with pytest.raises(Fatal):
        call_with_retry(func, max_attempts=5, is_retryable=lambda e: isinstance(e, Transient),
                        delay_for=lambda attempt, e: 1.0, sleep=sleeps.append)

    assert state["calls"] == 1
    assert sleeps == []


def test_exhaustion_raises_last_error():
    errors = [Transient("first"), Transient("second")]
    func, state = _flaky(errors)

    with pytest.raises(Transient, match="second"):
        call_with_retry(func, max_attempts=2, is_retryable=lambda e: True,
                        delay_for=lambda attempt, e: 0.0, sleep=lambda s: None)

    assert state["calls"] == 2


def test_backoff_grows_and_caps():
    assert calculate_backoff(1, base_delay=2, jitter=False) == 2
    assert calculate_backoff(3, base_delay=2, jitter=False) == 8
    assert calculate_backoff(10, base_delay=2, max_delay=60, jitter=False) == 60
    assert 2 <= calculate_backoff(1, base_delay=2) <= 2.5


@pytest.mark.parametrize("errors, score", [(0, 100), (1, 80), (2, 60), (3, 30), (4, 30), (5, 0), (9, 0)])
def test_health_score(errors, score):
    assert health_score_for(errors) == score
