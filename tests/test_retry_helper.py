import time

import pytest

from dualtodo.utils.db import backoff_delay, is_transient_db_error, retry_with_backoff


def test_retry_with_backoff_eventual_success():
    attempts = {"n": 0}

    class Deadlock(Exception):
        pass

    def fn():
        attempts["n"] += 1
        if attempts["n"] < 3:
            # Simulate a DBAPI-wrapped exception with "orig" carrying message
            exc = Deadlock("deadlock detected")
            exc.orig = exc
            raise exc
        return "ok"

    t0 = time.time()
    out = retry_with_backoff(fn, attempts=5, base_delay=0.001)
    dt = time.time() - t0
    assert out == "ok"
    assert attempts["n"] == 3
    assert dt < 0.2


def test_retry_with_backoff_non_transient_raises():
    calls = []

    def fn():
        calls.append(1)
        raise RuntimeError("permanent failure")

    with pytest.raises(RuntimeError):
        retry_with_backoff(fn, attempts=5, base_delay=0.001)
    assert len(calls) == 1


def test_retry_gives_up_after_attempts():
    calls = []

    def fn():
        calls.append(1)
        raise RuntimeError("database is locked")

    with pytest.raises(RuntimeError):
        retry_with_backoff(fn, attempts=3, base_delay=0.001)
    assert len(calls) == 3


def test_custom_classifier():
    calls = []

    def fn():
        calls.append(1)
        if len(calls) < 2:
            raise KeyError("flaky")
        return len(calls)

    assert retry_with_backoff(fn, base_delay=0.001, classify=lambda e: isinstance(e, KeyError)) == 2


def test_transient_classification():
    assert is_transient_db_error(Exception("could not serialize access"))
    assert is_transient_db_error(Exception("canceling statement due to statement timeout"))
    assert not is_transient_db_error(Exception("syntax error at or near"))


def test_backoff_is_capped():
    assert backoff_delay(1, 0.01) < 0.03
    assert backoff_delay(20, 0.5) == 1.0


def test_gives_up_with_the_last_error():
    raised = []

    def fn():
        exc = RuntimeError(f"database is locked #{len(raised)}")
        raised.append(exc)
        raise exc

    with pytest.raises(RuntimeError) as info:
        retry_with_backoff(fn, attempts=2, base_delay=0.001)
    assert info.value is raised[-1]
    assert len(raised) == 2
