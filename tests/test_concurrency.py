"""Tests for deadlines and fan-out."""

import threading

import pytest

from keepsake.concurrency import call_with_timeout, fan_out
from keepsake.errors import Timeout


class TestCallWithTimeout:

    def test_returns_result(self):
        assert call_with_timeout(lambda a, b: a + b, 2, 3, timeout=1.0) == 5

    def test_no_deadline_runs_inline(self):
        caller = threading.current_thread()
        ran_on = call_with_timeout(threading.current_thread, timeout=None)
        assert ran_on is caller

    def test_deadline_exceeded(self):
        release = threading.Event()
        try:
            with pytest.raises(Timeout, match="slow thing"):
                call_with_timeout(release.wait, 5, timeout=0.05, what="slow thing")
        finally:
            release.set()

    def test_exceptions_propagate_unchanged(self):
        def boom():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            call_with_timeout(boom, timeout=1.0)

    def test_own_timeout_error_is_not_reported_as_deadline(self):
        def socket_timeout():
            raise TimeoutError("socket timed out")

        with pytest.raises(TimeoutError) as exc_info:
            call_with_timeout(socket_timeout, timeout=1.0)
        assert not isinstance(exc_info.value, Timeout)


class TestFanOut:

    def test_empty(self):
        assert fan_out([], timeout=1.0) == []

    def test_all_succeed(self):
        results = []
        lock = threading.Lock()

        def make(i):
            def call():
                with lock:
                    results.append(i)
            return call

        assert fan_out([make(i) for i in range(10)], timeout=2.0) == []
        assert sorted(results) == list(range(10))

    def test_failure_does_not_cancel_siblings(self):
        ran = []
        lock = threading.Lock()

        def ok(i):
            def call():
                with lock:
                    ran.append(i)
            return call

        def bad():
            raise RuntimeError("branch failed")

        errors = fan_out([ok(0), bad, ok(1), ok(2)], timeout=2.0, max_workers=2)
        assert len(errors) == 1
        assert isinstance(errors[0], RuntimeError)
        assert sorted(ran) == [0, 1, 2]

    def test_collects_every_error(self):
        def bad(msg):
            def call():
                raise ValueError(msg)
            return call

        errors = fan_out([bad("a"), bad("b")], timeout=2.0)
        assert sorted(str(e) for e in errors) == ["a", "b"]

    def test_unfinished_calls_become_one_timeout(self):
        release = threading.Event()
        try:
            errors = fan_out(
                [lambda: release.wait(5), lambda: release.wait(5), lambda: None],
                timeout=0.05,
            )
        finally:
            release.set()
        assert len(errors) == 1
        assert isinstance(errors[0], Timeout)
        assert "2 of 3" in str(errors[0])

    def test_runs_concurrently(self):
        """Two calls that each wait for the other only finish if run in parallel."""
        a_started, b_started = threading.Event(), threading.Event()

        def a():
            a_started.set()
            assert b_started.wait(2)

        def b():
            b_started.set()
            assert a_started.wait(2)

        assert fan_out([a, b], timeout=3.0, max_workers=2) == []
