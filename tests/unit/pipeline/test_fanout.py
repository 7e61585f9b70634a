"""Unit tests for the join-all-settled primitive."""

import threading
import time

from pipeline import Settled, TaskTimeoutError, gather_settled


class TestGatherSettled:

    def test_empty(self):
        assert gather_settled({}) == {}

    def test_failure_isolated(self):
        def boom():
            raise RuntimeError("provider down")

        results = gather_settled({"a": lambda: 1, "b": boom, "c": lambda: 3})

        assert results["a"].ok and results["a"].value == 1
        assert not results["b"].ok
        assert isinstance(results["b"].error, RuntimeError)
        assert results["c"].value == 3

    def test_result_order_follows_tasks(self):
        def slow():
            time.sleep(0.05)
            return "slow"

        results = gather_settled({"slow": slow, "fast": lambda: "fast"})
        assert list(results) == ["slow", "fast"]

    def test_waits_for_every_task(self):
        finished = []

        def task(name, delay):
            def run():
                time.sleep(delay)
                finished.append(name)
                return name
            return run

        gather_settled({"a": task("a", 0.05), "b": task("b", 0.0), "c": task("c", 0.02)})
        assert sorted(finished) == ["a", "b", "c"]

    def test_runs_concurrently(self):
        barrier = threading.Barrier(3, timeout=2)

        def meet():
            barrier.wait()
            return True

        results = gather_settled({k: meet for k in "abc"})
        assert all(r.ok for r in results.values())

    def test_on_settled_in_caller_thread(self):
        caller = threading.get_ident()
        seen = []

        def record(outcome: Settled):
            seen.append((outcome.key, threading.get_ident()))

        gather_settled({"a": lambda: 1, "b": lambda: 2}, on_settled=record)

        assert sorted(k for k, _ in seen) == ["a", "b"]
        assert all(thread == caller for _, thread in seen)

    def test_timeout_settles_stragglers(self):
        release = threading.Event()

        def stuck():
            release.wait(2)
            return "late"

        try:
            results = gather_settled({"quick": lambda: "ok", "stuck": stuck}, timeout=0.1)
        finally:
            release.set()

        assert results["quick"].value == "ok"
        assert isinstance(results["stuck"].error, TaskTimeoutError)
