"""Tests for the admission gate."""

from __future__ import annotations

import threading
import time

import pytest

from mapfold.pyramid.gate import ConcurrencyGate


class TestConcurrencyGate:
    """Tests for ConcurrencyGate capacity and instrumentation."""

    def test_default_capacity(self):
        assert ConcurrencyGate().capacity == 48

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            ConcurrencyGate(0)

    def test_counts_holders(self):
        gate = ConcurrencyGate(2)
        with gate:
            assert gate.in_flight == 1
            with gate:
                assert gate.in_flight == 2
        assert gate.in_flight == 0
        assert gate.peak == 2

    def test_release_on_failure(self):
        """A failing holder must not leak its slot."""
        gate = ConcurrencyGate(1)
        with pytest.raises(RuntimeError):
            with gate:
                raise RuntimeError("boom")
        assert gate.in_flight == 0

        # The single slot is free again
        acquired = threading.Event()

        def take():
            with gate:
                acquired.set()

        t = threading.Thread(target=take)
        t.start()
        t.join(timeout=5)
        assert acquired.is_set()

    def test_blocks_at_capacity(self):
        gate = ConcurrencyGate(1)
        gate.acquire()
        entered = threading.Event()

        def take():
            with gate:
                entered.set()

        t = threading.Thread(target=take)
        t.start()
        assert not entered.wait(0.2)
        gate.release()
        t.join(timeout=5)
        assert entered.is_set()

    def test_peak_never_exceeds_capacity(self):
        """Many more threads than slots never hold more than capacity at once."""
        capacity = 48
        gate = ConcurrencyGate(capacity)
        errors = []

        def worker():
            try:
                with gate:
                    assert gate.in_flight <= capacity
                    time.sleep(0.005)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(200)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 0, f"Thread errors: {errors}"
        assert gate.peak <= capacity
        assert gate.in_flight == 0
