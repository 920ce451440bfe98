"""Admission control bounding how many compositions run at once."""

from __future__ import annotations

import threading

from mapfold.config import MAX_IN_FLIGHT


class ConcurrencyGate:
    """Fixed-capacity counting semaphore with in-flight instrumentation.

    Each composition holds up to five decoded images (four children plus
    the composite), so the gate bounds peak memory and open file handles
    regardless of how many worker threads exist.

    Usage:
        gate = ConcurrencyGate(48)
        with gate:
            compose_quad(...)

    Args:
        capacity: Maximum number of holders at any instant
    """

    def __init__(self, capacity: int = MAX_IN_FLIGHT) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._slots = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._in_flight = 0
        self._peak = 0

    @property
    def in_flight(self) -> int:
        """Holders right now."""
        with self._lock:
            return self._in_flight

    @property
    def peak(self) -> int:
        """Highest number of simultaneous holders seen so far."""
        with self._lock:
            return self._peak

    def acquire(self) -> None:
        """Block until a slot is free, then take it."""
        self._slots.acquire()
        with self._lock:
            self._in_flight += 1
            if self._in_flight > self._peak:
                self._peak = self._in_flight

    def release(self) -> None:
        with self._lock:
            self._in_flight -= 1
        self._slots.release()

    def __enter__(self) -> ConcurrencyGate:
        self.acquire()
        return self

    def __exit__(self, *args) -> None:
        self.release()
