"""Latest-reading cell shared by the monitor thread and the HTTP handlers."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from .models import MetricsRecord


class ReadWriteLock:
    """
    Many readers or one writer.

    Writers are preferred: once a writer is waiting, new readers queue
    behind it so a steady stream of scrapes cannot starve the monitor.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MetricsStore:
    """Holds at most one published record; each publish replaces it whole."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._latest: Optional[Tuple[MetricsRecord, float]] = None

    def publish(self, record: MetricsRecord, captured_at: Optional[float] = None) -> None:
        entry = (record, time.time() if captured_at is None else captured_at)
        with self._lock.write():
            self._latest = entry

    def latest(self) -> Optional[Tuple[MetricsRecord, float]]:
        """(record, captured_at) or None before the first successful poll."""
        with self._lock.read():
            return self._latest
