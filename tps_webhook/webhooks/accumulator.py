"""Concurrency-safe request counter producing transactions-per-second readings."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Callable

from tps_webhook.lib.rwlock import ReadWriteLock
from tps_webhook.webhooks.schemas import RateSnapshot


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class RateAccumulator:
    """Track request arrivals for one webhook and derive a TPS estimate.

    The window opens on the first event after construction or ``reset()`` and
    closes on the most recent event. Snapshots take the read side of the lock,
    recording and resetting take the write side, so a reader always sees the
    count and both window bounds from the same committed write.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = ReadWriteLock()
        self._count = 0
        self._window_start: datetime | None = None
        self._last_event: datetime | None = None
        self._active = False

    def record_event(self) -> datetime:
        """Count one arrival and return its timestamp."""

        with self._lock.write():
            now = self._clock()
            if not self._active:
                self._window_start = now
                self._active = True
            self._count += 1
            self._last_event = now
            return now

    def snapshot(self) -> RateSnapshot:
        """Return totals and the current rate; zero rate for a zero-length window."""

        with self._lock.read():
            count = self._count
            start = self._window_start
            end = self._last_event

        if start is None or end is None:
            return RateSnapshot()
        duration = (end - start).total_seconds()
        tps = count / duration if duration > 0 else 0.0
        return RateSnapshot(
            total_requests=count,
            duration_seconds=duration,
            tps=tps,
            start_time=start,
            end_time=end,
        )

    def reset(self) -> None:
        with self._lock.write():
            self._count = 0
            self._window_start = None
            self._last_event = None
            self._active = False

    @property
    def active(self) -> bool:
        with self._lock.read():
            return self._active
