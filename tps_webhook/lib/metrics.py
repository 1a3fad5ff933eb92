"""Service-level counters (requests served, webhooks created, resets, ...)."""

from __future__ import annotations

import threading
from collections import Counter

REQUEST = "webhook.request"
NOT_FOUND = "webhook.not_found"
CREATED = "webhook.created"
UPDATED = "webhook.updated"
DELETED = "webhook.deleted"
RESET = "webhook.reset"


class ServiceCounters:
    """Thread-safe named counters exposed on ``/metrics``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] += value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()


METRICS = ServiceCounters()
