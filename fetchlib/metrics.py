import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Totals:
    requests: int = 0
    bytes: int = 0
    errors: int = 0
    fetch_ms_sum: float = 0.0
    errors_by_kind: Counter = field(default_factory=Counter)


class Metrics:
    def __init__(self):
        self._totals = Totals()
        self._lock = threading.Lock()
        self._start = time.time()

    def record_fetch(self, ok: bool, bytes_read: int, fetch_ms: float, error_kind: Optional[str] = None) -> None:
        with self._lock:
            self._totals.requests += 1
            self._totals.bytes += max(0, bytes_read)
            if not ok:
                self._totals.errors += 1
                self._totals.errors_by_kind[error_kind or "unknown"] += 1
            self._totals.fetch_ms_sum += fetch_ms

    def snapshot(self) -> tuple[Totals, float]:
        with self._lock:
            t = Totals(
                requests=self._totals.requests,
                bytes=self._totals.bytes,
                errors=self._totals.errors,
                fetch_ms_sum=self._totals.fetch_ms_sum,
                errors_by_kind=Counter(self._totals.errors_by_kind),
            )
        elapsed = max(1e-6, time.time() - self._start)
        return t, elapsed
