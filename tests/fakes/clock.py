"""Time fakes for tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class ManualClock:
    """Monotonic clock that only moves when told to."""

    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _empty_delays() -> list[float]:
    return []


@dataclass
class RecordingSleeper:
    """Sleep replacement that records requested delays and returns at once."""

    delays: list[float] = field(default_factory=_empty_delays)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def __call__(self, seconds: float) -> None:
        with self._lock:
            self.delays.append(seconds)
