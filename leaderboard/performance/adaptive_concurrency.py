"""Adaptive limit on concurrent solved.ac requests, driven by observed latency."""

import logging
import time
from collections import deque
from dataclasses import dataclass, asdict
from threading import Lock
from typing import Any, Callable, Deque, Dict, Optional

from config.settings import Settings, settings as default_settings

logger = logging.getLogger("performance.concurrency")


@dataclass(frozen=True)
class ConcurrencyStats:
    current_limit: int
    min_limit: int
    max_limit: int
    average_response: float
    p95_response: float
    window_size: int
    last_adjustment: float
    successive_increases: int
    successive_decreases: int

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["average_response_ms"] = round(data.pop("average_response") * 1000, 1)
        data["p95_response_ms"] = round(data.pop("p95_response") * 1000, 1)
        return data


class AdaptiveConcurrencyManager:
    """
    Raises or lowers a permit count based on a sliding window of response times.

    - Slow (p95 over ``decrease_threshold`` or average over
      ``adjustment_threshold``): limit -1, down to ``min_limit``.
    - Fast (average under half of ``adjustment_threshold``) with no decrease
      since the last fast window: limit +1, up to ``max_limit``, at most
      ``max_successive_increases`` times in a row.
    - Otherwise: unchanged.

    An evaluation runs only once the window holds ``min_window_size``
    samples and ``adjustment_cooldown`` has passed since the limit last moved.
    All durations are in seconds. Thread-safe.
    """

    def __init__(
        self,
        initial_limit: int = 5,
        min_limit: int = 2,
        max_limit: int = 20,
        window_size: int = 50,
        min_window_size: int = 10,
        adjustment_threshold: float = 0.5,
        decrease_threshold: float = 1.0,
        adjustment_cooldown: float = 5.0,
        max_successive_increases: int = 3,
        p95_ratio: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
    ):
        if min_limit <= 0 or max_limit < min_limit:
            raise ValueError("limits must satisfy 0 < min_limit <= max_limit")
        if not min_limit <= initial_limit <= max_limit:
            raise ValueError("initial_limit must lie within [min_limit, max_limit]")
        if window_size <= 0 or not 0 < min_window_size <= window_size:
            raise ValueError("min_window_size must lie within [1, window_size]")

        self.min_limit = min_limit
        self.max_limit = max_limit
        self.min_window_size = min_window_size
        self.adjustment_threshold = adjustment_threshold
        self.decrease_threshold = decrease_threshold
        self.adjustment_cooldown = adjustment_cooldown
        self.max_successive_increases = max_successive_increases
        self.p95_ratio = p95_ratio
        self._clock = clock

        self._lock = Lock()
        self._current_limit = initial_limit
        self._window: Deque[float] = deque(maxlen=window_size)
        self._last_adjustment = clock()
        self._successive_increases = 0
        self._successive_decreases = 0

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "AdaptiveConcurrencyManager":
        config = config or default_settings
        return cls(
            initial_limit=config.initial_concurrency,
            min_limit=config.concurrency_min_limit,
            max_limit=config.concurrency_max_limit,
            window_size=config.response_time_window_size,
            min_window_size=config.min_response_time_window_size,
            adjustment_threshold=config.concurrency_adjustment_threshold_seconds,
            decrease_threshold=config.concurrency_decrease_threshold_seconds,
            adjustment_cooldown=config.concurrency_adjustment_cooldown_seconds,
            max_successive_increases=config.max_successive_increases,
            p95_ratio=config.p95_percentile_ratio,
        )

    def get_current_limit(self) -> int:
        with self._lock:
            return self._current_limit

    def record_response_time(self, seconds: float) -> None:
        """
        Add one observed latency and, when due, re-evaluate the limit.

        Args:
            seconds: Duration of a completed upstream request
        """
        with self._lock:
            self._window.append(max(0.0, seconds))

            if (
                len(self._window) >= self.min_window_size
                and self._clock() - self._last_adjustment > self.adjustment_cooldown
            ):
                self._adjust()

    def _adjust(self) -> None:
        # Caller holds self._lock
        average = self._average()
        p95 = self._p95()
        old_limit = self._current_limit

        if p95 > self.decrease_threshold or average > self.adjustment_threshold:
            if self._current_limit > self.min_limit:
                self._current_limit -= 1
                self._successive_decreases += 1
                self._successive_increases = 0
        elif average < self.adjustment_threshold / 2:
            if (
                self._current_limit < self.max_limit
                and self._successive_decreases == 0
                and self._successive_increases < self.max_successive_increases
            ):
                self._current_limit += 1
                self._successive_increases += 1
            self._successive_decreases = 0

        if self._current_limit != old_limit:
            self._last_adjustment = self._clock()
            logger.info(
                f"Concurrency limit {old_limit} -> {self._current_limit} "
                f"(avg={average * 1000:.0f}ms, p95~{p95 * 1000:.0f}ms)"
            )

    def _average(self) -> float:
        if not self._window:
            return 0.0
        return sum(self._window) / len(self._window)

    def _p95(self) -> float:
        # Approximation: a fixed fraction of the window maximum, no sort
        if not self._window:
            return 0.0
        return max(self._window) * self.p95_ratio

    def get_stats(self) -> ConcurrencyStats:
        with self._lock:
            return ConcurrencyStats(
                current_limit=self._current_limit,
                min_limit=self.min_limit,
                max_limit=self.max_limit,
                average_response=self._average(),
                p95_response=self._p95(),
                window_size=len(self._window),
                last_adjustment=self._last_adjustment,
                successive_increases=self._successive_increases,
                successive_decreases=self._successive_decreases,
            )
