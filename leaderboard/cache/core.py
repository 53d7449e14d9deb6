"""
Core cache data structures.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum


def now() -> float:
    """Monotonic clock used for every expiration timestamp (patchable in tests)."""
    return time.monotonic()


class DataCategory(Enum):
    """Independent cache partitions, one per solved.ac endpoint family."""
    USER_INFO = "user_info"                     # profile, shortest TTL
    USER_TOP100 = "user_top100"                 # top-100 solved problems
    USER_ADDITIONAL = "user_additional"         # extended profile attributes
    USER_ORGANIZATIONS = "user_organizations"   # organization memberships, longest TTL


@dataclass
class CacheEntry:
    """
    A cached payload and the absolute (monotonic) time it stops being served.
    """
    data: Any
    expires_at: float

    def is_expired(self) -> bool:
        return now() >= self.expires_at


@dataclass
class CacheStats:
    """Entry counts per category, used for operator diagnostics."""
    user_info_count: int = 0
    user_top100_count: int = 0
    user_additional_count: int = 0
    user_organizations_count: int = 0

    @property
    def total(self) -> int:
        return (
            self.user_info_count
            + self.user_top100_count
            + self.user_additional_count
            + self.user_organizations_count
        )

    def count_for(self, category: DataCategory) -> int:
        return getattr(self, f"{category.value}_count")

    def to_dict(self) -> Dict[str, int]:
        return {
            "user_info": self.user_info_count,
            "user_top100": self.user_top100_count,
            "user_additional": self.user_additional_count,
            "user_organizations": self.user_organizations_count,
            "total": self.total,
        }


@dataclass
class EfficiencyStats:
    """
    Bookkeeping state of the expiration queue and sweeper.

    ``last_sweep`` is a wall-clock timestamp (``time.time()``) so it can be
    rendered for operators; all expiry math uses the monotonic clock.
    """
    queue_size: int
    key_index_size: int
    last_sweep: Optional[float]
    last_sweep_cleaned: int
    sweep_batch_size: int
    max_sweep_duration: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queue_size": self.queue_size,
            "key_index_size": self.key_index_size,
            "last_sweep": self.last_sweep,
            "last_sweep_cleaned": self.last_sweep_cleaned,
            "sweep_batch_size": self.sweep_batch_size,
            "max_sweep_duration_ms": round(self.max_sweep_duration * 1000, 3),
        }
