"""
TTL cache for solved.ac responses with heap-driven, bounded-cost expiry.
"""
import threading
import logging
import time
from typing import Any, Dict, Mapping, Optional, Tuple

from config.settings import Settings, settings as default_settings

from .core import CacheEntry, CacheStats, DataCategory, EfficiencyStats, now
from .expiration_queue import ExpirationEntry, ExpirationQueue
from .ttl_policies import build_ttl_config

logger = logging.getLogger("cache.manager")

IndexKey = Tuple[DataCategory, str]


class APICache:
    """
    Per-category key/value cache with:
    - Fixed TTL per data category
    - Expiration min-heap with lazy tombstones for overwritten keys
    - Sweeps bounded by batch size and wall-clock budget
    - Optional background sweeper thread

    Reads are lazily expired: an entry past its TTL is a miss even before
    a sweep physically removes it.
    """

    def __init__(
        self,
        ttl_config: Optional[Mapping[DataCategory, float]] = None,
        sweep_batch_size: int = 50,
        max_sweep_duration: float = 0.010,
    ):
        """
        Initialize the cache.

        Args:
            ttl_config: TTL in seconds for every DataCategory
            sweep_batch_size: Max heap entries removed per sweep
            max_sweep_duration: Max seconds a single sweep may hold the lock
        """
        ttls = dict(ttl_config) if ttl_config is not None else build_ttl_config()
        missing = [c.value for c in DataCategory if c not in ttls]
        if missing:
            raise ValueError(f"Missing TTL for categories: {', '.join(missing)}")
        if sweep_batch_size <= 0:
            raise ValueError("sweep_batch_size must be positive")
        if max_sweep_duration <= 0:
            raise ValueError("max_sweep_duration must be positive")

        self._ttls: Dict[DataCategory, float] = ttls
        self._sweep_batch_size = sweep_batch_size
        self._max_sweep_duration = max_sweep_duration

        # One lock guards the stores, the heap and the index together
        self._lock = threading.Lock()
        self._stores: Dict[DataCategory, Dict[str, CacheEntry]] = {
            category: {} for category in DataCategory
        }
        self._queue = ExpirationQueue()
        self._key_to_entry: Dict[IndexKey, ExpirationEntry] = {}

        self._last_sweep: Optional[float] = None
        self._last_sweep_cleaned = 0

        # Background sweeper
        self._sweeper: Optional[threading.Thread] = None
        self._sweeper_stop = threading.Event()

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "APICache":
        config = config or default_settings
        return cls(
            ttl_config=build_ttl_config(config),
            sweep_batch_size=config.cache_sweep_batch_size,
            max_sweep_duration=config.cache_sweep_max_duration_seconds,
        )

    def ttl_for(self, category: DataCategory) -> float:
        return self._ttls[category]

    # ------------------------------------------------------------------
    # Generic get/set
    # ------------------------------------------------------------------

    def get(self, category: DataCategory, key: str) -> Tuple[Any, bool]:
        """
        Look up a cached value.

        Returns:
            (value, True) on a live hit, (None, False) if absent or expired
        """
        with self._lock:
            entry = self._stores[category].get(key)
        if entry is None or entry.is_expired():
            return None, False
        return entry.data, True

    def set(self, category: DataCategory, key: str, value: Any) -> None:
        """Store ``value``, replacing any previous entry for the same key."""
        expires_at = now() + self.ttl_for(category)
        index_key = (category, key)

        with self._lock:
            previous = self._key_to_entry.get(index_key)
            if previous is not None:
                self._queue.invalidate(previous)

            self._stores[category][key] = CacheEntry(data=value, expires_at=expires_at)

            entry = ExpirationEntry(key=key, category=category, expires_at=expires_at)
            self._queue.push(entry)
            self._key_to_entry[index_key] = entry

    # ------------------------------------------------------------------
    # Typed facade
    # ------------------------------------------------------------------

    def get_user_info(self, handle: str) -> Tuple[Any, bool]:
        return self.get(DataCategory.USER_INFO, handle)

    def set_user_info(self, handle: str, user_info: Any) -> None:
        self.set(DataCategory.USER_INFO, handle, user_info)

    def get_user_top100(self, handle: str) -> Tuple[Any, bool]:
        return self.get(DataCategory.USER_TOP100, handle)

    def set_user_top100(self, handle: str, top100: Any) -> None:
        self.set(DataCategory.USER_TOP100, handle, top100)

    def get_user_additional_info(self, handle: str) -> Tuple[Any, bool]:
        return self.get(DataCategory.USER_ADDITIONAL, handle)

    def set_user_additional_info(self, handle: str, additional_info: Any) -> None:
        self.set(DataCategory.USER_ADDITIONAL, handle, additional_info)

    def get_user_organizations(self, handle: str) -> Tuple[Any, bool]:
        return self.get(DataCategory.USER_ORGANIZATIONS, handle)

    def set_user_organizations(self, handle: str, organizations: Any) -> None:
        self.set(DataCategory.USER_ORGANIZATIONS, handle, organizations)

    # ------------------------------------------------------------------
    # Sweeping
    # ------------------------------------------------------------------

    def sweep_expired(self) -> int:
        """
        Remove expired entries and tombstones from the front of the heap.

        Stops after ``sweep_batch_size`` removals, once ``max_sweep_duration``
        has elapsed, or at the first live entry that has not expired yet.

        Returns:
            Number of heap entries removed
        """
        cleaned = 0
        with self._lock:
            current = now()
            started = time.perf_counter()

            while (
                cleaned < self._sweep_batch_size
                and time.perf_counter() - started < self._max_sweep_duration
                and len(self._queue) > 0
            ):
                root = self._queue.peek()

                if root.is_tombstoned:
                    self._queue.pop()
                    self._drop_index(root)
                    cleaned += 1
                    continue

                if root.expires_at > current:
                    break

                self._queue.pop()
                self._drop_index(root)
                self._stores[root.category].pop(root.key, None)
                cleaned += 1

            self._last_sweep = time.time()
            self._last_sweep_cleaned = cleaned

        return cleaned

    def _drop_index(self, entry: ExpirationEntry) -> None:
        # A tombstone's key is already indexed to its replacement
        index_key = (entry.category, entry.key)
        if self._key_to_entry.get(index_key) is entry:
            del self._key_to_entry[index_key]

    def start_sweeper(self, interval: float) -> None:
        """
        Run ``sweep_expired`` every ``interval`` seconds on a daemon thread.

        A sweep in progress always finishes; stop requests are only seen
        between ticks.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        if self.is_sweeping:
            logger.debug("Sweeper already running")
            return

        self._sweeper_stop.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            args=(interval,),
            name="cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"Cache sweeper started (interval={interval}s)")

    def _run_sweeper(self, interval: float) -> None:
        while not self._sweeper_stop.wait(interval):
            cleaned = self.sweep_expired()
            if cleaned:
                logger.debug(f"Swept {cleaned} expired cache entries")

    def stop_sweeper(self, timeout: Optional[float] = None) -> bool:
        """
        Stop the background sweeper and wait for its thread to exit.

        Returns:
            True if no sweeper thread is left running
        """
        thread = self._sweeper
        if thread is None:
            return True
        self._sweeper_stop.set()
        thread.join(timeout)
        if thread.is_alive():
            logger.warning("Cache sweeper did not stop within timeout")
            return False
        self._sweeper = None
        logger.info("Cache sweeper stopped")
        return True

    @property
    def is_sweeping(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def clear(self) -> int:
        """
        Drop every entry in every category.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = sum(len(store) for store in self._stores.values())
            self._stores = {category: {} for category in DataCategory}
            self._queue = ExpirationQueue()
            self._key_to_entry = {}
        logger.info(f"Cleared {count} cache entries")
        return count

    def get_stats(self) -> CacheStats:
        """Entry counts per category (includes expired entries not yet swept)."""
        with self._lock:
            stores = self._stores
            return CacheStats(
                user_info_count=len(stores[DataCategory.USER_INFO]),
                user_top100_count=len(stores[DataCategory.USER_TOP100]),
                user_additional_count=len(stores[DataCategory.USER_ADDITIONAL]),
                user_organizations_count=len(stores[DataCategory.USER_ORGANIZATIONS]),
            )

    def get_efficiency_stats(self) -> EfficiencyStats:
        with self._lock:
            return EfficiencyStats(
                queue_size=len(self._queue),
                key_index_size=len(self._key_to_entry),
                last_sweep=self._last_sweep,
                last_sweep_cleaned=self._last_sweep_cleaned,
                sweep_batch_size=self._sweep_batch_size,
                max_sweep_duration=self._max_sweep_duration,
            )
