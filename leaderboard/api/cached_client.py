"""
solved.ac client fronted by the API cache.

Cache misses go upstream through the request coalescer; only successful
responses are written back. Every upstream attempt reports its latency to
the adaptive concurrency manager, whose current limit sizes the worker
pools used for warm-up and batch fetches.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from config.settings import Settings, settings as default_settings
from leaderboard.cache import APICache, DataCategory, RequestCoalescer
from leaderboard.performance import AdaptiveConcurrencyManager
from leaderboard.schemas import Organization, Top100Response, UserAdditionalInfo, UserInfo

from .solvedac import SolvedACClient

logger = logging.getLogger("api.cached_client")

# Categories preloaded by warmup_cache, each attempted independently
WARMUP_CATEGORIES = (DataCategory.USER_INFO, DataCategory.USER_TOP100)


@dataclass
class CacheMetrics:
    """Hit/miss counters plus entry counts per category."""
    total_calls: int
    cache_hits: int
    cache_misses: int
    hit_rate: float
    user_info_cached: int
    user_top100_cached: int
    user_additional_cached: int
    user_organizations_cached: int

    def __str__(self) -> str:
        return (
            f"API Cache Stats: Calls={self.total_calls}, Hits={self.cache_hits}, "
            f"Misses={self.cache_misses}, Hit Rate={self.hit_rate:.2f}%, "
            f"Cached Items: UserInfo={self.user_info_cached}, "
            f"Top100={self.user_top100_cached}, "
            f"Additional={self.user_additional_cached}, "
            f"Organizations={self.user_organizations_cached}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_calls": self.total_calls,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate_percent": round(self.hit_rate, 2),
            "cached": {
                "user_info": self.user_info_cached,
                "user_top100": self.user_top100_cached,
                "user_additional": self.user_additional_cached,
                "user_organizations": self.user_organizations_cached,
            },
        }


@dataclass
class BatchResult:
    """Outcome of a bounded parallel fetch."""
    values: Dict[str, Any] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)


@dataclass
class WarmupResult:
    requested: int = 0
    skipped: int = 0
    warmed: int = 0
    failed: List[str] = field(default_factory=list)
    # Categories that could not be warmed, per failed handle
    failures: Dict[str, List[DataCategory]] = field(default_factory=dict)


class CachedSolvedACClient:
    """
    Cache-first solved.ac access for command handlers and score batches.

    All collaborators are injected; ``from_settings`` builds the usual set.
    """

    def __init__(
        self,
        client: SolvedACClient,
        cache: APICache,
        concurrency: AdaptiveConcurrencyManager,
        coalescer: Optional[RequestCoalescer] = None,
        sweep_interval: float = 300.0,
    ):
        self.client = client
        self.cache = cache
        self.concurrency = concurrency
        self.coalescer = coalescer or RequestCoalescer()
        self.sweep_interval = sweep_interval

        if self.client.on_response_time is None:
            self.client.on_response_time = concurrency.record_response_time

        self._counter_lock = threading.Lock()
        self._total_calls = 0
        self._cache_hits = 0
        self._cache_misses = 0
        logger.info("Created cached solved.ac client")

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "CachedSolvedACClient":
        config = config or default_settings
        return cls(
            client=SolvedACClient.from_settings(config),
            cache=APICache.from_settings(config),
            concurrency=AdaptiveConcurrencyManager.from_settings(config),
            coalescer=RequestCoalescer(timeout=config.coalesce_timeout_seconds),
            sweep_interval=config.cache_sweep_interval_seconds,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background cache sweeper."""
        self.cache.start_sweeper(self.sweep_interval)

    def close(self) -> None:
        """Stop the sweeper and release the HTTP session."""
        self.cache.stop_sweeper()
        self.client.close()
        logger.info("Cached solved.ac client closed")

    def __enter__(self) -> "CachedSolvedACClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Cache-first lookups
    # ------------------------------------------------------------------

    def get(self, category: DataCategory, handle: str) -> Any:
        """
        Return cached data for ``handle`` or fetch and cache it.

        Raises:
            SolvedACError: If the upstream fetch fails (nothing is cached)
            TimeoutError: If a coalesced fetch by another caller stalls
        """
        with self._counter_lock:
            self._total_calls += 1

        value, found = self.cache.get(category, handle)
        if found:
            with self._counter_lock:
                self._cache_hits += 1
            logger.debug(f"Cache hit for {category.value}: {handle}")
            return value

        with self._counter_lock:
            self._cache_misses += 1
        logger.debug(f"Cache miss for {category.value}: {handle}, calling API")

        return self.coalescer.get_or_fetch(
            (category, handle),
            lambda: self._fetch_and_store(category, handle),
        )

    def _fetch_and_store(self, category: DataCategory, handle: str) -> Any:
        value = self.client.fetch(category, handle)
        self.cache.set(category, handle, value)
        return value

    def get_user_info(self, handle: str) -> UserInfo:
        return self.get(DataCategory.USER_INFO, handle)

    def get_user_top100(self, handle: str) -> Top100Response:
        return self.get(DataCategory.USER_TOP100, handle)

    def get_user_additional_info(self, handle: str) -> UserAdditionalInfo:
        return self.get(DataCategory.USER_ADDITIONAL, handle)

    def get_user_organizations(self, handle: str) -> List[Organization]:
        return self.get(DataCategory.USER_ORGANIZATIONS, handle)

    # ------------------------------------------------------------------
    # Bounded fan-out
    # ------------------------------------------------------------------

    def _pool_size(self, jobs: int) -> int:
        return max(1, min(self.concurrency.get_current_limit(), jobs))

    def fetch_many(self, category: DataCategory, handles: Iterable[str]) -> BatchResult:
        """
        Fetch one category for many handles, at most ``current_limit`` at a time.

        Failures are collected per handle instead of raised.
        """
        unique = list(dict.fromkeys(handles))
        result = BatchResult()
        if not unique:
            return result

        with ThreadPoolExecutor(
            max_workers=self._pool_size(len(unique)),
            thread_name_prefix="solvedac-fetch",
        ) as executor:
            future_to_handle = {
                executor.submit(self.get, category, handle): handle
                for handle in unique
            }
            for future in as_completed(future_to_handle):
                handle = future_to_handle[future]
                try:
                    result.values[handle] = future.result()
                except Exception as e:
                    logger.warning(f"Fetching {category.value} failed for {handle}: {e}")
                    result.errors[handle] = e

        return result

    def warmup_cache(self, handles: Iterable[str]) -> WarmupResult:
        """
        Preload user info and top-100 for handles not already cached.

        Runs on a pool sized to the current concurrency limit and returns
        once every handle has been attempted.
        """
        unique = list(dict.fromkeys(handles))
        result = WarmupResult(requested=len(unique))
        pending = []
        for handle in unique:
            _, found = self.cache.get_user_info(handle)
            if found:
                result.skipped += 1
            else:
                pending.append(handle)

        logger.info(f"Starting cache warmup for {len(pending)} users ({result.skipped} already cached)")
        if not pending:
            return result

        def warm(handle: str) -> List[DataCategory]:
            failed = []
            for category in WARMUP_CATEGORIES:
                try:
                    self.get(category, handle)
                except Exception as e:
                    logger.warning(f"Cache warmup failed for {category.value} {handle}: {e}")
                    failed.append(category)
            return failed

        with ThreadPoolExecutor(
            max_workers=self._pool_size(len(pending)),
            thread_name_prefix="cache-warmup",
        ) as executor:
            future_to_handle = {executor.submit(warm, h): h for h in pending}
            for future in as_completed(future_to_handle):
                handle = future_to_handle[future]
                failed = future.result()
                if failed:
                    result.failed.append(handle)
                    result.failures[handle] = failed
                else:
                    result.warmed += 1

        logger.info(f"Cache warmup finished: {result.warmed} warmed, {len(result.failed)} failed")
        return result

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_cache_stats(self) -> CacheMetrics:
        stats = self.cache.get_stats()
        with self._counter_lock:
            total = self._total_calls
            hits = self._cache_hits
            misses = self._cache_misses

        hit_rate = (hits / total * 100) if total > 0 else 0.0
        return CacheMetrics(
            total_calls=total,
            cache_hits=hits,
            cache_misses=misses,
            hit_rate=hit_rate,
            user_info_cached=stats.user_info_count,
            user_top100_cached=stats.user_top100_count,
            user_additional_cached=stats.user_additional_count,
            user_organizations_cached=stats.user_organizations_count,
        )

    def clear_cache(self) -> int:
        """Drop all cached data and reset the hit/miss counters."""
        cleared = self.cache.clear()
        with self._counter_lock:
            self._total_calls = 0
            self._cache_hits = 0
            self._cache_misses = 0
        logger.info("API cache cleared")
        return cleared

    def get_diagnostics(self) -> Dict[str, Any]:
        return {
            "metrics": self.get_cache_stats().to_dict(),
            "categories": self.cache.get_stats().to_dict(),
            "expiration": self.cache.get_efficiency_stats().to_dict(),
            "coalescer": self.coalescer.get_stats(),
            "sweeper_running": self.cache.is_sweeping,
        }
