"""
Request coalescing for cache misses.

When several workers miss the cache for the same (category, handle) at once,
only the first one calls solved.ac; the rest block until that call finishes
and receive the same result or the same exception.
"""
import threading
import logging
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger("cache.coalescer")


class _PendingFetch:
    """An upstream call that other callers may wait on."""

    __slots__ = ("done", "result", "error", "waiters")

    def __init__(self):
        self.done = threading.Event()
        self.result: Any = None
        self.error: Optional[BaseException] = None
        self.waiters = 0


class RequestCoalescer:
    """
    Shares one in-flight fetch among concurrent callers with the same key.

    Usage:
        coalescer = RequestCoalescer(timeout=30.0)
        info = coalescer.get_or_fetch(
            (DataCategory.USER_INFO, "koosaga"),
            lambda: client.get_user_info("koosaga"),
        )
    """

    def __init__(self, timeout: float = 30.0):
        """
        Args:
            timeout: Max seconds a waiter blocks on someone else's fetch
        """
        self._pending: Dict[Hashable, _PendingFetch] = {}
        self._lock = threading.Lock()
        self._timeout = timeout
        self._initiated = 0
        self._coalesced = 0

    def get_or_fetch(self, key: Hashable, fetch_fn: Callable[[], Any]) -> Any:
        """
        Run ``fetch_fn`` unless a fetch for ``key`` is already running.

        Raises:
            TimeoutError: If waiting on another caller's fetch times out
            Exception: Whatever ``fetch_fn`` raised, re-raised in every caller
        """
        with self._lock:
            pending = self._pending.get(key)
            if pending is None:
                pending = _PendingFetch()
                self._pending[key] = pending
                self._initiated += 1
                owner = True
            else:
                pending.waiters += 1
                self._coalesced += 1
                owner = False

        if owner:
            try:
                pending.result = fetch_fn()
            except Exception as e:
                pending.error = e
                logger.debug(f"Coalesced fetch failed for {key}: {e}")
            finally:
                with self._lock:
                    self._pending.pop(key, None)
                pending.done.set()
        else:
            logger.debug(f"Joining in-flight fetch for {key} (waiters: {pending.waiters})")
            if not pending.done.wait(timeout=self._timeout):
                logger.error(f"Timeout waiting for coalesced fetch: {key}")
                raise TimeoutError(f"Fetch for {key} timed out after {self._timeout}s")

        if pending.error is not None:
            raise pending.error
        return pending.result

    @property
    def active_requests(self) -> int:
        with self._lock:
            return len(self._pending)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "active_requests": len(self._pending),
                "initiated": self._initiated,
                "coalesced": self._coalesced,
            }
