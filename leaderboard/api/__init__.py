"""
solved.ac API access: raw HTTP client and the cache-first wrapper.
"""
from .solvedac import (
    InvalidHandleError,
    RateLimitedError,
    ResponseParseError,
    SolvedACClient,
    SolvedACError,
    UpstreamStatusError,
)
from .cached_client import BatchResult, CacheMetrics, CachedSolvedACClient, WarmupResult

__all__ = [
    "SolvedACClient",
    "SolvedACError",
    "InvalidHandleError",
    "RateLimitedError",
    "UpstreamStatusError",
    "ResponseParseError",
    "CachedSolvedACClient",
    "CacheMetrics",
    "BatchResult",
    "WarmupResult",
]
