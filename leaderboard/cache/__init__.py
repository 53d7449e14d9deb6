"""
API response cache with per-category TTLs, heap-driven bounded sweeps, and request coalescing.
"""
from .core import CacheEntry, CacheStats, DataCategory, EfficiencyStats
from .expiration_queue import TOMBSTONE, ExpirationEntry, ExpirationQueue
from .ttl_policies import CATEGORY_ENDPOINTS, build_ttl_config
from .coalescer import RequestCoalescer
from .manager import APICache

__all__ = [
    # Core types
    "CacheEntry",
    "CacheStats",
    "DataCategory",
    "EfficiencyStats",
    # Expiration queue
    "TOMBSTONE",
    "ExpirationEntry",
    "ExpirationQueue",
    # TTL policies
    "CATEGORY_ENDPOINTS",
    "build_ttl_config",
    # Coalescing
    "RequestCoalescer",
    # Cache
    "APICache",
]
