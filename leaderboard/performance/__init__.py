"""
Upstream load protection.
"""
from .adaptive_concurrency import AdaptiveConcurrencyManager, ConcurrencyStats

__all__ = [
    "AdaptiveConcurrencyManager",
    "ConcurrencyStats",
]
