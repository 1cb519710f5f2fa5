"""Persistent and in-memory stores used during a check run."""

from .outcome_cache import CacheEntry, OutcomeCache

__all__ = ["CacheEntry", "OutcomeCache"]
