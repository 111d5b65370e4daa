"""
Cache package for the Workspace Service.

Provides SmartCache, a bounded in-process cache with lazy TTL expiry and
frequency-based eviction, plus the cache-first range reader built on it.

Key points:
- Keys embed their logical remote resource (see `keys`) so a write can
  invalidate everything derived from the same tab or folder.
- One cache instance per composition layer; nothing is process-global.
"""
