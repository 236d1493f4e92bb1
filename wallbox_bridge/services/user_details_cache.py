"""
Short-lived cache for membership-backend user details.
"""

import time

from wallbox_bridge.constants import USER_DETAILS_CACHE_TTL_SECONDS


class UserDetailsCache:
    """
    Key -> (expiry, value) map with expiry checked lazily on read.

    Entries live for a minute by default, so there is no background eviction.
    """

    def __init__(self, ttl_seconds: float = USER_DETAILS_CACHE_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries = {}

    def get(self, key):
        """Return the cached value, or None when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key, value):
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate(self, key):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __len__(self):
        return len(self._entries)
