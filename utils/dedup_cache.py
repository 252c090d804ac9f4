import time
from collections import OrderedDict

DEDUP_TTL_SECONDS = 600
DEFAULT_MAX_ENTRIES = 500000


class DedupCacheFullError(Exception):
    """The cache could not record a key because it holds no expired entry to drop"""


class DedupCache:
    """
    Time-bounded set of keys. An entry disappears on its own once its lifetime
    is over: lookups after expiry behave as if the key was never recorded.
    """

    def __init__(self, ttl=DEDUP_TTL_SECONDS, max_entries=DEFAULT_MAX_ENTRIES, clock=time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self.clock = clock
        # key -> expiry time, in insertion order (so also in expiry order)
        self.entries = OrderedDict()

    def __len__(self):
        return len(self.entries)

    def contains(self, key: str) -> bool:
        expires_at = self.entries.get(key)
        if expires_at is None:
            return False
        if expires_at <= self.clock():
            del self.entries[key]
            return False
        return True

    def purge_expired(self) -> int:
        now = self.clock()
        purged = 0
        while self.entries:
            key, expires_at = next(iter(self.entries.items()))
            if expires_at > now:
                break
            del self.entries[key]
            purged += 1
        return purged

    def add(self, key: str):
        """Records key for ttl seconds, raises DedupCacheFullError when full"""
        if key not in self.entries and len(self.entries) >= self.max_entries:
            self.purge_expired()
            if len(self.entries) >= self.max_entries:
                raise DedupCacheFullError(f'dedup cache is full ({self.max_entries} entries)')
        self.entries.pop(key, None)
        self.entries[key] = self.clock() + self.ttl
