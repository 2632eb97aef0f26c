"""In-process TTL cache for custom-domain routing lookups.

One instance is shared by every request handled in a Lambda container.
Hits are kept for ``ttl`` seconds, misses for the shorter ``negative_ttl``
so a newly verified domain starts routing quickly. The domain binding
service calls ``invalidate`` after unlink, reassign and remove; other
containers converge within the TTL.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

import structlog

from sitekit.config import Settings, get_settings

logger = structlog.get_logger()

_MISSING = object()


@dataclass
class _Entry:
    site_id: str | None
    expires_at: float


class HostCache:
    """Thread-safe, size-bounded TTL cache of host -> site ID (or None)."""

    def __init__(
        self,
        ttl: float = 30.0,
        negative_ttl: float = 5.0,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            ttl: Seconds to keep a resolved host.
            negative_ttl: Seconds to keep an unmapped host.
            max_entries: Oldest entries are evicted beyond this size.
            clock: Monotonic time source (injectable for tests).
        """
        self.ttl = ttl
        self.negative_ttl = negative_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, host: str):
        """Return the cached site ID, None for a cached miss, or ``MISSING``."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(host)
            if entry is None:
                return _MISSING
            if entry.expires_at <= now:
                del self._entries[host]
                return _MISSING
            return entry.site_id

    def set(self, host: str, site_id: str | None) -> None:
        """Cache a lookup result; ``None`` records a miss."""
        ttl = self.ttl if site_id is not None else self.negative_ttl
        if ttl <= 0:
            return

        expires_at = self._clock() + ttl
        with self._lock:
            self._entries[host] = _Entry(site_id=site_id, expires_at=expires_at)
            self._entries.move_to_end(host)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def invalidate(self, domain: str) -> None:
        """Drop cached routing for a domain and its ``www.`` variant."""
        with self._lock:
            self._entries.pop(domain, None)
            self._entries.pop(f"www.{domain}", None)
        logger.debug("Host cache invalidated", domain=domain)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


MISSING = _MISSING

_host_cache: HostCache | None = None
_host_cache_lock = threading.Lock()


def get_host_cache(settings: Settings | None = None) -> HostCache:
    """Get the container-wide host cache."""
    global _host_cache
    if _host_cache is None:
        with _host_cache_lock:
            if _host_cache is None:
                settings = settings or get_settings()
                _host_cache = HostCache(
                    ttl=settings.domain_cache_ttl,
                    negative_ttl=settings.domain_negative_cache_ttl,
                    max_entries=settings.domain_cache_max_entries,
                )
    return _host_cache


def reset_host_cache() -> None:
    """Discard the container-wide cache (settings changes, tests)."""
    global _host_cache
    with _host_cache_lock:
        _host_cache = None
