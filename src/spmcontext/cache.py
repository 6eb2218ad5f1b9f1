"""In-memory TTL cache with a bounded memory footprint.

All cache operations degrade gracefully: reads never raise (a miss or an
expired entry is ``None``), and writes that cannot be honoured (oversized or
unserialisable values) are logged and dropped. A cache is an optimisation,
never the source of truth, so callers treat every ``set`` as best effort.

Expiry is lazy: an entry is checked when it is read, and every ``set`` first
sweeps the expired entries of every partition sharing its budget. When a
write would push the estimated footprint over the byte budget, the
least-recently-*inserted* entries are evicted first. Re-reading an entry
does not refresh its position.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import pydantic_core
import structlog

from spmcontext.models.cache import CacheStats

if TYPE_CHECKING:
    from spmcontext.config import CacheSettings
    from spmcontext.models.tools import (
        PackageInfoOutput,
        PackageReadmeOutput,
        SearchPackagesOutput,
    )

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_SIZE_BYTES = 100 * 1024 * 1024

PACKAGE_INFO_TTL_SECONDS = 3600
README_TTL_SECONDS = 1800
SEARCH_TTL_SECONDS = 1800

# Serialised text is counted in code units; two bytes per unit approximates
# the in-memory cost of the stored structure.
_BYTES_PER_CODE_UNIT = 2


def estimate_size(value: object) -> int | None:
    """Approximate the in-memory cost of ``value`` in bytes.

    Returns ``None`` when the value cannot be serialised (circular reference,
    unsupported type).
    """
    try:
        text = pydantic_core.to_json(value).decode("utf-8")
    except (ValueError, TypeError, RecursionError):
        return None
    return len(text) * _BYTES_PER_CODE_UNIT


@dataclass(slots=True)
class _Entry(Generic[T]):
    value: T
    inserted_at: float
    ttl_seconds: float
    size: int

    def expired(self, now: float) -> bool:
        return now - self.inserted_at > self.ttl_seconds


class SizeBudget:
    """Byte ceiling shared by every partition registered with it.

    Partitions sharing a budget also share its lock, so the sweep, measure,
    evict and insert steps of one ``set`` are never interleaved with another
    mutation anywhere under the same budget.
    """

    def __init__(self, max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES) -> None:
        if max_size_bytes <= 0:
            raise ValueError(f"max_size_bytes must be positive, got {max_size_bytes}")
        self.max_size_bytes = max_size_bytes
        self.lock = threading.Lock()
        self._members: list[MemoryCache[Any]] = []

    def register(self, cache: MemoryCache[Any]) -> None:
        self._members.append(cache)

    def usage(self) -> int:
        """Total estimated footprint of all member partitions. Caller holds the lock."""
        return sum(member._footprint() for member in self._members)

    def evict_expired(self) -> None:
        """Sweep expired entries from every member partition. Caller holds the lock."""
        for member in self._members:
            member._evict_expired()

    def evict_oldest_elsewhere(self, requester: MemoryCache[Any]) -> int:
        """Evict the oldest-inserted entry among partitions other than ``requester``.

        Caller holds the lock. Returns the bytes freed, 0 when there is nothing
        to evict.
        """
        oldest: MemoryCache[Any] | None = None
        oldest_at = float("inf")
        for member in self._members:
            if member is requester:
                continue
            inserted_at = member._oldest_inserted_at()
            if inserted_at is not None and inserted_at < oldest_at:
                oldest, oldest_at = member, inserted_at
        if oldest is None:
            return 0
        return oldest._evict_oldest()


class MemoryCache(Generic[T]):
    """A single cache partition: string keys to values of one payload type."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        *,
        name: str = "general",
        budget: SizeBudget | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.name = name
        self.default_ttl_seconds = ttl_seconds
        self._budget = budget if budget is not None else SizeBudget(max_size_bytes)
        self._budget.register(self)
        self._lock = self._budget.lock
        self._clock = clock
        # dict preserves insertion order, so the first key is the oldest insert
        self._entries: dict[str, _Entry[T]] = {}

    @property
    def max_size_bytes(self) -> int:
        return self._budget.max_size_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        """Store ``value`` under ``key``. Never raises; failures are logged."""
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._budget.evict_expired()

            # A rejected overwrite must not leave the previous value readable
            self._entries.pop(key, None)

            size = estimate_size(value)
            if size is None:
                log.warning("cache_entry_unserializable", cache=self.name, key=key)
                return
            if size > self._budget.max_size_bytes:
                log.warning(
                    "cache_entry_too_large",
                    cache=self.name,
                    key=key,
                    estimated_size=size,
                    max_size=self._budget.max_size_bytes,
                )
                return

            usage = self._budget.usage()
            while usage + size > self._budget.max_size_bytes:
                if self._entries:
                    usage -= self._evict_oldest()
                else:
                    freed = self._budget.evict_oldest_elsewhere(self)
                    if not freed:
                        break
                    usage -= freed

            self._entries[key] = _Entry(
                value=value,
                inserted_at=self._clock(),
                ttl_seconds=ttl,
                size=size,
            )
        log.debug("cache_entry_set", cache=self.name, key=key, ttl=ttl, estimated_size=size)

    def get(self, key: str) -> T | None:
        """Return the live value for ``key``, or ``None`` on miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                log.debug("cache_miss", cache=self.name, key=key)
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                log.debug("cache_entry_expired", cache=self.name, key=key)
                return None
        log.debug("cache_hit", cache=self.name, key=key)
        return entry.value

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if entry.expired(self._clock()):
                del self._entries[key]
                return False
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            log.debug("cache_entry_deleted", cache=self.name, key=key)
        return removed

    def clear(self) -> None:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        log.info("cache_cleared", cache=self.name, entries_removed=removed)

    def stats(self) -> CacheStats:
        """Entry count and footprint, recomputed from the unexpired entries."""
        with self._lock:
            now = self._clock()
            live = [entry for entry in self._entries.values() if not entry.expired(now)]
        return CacheStats(
            size=len(live),
            estimated_memory_usage=sum(entry.size for entry in live),
        )

    # ------------------------------------------------------------------
    # Internals: caller holds the lock
    # ------------------------------------------------------------------

    def _footprint(self) -> int:
        return sum(entry.size for entry in self._entries.values())

    def _oldest_inserted_at(self) -> float | None:
        for entry in self._entries.values():
            return entry.inserted_at
        return None

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("cache_expired_evicted", cache=self.name, count=len(expired))

    def _evict_oldest(self) -> int:
        key = next(iter(self._entries))
        entry = self._entries.pop(key)
        log.debug("cache_entry_evicted", cache=self.name, key=key)
        return entry.size


class CacheManager:
    """The four cache partitions used by the tool handlers.

    Every partition shares one byte budget. Keys are prefixed per partition
    so a raw identifier reused across partitions never collides.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.budget = SizeBudget(max_size_bytes)
        self.package_info: MemoryCache[PackageInfoOutput] = MemoryCache(
            PACKAGE_INFO_TTL_SECONDS, name="package_info", budget=self.budget, clock=clock
        )
        self.package_readme: MemoryCache[PackageReadmeOutput] = MemoryCache(
            README_TTL_SECONDS, name="package_readme", budget=self.budget, clock=clock
        )
        self.search: MemoryCache[SearchPackagesOutput] = MemoryCache(
            SEARCH_TTL_SECONDS, name="search", budget=self.budget, clock=clock
        )
        self.general: MemoryCache[Any] = MemoryCache(
            ttl_seconds, name="general", budget=self.budget, clock=clock
        )

    @classmethod
    def from_settings(cls, settings: CacheSettings) -> CacheManager:
        return cls(ttl_seconds=settings.ttl_seconds, max_size_bytes=settings.max_size_bytes)

    # ------------------------------------------------------------------
    # Package info
    # ------------------------------------------------------------------

    def set_package_info(self, package_name: str, version: str, data: PackageInfoOutput) -> None:
        self.package_info.set(f"pkg_info:{package_name}:{version}", data)

    def get_package_info(self, package_name: str, version: str) -> PackageInfoOutput | None:
        return self.package_info.get(f"pkg_info:{package_name}:{version}")

    # ------------------------------------------------------------------
    # Package README
    # ------------------------------------------------------------------

    def set_package_readme(
        self, package_name: str, version: str, data: PackageReadmeOutput
    ) -> None:
        self.package_readme.set(f"pkg_readme:{package_name}:{version}", data)

    def get_package_readme(self, package_name: str, version: str) -> PackageReadmeOutput | None:
        return self.package_readme.get(f"pkg_readme:{package_name}:{version}")

    # ------------------------------------------------------------------
    # Search results
    # ------------------------------------------------------------------

    def set_search_results(self, query_hash: str, limit: int, data: SearchPackagesOutput) -> None:
        self.search.set(f"search:{query_hash}:{limit}", data)

    def get_search_results(self, query_hash: str, limit: int) -> SearchPackagesOutput | None:
        return self.search.get(f"search:{query_hash}:{limit}")

    # ------------------------------------------------------------------
    # General purpose
    # ------------------------------------------------------------------

    def set_general(self, key: str, data: Any, ttl_seconds: float | None = None) -> None:
        self.general.set(f"general:{key}", data, ttl_seconds)

    def get_general(self, key: str) -> Any:
        return self.general.get(f"general:{key}")

    def has_general(self, key: str) -> bool:
        return self.general.has(f"general:{key}")

    def delete_general(self, key: str) -> bool:
        return self.general.delete(f"general:{key}")

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    @staticmethod
    def create_query_hash(query: str, filters: dict[str, Any] | None = None) -> str:
        """Deterministic 64-character token for a search query and its filters.

        Filters set to ``None`` are dropped, so an omitted filter and an
        explicit ``None`` share a slot.
        """
        payload = {
            "query": query,
            "filters": {k: v for k, v in (filters or {}).items() if v is not None},
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def overall_stats(self) -> dict[str, CacheStats]:
        return {
            "package_info": self.package_info.stats(),
            "package_readme": self.package_readme.stats(),
            "search": self.search.stats(),
            "general": self.general.stats(),
        }

    def clear_all(self) -> None:
        self.package_info.clear()
        self.package_readme.clear()
        self.search.clear()
        self.general.clear()
        log.info("cache_all_cleared")
