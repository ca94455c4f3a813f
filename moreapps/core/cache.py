"""Caching layer for moreapps catalog results.

The cache holds a single entry: the most recently fetched catalog together
with the developer and country it was requested for.  It is two-tier, an
in-memory slot in front of a persisted document, and supports TTL-based
freshness checks as well as a stale lookup that ignores age and country for
offline fallback.

Every operation on a cache instance runs under one lock, so orchestrators on
different threads sharing the process-wide instance never observe a torn
entry.  Disk failures are logged and degrade to a memory-only cache.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from moreapps.core.data_models import CatalogRecord
from moreapps.storage.cache_store import CacheStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """The cached catalog plus the request it answers."""

    records: Tuple[CatalogRecord, ...]
    developer_id: str
    country: str
    timestamp: datetime = field(default_factory=_utcnow)

    def age_seconds(self, now: datetime) -> float:
        return (now - self.timestamp).total_seconds()

    def is_fresh(self, developer_id: str, country: str, max_age: float, now: datetime) -> bool:
        """Check developer, country and age against a request."""
        return (
            self.developer_id == developer_id
            and self.country == country
            and self.age_seconds(now) < max_age
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": [record.to_dict() for record in self.records],
            "timestamp": self.timestamp.isoformat(),
            "country": self.country,
            "developerId": self.developer_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Decode a persisted document.

        Raises
        ------
        ValueError
            If the document does not have the expected shape.
        """
        try:
            timestamp = datetime.fromisoformat(data["timestamp"])
            records = tuple(CatalogRecord.from_dict(item) for item in data["records"])
            developer_id = str(data["developerId"])
            country = str(data["country"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid cache document: {exc}") from exc

        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(records=records, developer_id=developer_id, country=country, timestamp=timestamp)


class CatalogCache:
    """Two-tier (memory + disk) single-slot cache with TTL support."""

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Persistent store (platform default location if not provided)
            clock: Returns the current UTC time; injectable for tests
        """
        self.store = store if store is not None else CacheStore()
        self._clock = clock
        self._memory: Optional[CacheEntry] = None
        self._lock = threading.RLock()
        self.logger = logging.getLogger(self.__class__.__name__)
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0

    def _read_disk(self) -> Optional[CacheEntry]:
        document = self.store.read()
        if document is None:
            return None
        try:
            return CacheEntry.from_dict(document)
        except ValueError as e:
            self.logger.warning("Discarding corrupt cache document: %s", e)
            return None

    def load(self, developer_id: str, country: str, max_age: float) -> Optional[List[CatalogRecord]]:
        """Get fresh cached records.

        Args:
            developer_id: Developer the records must belong to
            country: Country code the records must have been fetched for
            max_age: Maximum entry age in seconds

        Returns:
            Cached records or None if missing, mismatched or expired
        """
        with self._lock:
            now = self._clock()
            entry = self._memory
            if entry is not None and entry.is_fresh(developer_id, country, max_age, now):
                self._hits += 1
                self.logger.debug("Memory cache hit for developer %s (%s)", developer_id, country)
                return list(entry.records)

            entry = self._read_disk()
            if entry is not None and entry.is_fresh(developer_id, country, max_age, now):
                self._memory = entry
                self._hits += 1
                self.logger.debug("Disk cache hit for developer %s (%s)", developer_id, country)
                return list(entry.records)

            self._misses += 1
            self.logger.debug("Cache miss for developer %s (%s)", developer_id, country)
            return None

    def load_stale(self, developer_id: str) -> Optional[List[CatalogRecord]]:
        """Get cached records for a developer regardless of age or country.

        The entry may have been fetched for another region; any cached
        catalog is preferred over none when the service is unreachable.

        Args:
            developer_id: Developer the records must belong to

        Returns:
            Cached records or None if the slot holds another developer
        """
        with self._lock:
            entry = self._memory
            if entry is None or entry.developer_id != developer_id:
                entry = self._read_disk()
                if entry is None or entry.developer_id != developer_id:
                    self.logger.debug("No stale cache for developer %s", developer_id)
                    return None
                self._memory = entry

            self._stale_hits += 1
            self.logger.info(
                "Serving stale cache for developer %s (country=%s, age=%.0fs)",
                developer_id,
                entry.country,
                entry.age_seconds(self._clock()),
            )
            return list(entry.records)

    def save(self, records: Sequence[CatalogRecord], developer_id: str, country: str) -> bool:
        """Replace the cached entry.

        The slot is shared by all developers: saving for one developer drops
        whatever was cached for another.

        Args:
            records: Records to cache
            developer_id: Developer the records were fetched for
            country: Country code the records were fetched for

        Returns:
            True if the entry was also persisted to disk
        """
        with self._lock:
            entry = CacheEntry(
                records=tuple(records),
                developer_id=developer_id,
                country=country,
                timestamp=self._clock(),
            )
            self._memory = entry
            persisted = self.store.write(entry.to_dict())
            if not persisted:
                # The previous document must not outlive the entry that replaced it
                self.store.remove()
            self.logger.debug(
                "Cached %d records for developer %s (%s, persisted=%s)",
                len(entry.records),
                developer_id,
                country,
                persisted,
            )
            return persisted

    def clear(self) -> None:
        """Remove the cached entry from memory and disk."""
        with self._lock:
            self._memory = None
            self.store.remove()
            self.logger.info("Cleared catalog cache")

    def peek(self) -> Optional[CacheEntry]:
        """Return the current entry (memory, else disk) without validation."""
        with self._lock:
            if self._memory is not None:
                return self._memory
            return self._read_disk()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0
            entry = self._memory
            return {
                "hits": self._hits,
                "misses": self._misses,
                "stale_hits": self._stale_hits,
                "total_requests": total,
                "hit_rate_percent": round(hit_rate, 2),
                "developer_id": entry.developer_id if entry else None,
                "country": entry.country if entry else None,
                "record_count": len(entry.records) if entry else 0,
                "path": str(self.store.path),
            }


# Global cache instance
_cache: Optional[CatalogCache] = None
_cache_lock = threading.Lock()


def get_cache() -> CatalogCache:
    """Get or create the process-wide cache instance."""
    global _cache
    with _cache_lock:
        if _cache is None:
            _cache = CatalogCache()
        return _cache


def set_cache(cache: Optional[CatalogCache]) -> None:
    """Set (or reset with None) the process-wide cache instance."""
    global _cache
    with _cache_lock:
        _cache = cache
