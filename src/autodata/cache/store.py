"""Cache Store: merge-on-write vehicle record cache.

Entries are keyed by normalized registration and enriched incrementally.
A write merges into the stored entry with the same precedence as the
Source Merger, so a write carrying fewer fields than already cached never
erases the fields it omits. Concurrent writes to the same key serialize on
a per-key lock; writes to different keys proceed independently.

Freshness is per entry: an entry older than the TTL (30 days by default)
is cold. The orchestrator ignores cold entries and refreshes; a write over
a cold entry replaces it instead of merging, so stale fields are never
restamped as fresh.

Usage:
    store = CacheStore(MemoryBackend(), merger=SourceMerger(trust_tiers))
    await store.write("ab12 cde", record, providers=["dvla"])
    entry = await store.read("AB12CDE")
    store.is_fresh(entry)  # True
"""

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from autodata.cache.backends import CacheBackend
from autodata.cache.locks import KeyedLocks
from autodata.engine.merger import SourceMerger
from autodata.errors import CacheUnavailable
from autodata.providers.base import ProviderResult
from autodata.record import FieldValue, VehicleRecord
from autodata.registration import normalize_registration

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=30)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class CacheEntry:
    """One cached vehicle record and its bookkeeping."""

    key: str
    record: VehicleRecord
    last_refreshed_at: datetime
    providers_consulted: frozenset[str]

    def age(self, now: datetime) -> timedelta:
        return now - self.last_refreshed_at

    def is_fresh(self, now: datetime, ttl: timedelta = DEFAULT_TTL) -> bool:
        return self.age(now) <= ttl

    def to_payload(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "last_refreshed_at": self.last_refreshed_at.isoformat(),
            "providers_consulted": sorted(self.providers_consulted),
            "fields": {path: fv.to_dict() for path, fv in self.record.items()},
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "CacheEntry":
        fields = payload.get("fields", {})
        return cls(
            key=payload["key"],
            record=VehicleRecord({
                path: FieldValue(leaf["value"], leaf["source"])
                for path, leaf in fields.items()
            }),
            last_refreshed_at=datetime.fromisoformat(payload["last_refreshed_at"]),
            providers_consulted=frozenset(payload.get("providers_consulted", [])),
        )


class CacheStore:
    """Merge-on-write record cache over a key-value backend.

    Args:
        backend: Persistence backend (last-write-wins per key)
        merger: Merger used for write precedence; defaults to one with no
            configured trust tiers
        ttl: Freshness window per entry (default: 30 days)
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        backend: CacheBackend,
        merger: SourceMerger | None = None,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.backend = backend
        self.merger = merger or SourceMerger()
        self.ttl = ttl
        self._clock = clock
        self._locks = KeyedLocks()

    def now(self) -> datetime:
        return self._clock()

    def is_fresh(self, entry: CacheEntry) -> bool:
        return entry.is_fresh(self._clock(), self.ttl)

    async def read(self, key: str) -> CacheEntry | None:
        """Fetch the entry for a registration.

        Returns:
            The entry, or None if the key was never written

        Raises:
            CacheUnavailable: If the backend fails
        """
        key = normalize_registration(key)
        try:
            payload = await self.backend.get(key)
        except Exception as e:
            raise CacheUnavailable(f"cache read failed for {key}: {e}") from e
        if payload is None:
            return None
        return CacheEntry.from_payload(payload)

    async def write(
        self,
        key: str,
        record: VehicleRecord,
        providers: str | Iterable[str],
    ) -> CacheEntry:
        """Merge a (partial) record into the stored entry.

        Stored fields absent from ``record`` are kept. A stored value is
        replaced only by a populated value of equal or higher trust tier.
        A cold stored entry is discarded rather than merged.

        Args:
            key: Registration (normalized here)
            record: Fields to add or refresh
            providers: Provider id(s) consulted to produce ``record``

        Returns:
            The entry as persisted

        Raises:
            CacheUnavailable: If the backend fails
        """
        key = normalize_registration(key)
        consulted = {providers} if isinstance(providers, str) else set(providers)

        async with self._locks.hold(key):
            current = await self.read(key)
            if current is not None and not self.is_fresh(current):
                # Cold fields must not be restamped as fresh
                logger.info("Cache entry %s is cold, replacing it", key)
                current = None
            existing = current.record if current is not None else None
            merged = self.merger.merge(existing, _by_source(record))

            entry = CacheEntry(
                key=key,
                record=merged,
                last_refreshed_at=self._clock(),
                providers_consulted=frozenset(
                    consulted | (current.providers_consulted if current else set())
                ),
            )
            try:
                await self.backend.put(key, entry.to_payload())
            except Exception as e:
                raise CacheUnavailable(f"cache write failed for {key}: {e}") from e

        logger.debug(
            "Cache write %s: %d fields (%d before), providers=%s",
            key, len(merged), len(existing) if existing else 0, sorted(consulted),
        )
        return entry


def _by_source(record: VehicleRecord) -> list[ProviderResult]:
    """Split a record into one result per provenance tag."""
    grouped: dict[str, dict[str, Any]] = defaultdict(dict)
    for path, field_value in record.items():
        grouped[field_value.source][path] = field_value.value
    return [ProviderResult(source, fields) for source, fields in grouped.items()]
