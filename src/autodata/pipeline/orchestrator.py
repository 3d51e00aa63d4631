"""Orchestrator: cache-first vehicle lookup over a cost-ordered provider chain.

Pipeline for one registration:
  1. Validate and normalize the registration (the only fatal error)
  2. Serialize on the registration so duplicate lookups reuse the first
     one's cache write
  3. Serve a fresh cache entry that covers every requested category
  4. Otherwise call enabled providers cheapest first, skipping any whose
     categories are already covered, until nothing is missing
  5. Merge, normalize the valuation, write back to the cache; the write
     gets the time left before the deadline plus a short grace

A cached valuation priced at a different mileage than the caller asked
for does not count as cached.

Provider and cache failures never fail a lookup; they become warnings on
the result. A lookup past its deadline returns what it has, flagged
incomplete.

Usage:
    orchestrator = Orchestrator()
    result = await orchestrator.lookup("ab12 cde", [Category.VALUATION])
    result.record.value("valuation.estimated_value.private")
    result.ledger.total_cost
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from autodata.cache.backends import CacheBackend, MemoryBackend, ParquetBackend
from autodata.cache.locks import KeyedLocks
from autodata.cache.store import CacheEntry, CacheStore
from autodata.config import Settings
from autodata.config import settings as default_settings
from autodata.engine.merger import SourceMerger
from autodata.engine.valuation import ValuationNormalizer
from autodata.errors import CacheUnavailable, LookupWarning, ProviderUnavailable, WarningCode
from autodata.pipeline.ledger import CostLedger, CostTracker, ProviderCall
from autodata.pipeline.planner import (
    covered_categories,
    missing_fields,
    plan_providers,
    valuation_matches_mileage,
)
from autodata.providers.base import ProviderAdapter, ProviderResult
from autodata.providers.registry import build_default_providers, trust_tiers
from autodata.record import Category, VehicleRecord
from autodata.registration import validate_registration

logger = logging.getLogger(__name__)

# Seconds a cache write may run past the lookup deadline
CACHE_WRITE_GRACE = 0.25


def build_backend(settings: Settings) -> CacheBackend:
    """Cache backend selected by ``settings.cache_backend``."""
    if settings.cache_backend == "memory":
        return MemoryBackend()
    return ParquetBackend(base_path=settings.cache_dir)


def parse_categories(
    categories: Category | str | Iterable[Category | str] | None,
) -> set[Category]:
    """Normalize a category request; None means every category.

    Raises:
        ValueError: On an unknown category name
    """
    if categories is None:
        return set(Category)
    if isinstance(categories, (Category, str)):
        categories = [categories]
    return {c if isinstance(c, Category) else Category(c.lower()) for c in categories}


@dataclass
class LookupResult:
    """Outcome of one lookup.

    Attributes:
        registration: Normalized registration
        record: Merged record with the valuation triple applied
        ledger: Provider calls made and their cost
        warnings: Degraded-mode conditions, in the order they arose
        complete: False if the lookup deadline expired
    """

    registration: str
    record: VehicleRecord
    ledger: CostLedger
    warnings: list[LookupWarning] = field(default_factory=list)
    complete: bool = True

    @property
    def served_from_cache(self) -> bool:
        return self.ledger.served_from_cache

    def warning_codes(self) -> list[WarningCode]:
        return [w.code for w in self.warnings]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "registration": self.registration,
            "complete": self.complete,
            "record": self.record.to_dict(),
            "ledger": self.ledger.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class _Progress:
    """Mutable state of one in-flight lookup."""

    base: VehicleRecord | None
    ledger: CostLedger = field(default_factory=CostLedger)
    warnings: list[LookupWarning] = field(default_factory=list)
    results: list[ProviderResult] = field(default_factory=list)

    def warn(self, code: WarningCode, message: str, **extra: Any) -> None:
        self.warnings.append(LookupWarning(code, message, **extra))


class Orchestrator:
    """Coordinates cache, providers, merger and normalizer for lookups.

    Args:
        providers: Provider adapters (default: built from settings)
        cache: Cache store (default: backend and TTL from settings)
        settings: Configuration (default: the module-level settings)
    """

    def __init__(
        self,
        providers: Iterable[ProviderAdapter] | None = None,
        cache: CacheStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.providers = (
            list(providers) if providers is not None
            else build_default_providers(self.settings)
        )
        self.merger = SourceMerger(trust_tiers(self.providers))
        self.normalizer = ValuationNormalizer()

        if cache is None:
            cache = CacheStore(
                build_backend(self.settings),
                merger=self.merger,
                ttl=timedelta(days=self.settings.cache_ttl_days),
            )
        elif not cache.merger.trust_tiers:
            # Store writes use the same precedence as lookups
            cache.merger = self.merger
        self.cache = cache

        self._lookup_locks = KeyedLocks()
        self._telemetry = CostTracker()

    @property
    def telemetry(self) -> CostTracker:
        return self._telemetry

    async def lookup(
        self,
        registration: str,
        categories: Category | str | Iterable[Category | str] | None = None,
        *,
        timeout: float | None = None,
        force_refresh: bool = False,
        mileage: int | None = None,
    ) -> LookupResult:
        """Produce the canonical record for a registration.

        Args:
            registration: Raw registration mark, any spacing or case
            categories: Categories required (default: all)
            timeout: Lookup deadline in seconds (default: settings)
            force_refresh: Call providers even if the cache covers the request
            mileage: Valuation mileage (default: settings.default_mileage). When
                given, a cached valuation at another mileage is refetched

        Returns:
            LookupResult; partial provider failure is reported in warnings

        Raises:
            InvalidRegistrationIdentifier: Before any cache or provider access
        """
        key = validate_registration(registration)
        requested = parse_categories(categories)
        requested_mileage = mileage
        if mileage is None:
            mileage = self.settings.default_mileage

        loop = asyncio.get_running_loop()
        deadline = loop.time() + (timeout if timeout is not None else self.settings.lookup_timeout)

        try:
            async with asyncio.timeout_at(deadline):
                await self._lookup_locks.acquire(key)
        except TimeoutError:
            progress = _Progress(base=None)
            progress.warn(
                WarningCode.LOOKUP_TIMEOUT,
                f"Timed out waiting for a concurrent lookup of {key}",
            )
            return self._finish(key, VehicleRecord(), progress, complete=False)

        try:
            return await self._lookup_locked(
                key, requested, deadline, force_refresh, mileage, requested_mileage
            )
        finally:
            self._lookup_locks.release(key)

    async def _lookup_locked(
        self,
        key: str,
        requested: set[Category],
        deadline: float,
        force_refresh: bool,
        mileage: int,
        requested_mileage: int | None,
    ) -> LookupResult:
        progress = _Progress(base=None)
        complete = True

        try:
            async with asyncio.timeout_at(deadline):
                entry = await self._read_cache(key, progress)
                if entry is not None and self.cache.is_fresh(entry):
                    base = entry.record
                    if not valuation_matches_mileage(base, requested_mileage):
                        logger.info(
                            "%s: cached valuation priced at %s miles, %d requested",
                            key, base.value("valuation.mileage"), requested_mileage,
                        )
                        base = base.copy()
                        for path in base.section(Category.VALUATION):
                            base.discard(path)
                    progress.base = base
                    cached = self.normalizer.apply(base)
                    if not force_refresh and requested <= covered_categories(cached, self.normalizer):
                        logger.info("%s: served from cache", key)
                        progress.ledger.served_from_cache = True
                        return self._finish(key, cached, progress)
                elif entry is not None:
                    logger.info("%s: cache entry is cold, refreshing", key)

                await self._run_chain(key, requested, deadline, mileage, progress)
        except TimeoutError:
            complete = False
            progress.warn(
                WarningCode.LOOKUP_TIMEOUT,
                f"Lookup for {key} exceeded its deadline; returning partial record",
            )
            logger.warning("%s: lookup deadline exceeded", key)

        record = self.normalizer.apply(self.merger.merge(progress.base, progress.results))
        if progress.results:
            budget = max(deadline - asyncio.get_running_loop().time(), 0.0) + CACHE_WRITE_GRACE
            await self._write_cache(key, record, progress, budget)
        return self._finish(key, record, progress, complete=complete)

    async def _run_chain(
        self,
        key: str,
        requested: set[Category],
        deadline: float,
        mileage: int,
        progress: _Progress,
    ) -> None:
        loop = asyncio.get_running_loop()
        interim = self.merger.merge(progress.base, progress.results)
        missing = requested - covered_categories(interim, self.normalizer)

        for adapter in plan_providers(self.providers, missing):
            wanted = adapter.descriptor.categories & missing
            if not wanted:
                logger.debug("%s: skipping %s, categories covered", key, adapter.provider_id)
                continue

            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TimeoutError
            # No per-call bound when the lookup deadline comes first
            provider_timeout = self.settings.provider_timeout
            result = await self._call(
                adapter, key, mileage,
                provider_timeout if provider_timeout < remaining else None,
                progress,
            )
            if result is None:
                continue

            progress.results.append(result)
            interim = self.merger.merge(progress.base, progress.results)
            covered = covered_categories(interim, self.normalizer)
            for category in sorted(wanted - covered, key=lambda c: c.value):
                progress.warn(
                    WarningCode.PROVIDER_DATA_INCOMPLETE,
                    f"{adapter.provider_id} left {category.value} incomplete "
                    f"(missing: {', '.join(missing_fields(interim, category)) or 'valuation'})",
                    category=category.value,
                    provider_id=adapter.provider_id,
                )
            missing = requested - covered

        for category in sorted(missing, key=lambda c: c.value):
            progress.warn(
                WarningCode.ALL_PROVIDERS_FAILED,
                f"No provider could supply {category.value} for {key}",
                category=category.value,
            )

    async def _call(
        self,
        adapter: ProviderAdapter,
        key: str,
        mileage: int,
        timeout: float | None,
        progress: _Progress,
    ) -> ProviderResult | None:
        """Call one provider; failures are recorded and return None."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        error: str
        try:
            result = await asyncio.wait_for(adapter.call(key, mileage=mileage), timeout=timeout)
        except ProviderUnavailable as e:
            error = e.reason
        except TimeoutError:
            error = f"no response within {timeout:.1f}s" if timeout is not None else "timed out"
        except Exception as e:
            logger.warning("%s: %s raised unexpectedly", key, adapter.provider_id, exc_info=True)
            error = f"unexpected error: {e}"
        else:
            elapsed = (loop.time() - started) * 1000
            progress.ledger.add(ProviderCall(
                adapter.provider_id, adapter.descriptor.cost_per_call, True, elapsed,
            ))
            logger.info(
                "%s: %s returned %d fields (%.0fms)",
                key, adapter.provider_id, len(result.populated()), elapsed,
            )
            return result

        elapsed = (loop.time() - started) * 1000
        progress.ledger.add(ProviderCall(adapter.provider_id, 0.0, False, elapsed, error))
        progress.warn(
            WarningCode.PROVIDER_UNAVAILABLE,
            f"{adapter.provider_id} unavailable: {error}",
            provider_id=adapter.provider_id,
        )
        logger.warning("%s: %s FAILED: %s", key, adapter.provider_id, error)
        return None

    async def _read_cache(self, key: str, progress: _Progress) -> CacheEntry | None:
        try:
            return await self.cache.read(key)
        except CacheUnavailable as e:
            logger.warning("%s: cache read failed, continuing without cache: %s", key, e)
            progress.warn(WarningCode.CACHE_UNAVAILABLE, str(e))
            return None

    async def _write_cache(
        self,
        key: str,
        record: VehicleRecord,
        progress: _Progress,
        budget: float,
    ) -> None:
        """Persist the merged record, giving up after ``budget`` seconds."""
        try:
            async with asyncio.timeout(budget):
                await self.cache.write(key, record, [r.provider_id for r in progress.results])
        except CacheUnavailable as e:
            logger.warning("%s: cache write failed: %s", key, e)
            progress.warn(WarningCode.CACHE_UNAVAILABLE, str(e))
        except TimeoutError:
            logger.warning("%s: cache write abandoned after %.2fs", key, budget)
            progress.warn(
                WarningCode.CACHE_UNAVAILABLE,
                f"cache write for {key} did not finish within the lookup deadline",
            )

    def _finish(
        self,
        key: str,
        record: VehicleRecord,
        progress: _Progress,
        complete: bool = True,
    ) -> LookupResult:
        self._telemetry.record(progress.ledger)
        return LookupResult(
            registration=key,
            record=record,
            ledger=progress.ledger,
            warnings=progress.warnings,
            complete=complete,
        )
