"""Source Merger: combine provider field sets into one annotated record.

Precedence, applied per field:
    1. A value already held from a fresh cache entry is kept unless an
       incoming provider supplies a populated value of equal or higher
       trust tier. Values from a cold entry yield to any populated value.
    2. Among simultaneous results the higher trust tier wins; on a tie the
       later result (more expensive, richer provider) wins.
    3. Sentinels and empty values never overwrite anything and are never
       stored.

Colour, fuel type and transmission are canonicalised on the way in, and a
bare Petrol/Diesel fuel type is upgraded to a compound hybrid type when an
equally or more trusted provider reports a hybrid drivetrain.
"""

import logging
from collections.abc import Mapping, Sequence

from autodata.engine.text import (
    BARE_FUEL_TYPES,
    canonicalize,
    compound_fuel_type,
    is_hybrid_fuel,
)
from autodata.providers.base import ProviderResult
from autodata.record import RECONSTRUCTED, FieldValue, VehicleRecord, is_populated

logger = logging.getLogger(__name__)

FUEL_TYPE = "identification.fuel_type"

# Floor for values from a cold cache entry: any populated value beats it
_COLD = -1

_BASELESS_HYBRIDS = frozenset({"Hybrid", "Plug-in Hybrid"})


class SourceMerger:
    """Field-by-field merge with trust-tier precedence.

    Args:
        trust_tiers: Configured trust tier per provider id. Unknown
            providers and reconstructed values rank 0.
    """

    def __init__(self, trust_tiers: Mapping[str, int] | None = None) -> None:
        self.trust_tiers = dict(trust_tiers or {})

    def trust_of(self, source: str) -> int:
        return self.trust_tiers.get(source, 0)

    def merge(
        self,
        existing: VehicleRecord | None,
        results: Sequence[ProviderResult],
        existing_fresh: bool = True,
    ) -> VehicleRecord:
        """Merge provider results over an existing record.

        Neither ``existing`` nor ``results`` is mutated.

        Args:
            existing: Previously known record (e.g. from cache), if any
            results: Provider results in call order
            existing_fresh: False if ``existing`` came from a cold entry

        Returns:
            New merged record
        """
        merged = VehicleRecord()
        floors: dict[str, int] = {}
        fuel_candidates: list[tuple[FieldValue, int]] = []

        if existing is not None:
            for path, field_value in existing.items():
                value = canonicalize(path, field_value.value)
                merged.set(path, FieldValue(value, field_value.source))
                tier = self.trust_of(field_value.source)
                floors[path] = tier if existing_fresh else _COLD
                if path == FUEL_TYPE:
                    fuel_candidates.append((merged.fields[path], tier))

        for result in results:
            tier = self.trust_of(result.provider_id)
            for path, raw in result.fields.items():
                if not is_populated(raw):
                    continue
                candidate = FieldValue(canonicalize(path, raw), result.provider_id)
                if path == FUEL_TYPE:
                    fuel_candidates.append((candidate, tier))
                if tier >= floors.get(path, _COLD):
                    merged.set(path, candidate)
                    floors[path] = tier

        self._reconcile_fuel_type(merged, fuel_candidates)
        return merged

    def _reconcile_fuel_type(
        self,
        merged: VehicleRecord,
        candidates: list[tuple[FieldValue, int]],
    ) -> None:
        """Upgrade a bare fuel type using a trusted hybrid indication.

        Some providers report only "Diesel" for mild hybrids that the
        registry lists as "HYBRID ELECTRIC". A previously reconstructed
        compound with the same base fuel also counts, so the field does not
        flip back to the bare type on the next lookup.
        """
        current = merged.get(FUEL_TYPE)
        if current is None or not isinstance(current.value, str):
            return

        if current.value in BARE_FUEL_TYPES:
            bare = current.value
            bare_tier = max(
                (tier for fv, tier in candidates if fv.value == bare),
                default=self.trust_of(current.source),
            )
        elif current.value in _BASELESS_HYBRIDS:
            # A generic hybrid won on trust; pair it with the best bare value
            bares = [
                (fv.value, tier) for fv, tier in candidates
                if isinstance(fv.value, str) and fv.value in BARE_FUEL_TYPES
            ]
            if not bares:
                return
            bare, bare_tier = max(bares, key=lambda pair: pair[1])
        else:
            return

        for candidate, tier in candidates:
            if not isinstance(candidate.value, str) or not is_hybrid_fuel(candidate.value):
                continue
            named_base = candidate.value.split(" ", 1)[0]
            if named_base in BARE_FUEL_TYPES and named_base != bare:
                continue
            if tier >= bare_tier or candidate.source == RECONSTRUCTED:
                compound = compound_fuel_type(bare, candidate.value)
                logger.debug(
                    "Fuel type %s (%s) + %s (%s) -> %s",
                    bare, current.source,
                    candidate.value, candidate.source, compound,
                )
                merged.set(FUEL_TYPE, FieldValue(compound, RECONSTRUCTED))
                return
