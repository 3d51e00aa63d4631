"""Valuation Normalizer: canonical {private, retail, trade} price triple.

Valuations reach the record in several shapes: a fresh provider response
fills the nested ``estimated_value`` triple, older cache entries hold only
the flat ``private_price`` / ``dealer_price`` / ``part_exchange_price``
fields next to an empty triple, and some sources give one undifferentiated
``price``. This is the only place those shapes are reconciled.

Priority chain (first usable rule wins; usable = populated number > 0):
    1. populated ``estimated_value.{private,retail,trade}``, provenance kept
    2. flat private/dealer/part-exchange prices, reshaped, ``reconstructed``
    3. a single flat ``price`` as ``private`` only, ``reconstructed``
    4. the empty triple

Empty members stay empty. Zero is never substituted for a missing price.
"""

import re
from dataclasses import dataclass
from typing import Any

from autodata.record import RECONSTRUCTED, FieldValue, VehicleRecord, is_populated

TRIPLE_PATHS = {
    "private": "valuation.estimated_value.private",
    "retail": "valuation.estimated_value.retail",
    "trade": "valuation.estimated_value.trade",
}

FLAT_PATHS = {
    "private": "valuation.private_price",
    "retail": "valuation.dealer_price",
    "trade": "valuation.part_exchange_price",
}

SINGLE_PRICE_PATH = "valuation.price"

_NUMBER_NOISE = re.compile(r"[£$,\s]")


def usable_price(value: Any) -> float | int | None:
    """Parse a price, returning None unless it is a number > 0.

    Accepts ints, floats and numeric strings such as ``"36971"`` or
    ``"£36,971"``. Booleans are rejected.
    """
    if not is_populated(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        try:
            value = float(cleaned) if "." in cleaned else int(cleaned)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None


@dataclass(frozen=True)
class EstimatedValue:
    """Canonical price triple; each member is a FieldValue or None."""

    private: FieldValue | None = None
    retail: FieldValue | None = None
    trade: FieldValue | None = None

    @property
    def is_empty(self) -> bool:
        return self.private is None and self.retail is None and self.trade is None

    def members(self) -> dict[str, FieldValue | None]:
        return {"private": self.private, "retail": self.retail, "trade": self.trade}

    def to_dict(self) -> dict[str, dict[str, Any] | None]:
        return {
            name: member.to_dict() if member is not None else None
            for name, member in self.members().items()
        }


class ValuationNormalizer:
    """Rebuilds the price triple from whatever valuation fields exist."""

    def normalize(self, record: VehicleRecord) -> EstimatedValue:
        """Derive the canonical triple for a record.

        Args:
            record: Fresh, cached or merged vehicle record

        Returns:
            EstimatedValue; ``is_empty`` means "valuation unavailable"
        """
        triple = self._from_paths(record, TRIPLE_PATHS, keep_source=True)
        if not triple.is_empty:
            return triple

        triple = self._from_paths(record, FLAT_PATHS, keep_source=False)
        if not triple.is_empty:
            return triple

        field_value = record.get(SINGLE_PRICE_PATH)
        price = usable_price(field_value.value) if field_value else None
        if price is not None:
            return EstimatedValue(private=FieldValue(price, RECONSTRUCTED))

        return EstimatedValue()

    def apply(self, record: VehicleRecord) -> VehicleRecord:
        """Return a copy of ``record`` with the triple written back.

        Existing triple members are left as they are; only members derived
        by rules 2-3 are added.
        """
        updated = record.copy()
        for name, member in self.normalize(record).members().items():
            if member is not None:
                updated.set(TRIPLE_PATHS[name], member)
        return updated

    @staticmethod
    def _from_paths(
        record: VehicleRecord,
        paths: dict[str, str],
        keep_source: bool,
    ) -> EstimatedValue:
        members: dict[str, FieldValue | None] = {}
        for name, path in paths.items():
            field_value = record.get(path)
            price = usable_price(field_value.value) if field_value else None
            if price is None:
                members[name] = None
            elif keep_source:
                members[name] = FieldValue(price, field_value.source)
            else:
                members[name] = FieldValue(price, RECONSTRUCTED)
        return EstimatedValue(**members)
