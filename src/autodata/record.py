"""Canonical vehicle record with field-level provenance.

Every populated leaf is a ``FieldValue`` naming the provider that supplied
it. Leaves are addressed by dotted paths whose first segment is the
category (``"identification.make"``, ``"valuation.estimated_value.private"``).
Absent data is simply not stored.

Usage:
    record = VehicleRecord()
    record.set("identification.make", FieldValue("FORD", "dvla"))
    record.value("identification.make")  # "FORD"
    record.to_dict()
    # {"identification": {"make": {"value": "FORD", "source": "dvla"}}}
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Provenance tag for values derived from other fields rather than supplied
RECONSTRUCTED = "reconstructed"

_SENTINEL_STRINGS = frozenset({"null", "undefined", "none", "n/a", "--"})


class Category(Enum):
    """Record sections a caller can request."""

    IDENTIFICATION = "identification"
    RUNNING_COSTS = "running_costs"
    VALUATION = "valuation"
    HISTORY = "history"


def _paths(category: Category, *names: str) -> dict[str, Category]:
    return {f"{category.value}.{name}": category for name in names}


FIELD_CATALOG: dict[str, Category] = {
    **_paths(
        Category.IDENTIFICATION,
        "make", "model", "variant", "year", "colour", "fuel_type",
        "transmission", "body_type", "doors", "seats", "engine_size",
    ),
    **_paths(
        Category.RUNNING_COSTS,
        "urban_mpg", "extra_urban_mpg", "combined_mpg", "co2_emissions",
        "insurance_group", "annual_tax", "emission_class",
    ),
    **_paths(
        Category.VALUATION,
        "estimated_value.private", "estimated_value.retail",
        "estimated_value.trade", "private_price", "dealer_price",
        "part_exchange_price", "price", "confidence", "mileage",
    ),
    **_paths(
        Category.HISTORY,
        "previous_owners", "is_written_off", "write_off_category",
        "is_stolen", "has_outstanding_finance", "is_scrapped", "is_exported",
        "mot_status", "mot_due_date",
    ),
}


def is_populated(value: Any) -> bool:
    """Return True if ``value`` is real data rather than a placeholder.

    ``None``, blank strings, empty containers and textual sentinels such as
    ``"null"`` or ``"undefined"`` count as absent. ``0`` and ``False`` are
    real values.
    """
    if value is None:
        return False
    if isinstance(value, str):
        stripped = value.strip()
        return bool(stripped) and stripped.lower() not in _SENTINEL_STRINGS
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return len(value) > 0
    return True


def category_of(path: str) -> Category:
    """Look up the category of a catalog path.

    Raises:
        KeyError: If ``path`` is not in the field catalog
    """
    try:
        return FIELD_CATALOG[path]
    except KeyError:
        raise KeyError(f"Unknown record field: {path}") from None


@dataclass(frozen=True)
class FieldValue:
    """A value annotated with the provider that produced it."""

    value: Any
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "source": self.source}


@dataclass
class VehicleRecord:
    """Tree of provenance-annotated fields, stored flat by dotted path."""

    fields: dict[str, FieldValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for path, field_value in list(self.fields.items()):
            category_of(path)
            if not is_populated(field_value.value):
                del self.fields[path]

    def __contains__(self, path: object) -> bool:
        return path in self.fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, path: str) -> FieldValue | None:
        return self.fields.get(path)

    def value(self, path: str, default: Any = None) -> Any:
        """Return the bare value at ``path``, or ``default`` if absent."""
        field_value = self.fields.get(path)
        return default if field_value is None else field_value.value

    def set(self, path: str, field_value: FieldValue) -> None:
        """Store a populated field.

        Raises:
            KeyError: If ``path`` is not in the field catalog
            ValueError: If the value is a sentinel or empty
        """
        category_of(path)
        if not is_populated(field_value.value):
            raise ValueError(f"Refusing to store empty value at {path}")
        self.fields[path] = field_value

    def discard(self, path: str) -> None:
        self.fields.pop(path, None)

    def items(self) -> Iterator[tuple[str, FieldValue]]:
        return iter(self.fields.items())

    def copy(self) -> "VehicleRecord":
        return VehicleRecord(dict(self.fields))

    def section(self, category: Category) -> dict[str, FieldValue]:
        """All populated fields of one category."""
        return {
            path: fv for path, fv in self.fields.items()
            if FIELD_CATALOG[path] is category
        }

    def sources(self) -> set[str]:
        """Every provenance tag present in the record."""
        return {fv.source for fv in self.fields.values()}

    def to_dict(self) -> dict[str, Any]:
        """Nested tree of ``{"value", "source"}`` leaves."""
        return _nest({path: fv.to_dict() for path, fv in self.fields.items()})

    def values(self) -> dict[str, Any]:
        """Nested tree of bare values, without provenance."""
        return _nest({path: fv.value for path, fv in self.fields.items()})

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VehicleRecord":
        """Rebuild a record from the output of ``to_dict()``.

        Leaves whose value is a sentinel are dropped.
        """
        fields: dict[str, FieldValue] = {}
        for path, leaf in _flatten(data):
            fields[path] = FieldValue(value=leaf["value"], source=leaf["source"])
        return cls(fields)


def _nest(flat: Mapping[str, Any]) -> dict[str, Any]:
    tree: dict[str, Any] = {}
    for path in sorted(flat):
        node = tree
        *parents, leaf = path.split(".")
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = flat[path]
    return tree


def _is_leaf(node: Any) -> bool:
    return isinstance(node, Mapping) and set(node) == {"value", "source"}


def _flatten(
    node: Mapping[str, Any], prefix: str = ""
) -> Iterator[tuple[str, Mapping[str, Any]]]:
    for key, child in node.items():
        path = f"{prefix}.{key}" if prefix else key
        if _is_leaf(child):
            yield path, child
        elif isinstance(child, Mapping):
            yield from _flatten(child, path)
