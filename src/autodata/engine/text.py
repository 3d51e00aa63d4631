"""Canonical forms for free-text vehicle fields.

Providers disagree on casing and wording ("SILVER" vs "Silver", "AUTO" vs
"Automatic", "HYBRID ELECTRIC" vs "Petrol/Electric"). The merger runs every
incoming colour, fuel type and transmission through these functions so that
repeated lookups converge on one spelling.
"""

from collections.abc import Callable
from typing import Any

BARE_FUEL_TYPES = frozenset({"Petrol", "Diesel"})


def canonical_colour(raw: str) -> str:
    """Title-case a colour name: ``"DARK BLUE"`` -> ``"Dark Blue"``."""
    return " ".join(part.capitalize() for part in raw.split())


def canonical_transmission(raw: str) -> str:
    """Map transmission descriptions onto Automatic / Manual / Semi-Automatic."""
    lowered = raw.lower()
    if "semi" in lowered:
        return "Semi-Automatic"
    if "auto" in lowered or "cvt" in lowered or "dct" in lowered:
        return "Automatic"
    if "manual" in lowered:
        return "Manual"
    return canonical_colour(raw)


def canonical_fuel_type(raw: str) -> str:
    """Map a fuel description onto a canonical fuel type.

    Hybrid indicators are checked before "electric" so that DVLA's
    ``"HYBRID ELECTRIC"`` is not classified as a pure EV.

    Examples:
        "DIESEL" -> "Diesel"
        "Petrol/Electric" -> "Petrol Hybrid"
        "PETROL PLUG-IN HYBRID" -> "Petrol Plug-in Hybrid"
        "HYBRID ELECTRIC" -> "Hybrid"
        "ELECTRICITY" -> "Electric"
    """
    lowered = raw.lower().strip()
    base = None
    if "petrol" in lowered or "gasoline" in lowered:
        base = "Petrol"
    elif "diesel" in lowered:
        base = "Diesel"

    if "plug-in" in lowered or "phev" in lowered:
        return f"{base} Plug-in Hybrid" if base else "Plug-in Hybrid"
    if "hybrid" in lowered or "mhev" in lowered or (base and "electric" in lowered):
        return f"{base} Hybrid" if base else "Hybrid"
    if base:
        return base
    if "electric" in lowered or lowered in {"ev", "bev"}:
        return "Electric"
    return canonical_colour(raw)


def is_hybrid_fuel(fuel_type: str) -> bool:
    """True for any canonical hybrid or plug-in hybrid fuel type."""
    return "Hybrid" in fuel_type


def compound_fuel_type(bare: str, hybrid: str) -> str:
    """Combine a bare fuel type with a hybrid drivetrain indication.

    ``compound_fuel_type("Diesel", "Hybrid")`` -> ``"Diesel Hybrid"``;
    ``compound_fuel_type("Petrol", "Plug-in Hybrid")`` -> ``"Petrol Plug-in Hybrid"``.
    A hybrid value that already names its fuel is returned unchanged.
    """
    if hybrid.split(" ", 1)[0] in BARE_FUEL_TYPES:
        return hybrid
    return f"{bare} {hybrid}"


TEXT_CANONICALIZERS: dict[str, Callable[[str], str]] = {
    "identification.colour": canonical_colour,
    "identification.fuel_type": canonical_fuel_type,
    "identification.transmission": canonical_transmission,
}


def canonicalize(path: str, value: Any) -> Any:
    """Apply the canonicalizer registered for ``path``, if any."""
    canonicalizer = TEXT_CANONICALIZERS.get(path)
    if canonicalizer is None or not isinstance(value, str):
        return value
    return canonicalizer(value)
