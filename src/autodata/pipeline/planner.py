"""Fallback-chain planning and category coverage.

A category counts as covered when every field listed for it in
``CATEGORY_REQUIREMENTS`` is populated; valuation is covered when the
normalizer yields a non-empty price triple. The chain is simply the enabled
providers that could help, cheapest first.
"""

from collections.abc import Iterable

from autodata.engine.valuation import ValuationNormalizer
from autodata.providers.base import ProviderAdapter
from autodata.record import Category, VehicleRecord

CATEGORY_REQUIREMENTS: dict[Category, tuple[str, ...]] = {
    Category.IDENTIFICATION: (
        "identification.make",
        "identification.model",
        "identification.year",
        "identification.fuel_type",
    ),
    Category.RUNNING_COSTS: (
        "running_costs.combined_mpg",
        "running_costs.co2_emissions",
        "running_costs.insurance_group",
    ),
    Category.HISTORY: (
        "history.previous_owners",
        "history.is_written_off",
        "history.is_stolen",
        "history.mot_status",
    ),
    # Valuation coverage is decided by the normalizer
    Category.VALUATION: (),
}


def is_covered(
    record: VehicleRecord,
    category: Category,
    normalizer: ValuationNormalizer | None = None,
) -> bool:
    if category is Category.VALUATION:
        return not (normalizer or ValuationNormalizer()).normalize(record).is_empty
    return all(path in record for path in CATEGORY_REQUIREMENTS[category])


def covered_categories(
    record: VehicleRecord,
    normalizer: ValuationNormalizer | None = None,
) -> set[Category]:
    """Categories the record already satisfies."""
    normalizer = normalizer or ValuationNormalizer()
    return {c for c in Category if is_covered(record, c, normalizer)}


def missing_fields(record: VehicleRecord, category: Category) -> list[str]:
    """Required paths of ``category`` not present in ``record``."""
    return [path for path in CATEGORY_REQUIREMENTS[category] if path not in record]


def plan_providers(
    adapters: Iterable[ProviderAdapter],
    missing: Iterable[Category],
) -> list[ProviderAdapter]:
    """Order the providers worth calling for the missing categories.

    Args:
        adapters: All registered adapters
        missing: Categories not yet covered

    Returns:
        Enabled adapters declaring at least one missing category, sorted by
        (cost ascending, trust descending, provider id)
    """
    missing = set(missing)
    candidates = [
        a for a in adapters
        if a.descriptor.enabled and a.descriptor.categories & missing
    ]
    return sorted(
        candidates,
        key=lambda a: (a.descriptor.cost_per_call, -a.descriptor.trust_tier, a.provider_id),
    )


def valuation_matches_mileage(record: VehicleRecord, mileage: int | None) -> bool:
    """Whether a cached valuation was priced at the caller's mileage.

    No requested mileage, or no recorded basis, matches anything.
    """
    if mileage is None:
        return True
    basis = record.value("valuation.mileage")
    if basis is None:
        return True
    try:
        return int(basis) == mileage
    except (TypeError, ValueError):
        return False
