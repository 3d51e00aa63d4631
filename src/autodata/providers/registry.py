"""Provider registry: default costs, trust tiers and adapter construction.

Costs and trust tiers are configuration, not behaviour. Both can be
overridden per provider through ``Settings.provider_costs`` and
``Settings.provider_trust``.
"""

import logging
from collections.abc import Iterable

from autodata.config import Settings
from autodata.providers.base import ProviderAdapter
from autodata.providers.checkcardetails import (
    HistoryCheckAdapter,
    MOTHistoryAdapter,
    ValuationAdapter,
    VehicleSpecsAdapter,
)
from autodata.providers.dvla import DVLAAdapter

logger = logging.getLogger(__name__)

# GBP per successful call
DEFAULT_COSTS: dict[str, float] = {
    "dvla": 0.0,
    "mot_history": 0.02,
    "vehicle_specs": 0.05,
    "valuation": 0.12,
    "history_check": 1.82,
}

DEFAULT_TRUST: dict[str, int] = {
    "dvla": 3,
    "mot_history": 3,
    "vehicle_specs": 2,
    "valuation": 2,
    "history_check": 2,
}


def build_default_providers(settings: Settings) -> list[ProviderAdapter]:
    """Construct every known adapter from settings.

    Providers without an API key are returned disabled so they still show
    up in diagnostics but are never scheduled.
    """
    costs = {**DEFAULT_COSTS, **settings.provider_costs}
    trust = {**DEFAULT_TRUST, **settings.provider_trust}

    adapters: list[ProviderAdapter] = [
        DVLAAdapter(
            api_key=settings.dvla_api_key,
            trust_tier=trust["dvla"],
            cost_per_call=costs["dvla"],
            base_url=settings.dvla_base_url,
            rate_limit=settings.dvla_rate_limit,
            timeout=settings.provider_timeout,
        ),
    ]
    for adapter_cls in (
        MOTHistoryAdapter,
        VehicleSpecsAdapter,
        ValuationAdapter,
        HistoryCheckAdapter,
    ):
        provider_id = adapter_cls.provider_id_default
        adapters.append(
            adapter_cls(
                api_key=settings.checkcardetails_api_key,
                trust_tier=trust[provider_id],
                cost_per_call=costs[provider_id],
                base_url=settings.checkcardetails_base_url,
                rate_limit=settings.checkcardetails_rate_limit,
                timeout=settings.provider_timeout,
            )
        )

    for adapter in adapters:
        if not adapter.descriptor.enabled:
            logger.warning("Provider %s disabled: no API key configured", adapter.provider_id)
    return adapters


def trust_tiers(adapters: Iterable[ProviderAdapter]) -> dict[str, int]:
    """Trust tier per provider id, as the merger consumes it."""
    return {a.provider_id: a.descriptor.trust_tier for a in adapters}
