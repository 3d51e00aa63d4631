"""DVLA provider adapter.

Registration facts held by the DVLA: the most trusted source for what is
printed on the V5C, free to call, but silent on model, running costs and
valuation.
"""

import logging
from typing import Any

from autodata.clients.base import APIProviderError
from autodata.clients.dvla import DEFAULT_BASE_URL, DVLAClient
from autodata.errors import ProviderUnavailable
from autodata.providers.base import ProviderAdapter, ProviderDescriptor, ProviderResult
from autodata.record import Category

logger = logging.getLogger(__name__)

PROVIDER_ID = "dvla"


def engine_litres(capacity_cc: Any) -> float | None:
    """Convert an engine capacity in cc to litres, one decimal place."""
    try:
        cc = float(capacity_cc)
    except (TypeError, ValueError):
        return None
    return round(cc / 1000, 1) if cc > 0 else None


def translate_dvla(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a DVLA vehicle document onto record catalog paths."""
    return {
        "identification.make": payload.get("make"),
        "identification.year": payload.get("yearOfManufacture"),
        "identification.colour": payload.get("colour"),
        "identification.fuel_type": payload.get("fuelType"),
        "identification.engine_size": engine_litres(payload.get("engineCapacity")),
        "running_costs.co2_emissions": payload.get("co2Emissions"),
        "history.mot_status": payload.get("motStatus"),
        "history.mot_due_date": payload.get("motExpiryDate"),
    }


class DVLAAdapter(ProviderAdapter):
    """Adapter over ``DVLAClient``.

    Args:
        api_key: DVLA key; None disables the provider
        trust_tier: Configured trust tier
        cost_per_call: Configured cost (the service is free)
        base_url: Service root
        rate_limit: Requests per second
        timeout: Per-request HTTP timeout
    """

    def __init__(
        self,
        api_key: str | None,
        trust_tier: int = 3,
        cost_per_call: float = 0.0,
        base_url: str = DEFAULT_BASE_URL,
        rate_limit: int = 5,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.rate_limit = rate_limit
        self.timeout = timeout
        self.descriptor = ProviderDescriptor(
            provider_id=PROVIDER_ID,
            trust_tier=trust_tier,
            cost_per_call=cost_per_call,
            categories=frozenset({Category.IDENTIFICATION}),
            enabled=bool(api_key),
        )

    async def call(self, registration: str, *, mileage: int | None = None) -> ProviderResult:
        if not self.api_key:
            raise ProviderUnavailable(PROVIDER_ID, "no API key configured")

        try:
            async with DVLAClient(
                api_key=self.api_key,
                base_url=self.base_url,
                rate_limit=self.rate_limit,
                timeout=self.timeout,
            ) as client:
                payload = await client.get_vehicle(registration)
        except APIProviderError as e:
            raise ProviderUnavailable(PROVIDER_ID, str(e), e.status_code) from e

        return ProviderResult(PROVIDER_ID, translate_dvla(payload))
