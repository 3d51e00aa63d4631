"""Provider adapter interface.

An adapter wraps one external data source. It declares its metadata in a
``ProviderDescriptor`` and translates the source's raw payload into a
``ProviderResult`` keyed by record catalog paths. The orchestrator is written
only against this interface and never special-cases a provider by name.

Usage:
    class MyAdapter(ProviderAdapter):
        descriptor = ProviderDescriptor(
            provider_id="my_source",
            trust_tier=2,
            cost_per_call=0.10,
            categories=frozenset({Category.VALUATION}),
        )

        async def call(self, registration, *, mileage=None):
            payload = await fetch(registration)
            return ProviderResult(self.provider_id, {"valuation.price": payload["price"]})
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from autodata.record import Category, category_of, is_populated


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static metadata the orchestrator schedules by.

    Attributes:
        provider_id: Stable identifier, also the provenance tag on its fields
        trust_tier: Configured reliability rank (higher wins merge ties)
        cost_per_call: Charge per successful call (GBP)
        categories: Record categories this provider can populate
        enabled: False when the provider is not configured (e.g. no API key)
    """

    provider_id: str
    trust_tier: int
    cost_per_call: float
    categories: frozenset[Category]
    enabled: bool = True


@dataclass
class ProviderResult:
    """Normalized field set returned by one provider call.

    ``fields`` maps catalog paths to raw values. Sentinel values may be
    present; the merger treats them as absent.
    """

    provider_id: str
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for path in self.fields:
            category_of(path)

    def populated(self) -> dict[str, Any]:
        """Fields carrying real data."""
        return {path: v for path, v in self.fields.items() if is_populated(v)}

    @property
    def is_empty(self) -> bool:
        return not self.populated()


class ProviderAdapter(ABC):
    """Base class for provider adapters."""

    descriptor: ProviderDescriptor

    @property
    def provider_id(self) -> str:
        return self.descriptor.provider_id

    @abstractmethod
    async def call(
        self,
        registration: str,
        *,
        mileage: int | None = None,
    ) -> ProviderResult:
        """Fetch and translate data for a normalized registration.

        Args:
            registration: Normalized VRM
            mileage: Odometer reading, for providers that price by mileage

        Returns:
            The provider's normalized field set

        Raises:
            ProviderUnavailable: On timeout, network, rate-limit or non-2xx
        """
