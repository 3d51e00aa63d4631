"""Provider adapters over the external vehicle data sources."""

from autodata.providers.base import ProviderAdapter, ProviderDescriptor, ProviderResult

__all__ = [
    "ProviderAdapter",
    "ProviderDescriptor",
    "ProviderResult",
]
