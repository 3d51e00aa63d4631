"""HTTP clients for vehicle data providers."""

from autodata.clients.base import APIProviderError, BaseAsyncClient, RateLimiter
from autodata.clients.checkcardetails import CheckCarDetailsClient
from autodata.clients.dvla import DVLAClient

__all__ = [
    "APIProviderError",
    "BaseAsyncClient",
    "CheckCarDetailsClient",
    "DVLAClient",
    "RateLimiter",
]
