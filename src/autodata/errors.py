"""Exceptions and lookup warnings for the autodata engine.

Only ``InvalidRegistrationIdentifier`` ever escapes a lookup. Provider and
cache failures are recovered by the orchestrator and surfaced to callers as
``LookupWarning`` entries on the result.
"""

from dataclasses import dataclass
from enum import Enum


class AutodataError(Exception):
    """Base exception for the autodata engine."""


class InvalidRegistrationIdentifier(AutodataError, ValueError):
    """Registration mark is missing or not a recognised UK format."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"Invalid registration identifier: {raw!r}")
        self.raw = raw


class ProviderUnavailable(AutodataError):
    """A provider call failed (timeout, network, rate limit, non-2xx).

    Args:
        provider_id: Provider that failed
        reason: Short human-readable cause
        status_code: HTTP status code, if the failure had one
    """

    def __init__(
        self,
        provider_id: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{provider_id} unavailable: {reason}")
        self.provider_id = provider_id
        self.reason = reason
        self.status_code = status_code


class CacheUnavailable(AutodataError):
    """The cache backend could not be read or written."""


class WarningCode(Enum):
    """Non-fatal conditions reported alongside a lookup result."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_DATA_INCOMPLETE = "provider_data_incomplete"
    ALL_PROVIDERS_FAILED = "all_providers_failed"
    CACHE_UNAVAILABLE = "cache_unavailable"
    LOOKUP_TIMEOUT = "lookup_timeout"


@dataclass(frozen=True)
class LookupWarning:
    """A degraded-mode condition attached to a lookup result."""

    code: WarningCode
    message: str
    category: str | None = None
    provider_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "category": self.category,
            "provider_id": self.provider_id,
        }
