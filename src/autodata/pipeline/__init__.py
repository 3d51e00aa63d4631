"""Lookup pipeline: Cache -> Providers -> Merger -> Normalizer -> Cache.

Components:
- Orchestrator: main coordinator, one ``lookup`` per registration
- planner: cost-ordered fallback chain and category coverage
- ledger: per-lookup cost ledger and running telemetry
"""

from autodata.pipeline.ledger import CostLedger, CostTracker, ProviderCall
from autodata.pipeline.orchestrator import LookupResult, Orchestrator

__all__ = [
    "CostLedger",
    "CostTracker",
    "LookupResult",
    "Orchestrator",
    "ProviderCall",
]
