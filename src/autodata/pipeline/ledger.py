"""Cost accounting for lookups.

Each lookup produces a ``CostLedger`` listing the provider calls it made and
what they cost. ``CostTracker`` aggregates ledgers over the lifetime of an
orchestrator so operators can see spend by provider.

Usage:
    tracker = CostTracker()
    tracker.record(result.ledger)
    tracker.summary()
    #            calls  failures  cost
    # provider
    # valuation      3         0  0.36
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

_SUMMARY_COLUMNS = ["calls", "failures", "cost"]


@dataclass(frozen=True)
class ProviderCall:
    """One attempted provider call. Failed calls are charged 0."""

    provider_id: str
    cost: float
    succeeded: bool
    duration_ms: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "cost": self.cost,
            "succeeded": self.succeeded,
            "duration_ms": round(self.duration_ms, 1),
            "error": self.error,
        }


@dataclass
class CostLedger:
    """Per-lookup cost entry."""

    served_from_cache: bool = False
    calls: list[ProviderCall] = field(default_factory=list)

    def add(self, call: ProviderCall) -> None:
        self.calls.append(call)

    @property
    def providers_called(self) -> list[str]:
        """Provider ids in call order, failed calls included."""
        return [c.provider_id for c in self.calls]

    @property
    def total_cost(self) -> float:
        return round(sum(c.cost for c in self.calls), 4)

    def cost_by_provider(self) -> dict[str, float]:
        costs: dict[str, float] = {}
        for c in self.calls:
            costs[c.provider_id] = round(costs.get(c.provider_id, 0.0) + c.cost, 4)
        return costs

    def to_dict(self) -> dict[str, Any]:
        return {
            "providers_called": self.providers_called,
            "total_cost": self.total_cost,
            "served_from_cache": self.served_from_cache,
            "cost_by_provider": self.cost_by_provider(),
            "calls": [c.to_dict() for c in self.calls],
        }


class CostTracker:
    """Running totals across lookups.

    Totals are kept per provider, so memory does not grow with the number
    of lookups. Only the last ``history`` ledgers are retained for
    ``providers_consulted``.
    """

    def __init__(self, history: int = 1000) -> None:
        self._lookups = 0
        self._cache_hits = 0
        self._totals: dict[str, dict[str, float]] = {}
        self._recent: deque[CostLedger] = deque(maxlen=history)

    def record(self, ledger: CostLedger) -> None:
        self._lookups += 1
        if ledger.served_from_cache:
            self._cache_hits += 1
        for call in ledger.calls:
            totals = self._totals.setdefault(
                call.provider_id, dict.fromkeys(_SUMMARY_COLUMNS, 0)
            )
            totals["calls"] += 1
            totals["failures"] += 0 if call.succeeded else 1
            totals["cost"] += call.cost
        self._recent.append(ledger)
        logger.info(
            "Lookup cost: %.2f (%s)",
            ledger.total_cost,
            "cache" if ledger.served_from_cache else ", ".join(ledger.providers_called) or "none",
        )

    @property
    def lookups(self) -> int:
        return self._lookups

    @property
    def cache_hits(self) -> int:
        return self._cache_hits

    @property
    def total_cost(self) -> float:
        return round(sum(t["cost"] for t in self._totals.values()), 4)

    @property
    def providers_consulted(self) -> list[str]:
        """Provider calls made by the most recent lookups, in order."""
        return [p for ledger in self._recent for p in ledger.providers_called]

    def cost_by_provider(self) -> dict[str, float]:
        summary = self.summary()
        return {provider: float(cost) for provider, cost in summary["cost"].items()}

    def summary(self) -> pd.DataFrame:
        """Calls, failures and cost grouped by provider."""
        if not self._totals:
            empty = pd.DataFrame(columns=_SUMMARY_COLUMNS)
            empty.index.name = "provider"
            return empty

        summary = pd.DataFrame.from_dict(self._totals, orient="index", columns=_SUMMARY_COLUMNS)
        summary.index.name = "provider"
        summary = summary.sort_index()
        summary[["calls", "failures"]] = summary[["calls", "failures"]].astype(int)
        summary["cost"] = summary["cost"].round(4)
        return summary
