"""CheckCarDetails provider adapters.

One adapter per billed datapoint, so the orchestrator can buy only what a
lookup still lacks:

| Adapter | Datapoint | Categories |
|---|---|---|
| MOTHistoryAdapter | mot | history |
| VehicleSpecsAdapter | vehiclespecs | identification, running_costs |
| ValuationAdapter | vehiclevaluation | valuation |
| HistoryCheckAdapter | carhistorycheck | history |

Translation functions are pure and map raw payloads onto record catalog
paths; values the payload does not carry come back as None and are dropped
by the merger.
"""

import logging
import re
from abc import abstractmethod
from typing import Any

from autodata.clients.base import APIProviderError
from autodata.clients.checkcardetails import DEFAULT_BASE_URL, CheckCarDetailsClient
from autodata.engine.valuation import usable_price
from autodata.errors import ProviderUnavailable
from autodata.providers.base import ProviderAdapter, ProviderDescriptor, ProviderResult
from autodata.providers.dvla import engine_litres
from autodata.record import Category, is_populated

logger = logging.getLogger(__name__)

# Trim and transmission words that some payloads append to the model name
_MODEL_SUFFIX = re.compile(
    r"\s+(AUTO(?:MATIC)?|MANUAL|CVT|DSG|S[ -]?TRONIC|STEPTRONIC|M SPORT|AMG LINE|"
    r"S[ -]LINE|R[ -]LINE|ST[ -]LINE|GT[ -]LINE|TITANIUM|ZETEC|SPORT|SE|SEL|"
    r"\d\.\d\s*\w*)$",
    re.IGNORECASE,
)

_WRITE_OFF_CATEGORY = re.compile(r"\bCAT(?:EGORY)?\s*([ABCDSN])\b", re.IGNORECASE)


def _first(*values: Any) -> Any:
    """First populated value, or None."""
    for value in values:
        if is_populated(value):
            return value
    return None


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    section = payload.get(name)
    return section if isinstance(section, dict) else {}


def _flag(section: dict[str, Any], *keys: str) -> bool | None:
    """Boolean marker, None when the section does not mention it."""
    for key in keys:
        if key in section and section[key] is not None:
            return bool(section[key])
    return None


def clean_model_name(model: str) -> tuple[str, str | None]:
    """Strip trim-level and transmission suffixes from a model name.

    Returns:
        (model, stripped suffix or None)

    Examples:
        "3 SERIES M SPORT AUTO" -> ("3 SERIES", "M SPORT AUTO")
        "FOCUS" -> ("FOCUS", None)
    """
    cleaned = model.strip()
    removed: list[str] = []
    while True:
        match = _MODEL_SUFFIX.search(cleaned)
        if match is None or match.start() == 0:
            break
        removed.insert(0, match.group(1))
        cleaned = cleaned[:match.start()].rstrip()
    return cleaned, " ".join(removed) or None


def write_off_category(history: dict[str, Any]) -> str | None:
    """Extract the insurance write-off category (A/B/C/D/S/N).

    Reads an explicit ``category`` first, then scans the ``status`` text
    ("CAT D VEHICLE DAMAGED"). Returns None when the vehicle has no
    write-off record or the category cannot be determined.
    """
    if not history.get("writeOffRecord"):
        return None
    record = history.get("writeoff")
    if isinstance(record, list):
        record = record[0] if record else None
    if not isinstance(record, dict):
        return None

    explicit = record.get("category")
    if is_populated(explicit):
        return str(explicit).strip().upper()

    match = _WRITE_OFF_CATEGORY.search(str(record.get("status") or ""))
    return match.group(1).upper() if match else None


def translate_specs(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a ``vehiclespecs`` payload onto identification and running costs."""
    vehicle_id = _section(payload, "VehicleIdentification")
    model_data = _section(payload, "ModelData")
    smmt = _section(payload, "SmmtDetails")
    body = _section(payload, "BodyDetails")
    transmission = _section(payload, "Transmission")
    dvla_tech = _section(payload, "DvlaTechnicalDetails")
    emissions = _section(payload, "Emissions")
    economy = _section(_section(payload, "Performance"), "FuelEconomy")
    ved = _section(_section(_section(payload, "VehicleExciseDutyDetails"), "VedRate"), "Standard")

    model = _first(model_data.get("Model"), vehicle_id.get("DvlaModel"))
    trim = None
    if isinstance(model, str):
        model, trim = clean_model_name(model)

    return {
        "identification.make": _first(model_data.get("Make"), vehicle_id.get("DvlaMake")),
        "identification.model": model,
        "identification.variant": _first(
            model_data.get("ModelVariant"), smmt.get("ModelVariant"),
            model_data.get("Range"), trim,
        ),
        "identification.year": _first(vehicle_id.get("YearOfManufacture")),
        "identification.fuel_type": _first(
            model_data.get("FuelType"), smmt.get("FuelType"), vehicle_id.get("DvlaFuelType"),
        ),
        "identification.transmission": _first(
            transmission.get("TransmissionType"), smmt.get("Transmission"),
        ),
        "identification.body_type": _first(body.get("BodyStyle"), smmt.get("BodyStyle")),
        "identification.doors": _first(body.get("NumberOfDoors"), smmt.get("NumberOfDoors")),
        "identification.seats": _first(
            body.get("NumberOfSeats"), dvla_tech.get("SeatCountIncludingDriver"),
        ),
        "identification.engine_size": engine_litres(
            _first(dvla_tech.get("EngineCapacityCc"), smmt.get("EngineCapacity"))
        ),
        "running_costs.urban_mpg": _first(smmt.get("UrbanColdMpg"), economy.get("UrbanColdMpg")),
        "running_costs.extra_urban_mpg": _first(
            smmt.get("ExtraUrbanMpg"), economy.get("ExtraUrbanMpg"),
        ),
        "running_costs.combined_mpg": _first(smmt.get("CombinedMpg"), economy.get("CombinedMpg")),
        "running_costs.co2_emissions": _first(
            smmt.get("Co2"), emissions.get("ManufacturerCo2"), vehicle_id.get("DvlaCo2"),
        ),
        "running_costs.insurance_group": _first(
            smmt.get("InsuranceGroup"), model_data.get("InsuranceGroup"),
        ),
        "running_costs.annual_tax": _first(ved.get("TwelveMonths")),
        "running_costs.emission_class": _first(emissions.get("EuroStatus")),
    }


def _mot_status_from_test(test: dict[str, Any] | None) -> str | None:
    if not test:
        return None
    result = str(_first(test.get("testResult"), test.get("result")) or "").upper()
    if result == "PASSED":
        return "Valid"
    if result == "FAILED":
        return "Not valid"
    return None


def translate_mot(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a ``mot`` payload onto MOT status and due date.

    Explicit ``motStatus``/``motDueDate`` win; otherwise the most recent
    test in the history is used.
    """
    tests = [t for t in (payload.get("tests") or payload.get("motTests") or []) if isinstance(t, dict)]
    latest = max(
        tests,
        key=lambda t: str(_first(t.get("completedDate"), t.get("testDate")) or ""),
        default=None,
    )
    return {
        "history.mot_status": _first(payload.get("motStatus"), _mot_status_from_test(latest)),
        "history.mot_due_date": _first(
            payload.get("motDueDate"), (latest or {}).get("expiryDate"),
        ),
    }


def translate_valuation(payload: dict[str, Any], mileage: int | None = None) -> dict[str, Any]:
    """Map a ``vehiclevaluation`` payload onto the valuation fields.

    ``ValuationList`` fills both the estimated-value triple and the flat
    price fields. Unusable prices (missing, zero, non-numeric) are dropped.
    """
    prices = _section(payload, "ValuationList")
    private = usable_price(prices.get("PrivateClean"))
    retail = usable_price(prices.get("DealerForecourt"))
    trade = usable_price(_first(prices.get("PartExchange"), prices.get("TradeAverage")))

    return {
        "valuation.estimated_value.private": private,
        "valuation.estimated_value.retail": retail,
        "valuation.estimated_value.trade": trade,
        "valuation.private_price": private,
        "valuation.dealer_price": retail,
        "valuation.part_exchange_price": trade,
        "valuation.confidence": _first(
            payload.get("ValuationConfidence"), payload.get("confidence"),
        ),
        "valuation.mileage": _first(payload.get("Mileage"), mileage),
    }


def translate_history(payload: dict[str, Any]) -> dict[str, Any]:
    """Map a ``carhistorycheck`` payload onto the history fields."""
    registration = _section(payload, "VehicleRegistration")
    history = _section(payload, "VehicleHistory")

    keepers = _first(
        history.get("NumberOfPreviousKeepers"),
        history.get("numberOfPreviousKeepers"),
        history.get("PreviousKeepers"),
    )
    try:
        keepers = int(keepers) if keepers is not None else None
    except (TypeError, ValueError):
        keepers = None

    return {
        "history.previous_owners": keepers,
        "history.is_written_off": _flag(history, "writeOffRecord"),
        "history.write_off_category": write_off_category(history),
        "history.is_stolen": _flag(history, "stolenRecord"),
        "history.has_outstanding_finance": _flag(history, "financeRecord"),
        "history.is_scrapped": _flag(registration, "Scrapped"),
        "history.is_exported": _flag(registration, "Exported"),
    }


class CheckCarDetailsAdapter(ProviderAdapter):
    """Shared plumbing for the CheckCarDetails datapoints.

    Args:
        api_key: CheckCarDetails key; None disables the provider
        trust_tier: Configured trust tier
        cost_per_call: Configured cost per successful call (GBP)
        base_url: Service root
        rate_limit: Requests per second
        timeout: Per-request HTTP timeout
    """

    provider_id_default: str
    categories: frozenset[Category]

    def __init__(
        self,
        api_key: str | None,
        trust_tier: int,
        cost_per_call: float,
        base_url: str = DEFAULT_BASE_URL,
        rate_limit: int = 5,
        timeout: float = 10.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.rate_limit = rate_limit
        self.timeout = timeout
        self.descriptor = ProviderDescriptor(
            provider_id=self.provider_id_default,
            trust_tier=trust_tier,
            cost_per_call=cost_per_call,
            categories=self.categories,
            enabled=bool(api_key),
        )

    @abstractmethod
    async def fetch(
        self, client: CheckCarDetailsClient, registration: str, mileage: int | None
    ) -> dict[str, Any]:
        """Call the datapoint endpoint."""

    @abstractmethod
    def translate(self, payload: dict[str, Any], mileage: int | None) -> dict[str, Any]:
        """Map the raw payload onto catalog paths."""

    async def call(self, registration: str, *, mileage: int | None = None) -> ProviderResult:
        if not self.api_key:
            raise ProviderUnavailable(self.provider_id, "no API key configured")

        try:
            async with CheckCarDetailsClient(
                api_key=self.api_key,
                base_url=self.base_url,
                rate_limit=self.rate_limit,
                timeout=self.timeout,
            ) as client:
                payload = await self.fetch(client, registration, mileage)
        except APIProviderError as e:
            raise ProviderUnavailable(self.provider_id, str(e), e.status_code) from e

        if not isinstance(payload, dict):
            raise ProviderUnavailable(self.provider_id, "malformed response")
        return ProviderResult(self.provider_id, self.translate(payload, mileage))


class MOTHistoryAdapter(CheckCarDetailsAdapter):
    provider_id_default = "mot_history"
    categories = frozenset({Category.HISTORY})

    async def fetch(self, client, registration, mileage):
        return await client.get_mot_history(registration)

    def translate(self, payload, mileage):
        return translate_mot(payload)


class VehicleSpecsAdapter(CheckCarDetailsAdapter):
    provider_id_default = "vehicle_specs"
    categories = frozenset({Category.IDENTIFICATION, Category.RUNNING_COSTS})

    async def fetch(self, client, registration, mileage):
        return await client.get_vehicle_specs(registration)

    def translate(self, payload, mileage):
        return translate_specs(payload)


class ValuationAdapter(CheckCarDetailsAdapter):
    provider_id_default = "valuation"
    categories = frozenset({Category.VALUATION})

    async def fetch(self, client, registration, mileage):
        return await client.get_valuation(registration, mileage=mileage)

    def translate(self, payload, mileage):
        return translate_valuation(payload, mileage)


class HistoryCheckAdapter(CheckCarDetailsAdapter):
    provider_id_default = "history_check"
    categories = frozenset({Category.HISTORY})

    async def fetch(self, client, registration, mileage):
        return await client.get_history_check(registration)

    def translate(self, payload, mileage):
        return translate_history(payload)
