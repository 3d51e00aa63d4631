"""CheckCarDetails API client.

Paid vehicle data API. Each datapoint is a separate, separately billed
endpoint:
- vehiclespecs: model data, SMMT details, fuel economy, VED
- mot: MOT test history
- vehiclevaluation: private/dealer/part-exchange valuations
- carhistorycheck: keepers, write-off, stolen and finance markers

API structure: /vehicledata/{datapoint}?apikey={key}&vrm={VRM}

Usage:
    from autodata.clients.checkcardetails import CheckCarDetailsClient

    async with CheckCarDetailsClient(api_key="your_key") as client:
        specs = await client.get_vehicle_specs("AB12CDE")
        value = await client.get_valuation("AB12CDE", mileage=42000)
"""

from typing import Any

from autodata.clients.base import BaseAsyncClient

DEFAULT_BASE_URL = "https://api.checkcardetails.co.uk"


class CheckCarDetailsClient(BaseAsyncClient):
    """Async client for the CheckCarDetails vehicle data API.

    Args:
        api_key: CheckCarDetails API key (sent as ``apikey`` query param)
        base_url: Override for the service root
        rate_limit: Max requests per second (default: 5)
        timeout: Per-request timeout in seconds (default: 10)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        rate_limit: int = 5,
        timeout: float = 10.0,
    ) -> None:
        super().__init__(
            base_url=base_url,
            headers={"Content-Type": "application/json"},
            rate_limit=rate_limit,
            timeout=timeout,
        )
        self.api_key = api_key

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Override to inject apikey into params."""
        params = dict(params or {})
        params["apikey"] = self.api_key
        return await super()._request(method, endpoint, params, json_data)

    async def _datapoint(
        self, datapoint: str, vrm: str, **extra: Any
    ) -> dict[str, Any]:
        return await self.get(
            f"/vehicledata/{datapoint}", params={"vrm": vrm.upper(), **extra}
        )

    async def get_vehicle_specs(self, vrm: str) -> dict[str, Any]:
        """Vehicle specification document.

        Returns:
            Raw payload with ModelData, SmmtDetails, BodyDetails,
            Performance, VehicleExciseDutyDetails and related sections
        """
        return await self._datapoint("vehiclespecs", vrm)

    async def get_mot_history(self, vrm: str) -> dict[str, Any]:
        """MOT status and test history.

        Returns:
            Raw payload with motStatus, motDueDate and a ``tests`` list
        """
        return await self._datapoint("mot", vrm)

    async def get_valuation(self, vrm: str, mileage: int | None = None) -> dict[str, Any]:
        """Valuation at a given mileage.

        Args:
            vrm: Normalized registration
            mileage: Odometer reading the valuation is based on

        Returns:
            Raw payload with ``ValuationList`` (PrivateClean,
            DealerForecourt, PartExchange, TradeAverage, ...)
        """
        extra = {"mileage": mileage} if mileage is not None else {}
        return await self._datapoint("vehiclevaluation", vrm, **extra)

    async def get_history_check(self, vrm: str) -> dict[str, Any]:
        """Full history check (keepers, write-off, stolen, finance).

        Returns:
            Raw payload with VehicleRegistration and VehicleHistory sections
        """
        return await self._datapoint("carhistorycheck", vrm)
