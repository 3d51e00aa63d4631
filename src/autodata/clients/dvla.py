"""DVLA Vehicle Enquiry Service client.

Free government API returning registration-level facts (make, colour,
fuel type, year, engine capacity, CO2, MOT status).

API Documentation: https://developer-portal.driver-vehicle-licensing.api.gov.uk/

Usage:
    from autodata.clients.dvla import DVLAClient

    async with DVLAClient(api_key="your_key") as client:
        vehicle = await client.get_vehicle("AB12CDE")
"""

from typing import Any

from autodata.clients.base import BaseAsyncClient

DEFAULT_BASE_URL = "https://driver-vehicle-licensing.api.gov.uk/vehicle-enquiry/v1"


class DVLAClient(BaseAsyncClient):
    """Async client for the DVLA Vehicle Enquiry Service.

    Args:
        api_key: DVLA API key (sent as ``x-api-key``)
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
            headers={"x-api-key": api_key, "Content-Type": "application/json"},
            rate_limit=rate_limit,
            timeout=timeout,
        )

    async def get_vehicle(self, vrm: str) -> dict[str, Any]:
        """Look up one vehicle by registration.

        Args:
            vrm: Normalized registration (e.g. 'AB12CDE')

        Returns:
            Raw DVLA vehicle document.
            Keys include: registrationNumber, make, colour, fuelType,
            yearOfManufacture, engineCapacity, co2Emissions, motStatus,
            motExpiryDate
        """
        return await self.post("/vehicles", json_data={"registrationNumber": vrm})
