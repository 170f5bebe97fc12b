# stocktracker/services/market_data/frankfurter.py
"""
Frankfurter FX rate provider.

Frankfurter (https://www.frankfurter.app) republishes the European Central
Bank reference rates. It is free, needs no API key, and serves true
historical rates back to 1999.

Endpoints used:
    GET {base_url}/latest?from=USD
    GET {base_url}/2024-01-15?from=USD

Response format:
    {"amount": 1.0, "base": "USD", "date": "2024-01-15",
     "rates": {"CAD": 1.3412, "EUR": 0.9154, ...}}

On weekends and holidays the historical endpoint answers with the previous
business day; the returned `date` reflects that.
"""

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from stocktracker.services.exceptions import FXProviderError
from stocktracker.services.market_data.base import FXRateProvider, ProviderRates

logger = logging.getLogger(__name__)


class FrankfurterProvider(FXRateProvider):
    """
    FX rates from the Frankfurter API using httpx.

    A client can be injected (tests pass one bound to respx); otherwise a
    short-lived AsyncClient is opened per request.
    """

    def __init__(
            self,
            base_url: str = "https://api.frankfurter.app",
            timeout: float = 10.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        logger.info(f"FrankfurterProvider initialized (base_url={self._base_url})")

    @property
    def name(self) -> str:
        return "frankfurter"

    async def fetch_latest(self, base: str) -> ProviderRates:
        return await self._get(f"{self._base_url}/latest", base)

    async def fetch_for_date(self, base: str, rate_date: date) -> ProviderRates:
        return await self._get(f"{self._base_url}/{rate_date.isoformat()}", base)

    async def _get(self, url: str, base: str) -> ProviderRates:
        params = {"from": base.upper()}
        logger.debug(f"GET {url} params={params}")

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.RequestError as e:
            raise FXProviderError(self.name, f"Network error calling {url}: {e}") from e

        if response.status_code != 200:
            raise FXProviderError(
                self.name,
                f"HTTP {response.status_code} from {url}",
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise FXProviderError(self.name, f"Invalid JSON from {url}") from e

        return self._parse(payload)

    def _parse(self, payload: Any) -> ProviderRates:
        """Turn a Frankfurter response body into ProviderRates."""
        try:
            base = str(payload["base"]).upper()
            rate_date = date.fromisoformat(payload["date"])
            rates = {
                str(code).upper(): Decimal(str(value))
                for code, value in payload["rates"].items()
            }
        except (KeyError, TypeError, AttributeError, ValueError, InvalidOperation) as e:
            raise FXProviderError(self.name, f"Malformed payload: {e}") from e

        return ProviderRates(base=base, date=rate_date, rates=rates)
