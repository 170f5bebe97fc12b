# tests/services/test_frankfurter_provider.py
"""
Tests for the FrankfurterProvider.

HTTP traffic is intercepted with respx; no real requests are made.
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest
import respx

from stocktracker.services.exceptions import FXProviderError
from stocktracker.services.market_data.frankfurter import FrankfurterProvider

BASE_URL = "https://fx.test"


@pytest.fixture
def provider() -> FrankfurterProvider:
    return FrankfurterProvider(base_url=BASE_URL, timeout=5.0)


def frankfurter_body(base: str = "USD", day: str = "2025-01-15", **rates) -> dict:
    return {
        "amount": 1.0,
        "base": base,
        "date": day,
        "rates": rates or {"CAD": 1.35, "EUR": 0.92},
    }


# =============================================================================
# LATEST RATES
# =============================================================================

class TestFetchLatest:
    """Tests for the /latest endpoint."""

    @respx.mock
    async def test_parses_rates(self, provider):
        """Rates come back as Decimals keyed by upper-case code."""
        route = respx.get(f"{BASE_URL}/latest").mock(
            return_value=httpx.Response(200, json=frankfurter_body())
        )

        result = await provider.fetch_latest("usd")

        assert route.called
        assert route.calls.last.request.url.params["from"] == "USD"
        assert result.base == "USD"
        assert result.date == date(2025, 1, 15)
        assert result.rates == {"CAD": Decimal("1.35"), "EUR": Decimal("0.92")}

    @respx.mock
    async def test_trailing_slash_in_base_url(self):
        """A trailing slash on the base URL is ignored."""
        route = respx.get(f"{BASE_URL}/latest").mock(
            return_value=httpx.Response(200, json=frankfurter_body())
        )

        await FrankfurterProvider(base_url=f"{BASE_URL}/").fetch_latest("USD")

        assert route.called

    async def test_uses_injected_client(self):
        """An injected AsyncClient is used for the request."""
        async with respx.mock(base_url=BASE_URL) as mock:
            route = mock.get("/latest").mock(
                return_value=httpx.Response(200, json=frankfurter_body())
            )
            async with httpx.AsyncClient() as client:
                provider = FrankfurterProvider(base_url=BASE_URL, client=client)
                result = await provider.fetch_latest("USD")

        assert route.call_count == 1
        assert result.rates["CAD"] == Decimal("1.35")


# =============================================================================
# HISTORICAL RATES
# =============================================================================

class TestFetchForDate:
    """Tests for the dated endpoint."""

    @respx.mock
    async def test_requests_iso_date_path(self, provider):
        """The date is sent as an ISO path segment."""
        route = respx.get(f"{BASE_URL}/2024-03-09").mock(
            return_value=httpx.Response(
                200, json=frankfurter_body(day="2024-03-08", CAD=1.3501)
            )
        )

        result = await provider.fetch_for_date("USD", date(2024, 3, 9))

        assert route.called
        # Weekends resolve to the previous business day
        assert result.date == date(2024, 3, 8)
        assert result.rates == {"CAD": Decimal("1.3501")}


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestErrors:
    """Every failure surfaces as FXProviderError."""

    @respx.mock
    async def test_non_200(self, provider):
        respx.get(f"{BASE_URL}/latest").mock(return_value=httpx.Response(503))

        with pytest.raises(FXProviderError) as exc_info:
            await provider.fetch_latest("USD")

        assert exc_info.value.provider == "frankfurter"
        assert "503" in exc_info.value.reason

    @respx.mock
    async def test_network_error(self, provider):
        respx.get(f"{BASE_URL}/latest").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(FXProviderError) as exc_info:
            await provider.fetch_latest("USD")

        assert "Network error" in exc_info.value.reason

    @respx.mock
    async def test_invalid_json(self, provider):
        respx.get(f"{BASE_URL}/latest").mock(
            return_value=httpx.Response(200, content=b"<html>oops</html>")
        )

        with pytest.raises(FXProviderError, match="Invalid JSON"):
            await provider.fetch_latest("USD")

    @pytest.mark.parametrize("body", [
        {"base": "USD", "date": "2025-01-15"},
        {"base": "USD", "date": "not-a-date", "rates": {"CAD": 1.3}},
        {"base": "USD", "date": "2025-01-15", "rates": {"CAD": "abc"}},
        ["unexpected"],
    ])
    @respx.mock
    async def test_malformed_payload(self, provider, body):
        respx.get(f"{BASE_URL}/latest").mock(return_value=httpx.Response(200, json=body))

        with pytest.raises(FXProviderError, match="Malformed payload"):
            await provider.fetch_latest("USD")
