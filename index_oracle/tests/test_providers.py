"""Unit tests for the price providers."""

import json
from unittest.mock import MagicMock

import httpx
import pytest

from index_oracle.src.FixedPoint import to_fixed
from index_oracle.src.OraclePrice import ReferenceData
from index_oracle.src.providers import (
    BandPriceProvider,
    MockPriceProvider,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    RouterPriceProvider,
    get_available_providers,
    get_provider,
)

BAND_ADDRESS = "0xda7a001b254cd22e46d3eab04d937489c93174c3"


class TestRegistry:
    """Test the provider registry."""

    def test_available_providers(self) -> None:
        assert get_available_providers() == ["band", "mock", "router"]

    def test_get_provider(self) -> None:
        provider = get_provider("mock", prices={"USD": to_fixed(1)}, last_updated=0)
        assert isinstance(provider, MockPriceProvider)
        assert provider.get_price("USD").data.rate == to_fixed(1)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider 'nope'"):
            get_provider("nope")


class TestMockPriceProvider:
    """Test the in-memory provider."""

    def test_prices_in_request_order(self) -> None:
        provider = MockPriceProvider({"USD": to_fixed(1), "BTC": to_fixed(30000)}, last_updated=7)
        prices = provider.get_prices(["BTC", "USD"])
        assert [p.key for p in prices] == ["BTC", "USD"]
        assert prices[0].data == ReferenceData.at(to_fixed(30000), 7)

    def test_missing_symbol(self) -> None:
        """A partial answer is a failure."""
        provider = MockPriceProvider({"USD": to_fixed(1)}, last_updated=0)
        with pytest.raises(ProviderError, match="No price for \\['BTC'\\]"):
            provider.get_prices(["USD", "BTC"])

    def test_unavailable(self) -> None:
        provider = MockPriceProvider({"USD": to_fixed(1)}, last_updated=0)
        provider.set_unavailable()
        with pytest.raises(ProviderError, match="unavailable"):
            provider.get_prices(["USD"])
        provider.set_unavailable(False)
        assert provider.get_price("USD").key == "USD"

    def test_update_prices(self) -> None:
        provider = MockPriceProvider()
        provider.update_prices({"USD": to_fixed("0.98")}, last_updated=100)
        assert provider.get_price("USD").data == ReferenceData.at(to_fixed("0.98"), 100)

    def test_reference_data_with_split_timestamps(self) -> None:
        provider = MockPriceProvider()
        data = ReferenceData(rate=to_fixed(1), last_updated_base=10, last_updated_quote=5)
        provider.set_reference_data("USD", data)
        assert provider.get_price("USD").data.last_updated == 5


def router_with(handler) -> RouterPriceProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RouterPriceProvider(url="https://router.example.com/v1/", client=client)


class TestRouterPriceProvider:
    """Test the HTTP router provider."""

    def test_requires_url(self) -> None:
        with pytest.raises(ProviderConfigError):
            RouterPriceProvider()

    def test_get_prices(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json=[
                    {"key": "USD", "rate": str(to_fixed(1)), "last_updated_base": 1,
                     "last_updated_quote": 2},
                    {"key": "BTC", "rate": to_fixed(30000), "last_updated_base": 3,
                     "last_updated_quote": 4},
                ],
            )

        provider = router_with(handler)
        prices = provider.get_prices(["BTC", "USD"])

        assert [p.key for p in prices] == ["BTC", "USD"]
        assert prices[0].data == ReferenceData(to_fixed(30000), 3, 4)
        assert prices[1].data.last_updated == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == "https://router.example.com/v1/prices"
        assert json.loads(requests[0].content) == {"keys": ["BTC", "USD"]}

    def test_wrapped_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={"prices": [{"key": "USD", "rate": "1", "last_updated_base": 0,
                                  "last_updated_quote": 0}]},
            )

        assert router_with(handler).get_price("USD").data.rate == 1

    def test_api_key_header(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        client = httpx.Client(transport=httpx.MockTransport(handler))
        provider = RouterPriceProvider(url="https://r.example.com", api_key="secret", client=client)
        assert provider.get_prices([]) == []
        assert seen == {}

        with pytest.raises(ProviderError):
            provider.get_prices(["USD"])
        assert seen["auth"] == "Bearer secret"

    def test_http_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        with pytest.raises(ProviderHTTPError) as exc_info:
            router_with(handler).get_prices(["USD"])
        assert exc_info.value.status_code == 503

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError, match="Request failed"):
            router_with(handler).get_prices(["USD"])

    def test_malformed_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"key": "USD", "rate": "not a number"}])

        with pytest.raises(ProviderError, match="Malformed response"):
            router_with(handler).get_prices(["USD"])

    def test_missing_symbol(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[{"key": "USD", "rate": "1", "last_updated_base": 0,
                       "last_updated_quote": 0}],
            )

        with pytest.raises(ProviderError, match="No price for"):
            router_with(handler).get_prices(["USD", "BTC"])


def band_with(results=None, error: Exception | None = None) -> tuple[BandPriceProvider, MagicMock]:
    w3 = MagicMock()
    call = w3.eth.contract.return_value.functions.getReferenceDataBulk.return_value.call
    if error is not None:
        call.side_effect = error
    else:
        call.return_value = results
    return BandPriceProvider(address=BAND_ADDRESS, w3=w3), w3


class TestBandPriceProvider:
    """Test the Band StdReference provider."""

    def test_invalid_address(self) -> None:
        with pytest.raises(ProviderConfigError):
            BandPriceProvider(address="not-an-address", w3=MagicMock())

    def test_checksummed_address(self) -> None:
        provider, w3 = band_with([])
        assert provider.address.lower() == BAND_ADDRESS
        assert provider.address != BAND_ADDRESS
        assert w3.eth.contract.call_args.kwargs["address"] == provider.address

    def test_get_prices(self) -> None:
        provider, w3 = band_with([(to_fixed(1), 10, 20), (to_fixed(30000), 30, 40)])
        prices = provider.get_prices(["USD", "BTC"])

        functions = w3.eth.contract.return_value.functions
        functions.getReferenceDataBulk.assert_called_once_with(["USD", "BTC"], ["USD", "USD"])
        assert prices[1].key == "BTC"
        assert prices[1].data == ReferenceData(to_fixed(30000), 30, 40)

    def test_call_failure(self) -> None:
        provider, _ = band_with(error=ValueError("execution reverted"))
        with pytest.raises(ProviderError, match="Query failed"):
            provider.get_prices(["USD"])

    def test_result_length_mismatch(self) -> None:
        provider, _ = band_with([(to_fixed(1), 0, 0)])
        with pytest.raises(ProviderError, match="Expected 2 results"):
            provider.get_prices(["USD", "BTC"])

    def test_empty_request(self) -> None:
        provider, w3 = band_with([])
        assert provider.get_prices([]) == []
        w3.eth.contract.return_value.functions.getReferenceDataBulk.assert_not_called()
