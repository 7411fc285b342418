"""Unit tests for CLI parsing helpers."""

import argparse

import pytest

from index_oracle.main import (
    build_provider,
    build_store,
    parse_admins,
    parse_assignments,
    parse_basket,
)
from index_oracle.src.FixedPoint import to_fixed
from index_oracle.src.providers import MockPriceProvider, RouterPriceProvider
from index_oracle.src.StateStore import CborStateStore, MemoryStateStore


class TestParseBasket:
    """Test basket string parsing."""

    def test_basic(self) -> None:
        assert parse_basket("USD=0.25,BTC=0.75") == [
            ("USD", to_fixed("0.25")),
            ("BTC", to_fixed("0.75")),
        ]

    def test_whitespace_and_case(self) -> None:
        assert parse_basket(" usd = 0.5 , btc=0.5 ,") == [
            ("USD", to_fixed("0.5")),
            ("BTC", to_fixed("0.5")),
        ]

    def test_empty(self) -> None:
        assert parse_basket(None) == []
        assert parse_basket("") == []

    def test_missing_weight(self) -> None:
        with pytest.raises(ValueError, match="Expected SYMBOL=value"):
            parse_basket("USD")

    def test_missing_symbol(self) -> None:
        with pytest.raises(ValueError, match="Missing symbol"):
            parse_basket("=0.5")

    def test_bad_weight(self) -> None:
        with pytest.raises(ValueError):
            parse_basket("USD=lots")

    def test_prices(self) -> None:
        assert dict(parse_assignments("USD=1,BTC=30000")) == {
            "USD": to_fixed(1),
            "BTC": to_fixed(30000),
        }


class TestParseAdmins:
    """Test admin list parsing."""

    def test_admins(self) -> None:
        assert parse_admins("0xabc, 0xdef,") == ["0xabc", "0xdef"]

    def test_empty(self) -> None:
        assert parse_admins(None) == []


class TestBuilders:
    """Test provider and store construction from arguments."""

    def test_mock_provider(self) -> None:
        args = argparse.Namespace(provider="mock", mock_prices="USD=1")
        provider = build_provider(args)
        assert isinstance(provider, MockPriceProvider)
        assert provider.get_price("USD").data.rate == to_fixed(1)

    def test_router_provider(self) -> None:
        args = argparse.Namespace(
            provider="router", provider_url="https://router.example.com", provider_timeout=5.0
        )
        provider = build_provider(args)
        assert isinstance(provider, RouterPriceProvider)
        assert provider.timeout == 5.0

    def test_store(self, tmp_path) -> None:
        assert isinstance(build_store(None), MemoryStateStore)
        store = build_store(str(tmp_path / "state.cbor"))
        assert isinstance(store, CborStateStore)
