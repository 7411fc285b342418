"""Unit tests for Basket."""

import copy

import pytest

from index_oracle.src.Basket import AssetWeights, Basket
from index_oracle.src.errors import (
    BasketAssetNotFound,
    EmptyBasket,
    InvalidBasketWeights,
    RecursiveSymbol,
)
from index_oracle.src.FixedPoint import PRECISION, to_fixed
from index_oracle.src.OraclePrice import ReferenceData


def half_half() -> Basket:
    return Basket.from_initial("INDEX", [("USD", to_fixed("0.5")), ("BTC", to_fixed("0.5"))])


class TestBasketInit:
    """Test basket creation and validation."""

    def test_valid_basket(self) -> None:
        """Symbols keep insertion order and fixed weights start at zero."""
        basket = half_half()
        assert basket.symbols == ["USD", "BTC"]
        assert basket["USD"] == AssetWeights(initial=to_fixed("0.5"), fixed=0)
        assert basket.weight_sum() == PRECISION
        assert len(basket) == 2
        assert "BTC" in basket
        assert "ETH" not in basket

    def test_empty_basket(self) -> None:
        with pytest.raises(EmptyBasket):
            Basket.from_initial("INDEX", [])

    def test_own_symbol(self) -> None:
        """The index cannot price itself."""
        with pytest.raises(RecursiveSymbol) as exc_info:
            Basket.from_initial("INDEX", [("INDEX", PRECISION)])
        assert exc_info.value.symbol == "INDEX"

    def test_duplicate_symbol(self) -> None:
        with pytest.raises(RecursiveSymbol):
            Basket.from_initial("INDEX", [("USD", to_fixed("0.5")), ("USD", to_fixed("0.5"))])

    def test_weights_not_100_percent(self) -> None:
        """The weight sum must be exactly 100%."""
        with pytest.raises(InvalidBasketWeights) as exc_info:
            Basket.from_initial("INDEX", [("USD", to_fixed("0.5")), ("BTC", to_fixed("0.49"))])
        assert exc_info.value.weight == to_fixed("0.99")

    def test_zero_weight(self) -> None:
        with pytest.raises(InvalidBasketWeights):
            Basket.from_initial("INDEX", [("USD", PRECISION), ("BTC", 0)])


class TestBasketMutations:
    """Test add, remove and reweight operations."""

    def test_remove_and_add(self) -> None:
        """Zero removes, unknown symbols are added and reported."""
        basket = half_half()
        new_symbols = basket.apply_mutations(
            "INDEX", [("USD", 0), ("ETH", to_fixed("0.5"))]
        )
        assert new_symbols == ["ETH"]
        assert basket.symbols == ["BTC", "ETH"]
        assert basket["ETH"].fixed == 0
        assert basket.weight_sum() == PRECISION

    def test_reweight(self) -> None:
        basket = half_half()
        new_symbols = basket.apply_mutations(
            "INDEX", [("USD", to_fixed("0.25")), ("BTC", to_fixed("0.75"))]
        )
        assert new_symbols == []
        assert basket["BTC"].initial == to_fixed("0.75")

    def test_remove_missing_symbol(self) -> None:
        with pytest.raises(BasketAssetNotFound) as exc_info:
            half_half().apply_mutations("INDEX", [("ETH", 0)])
        assert exc_info.value.asset == "ETH"

    def test_add_own_symbol(self) -> None:
        with pytest.raises(RecursiveSymbol):
            half_half().apply_mutations("INDEX", [("INDEX", to_fixed("0.5")), ("USD", 0)])

    def test_sum_checked_after_mutation(self) -> None:
        with pytest.raises(InvalidBasketWeights):
            half_half().apply_mutations("INDEX", [("USD", to_fixed("0.6"))])

    def test_negative_weight(self) -> None:
        with pytest.raises(InvalidBasketWeights):
            half_half().apply_mutations("INDEX", [("USD", -1)])

    def test_remove_everything(self) -> None:
        with pytest.raises(EmptyBasket):
            half_half().apply_mutations("INDEX", [("USD", 0), ("BTC", 0)])

    def test_add_then_remove_in_same_batch(self) -> None:
        """A symbol added and removed again is not reported as new."""
        basket = half_half()
        new_symbols = basket.apply_mutations(
            "INDEX", [("ETH", to_fixed("0.1")), ("ETH", 0)]
        )
        assert new_symbols == []
        assert basket.symbols == ["USD", "BTC"]

    def test_remove_then_add_back_in_same_batch(self) -> None:
        """A symbol removed and added back was already in the basket."""
        basket = half_half()
        new_symbols = basket.apply_mutations(
            "INDEX", [("USD", 0), ("USD", to_fixed("0.5"))]
        )
        assert new_symbols == []
        assert sorted(basket.symbols) == ["BTC", "USD"]
        assert basket.weight_sum() == PRECISION


class TestBasketFixWeights:
    """Test weight fixing against an anchor value."""

    def test_fix_weights(self) -> None:
        """fixed = initial * anchor / rate."""
        basket = half_half()
        basket.fix_weights(
            to_fixed(1),
            {
                "USD": ReferenceData.at(to_fixed(1), 0),
                "BTC": ReferenceData.at(to_fixed(25000), 0),
            },
        )
        assert basket["USD"].fixed == to_fixed("0.5")
        assert basket["BTC"].fixed == 20_000_000_000_000

    def test_missing_price_keeps_fixed_weight(self) -> None:
        basket = half_half()
        basket["BTC"].fixed = 123
        basket.fix_weights(to_fixed(1), {"USD": ReferenceData.at(to_fixed(1), 0)})
        assert basket["BTC"].fixed == 123
        assert basket["USD"].fixed == to_fixed("0.5")

    def test_fix_weights_idempotent(self) -> None:
        """Fixing twice with the same inputs yields the same weights."""
        prices = {
            "USD": ReferenceData.at(to_fixed("0.98"), 0),
            "BTC": ReferenceData.at(to_fixed("29398.2"), 0),
        }
        basket = half_half()
        basket.fix_weights(to_fixed("1.05"), prices)
        first = basket.to_list()
        basket.fix_weights(to_fixed("1.05"), prices)
        assert basket.to_list() == first


class TestBasketSerialization:
    """Test conversion to and from plain data."""

    def test_to_list(self) -> None:
        basket = half_half()
        assert basket.to_list() == [
            ("USD", to_fixed("0.5"), 0),
            ("BTC", to_fixed("0.5"), 0),
        ]

    def test_round_trip(self) -> None:
        basket = half_half()
        basket["BTC"].fixed = 20_000_000_000_000
        restored = Basket.from_dict(basket.to_dict())
        assert restored == basket
        assert restored.symbols == basket.symbols

    def test_copies_are_independent(self) -> None:
        basket = half_half()
        draft = copy.deepcopy(basket)
        draft.apply_mutations("INDEX", [("USD", 0), ("BTC", PRECISION)])
        assert basket.symbols == ["USD", "BTC"]
