"""Basket: Weighted set of underlying assets backing an index symbol.

Each asset carries two weights:

- ``initial``: the administrator facing share of the basket, an 18-decimal
  fraction. All initial weights add up to exactly ``10**18`` (100%).
- ``fixed``: the amount of the asset one unit of the index represents,
  derived from the initial weight, the peg value and the asset price
  (``fixed = initial * peg / price``). The peg is then a plain weighted sum
  ``sum(fixed * price)``.

.. code-block:: python

    >>> basket = Basket.from_initial("INDEX", [("USD", to_fixed("0.5")), ("BTC", to_fixed("0.5"))])
    >>> basket.symbols
    ['USD', 'BTC']
    >>> basket.fix_weights(to_fixed(1), {"USD": ReferenceData.at(to_fixed(1), 0),
    ...                                  "BTC": ReferenceData.at(to_fixed(25000), 0)})
    >>> basket["BTC"].fixed
    20000000000000
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .errors import BasketAssetNotFound, EmptyBasket, InvalidBasketWeights, RecursiveSymbol
from .FixedPoint import PRECISION, muldiv
from .OraclePrice import ReferenceData

# (symbol, initial weight as an 18-decimal fraction)
BasketItem = tuple[str, int]


@dataclass
class AssetWeights:
    """Initial and fixed weight of one basket asset.

    :ivar initial: Share of the basket (18-decimal fraction of 100%).
    :ivar fixed: Price anchored amount of the asset per index unit (18 decimals).
    """

    initial: int
    fixed: int = 0


class Basket:
    """Ordered mapping of asset symbol to :class:`AssetWeights`.

    Symbols keep insertion order so that queries and persistence are
    deterministic. A basket never contains its index symbol.
    """

    def __init__(self, weights: dict[str, AssetWeights] | None = None) -> None:
        self._weights: dict[str, AssetWeights] = dict(weights or {})

    @classmethod
    def from_initial(cls, index_symbol: str, items: Iterable[BasketItem]) -> Basket:
        """Build and validate a basket from ``(symbol, initial_weight)`` pairs.

        Fixed weights start at zero and must be computed with :meth:`fix_weights`.

        :param index_symbol: Symbol of the index the basket backs.
        :param items: Initial weights (18-decimal fractions).
        :raises EmptyBasket: If no items are given.
        :raises RecursiveSymbol: If a symbol repeats or equals ``index_symbol``.
        :raises InvalidBasketWeights: If a weight is not positive or the sum is not 100%.
        """
        basket = cls()
        for symbol, weight in items:
            if symbol in basket._weights:
                raise RecursiveSymbol(symbol)
            if weight <= 0:
                raise InvalidBasketWeights(weight)
            basket._weights[symbol] = AssetWeights(initial=weight)
        basket.validate(index_symbol)
        return basket

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._weights

    def __getitem__(self, symbol: str) -> AssetWeights:
        return self._weights[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Basket):
            return NotImplemented
        return self._weights == other._weights

    def __repr__(self) -> str:
        return f"Basket({self._weights!r})"

    @property
    def symbols(self) -> list[str]:
        """Asset symbols in insertion order."""
        return list(self._weights)

    def items(self) -> Iterator[tuple[str, AssetWeights]]:
        """Iterate over ``(symbol, weights)`` pairs."""
        return iter(self._weights.items())

    def weight_sum(self) -> int:
        """Sum of all initial weights (18 decimals)."""
        return sum(w.initial for w in self._weights.values())

    def validate(self, index_symbol: str) -> None:
        """Check the basket invariants.

        :raises EmptyBasket: If the basket has no assets.
        :raises RecursiveSymbol: If the basket contains ``index_symbol``.
        :raises InvalidBasketWeights: If initial weights do not add up to 100%.
        """
        if not self._weights:
            raise EmptyBasket()
        if index_symbol in self._weights:
            raise RecursiveSymbol(index_symbol)
        weight_sum = self.weight_sum()
        if weight_sum != PRECISION:
            raise InvalidBasketWeights(weight_sum)

    def apply_mutations(self, index_symbol: str, mutations: Iterable[BasketItem]) -> list[str]:
        """Add, remove or reweight assets in place.

        A zero weight removes an existing asset, a positive weight for an
        unknown symbol adds it (with a zero fixed weight) and any other
        weight replaces the asset's initial weight. The basket is validated
        afterwards, so callers should run this on a copy.

        :param index_symbol: Symbol of the index the basket backs.
        :param mutations: ``(symbol, new_initial_weight)`` pairs.
        :returns: Symbols that were not in the basket before.
        :raises RecursiveSymbol: If ``index_symbol`` is used as a key.
        :raises BasketAssetNotFound: If a missing symbol is removed.
        :raises InvalidBasketWeights: On a negative weight or a final sum other than 100%.
        :raises EmptyBasket: If every asset is removed.
        """
        previous = set(self._weights)
        for symbol, weight in mutations:
            if symbol == index_symbol:
                raise RecursiveSymbol(index_symbol)
            if weight < 0:
                raise InvalidBasketWeights(weight)

            if weight == 0:
                if symbol not in self._weights:
                    raise BasketAssetNotFound(symbol)
                del self._weights[symbol]
            elif symbol in self._weights:
                self._weights[symbol].initial = weight
            else:
                self._weights[symbol] = AssetWeights(initial=weight)

        self.validate(index_symbol)
        return [s for s in self._weights if s not in previous]

    def fix_weights(self, anchor: int, prices: dict[str, ReferenceData]) -> None:
        """Recompute fixed weights so the basket is worth ``anchor`` at ``prices``.

        ``fixed = initial * anchor / rate`` for every basket asset with a
        price. Assets without a price keep their previous fixed weight, and
        prices for symbols outside the basket are ignored.

        :param anchor: Peg value the basket should evaluate to (18 decimals).
        :param prices: Reference data by symbol.
        :raises ArithmeticOverflow: On a zero rate or an out of range result.
        """
        for symbol, weights in self._weights.items():
            data = prices.get(symbol)
            if data is None:
                continue
            weights.fixed = muldiv(weights.initial, anchor, data.rate)

    def to_list(self) -> list[tuple[str, int, int]]:
        """Return ``(symbol, initial, fixed)`` triples in basket order."""
        return [(s, w.initial, w.fixed) for s, w in self._weights.items()]

    def to_dict(self) -> dict:
        """Convert to a plain dictionary for persistence."""
        return {
            s: {"initial": w.initial, "fixed": w.fixed} for s, w in self._weights.items()
        }

    @classmethod
    def from_dict(cls, data: dict) -> Basket:
        """Restore a basket from :meth:`to_dict` output."""
        return cls(
            {
                s: AssetWeights(initial=int(w["initial"]), fixed=int(w["fixed"]))
                for s, w in data.items()
            }
        )
