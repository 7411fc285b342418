"""IndexOracle: Peg computation for an asset pegged to a basket of assets.

The oracle keeps three pieces of state:

- :class:`IndexConfig`: the index symbol, where prices come from, how old
  the least fresh feed may get before the peg freezes, and the allowed
  deviation from the administrator target.
- :class:`~.Basket.Basket`: initial and fixed weight of every asset.
- :class:`Peg`: the administrator target, the live peg value, whether it
  is frozen, and when it was last updated.

State machine::

    Active (frozen=False) --stale feeds in compute_peg--> Frozen
    Frozen --rollback with fresh feeds--> Active

All methods here are pure state transitions over prices handed in by the
caller. Fetching prices, authorization and all-or-nothing commits live in
:class:`~.IndexOracleContract.IndexOracleContract`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .Basket import Basket, BasketItem
from .errors import MissingPrice, PegDeviation, RollbackNotFrozen, RollbackStale
from .FixedPoint import (
    PEG_DECIMALS,
    PRECISION,
    bankers_round,
    checked_add,
    from_fixed,
    is_within_deviation,
    muldiv,
    muldiv_fp,
    relative_deviation,
    to_fixed,
)
from .OraclePrice import OraclePrice, ReferenceData, prices_by_key

logger = logging.getLogger(__name__)

SIX_HOURS = 21600

DEFAULT_DEVIATION_THRESHOLD = to_fixed("0.10")


@dataclass
class IndexConfig:
    """Configuration of an index oracle.

    :ivar symbol: The only symbol this oracle serves (e.g., "SILK").
    :ivar provider_endpoint: Description of the price provider in use.
    :ivar staleness_window: Seconds after which the least fresh feed is stale.
    :ivar deviation_threshold: Allowed relative deviation from the target (18 decimals).
    """

    symbol: str
    provider_endpoint: str = ""
    staleness_window: int = SIX_HOURS
    deviation_threshold: int = DEFAULT_DEVIATION_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "provider_endpoint": self.provider_endpoint,
            "staleness_window": self.staleness_window,
            "deviation_threshold": self.deviation_threshold,
        }

    @classmethod
    def from_dict(cls, data: dict) -> IndexConfig:
        return cls(
            symbol=data["symbol"],
            provider_endpoint=data.get("provider_endpoint", ""),
            staleness_window=int(data["staleness_window"]),
            deviation_threshold=int(data["deviation_threshold"]),
        )


@dataclass
class Peg:
    """Peg of the index asset.

    :ivar target: Administrator reference value (18 decimals).
    :ivar value: Live peg value served to consumers (18 decimals).
    :ivar frozen: Whether ``value`` is held at its last stable level.
    :ivar last_updated: Unix seconds of the last committed ``value``.
    """

    target: int
    value: int
    frozen: bool = False
    last_updated: int = 0

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "value": self.value,
            "frozen": self.frozen,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Peg:
        return cls(
            target=int(data["target"]),
            value=int(data["value"]),
            frozen=bool(data["frozen"]),
            last_updated=int(data["last_updated"]),
        )


PriceInput = Iterable[OraclePrice] | dict[str, ReferenceData]


def _as_mapping(prices: PriceInput) -> dict[str, ReferenceData]:
    if isinstance(prices, dict):
        return prices
    return prices_by_key(list(prices))


class IndexOracle:
    """Basket peg computation engine.

    :ivar config: Oracle configuration.
    :ivar basket: Asset weights.
    :ivar peg: Peg state.

    .. code-block:: python

        >>> oracle = IndexOracle.init("sUSD", [("USD", to_fixed(1))], to_fixed(1), now=0)
        >>> oracle.compute_fixed_weights([OraclePrice.new("USD", "1.00", 0)])
        >>> oracle.compute_peg([OraclePrice.new("USD", "0.98", 0)], now=0).data.rate
        980000000000000000
    """

    def __init__(self, config: IndexConfig, basket: Basket, peg: Peg) -> None:
        self.config = config
        self.basket = basket
        self.peg = peg

    @classmethod
    def init(
        cls,
        symbol: str,
        basket: Iterable[BasketItem],
        target: int,
        now: int,
        staleness_window: int = SIX_HOURS,
        deviation_threshold: int = DEFAULT_DEVIATION_THRESHOLD,
        provider_endpoint: str = "",
    ) -> IndexOracle:
        """Create an oracle with a validated basket and an unfixed peg.

        Fixed weights are zero until :meth:`compute_fixed_weights` runs with
        the initial prices.

        :param symbol: Index symbol served by the oracle.
        :param basket: ``(symbol, initial_weight)`` pairs adding up to 100%.
        :param target: Starting peg value (18 decimals).
        :param now: Current unix time in seconds.
        :param staleness_window: Seconds before the least fresh feed counts as stale.
        :param deviation_threshold: Allowed relative deviation from the target.
        :param provider_endpoint: Description of the price provider.
        :raises EmptyBasket: If the basket is empty.
        :raises RecursiveSymbol: If the basket contains ``symbol`` or repeats a symbol.
        :raises InvalidBasketWeights: If weights do not add up to 100%.
        :raises ValueError: On a non-positive target or a negative staleness window.
        """
        if target <= 0:
            raise ValueError("target must be positive")
        if staleness_window < 0:
            raise ValueError("staleness_window must not be negative")
        config = IndexConfig(
            symbol=symbol,
            provider_endpoint=provider_endpoint,
            staleness_window=staleness_window,
            deviation_threshold=deviation_threshold,
        )
        return cls(
            config=config,
            basket=Basket.from_initial(symbol, basket),
            peg=Peg(target=target, value=target, frozen=False, last_updated=now),
        )

    @property
    def symbol(self) -> str:
        return self.config.symbol

    def quote(self, now: int) -> OraclePrice:
        """Quote the current peg value without recomputing it."""
        return OraclePrice(self.symbol, ReferenceData.at(self.peg.value, now))

    def compute_fixed_weights(self, prices: PriceInput) -> None:
        """Anchor the basket to the current peg value at the given prices.

        :param prices: Prices of (some of) the basket assets.
        :raises ArithmeticOverflow: On a zero rate or an out of range weight.
        """
        self.basket.fix_weights(self.peg.value, _as_mapping(prices))

    def evaluate(self, prices: PriceInput, now: int) -> tuple[int, int]:
        """Evaluate the basket at ``prices`` without changing any state.

        :param prices: Prices of every basket asset.
        :param now: Current unix time in seconds.
        :returns: ``(value, last_updated_feeds)`` where ``value`` is rounded to
            9 decimals (ties to even) and ``last_updated_feeds`` is the oldest
            base or quote timestamp among the consulted prices (capped at ``now``).
        :raises MissingPrice: If a basket asset has no price.
        """
        mapping = _as_mapping(prices)
        value = 0
        last_updated_feeds = now
        for symbol, weights in self.basket.items():
            data = mapping.get(symbol)
            if data is None:
                raise MissingPrice(symbol)
            value = checked_add(value, muldiv_fp(weights.fixed, data.rate))
            last_updated_feeds = min(last_updated_feeds, data.last_updated)
        return bankers_round(value, PEG_DECIMALS), last_updated_feeds

    def is_stale(self, last_updated: int, now: int) -> bool:
        """Check whether a timestamp is outside the staleness window."""
        return now - last_updated > self.config.staleness_window

    def compute_peg(self, prices: PriceInput | None, now: int) -> OraclePrice:
        """Recompute the peg value, freezing it if the feeds have gone stale.

        While frozen, or when no prices could be obtained, the last stable
        value is returned; in the latter case the peg freezes once its own
        ``last_updated`` leaves the staleness window. A price set missing a
        basket asset counts as no prices.

        :param prices: Current prices, or None if the provider was unreachable.
        :param now: Current unix time in seconds.
        :returns: Quote of the peg value after the computation.
        """
        mapping = None if prices is None else _as_mapping(prices)
        if mapping is not None:
            missing = [s for s in self.basket if s not in mapping]
            if missing:
                logger.warning(f"{self.symbol}: No price for {missing}, keeping last peg value")
                mapping = None

        if self.peg.frozen or mapping is None:
            if not self.peg.frozen and self.is_stale(self.peg.last_updated, now):
                self._freeze(self.peg.last_updated)
            return self.quote(now)

        new_value, last_updated_feeds = self.evaluate(mapping, now)
        if self.is_stale(last_updated_feeds, now):
            self._freeze(last_updated_feeds)
            return self.quote(now)

        logger.debug(
            f"{self.symbol}: Peg {from_fixed(self.peg.value)} -> {from_fixed(new_value)}"
        )
        self.peg.value = new_value
        self.peg.last_updated = now
        return self.quote(now)

    def freeze_if_stale(self, prices: PriceInput, now: int) -> bool:
        """Freeze the peg if any basket price is stale. Never unfreezes.

        :returns: Whether the peg is frozen afterwards.
        """
        if not self.peg.frozen:
            _, last_updated_feeds = self.evaluate(prices, now)
            if self.is_stale(last_updated_feeds, now):
                self._freeze(last_updated_feeds)
        return self.peg.frozen

    def _freeze(self, oldest_update: int) -> None:
        self.peg.frozen = True
        logger.warning(
            f"{self.symbol}: Price feeds stale since {oldest_update}, "
            f"peg frozen at {from_fixed(self.peg.value)}"
        )

    def check_deviation(self, value: int) -> None:
        """Ensure ``value`` is within the deviation threshold of the target.

        :raises PegDeviation: If the relative deviation exceeds the threshold.
        """
        if not is_within_deviation(value, self.peg.target, self.config.deviation_threshold):
            raise PegDeviation(
                peg=value,
                target=self.peg.target,
                deviation=relative_deviation(value, self.peg.target),
                threshold=self.config.deviation_threshold,
            )

    def update_basket(self, mutations: Iterable[BasketItem]) -> list[str]:
        """Apply basket mutations to the initial weights.

        Fixed weights of the mutated basket still have to be recomputed by
        the caller.

        :returns: Symbols added to the basket.
        """
        return self.basket.apply_mutations(self.symbol, mutations)

    def update_target(self, new_target: int, prices: PriceInput, now: int) -> None:
        """Re-anchor the peg to an administrator chosen value.

        :param new_target: New target and peg value (18 decimals).
        :param prices: Current prices of every basket asset.
        :param now: Current unix time in seconds.
        :raises ValueError: If ``new_target`` is not positive.
        """
        if new_target <= 0:
            raise ValueError("target must be positive")
        self.peg.target = new_target
        self.peg.value = new_target
        self.compute_fixed_weights(prices)
        self.peg.last_updated = now

    def rollback(self, prices: PriceInput, now: int) -> None:
        """Unfreeze the peg using fresh prices.

        The peg moves to the basket value at ``prices`` and the initial
        weights are re-derived from each asset's share of that value, so the
        composition matches where the peg actually is.

        :param prices: Fresh prices of every basket asset.
        :param now: Current unix time in seconds.
        :raises RollbackNotFrozen: If the peg is not frozen.
        :raises RollbackStale: If the least fresh price is still stale.
        :raises MissingPrice: If a basket asset has no price.
        """
        if not self.peg.frozen:
            raise RollbackNotFrozen()

        mapping = _as_mapping(prices)
        new_value, last_updated_feeds = self.evaluate(mapping, now)
        if self.is_stale(last_updated_feeds, now):
            raise RollbackStale(oldest_price=last_updated_feeds)

        shares = {
            symbol: muldiv(muldiv_fp(weights.fixed, mapping[symbol].rate), PRECISION, new_value)
            for symbol, weights in self.basket.items()
        }
        for symbol, initial in _normalize_shares(shares).items():
            self.basket[symbol].initial = initial

        self.peg.value = new_value
        self.compute_fixed_weights(mapping)
        self.peg.frozen = False
        self.peg.last_updated = now
        logger.info(f"{self.symbol}: Peg rolled back to {from_fixed(new_value)}")

    def to_dict(self) -> dict:
        """Convert the full oracle state to a plain dictionary."""
        return {
            "config": self.config.to_dict(),
            "basket": self.basket.to_dict(),
            "peg": self.peg.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> IndexOracle:
        """Restore an oracle from :meth:`to_dict` output."""
        return cls(
            config=IndexConfig.from_dict(data["config"]),
            basket=Basket.from_dict(data["basket"]),
            peg=Peg.from_dict(data["peg"]),
        )


def _normalize_shares(shares: dict[str, int]) -> dict[str, int]:
    """Scale shares so they add up to exactly 100%.

    Rounding dust goes to the largest share.
    """
    total = sum(shares.values())
    scaled = {symbol: muldiv(share, PRECISION, total) for symbol, share in shares.items()}
    dust = PRECISION - sum(scaled.values())
    if dust:
        largest = max(scaled, key=lambda s: scaled[s])
        scaled[largest] += dust
    return scaled
