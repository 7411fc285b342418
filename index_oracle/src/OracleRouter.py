"""OracleRouter: Resolve price keys to the provider responsible for them.

Keys without an explicit registration fall back to the default provider.
A bulk query groups keys by provider so every provider is asked once, and
prices come back in request order.

Protected keys carry an expected rate and a tolerated relative deviation;
a quote outside that band is refused instead of being passed on.

The router is itself a :class:`~.providers.BasePriceProvider`, so an index
oracle can price its basket through it, and an index oracle can be
registered in it under its own symbol.

.. code-block:: python

    router = OracleRouter(default=band_provider)
    router.set_keys(index_contract, ["SILK"])
    router.set_protection("USDC", expected_rate=to_fixed(1), deviation=to_fixed("0.02"))
    prices = router.get_prices(["BTC", "SILK", "USDC"])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .ContractStatus import ContractStatus
from .errors import ExistingOracle, ProtectedPriceDeviation
from .FixedPoint import is_within_deviation, relative_deviation
from .OraclePrice import OraclePrice
from .providers import BasePriceProvider

logger = logging.getLogger(__name__)


@dataclass
class ProtectedKeyInfo:
    """Expected rate band of a protected key.

    :ivar key: Protected price key.
    :ivar expected_rate: Reference rate (18 decimals).
    :ivar deviation: Allowed relative deviation (18 decimals).
    """

    key: str
    expected_rate: int
    deviation: int

    def check(self, price: OraclePrice) -> None:
        """Ensure ``price`` lies within the protected band.

        :raises ProtectedPriceDeviation: If the rate deviates too much.
        """
        if not is_within_deviation(price.data.rate, self.expected_rate, self.deviation):
            raise ProtectedPriceDeviation(
                actual=price.data.rate,
                expected=self.expected_rate,
                deviation=self.deviation,
                actual_deviation=relative_deviation(price.data.rate, self.expected_rate),
            )


class OracleRouter(BasePriceProvider):
    """Registry routing price keys to providers.

    :ivar default: Provider for keys without a registration.
    :ivar status: Administrator controlled status.
    """

    name = "router-local"

    def __init__(self, default: BasePriceProvider, status: ContractStatus = ContractStatus.NORMAL) -> None:
        super().__init__()
        self.default = default
        self.status = status
        self._registry: dict[str, BasePriceProvider] = {}
        self._protected: dict[str, ProtectedKeyInfo] = {}

    @property
    def endpoint(self) -> str:
        return f"router:{self.default.endpoint}"

    def add_key(self, provider: BasePriceProvider, key: str) -> None:
        """Register ``provider`` for ``key``.

        :raises ExistingOracle: If ``key`` already has a provider.
        """
        if key in self._registry:
            raise ExistingOracle(key)
        self._registry[key] = provider

    def set_keys(self, provider: BasePriceProvider, keys: list[str]) -> None:
        """Register ``provider`` for ``keys``, replacing existing registrations."""
        for key in keys:
            self._registry[key] = provider
        logger.info(f"Registered {keys} -> {provider.endpoint}")

    def remove_keys(self, keys: list[str]) -> None:
        """Drop registrations; the keys fall back to the default provider."""
        for key in keys:
            self._registry.pop(key, None)
        logger.info(f"Removed {keys} from registry")

    def get_provider_for(self, key: str) -> BasePriceProvider:
        """Provider responsible for ``key``."""
        return self._registry.get(key, self.default)

    def get_keys(self) -> list[str]:
        """Explicitly registered keys, sorted."""
        return sorted(self._registry)

    def set_protection(self, key: str, expected_rate: int, deviation: int) -> None:
        """Protect ``key`` with an expected rate band."""
        self._protected[key] = ProtectedKeyInfo(key, expected_rate, deviation)

    def update_protected_keys(self, rates: list[tuple[str, int]]) -> None:
        """Move the expected rate of already protected keys.

        Keys that are not protected are ignored.
        """
        for key, rate in rates:
            info = self._protected.get(key)
            if info is not None:
                info.expected_rate = rate

    def remove_protection(self, keys: list[str]) -> None:
        for key in keys:
            self._protected.pop(key, None)

    def get_protected_keys(self) -> list[ProtectedKeyInfo]:
        return list(self._protected.values())

    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Fetch prices for ``symbols``, querying every provider once.

        :raises OracleDeprecated: If the router is deprecated.
        :raises OracleStatusFrozen: If the router is frozen.
        :raises ProtectedPriceDeviation: If a protected key is out of band.
        :raises ProviderError: If a provider fails.
        """
        self.status.require_can_run()

        groups: dict[int, tuple[BasePriceProvider, list[str]]] = {}
        for symbol in symbols:
            provider = self.get_provider_for(symbol)
            groups.setdefault(id(provider), (provider, []))[1].append(symbol)

        prices: list[OraclePrice] = []
        for provider, keys in groups.values():
            logger.debug(f"Querying {provider.endpoint} for {keys}")
            prices.extend(provider.get_prices(keys))

        for price in prices:
            info = self._protected.get(price.key)
            if info is not None:
                info.check(price)

        return self._require_complete(symbols, prices)
