"""In-memory price provider.

Holds administrator-set rates the way a mock Band contract does. Used in
tests, local runs and as a manual fallback feed. The provider can be
switched off to simulate an unreachable upstream.
"""

import logging
import time

from ..OraclePrice import OraclePrice, ReferenceData
from .base import BasePriceProvider, ProviderError, register_provider

logger = logging.getLogger(__name__)


@register_provider
class MockPriceProvider(BasePriceProvider):
    """Provider serving rates set through :meth:`update_prices`.

    :ivar available: When False every query fails as if unreachable.
    """

    name = "mock"

    def __init__(
        self,
        prices: dict[str, int] | None = None,
        last_updated: int | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the provider.

        :param prices: Initial rates by symbol (18 decimals).
        :param last_updated: Timestamp for the initial rates (default: now).
        :param timeout: Unused, accepted for interface parity.
        """
        super().__init__(timeout=timeout)
        self.available = True
        self._data: dict[str, ReferenceData] = {}
        if prices:
            self.update_prices(prices, last_updated)

    def update_prices(self, prices: dict[str, int], last_updated: int | None = None) -> None:
        """Set the rate of several symbols.

        :param prices: Rates by symbol (18 decimals).
        :param last_updated: Feed timestamp (default: now).
        """
        if last_updated is None:
            last_updated = int(time.time())
        for symbol, rate in prices.items():
            self._data[symbol] = ReferenceData.at(rate, last_updated)
        logger.debug(f"[mock] Updated {sorted(prices)} at {last_updated}")

    def set_reference_data(self, symbol: str, data: ReferenceData) -> None:
        """Set the full reference data of a symbol, including distinct base/quote timestamps."""
        self._data[symbol] = data

    def set_unavailable(self, unavailable: bool = True) -> None:
        """Simulate an unreachable provider."""
        self.available = not unavailable

    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Return the stored rates for ``symbols``.

        :raises ProviderError: If the provider is unavailable or a symbol is unknown.
        """
        if not self.available:
            raise ProviderError("[mock] Provider unavailable")
        prices = [OraclePrice(s, self._data[s]) for s in symbols if s in self._data]
        return self._require_complete(symbols, prices)
