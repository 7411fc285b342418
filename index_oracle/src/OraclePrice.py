"""OraclePrice: Quoted rates exchanged between providers, routers and oracles.

A :class:`ReferenceData` is what a Band-style provider reports for one
symbol: an 18-decimal rate and the unix timestamps at which the base and
quote feeds were last refreshed. :class:`OraclePrice` attaches the key it
was quoted for.

.. code-block:: python

    >>> price = OraclePrice.new("BTC", "29398.20", 1_700_000_000)
    >>> price.data.rate
    29398200000000000000000
    >>> price.data.last_updated
    1700000000
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .FixedPoint import to_fixed


@dataclass(frozen=True)
class ReferenceData:
    """A single quoted rate with its freshness timestamps.

    :ivar rate: Price scaled to 18 decimals.
    :ivar last_updated_base: Unix seconds of the last base feed update.
    :ivar last_updated_quote: Unix seconds of the last quote feed update.
    """

    rate: int
    last_updated_base: int
    last_updated_quote: int

    @property
    def last_updated(self) -> int:
        """Timestamp of the least fresh of the two feeds."""
        return min(self.last_updated_base, self.last_updated_quote)

    @classmethod
    def at(cls, rate: int, time: int) -> ReferenceData:
        """Create reference data whose feeds were both updated at ``time``."""
        return cls(rate=rate, last_updated_base=time, last_updated_quote=time)

    def to_dict(self) -> dict:
        """Convert to a plain dictionary for serialization."""
        return {
            "rate": str(self.rate),
            "last_updated_base": self.last_updated_base,
            "last_updated_quote": self.last_updated_quote,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ReferenceData:
        """Parse a dictionary produced by :meth:`to_dict` or a router response.

        :raises ValueError: If a field is missing or malformed.
        """
        try:
            return cls(
                rate=int(data["rate"]),
                last_updated_base=int(data["last_updated_base"]),
                last_updated_quote=int(data["last_updated_quote"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed reference data {data!r}: {e}") from e


@dataclass(frozen=True)
class OraclePrice:
    """A reference price for a specific key.

    :ivar key: Symbol the price was quoted for (e.g., "BTC").
    :ivar data: The quoted rate and timestamps.
    """

    key: str
    data: ReferenceData

    @classmethod
    def new(cls, key: str, rate: str | int | Decimal, time: int) -> OraclePrice:
        """Build a price from a decimal rate, with both feeds updated at ``time``."""
        return cls(key=key, data=ReferenceData.at(to_fixed(rate), time))

    def to_dict(self) -> dict:
        """Convert to a flat dictionary (router wire format)."""
        return {"key": self.key, **self.data.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> OraclePrice:
        """Parse a flat dictionary (router wire format).

        :raises ValueError: If a field is missing or malformed.
        """
        if "key" not in data:
            raise ValueError(f"Malformed oracle price {data!r}: missing key")
        return cls(key=str(data["key"]), data=ReferenceData.from_dict(data))


def prices_by_key(prices: list[OraclePrice]) -> dict[str, ReferenceData]:
    """Index a list of prices by key (later entries win)."""
    return {price.key: price.data for price in prices}
