"""Error types raised by the index oracle, router and fixed-point helpers.

Every error derives from :class:`IndexOracleError` so callers can catch the
whole family at the contract boundary. Each subclass keeps the values that
describe the failure as attributes for structured logging.

Staleness is not an error: a stale feed freezes the peg and the oracle keeps
serving its last stable value.
"""

from __future__ import annotations


class IndexOracleError(Exception):
    """Base exception for index oracle errors."""

    pass


class EmptyBasket(IndexOracleError):
    """Raised when a basket would end up with no assets."""

    def __init__(self) -> None:
        super().__init__("The basket cannot be empty.")


class RecursiveSymbol(IndexOracleError):
    """Raised when the basket references the oracle's own symbol, or repeats a symbol.

    :ivar symbol: The offending symbol.
    """

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Recursive symbol {symbol} in basket.")


class InvalidBasketWeights(IndexOracleError):
    """Raised when initial weights do not add up to exactly 100%.

    :ivar weight: Actual weight sum (18 decimals).
    """

    def __init__(self, weight: int) -> None:
        self.weight = weight
        super().__init__(
            f"Initial basket weights must add up to 100%. Currently {weight / 10**16:.4f}%."
        )


class BasketAssetNotFound(IndexOracleError):
    """Raised when removing a symbol that is not part of the basket.

    :ivar asset: Symbol that was not found.
    """

    def __init__(self, asset: str) -> None:
        self.asset = asset
        super().__init__(f"Cannot remove symbol that does not exist: {asset}.")


class RollbackNotFrozen(IndexOracleError):
    """Raised when a rollback is requested while the peg is active."""

    def __init__(self) -> None:
        super().__init__("Cannot rollback oracle if it isn't frozen.")


class RollbackStale(IndexOracleError):
    """Raised when a rollback is requested but the feeds are still stale.

    :ivar oldest_price: Timestamp of the least fresh feed.
    """

    def __init__(self, oldest_price: int) -> None:
        self.oldest_price = oldest_price
        super().__init__(
            "Prices are still stale so oracle cannot be rolled back. "
            f"(Oldest price is {oldest_price}.)"
        )


class PegDeviation(IndexOracleError):
    """Raised when a computed peg strays too far from the administrator target.

    :ivar peg: Computed peg value (18 decimals).
    :ivar target: Administrator target (18 decimals).
    :ivar deviation: Actual relative deviation (18 decimals).
    :ivar threshold: Allowed relative deviation (18 decimals).
    """

    def __init__(self, peg: int, target: int, deviation: int, threshold: int) -> None:
        self.peg = peg
        self.target = target
        self.deviation = deviation
        self.threshold = threshold
        super().__init__(
            f"Peg {peg} has deviated too far from the target {target}. "
            f"{deviation} > {threshold}."
        )


class UnsupportedSymbol(IndexOracleError):
    """Raised when a price is requested for a key this oracle does not serve.

    :ivar symbol: The requested key.
    """

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Unsupported symbol {symbol}.")


class MissingPrice(IndexOracleError):
    """Raised when a basket asset has no price in the supplied set.

    :ivar symbol: Basket symbol without a price.
    """

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Missing price feed for {symbol}.")


class ArithmeticOverflow(IndexOracleError):
    """Raised when a fixed-point operation leaves the representable range."""

    pass


class Unauthorized(IndexOracleError):
    """Raised when a non-admin sends an admin message.

    :ivar user: Address of the sender.
    """

    def __init__(self, user: str | None) -> None:
        self.user = user
        super().__init__(f"User {user} is not an authorized admin for this contract.")


class InvalidOperation(IndexOracleError):
    """Raised for messages the contract does not know how to handle."""

    pass


class OracleDeprecated(IndexOracleError):
    """Raised when an operation is refused because the oracle is deprecated."""

    def __init__(self) -> None:
        super().__init__("Oracle cannot be queried when it is deprecated.")


class OracleStatusFrozen(IndexOracleError):
    """Raised when an operation is refused because the oracle status is frozen."""

    def __init__(self) -> None:
        super().__init__("All operations disabled except for status toggle when frozen.")


class ExistingOracle(IndexOracleError):
    """Raised when registering a key that already has a provider.

    :ivar key: The duplicated key.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Can't add oracle to key {key} because one already exists.")


class ProtectedPriceDeviation(IndexOracleError):
    """Raised when a protected key reports a price outside its allowed band.

    :ivar actual: Reported rate (18 decimals).
    :ivar expected: Expected rate (18 decimals).
    :ivar deviation: Allowed relative deviation (18 decimals).
    :ivar actual_deviation: Observed relative deviation (18 decimals).
    """

    def __init__(self, actual: int, expected: int, deviation: int, actual_deviation: int) -> None:
        self.actual = actual
        self.expected = expected
        self.deviation = deviation
        self.actual_deviation = actual_deviation
        super().__init__(
            f"Reported price {actual} is not within expected deviation {deviation} "
            f"of the expected price {expected}. Actual deviation {actual_deviation}."
        )
