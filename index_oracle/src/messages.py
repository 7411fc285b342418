"""Messages accepted by :class:`~.IndexOracleContract.IndexOracleContract`.

Execute messages change state; anyone may send :class:`ComputeIndex`,
every other execute message is restricted to administrators. Query
messages never change state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .Basket import BasketItem
from .ContractStatus import ContractStatus


@dataclass(frozen=True)
class ComputeIndex:
    """Recompute the peg from current prices.

    :ivar check_deviation: Refuse a value too far from the target.
    """

    check_deviation: bool = False


@dataclass(frozen=True)
class ModBasket:
    """Add, remove (weight 0) or reweight basket assets.

    :ivar basket: ``(symbol, new_initial_weight)`` pairs.
    """

    basket: tuple[BasketItem, ...]


@dataclass(frozen=True)
class UpdateTarget:
    """Re-anchor the peg to ``new_target`` (18 decimals)."""

    new_target: int


@dataclass(frozen=True)
class Unfreeze:
    """Roll a frozen peg back once feeds are fresh again."""


@dataclass(frozen=True)
class UpdateStatus:
    status: ContractStatus


@dataclass(frozen=True)
class UpdateConfig:
    """Change configuration values; ``None`` leaves a value unchanged."""

    symbol: str | None = None
    staleness_window: int | None = None
    deviation_threshold: int | None = None


@dataclass(frozen=True)
class GetPrice:
    key: str


@dataclass(frozen=True)
class GetPrices:
    keys: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GetBasket:
    pass


@dataclass(frozen=True)
class GetIndexData:
    pass


ADMIN_MESSAGES = (ModBasket, UpdateTarget, Unfreeze, UpdateStatus, UpdateConfig)
