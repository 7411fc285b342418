"""IndexOracleContract: Message entry point around an :class:`~.IndexOracle.IndexOracle`.

The contract owns the oracle state and wires it to the outside world:

- fetches basket prices from an injected price provider,
- checks the administrator list and the contract status,
- runs every execute message on a deep copy of the state and commits the
  copy (and saves it through the state store) only if the whole message
  succeeded.

Messages are dispatched by type::

    contract.execute(ComputeIndex(), sender=keeper)
    contract.execute(ModBasket((("USD", 0), ("BTC", to_fixed(1)))), sender=admin)
    contract.query(GetPrice("SILK"))

The contract is also a price provider for its own symbol, so it can be
registered in an :class:`~.OracleRouter.OracleRouter`.
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Iterable
from typing import Any

from web3 import Web3

from .Basket import BasketItem
from .ContractStatus import ContractStatus
from .errors import (
    InvalidOperation,
    OracleDeprecated,
    OracleStatusFrozen,
    ProtectedPriceDeviation,
    RecursiveSymbol,
    Unauthorized,
    UnsupportedSymbol,
)
from .FixedPoint import from_fixed
from .IndexOracle import DEFAULT_DEVIATION_THRESHOLD, SIX_HOURS, IndexOracle
from .messages import (
    ADMIN_MESSAGES,
    ComputeIndex,
    GetBasket,
    GetIndexData,
    GetPrice,
    GetPrices,
    ModBasket,
    Unfreeze,
    UpdateConfig,
    UpdateStatus,
    UpdateTarget,
)
from .OraclePrice import OraclePrice
from .providers import BasePriceProvider, ProviderError
from .StateStore import MemoryStateStore, StateStore

logger = logging.getLogger(__name__)

# Errors with which an upstream provider, router or nested index refuses a query
PROVIDER_REFUSALS = (
    ProviderError,
    OracleDeprecated,
    OracleStatusFrozen,
    ProtectedPriceDeviation,
    UnsupportedSymbol,
)


def normalize_address(address: str) -> str:
    """Checksum an administrator address.

    :raises ValueError: If ``address`` is not a valid hex address.
    """
    if not Web3.is_address(address):
        raise ValueError(f"Invalid admin address: {address!r}")
    return Web3.to_checksum_address(address)


class IndexOracleContract(BasePriceProvider):
    """Index oracle with authorization, status and all-or-nothing commits.

    :ivar oracle: Committed oracle state.
    :ivar provider: Source of basket prices.
    :ivar admins: Checksummed administrator addresses.
    :ivar status: Administrator controlled status.
    :ivar store: Where committed state is saved.
    """

    name = "index"

    def __init__(
        self,
        oracle: IndexOracle,
        provider: BasePriceProvider,
        admins: Iterable[str],
        status: ContractStatus = ContractStatus.NORMAL,
        store: StateStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__()
        self.oracle = oracle
        self.provider = provider
        self.admins = [normalize_address(a) for a in admins]
        self.status = status
        self.store = store or MemoryStateStore()
        self.clock = clock

        self._execute_handlers: dict[type, Callable[[Any, IndexOracle, int], Any]] = {
            ComputeIndex: self._compute_index,
            ModBasket: self._mod_basket,
            UpdateTarget: self._update_target,
            Unfreeze: self._unfreeze,
            UpdateStatus: self._update_status,
            UpdateConfig: self._update_config,
        }
        self._query_handlers: dict[type, Callable[[Any, int], Any]] = {
            GetPrice: self._get_price,
            GetPrices: self._get_prices,
            GetBasket: self._get_basket,
            GetIndexData: self._get_index_data,
        }

    @classmethod
    def instantiate(
        cls,
        symbol: str,
        basket: Iterable[BasketItem],
        target: int,
        provider: BasePriceProvider,
        admins: Iterable[str],
        staleness_window: int = SIX_HOURS,
        deviation_threshold: int = DEFAULT_DEVIATION_THRESHOLD,
        store: StateStore | None = None,
        now: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> IndexOracleContract:
        """Create a new index oracle and fix its weights against ``target``.

        :param symbol: Index symbol served by the oracle.
        :param basket: ``(symbol, initial_weight)`` pairs adding up to 100%.
        :param target: Starting peg value (18 decimals).
        :param provider: Source of basket prices.
        :param admins: Administrator addresses.
        :param staleness_window: Seconds before the least fresh feed counts as stale.
        :param deviation_threshold: Allowed relative deviation from the target.
        :param store: State store (default: in memory).
        :param now: Current unix time (default: ``clock()``).
        :param clock: Time source for later messages.
        :returns: The instantiated contract, already saved to ``store``.
        :raises IndexOracleError: If the basket is invalid.
        :raises ProviderError: If the initial prices cannot be fetched.
        """
        now = int(clock()) if now is None else now
        oracle = IndexOracle.init(
            symbol,
            basket,
            target,
            now,
            staleness_window=staleness_window,
            deviation_threshold=deviation_threshold,
            provider_endpoint=provider.endpoint,
        )
        oracle.compute_fixed_weights(provider.get_prices(oracle.basket.symbols))

        contract = cls(oracle, provider, admins, store=store, clock=clock)
        contract.store.save(contract.to_state())
        logger.info(
            f"{symbol}: Instantiated with basket {oracle.basket.symbols}, "
            f"target {target}, staleness window {staleness_window}s"
        )
        return contract

    @classmethod
    def load(
        cls,
        store: StateStore,
        provider: BasePriceProvider,
        clock: Callable[[], float] = time.time,
    ) -> IndexOracleContract | None:
        """Restore a contract from ``store``.

        :returns: The restored contract, or None if the store is empty.
        """
        state = store.load()
        if state is None:
            return None
        contract = cls(
            IndexOracle.from_dict(state["oracle"]),
            provider,
            state["admins"],
            status=ContractStatus(state["status"]),
            store=store,
            clock=clock,
        )
        logger.info(
            f"{contract.oracle.symbol}: Restored state, peg {from_fixed(contract.oracle.peg.value)}"
        )
        return contract

    def to_state(self) -> dict:
        """Full contract state as a plain dictionary."""
        return {
            "oracle": self.oracle.to_dict(),
            "admins": list(self.admins),
            "status": self.status.value,
        }

    @property
    def endpoint(self) -> str:
        return f"index:{self.oracle.symbol}"

    def is_admin(self, sender: str | None) -> bool:
        if sender is None or not Web3.is_address(sender):
            return False
        return Web3.to_checksum_address(sender) in self.admins

    def execute(self, msg: Any, sender: str | None, now: int | None = None) -> Any:
        """Handle an execute message.

        :param msg: One of the execute message dataclasses.
        :param sender: Address of the caller.
        :param now: Current unix time (default: ``clock()``).
        :returns: The handler's result (a quote, new symbols or None).
        :raises InvalidOperation: If ``msg`` is not an execute message.
        :raises Unauthorized: If an admin message comes from a non-admin.
        """
        handler = self._execute_handlers.get(type(msg))
        if handler is None:
            raise InvalidOperation(f"Unknown execute message {type(msg).__name__}")
        if isinstance(msg, ADMIN_MESSAGES) and not self.is_admin(sender):
            raise Unauthorized(sender)

        now = self._now(now)
        committed = (self.oracle, self.status)
        draft = copy.deepcopy(self.oracle)
        try:
            result = handler(msg, draft, now)
            self.oracle = draft
            self.store.save(self.to_state())
        except Exception:
            self.oracle, self.status = committed
            raise
        return result

    def query(self, msg: Any, now: int | None = None) -> Any:
        """Handle a query message. Never changes state.

        :raises InvalidOperation: If ``msg`` is not a query message.
        """
        handler = self._query_handlers.get(type(msg))
        if handler is None:
            raise InvalidOperation(f"Unknown query message {type(msg).__name__}")
        return handler(msg, self._now(now))

    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Price provider interface: quote this oracle's own symbol.

        :raises UnsupportedSymbol: For any other key.
        """
        return self._get_prices(GetPrices(tuple(symbols)), self._now(None))

    def _now(self, now: int | None) -> int:
        return int(self.clock()) if now is None else now

    def _fetch(self, oracle: IndexOracle) -> list[OraclePrice]:
        return self.provider.get_prices(oracle.basket.symbols)

    def _fetch_or_none(self, oracle: IndexOracle) -> list[OraclePrice] | None:
        try:
            return self._fetch(oracle)
        except PROVIDER_REFUSALS as e:
            logger.warning(f"{oracle.symbol}: Failed to fetch basket prices: {e}")
            return None

    # Execute handlers. Each one mutates ``draft`` only.

    def _compute_index(self, msg: ComputeIndex, draft: IndexOracle, now: int) -> OraclePrice:
        self.status.require_can_run()
        quote = draft.compute_peg(self._fetch_or_none(draft), now)
        if msg.check_deviation and not draft.peg.frozen:
            draft.check_deviation(quote.data.rate)
        return quote

    def _mod_basket(self, msg: ModBasket, draft: IndexOracle, now: int) -> list[str]:
        self.status.require_can_run(when_deprecated=True)
        # Anchor to the index value as it stands before the change.
        anchor = draft.compute_peg(self._fetch(draft), now).data.rate

        new_symbols = draft.update_basket(msg.basket)
        prices = self._fetch(draft)
        draft.peg.value = anchor
        draft.compute_fixed_weights(prices)
        draft.freeze_if_stale(prices, now)

        logger.info(
            f"{draft.symbol}: Basket changed to {draft.basket.symbols} "
            f"(added {new_symbols}), anchored at {from_fixed(anchor)}"
        )
        return new_symbols

    def _update_target(self, msg: UpdateTarget, draft: IndexOracle, now: int) -> None:
        self.status.require_can_run(when_deprecated=True)
        old_target = draft.peg.target
        draft.update_target(msg.new_target, self._fetch(draft), now)
        logger.info(
            f"{draft.symbol}: Target updated {from_fixed(old_target)} -> {from_fixed(msg.new_target)}"
        )

    def _unfreeze(self, msg: Unfreeze, draft: IndexOracle, now: int) -> None:
        self.status.require_can_run(when_deprecated=True)
        draft.rollback(self._fetch(draft), now)

    def _update_status(self, msg: UpdateStatus, draft: IndexOracle, now: int) -> None:
        self.status.require_can_run(when_deprecated=True, when_frozen=True)
        logger.info(f"{draft.symbol}: Status {self.status.value} -> {msg.status.value}")
        self.status = msg.status

    def _update_config(self, msg: UpdateConfig, draft: IndexOracle, now: int) -> None:
        self.status.require_can_run(when_deprecated=True)
        config = draft.config
        if msg.symbol is not None:
            if msg.symbol in draft.basket:
                raise RecursiveSymbol(msg.symbol)
            config.symbol = msg.symbol
        if msg.staleness_window is not None:
            if msg.staleness_window < 0:
                raise ValueError("staleness_window must not be negative")
            config.staleness_window = msg.staleness_window
        if msg.deviation_threshold is not None:
            if msg.deviation_threshold < 0:
                raise ValueError("deviation_threshold must not be negative")
            config.deviation_threshold = msg.deviation_threshold
        logger.info(f"{config.symbol}: Config updated {config.to_dict()}")

    # Query handlers

    def _get_price(self, msg: GetPrice, now: int) -> OraclePrice:
        self.status.require_can_run()
        if msg.key != self.oracle.symbol:
            raise UnsupportedSymbol(msg.key)
        scratch = copy.deepcopy(self.oracle)
        return scratch.compute_peg(self._fetch_or_none(scratch), now)

    def _get_prices(self, msg: GetPrices, now: int) -> list[OraclePrice]:
        self.status.require_can_run()
        for key in msg.keys:
            if key != self.oracle.symbol:
                raise UnsupportedSymbol(key)
        if not msg.keys:
            return []
        price = self._get_price(GetPrice(self.oracle.symbol), now)
        return [price for _ in msg.keys]

    def _get_basket(self, msg: GetBasket, now: int) -> list[tuple[str, int, int]]:
        return self.oracle.basket.to_list()

    def _get_index_data(self, msg: GetIndexData, now: int) -> dict:
        data = self.oracle.to_dict()
        data["status"] = self.status.value
        return data
