"""IndexOracleService: Periodic peg computation.

Runs ``ComputeIndex`` on a contract every ``compute_period`` seconds. The
contract call blocks on the price provider, so it runs in a worker thread
to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging

from .errors import IndexOracleError
from .FixedPoint import from_fixed
from .IndexOracleContract import IndexOracleContract
from .messages import ComputeIndex
from .OraclePrice import OraclePrice
from .providers import BasePriceProvider

logger = logging.getLogger(__name__)


class IndexOracleService:
    """Keeper loop driving an index oracle.

    :ivar contract: Contract to compute.
    :ivar compute_period: Seconds between computations.
    :ivar check_deviation: Ask the contract to refuse values far from target.
    """

    def __init__(
        self,
        contract: IndexOracleContract,
        compute_period: int = 60,
        check_deviation: bool = False,
    ) -> None:
        """Initialize the service.

        :param contract: Contract to compute.
        :param compute_period: Seconds between computations (minimum: 1, default: 60).
        :param check_deviation: Refuse values outside the deviation threshold.
        """
        self.contract = contract
        self.compute_period = max(1, compute_period)
        self.check_deviation = check_deviation
        self.last_quote: OraclePrice | None = None

    def compute_once(self) -> OraclePrice | None:
        """Run one computation.

        :returns: The new quote, or None if the contract refused or failed to compute.
        """
        symbol = self.contract.oracle.symbol
        was_frozen = self.contract.oracle.peg.frozen
        try:
            quote = self.contract.execute(ComputeIndex(self.check_deviation), sender=None)
        except IndexOracleError as e:
            logger.warning(f"{symbol}: Compute refused: {e}")
            return None
        except Exception as e:
            logger.error(f"{symbol}: Compute failed: {e}")
            return None

        frozen = self.contract.oracle.peg.frozen
        if frozen and not was_frozen:
            logger.warning(f"{symbol}: Index is frozen, serving {from_fixed(quote.data.rate)}")
        elif frozen:
            logger.debug(f"{symbol}: Still frozen at {from_fixed(quote.data.rate)}")
        else:
            logger.info(f"{symbol}: Peg {from_fixed(quote.data.rate)}")
        self.last_quote = quote
        return quote

    async def run(self, iterations: int | None = None) -> None:
        """Compute in a loop.

        :param iterations: Stop after this many computations (default: forever).
        """
        logger.info(
            f"Starting compute loop for {self.contract.oracle.symbol} "
            f"every {self.compute_period}s"
        )
        count = 0
        try:
            while iterations is None or count < iterations:
                await asyncio.to_thread(self.compute_once)
                count += 1
                if iterations is None or count < iterations:
                    await asyncio.sleep(self.compute_period)
        finally:
            BasePriceProvider.close_shared_client()
