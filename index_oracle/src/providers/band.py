"""Band Protocol StdReference provider.

Contract: Band ``StdReference`` on any EVM chain
Method: getReferenceDataBulk(string[] bases, string[] quotes)
Returns: (rate, lastUpdatedBase, lastUpdatedQuote)[] with 18-decimal rates
"""

import logging
import os

from web3 import Web3
from web3.exceptions import Web3Exception

from ..OraclePrice import OraclePrice, ReferenceData
from .base import BasePriceProvider, ProviderConfigError, ProviderError, register_provider

logger = logging.getLogger(__name__)

STD_REFERENCE_ABI = [
    {
        "inputs": [
            {"internalType": "string[]", "name": "_bases", "type": "string[]"},
            {"internalType": "string[]", "name": "_quotes", "type": "string[]"},
        ],
        "name": "getReferenceDataBulk",
        "outputs": [
            {
                "components": [
                    {"internalType": "uint256", "name": "rate", "type": "uint256"},
                    {"internalType": "uint256", "name": "lastUpdatedBase", "type": "uint256"},
                    {"internalType": "uint256", "name": "lastUpdatedQuote", "type": "uint256"},
                ],
                "internalType": "struct IStdReference.ReferenceData[]",
                "name": "",
                "type": "tuple[]",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    }
]


@register_provider
class BandPriceProvider(BasePriceProvider):
    """Provider reading Band reference data from an EVM StdReference contract.

    Every symbol is quoted against ``quote_symbol`` in a single bulk call.

    :ivar address: Checksummed StdReference contract address.
    :ivar quote_symbol: Quote currency for all symbols (default: "USD").
    """

    name = "band"

    def __init__(
        self,
        address: str | None = None,
        rpc_url: str | None = None,
        quote_symbol: str = "USD",
        w3: Web3 | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the provider.

        :param address: StdReference contract address.
        :param rpc_url: JSON-RPC endpoint (RPC_URL env var if omitted).
        :param quote_symbol: Quote currency (default: "USD").
        :param w3: Optional preconfigured Web3 instance.
        :param timeout: RPC request timeout in seconds.
        :raises ProviderConfigError: If the address is missing or invalid.
        """
        super().__init__(timeout=timeout)
        if not address or not Web3.is_address(address):
            raise ProviderConfigError(f"[band] Invalid StdReference address: {address!r}")
        self.address = Web3.to_checksum_address(address)
        self.quote_symbol = quote_symbol

        if w3 is None:
            rpc_url = rpc_url or os.environ.get("RPC_URL") or "http://localhost:8545"
            w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": self.timeout}))
        self.w3 = w3
        self.contract = self.w3.eth.contract(address=self.address, abi=STD_REFERENCE_ABI)

    @property
    def endpoint(self) -> str:
        return f"band:{self.address}"

    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Fetch reference data for ``symbols`` in one contract call.

        :raises ProviderError: If the call fails or returns a malformed result.
        """
        if not symbols:
            return []
        quotes = [self.quote_symbol] * len(symbols)
        try:
            results = self.contract.functions.getReferenceDataBulk(symbols, quotes).call()
        except (Web3Exception, ValueError, OSError) as e:
            logger.warning(f"[band] Failed to query {symbols}: {e}")
            raise ProviderError(f"[band] Query failed: {e}") from e

        if len(results) != len(symbols):
            raise ProviderError(
                f"[band] Expected {len(symbols)} results, got {len(results)}"
            )

        return [
            OraclePrice(
                key=symbol,
                data=ReferenceData(
                    rate=int(rate),
                    last_updated_base=int(last_updated_base),
                    last_updated_quote=int(last_updated_quote),
                ),
            )
            for symbol, (rate, last_updated_base, last_updated_quote) in zip(
                symbols, results, strict=True
            )
        ]
