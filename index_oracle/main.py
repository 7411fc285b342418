#!/usr/bin/env python3
"""Basket Index Oracle.

Computes the peg of a synthetic asset from a weighted basket of assets
priced by Band, a remote oracle router or a local mock feed, freezing the
peg while feeds are stale.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.FixedPoint import to_fixed
from .src.IndexOracle import SIX_HOURS
from .src.IndexOracleContract import IndexOracleContract
from .src.IndexOracleService import IndexOracleService
from .src.providers import BasePriceProvider, get_available_providers, get_provider
from .src.StateStore import CborStateStore, MemoryStateStore, StateStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_assignments(value: str | None) -> list[tuple[str, int]]:
    """Parse a comma-separated list of decimal assignments.

    Format: SYMBOL=decimal,SYMBOL=decimal
    Example: USD=0.25,BTC=0.75

    :param value: Assignment string.
    :returns: ``(symbol, value)`` pairs with values scaled to 18 decimals.
    :raises ValueError: If an item is not of the form SYMBOL=decimal.
    """
    if not value:
        return []

    items = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        if "=" not in item:
            raise ValueError(f"Expected SYMBOL=value, got '{item}'")
        symbol, amount = item.split("=", 1)
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError(f"Missing symbol in '{item}'")
        items.append((symbol, to_fixed(amount.strip())))
    return items


def parse_basket(value: str | None) -> list[tuple[str, int]]:
    """Parse basket weights, e.g. ``USD=0.25,BTC=0.75``."""
    return parse_assignments(value)


def parse_admins(value: str | None) -> list[str]:
    """Parse a comma-separated list of admin addresses."""
    if not value:
        return []
    return [a.strip() for a in value.split(",") if a.strip()]


def build_provider(args: argparse.Namespace) -> BasePriceProvider:
    """Create the price provider selected on the command line.

    :raises ValueError: If the provider options are incomplete.
    """
    if args.provider == "mock":
        return get_provider("mock", prices=dict(parse_assignments(args.mock_prices)))
    if args.provider == "band":
        return get_provider(
            "band",
            address=args.band_address,
            rpc_url=args.provider_url,
            quote_symbol=args.quote_symbol,
            timeout=args.provider_timeout,
        )
    return get_provider("router", url=args.provider_url, timeout=args.provider_timeout)


def build_store(state_file: str | None) -> StateStore:
    if state_file:
        return CborStateStore(state_file)
    return MemoryStateStore()


def main() -> None:
    """Main entry point for the Basket Index Oracle CLI."""
    available_providers = get_available_providers()

    parser = argparse.ArgumentParser(
        description="Basket Index Oracle: Peg computation for basket-backed assets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available price providers:
  {', '.join(available_providers)}

Examples:
  # Local run with fixed mock prices
  python -m index_oracle.main --symbol SILK --basket USD=0.5,BTC=0.5 \\
      --target 1.05 --provider mock --mock-prices USD=1,BTC=30000 \\
      --admins 0x0000000000000000000000000000000000000001

  # Band StdReference on an EVM chain, persisting state between runs
  python -m index_oracle.main --symbol SILK --basket USD=0.25,BTC=0.25,ETH=0.25,XAU=0.25 \\
      --provider band --band-address 0x... --provider-url https://rpc.example.com \\
      --state-file silk.cbor --admins 0x...

Environment variables (CLI args take precedence):
  SYMBOL, BASKET, TARGET, STALENESS_WINDOW, DEVIATION_THRESHOLD, PROVIDER,
  PROVIDER_URL, BAND_ADDRESS, QUOTE_SYMBOL, MOCK_PRICES, ADMINS, STATE_FILE,
  COMPUTE_PERIOD, PROVIDER_TIMEOUT
""",
    )

    parser.add_argument(
        "--symbol",
        type=str,
        help="Index symbol served by the oracle (e.g., SILK)",
        default=os.environ.get("SYMBOL"),
    )

    parser.add_argument(
        "--basket",
        type=str,
        help="Comma-separated initial weights adding up to 1 (e.g., USD=0.25,BTC=0.75)",
        default=os.environ.get("BASKET"),
    )

    parser.add_argument(
        "--target",
        type=str,
        help="Starting peg value (default: 1.00)",
        default=os.environ.get("TARGET") or "1.00",
    )

    parser.add_argument(
        "--staleness-window",
        dest="staleness_window",
        type=int,
        help=f"Seconds before the least fresh feed freezes the peg (default: {SIX_HOURS})",
        default=int(os.environ.get("STALENESS_WINDOW") or SIX_HOURS),
    )

    parser.add_argument(
        "--deviation-threshold",
        dest="deviation_threshold",
        type=str,
        help="Max relative deviation of the peg from the target (default: 0.10)",
        default=os.environ.get("DEVIATION_THRESHOLD") or "0.10",
    )

    parser.add_argument(
        "--check-deviation",
        dest="check_deviation",
        action="store_true",
        help="Refuse computed values outside the deviation threshold",
    )

    parser.add_argument(
        "--provider",
        type=str,
        choices=available_providers,
        help=f"Price provider. Available: {', '.join(available_providers)}",
        default=os.environ.get("PROVIDER") or "mock",
    )

    parser.add_argument(
        "--provider-url",
        dest="provider_url",
        type=str,
        help="Router base URL, or JSON-RPC URL for the band provider",
        default=os.environ.get("PROVIDER_URL"),
    )

    parser.add_argument(
        "--band-address",
        dest="band_address",
        type=str,
        help="Address of the Band StdReference contract",
        default=os.environ.get("BAND_ADDRESS"),
    )

    parser.add_argument(
        "--quote-symbol",
        dest="quote_symbol",
        type=str,
        help="Quote currency for Band rates (default: USD)",
        default=os.environ.get("QUOTE_SYMBOL") or "USD",
    )

    parser.add_argument(
        "--mock-prices",
        dest="mock_prices",
        type=str,
        help="Comma-separated prices for the mock provider (e.g., USD=1,BTC=30000)",
        default=os.environ.get("MOCK_PRICES"),
    )

    parser.add_argument(
        "--admins",
        type=str,
        help="Comma-separated admin addresses",
        default=os.environ.get("ADMINS"),
    )

    parser.add_argument(
        "--state-file",
        dest="state_file",
        type=str,
        help="CBOR state file (state kept in memory if omitted)",
        default=os.environ.get("STATE_FILE"),
    )

    parser.add_argument(
        "--compute-period",
        dest="compute_period",
        type=int,
        help="Seconds between peg computations (minimum: 1, default: 60)",
        default=int(os.environ.get("COMPUTE_PERIOD") or "60"),
    )

    parser.add_argument(
        "--provider-timeout",
        dest="provider_timeout",
        type=float,
        help="Timeout for provider requests in seconds (default: 10.0)",
        default=float(os.environ.get("PROVIDER_TIMEOUT") or "10.0"),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # Validate arguments
    if args.compute_period < 1:
        parser.error("--compute-period must be at least 1 second")

    if args.staleness_window < 0:
        parser.error("--staleness-window must not be negative")

    if args.provider == "band" and not args.band_address:
        parser.error("--band-address is required for the band provider")

    if args.provider == "router" and not args.provider_url:
        parser.error("--provider-url is required for the router provider")

    try:
        basket = parse_basket(args.basket)
        target = to_fixed(args.target)
        deviation_threshold = to_fixed(args.deviation_threshold)
        admins = parse_admins(args.admins)
    except ValueError as e:
        parser.error(str(e))

    try:
        provider = build_provider(args)
        store = build_store(args.state_file)
        contract = IndexOracleContract.load(store, provider)
        if contract is None:
            if not args.symbol:
                parser.error("--symbol is required to instantiate a new oracle")
            if not basket:
                parser.error("--basket is required to instantiate a new oracle")

            # Log configuration
            logger.info("=" * 60)
            logger.info("Basket Index Oracle")
            logger.info("=" * 60)
            logger.info(f"Symbol:            {args.symbol}")
            logger.info(f"Basket:            {', '.join(s for s, _ in basket)}")
            logger.info(f"Target:            {args.target}")
            logger.info(f"Staleness Window:  {args.staleness_window}s")
            logger.info(f"Max Deviation:     {args.deviation_threshold}")
            logger.info(f"Provider:          {provider.endpoint}")
            logger.info(f"Compute Period:    {args.compute_period}s")
            logger.info("=" * 60)

            contract = IndexOracleContract.instantiate(
                symbol=args.symbol.upper(),
                basket=basket,
                target=target,
                provider=provider,
                admins=admins,
                staleness_window=args.staleness_window,
                deviation_threshold=deviation_threshold,
                store=store,
            )

        service = IndexOracleService(
            contract,
            compute_period=args.compute_period,
            check_deviation=args.check_deviation,
        )
        asyncio.run(service.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
