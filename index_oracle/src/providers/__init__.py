"""
Price providers for basket assets.

This module provides a unified interface for querying reference prices
from the upstream sources an index oracle can be wired to.

Usage:
    from index_oracle.src.providers import get_provider, get_available_providers

    # Get list of available providers
    available = get_available_providers()
    # ['band', 'mock', 'router']

    # Create a provider instance
    provider = get_provider("router", url="https://router.example.com/v1")
    prices = provider.get_prices(["USD", "BTC"])
"""

# Import base classes and utilities
from .base import (
    PROVIDER_REGISTRY,
    BasePriceProvider,
    ProviderConfigError,
    ProviderError,
    ProviderHTTPError,
    get_available_providers,
    get_provider,
    register_provider,
)

# Import all provider implementations to trigger registration
from .band import BandPriceProvider
from .mock import MockPriceProvider
from .remote import RouterPriceProvider

__all__ = [
    # Base classes
    "BasePriceProvider",
    "ProviderError",
    "ProviderConfigError",
    "ProviderHTTPError",
    # Registry functions
    "register_provider",
    "get_provider",
    "get_available_providers",
    "PROVIDER_REGISTRY",
    # Provider implementations
    "BandPriceProvider",
    "MockPriceProvider",
    "RouterPriceProvider",
]
