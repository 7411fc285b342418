"""Base price provider interface and shared HTTP client management.

All price providers inherit from BasePriceProvider and implement the
get_prices() method. A provider call is all-or-nothing: it either returns a
price for every requested symbol or raises ProviderError.

Providers that talk HTTP share a single httpx.Client to avoid connection
overhead.

.. code-block:: python

    @register_provider
    class MyProvider(BasePriceProvider):
        name = "myprovider"

        def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
            response = self._post("https://api.example.com/prices", json={"keys": symbols})
            prices = [OraclePrice.from_dict(item) for item in response.json()]
            return self._require_complete(symbols, prices)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from ..OraclePrice import OraclePrice

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Base exception for price provider errors."""

    pass


class ProviderConfigError(ProviderError):
    """Raised when provider configuration is invalid (e.g., missing endpoint)."""

    pass


class ProviderHTTPError(ProviderError):
    """Raised when an HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class BasePriceProvider(ABC):
    """Abstract base class for price providers.

    Subclasses must implement:
        - name: Class variable identifying the provider (e.g., "band", "router")
        - get_prices(): Blocking bulk price query

    :cvar name: Unique identifier for this provider.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.Client | None] = None

    # Provider identification
    name: ClassVar[str] = ""

    # Default timeout for HTTP requests (seconds)
    DEFAULT_TIMEOUT = 10.0

    def __init__(self, timeout: float | None = None):
        """Initialize the provider.

        :param timeout: Request timeout in seconds (default: 10).
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def endpoint(self) -> str:
        """Human readable description of where prices come from."""
        return self.name

    @classmethod
    def get_shared_client(cls) -> httpx.Client:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.Client instance.
        """
        if BasePriceProvider._shared_client is None or BasePriceProvider._shared_client.is_closed:
            BasePriceProvider._shared_client = httpx.Client(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return BasePriceProvider._shared_client

    @classmethod
    def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BasePriceProvider._shared_client
        if client is not None and not client.is_closed:
            client.close()
        BasePriceProvider._shared_client = None

    @abstractmethod
    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Fetch reference prices for several symbols at once.

        :param symbols: Symbols to price (e.g., ["USD", "BTC"]).
        :returns: One price per requested symbol, in request order.
        :raises ProviderError: If any symbol could not be priced.
        """
        pass

    def get_price(self, symbol: str) -> OraclePrice:
        """Fetch the reference price of a single symbol.

        :param symbol: Symbol to price.
        :returns: Price for the symbol.
        :raises ProviderError: If the symbol could not be priced.
        """
        return self.get_prices([symbol])[0]

    def _require_complete(
        self, symbols: list[str], prices: list[OraclePrice]
    ) -> list[OraclePrice]:
        """Reorder a response to match the request, rejecting partial results.

        :param symbols: Requested symbols.
        :param prices: Prices returned by the upstream source.
        :returns: Prices in request order.
        :raises ProviderError: If a requested symbol is missing.
        """
        by_key = {price.key: price for price in prices}
        missing = [s for s in symbols if s not in by_key]
        if missing:
            raise ProviderError(f"[{self.name}] No price for {missing}")
        return [by_key[s] for s in symbols]

    def _post(
        self,
        url: str,
        *,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP POST request using the shared client.

        :param url: Request URL.
        :param json: Optional JSON body.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises ProviderHTTPError: On non-2xx response.
        :raises ProviderError: On network/timeout errors.
        """
        return self._request("POST", url, json=json, headers=headers)

    def _client(self) -> httpx.Client:
        return self.get_shared_client()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._client()
        try:
            response = client.request(method, url, timeout=self.timeout, **kwargs)
            if not response.is_success:
                logger.debug(
                    "HTTP %s %s failed with status %s: %s",
                    method,
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise ProviderHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise ProviderError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Request failed: {e}") from e


# Registry of available providers (populated by subclass imports)
PROVIDER_REGISTRY: dict[str, type[BasePriceProvider]] = {}


def register_provider(cls: type[BasePriceProvider]) -> type[BasePriceProvider]:
    """Decorator to register a provider class in the global registry.

    :param cls: Provider class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If provider has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Provider {cls.__name__} must define a 'name' class variable")
    PROVIDER_REGISTRY[cls.name] = cls
    return cls


def get_provider(name: str, **kwargs: Any) -> BasePriceProvider:
    """Get a provider instance by name.

    :param name: Provider name (e.g., "mock", "band", "router").
    :param kwargs: Provider specific constructor arguments.
    :returns: Provider instance.
    :raises ValueError: If provider name is unknown.
    """
    if name not in PROVIDER_REGISTRY:
        available = ", ".join(sorted(PROVIDER_REGISTRY.keys()))
        raise ValueError(f"Unknown provider '{name}'. Available: {available}")
    return PROVIDER_REGISTRY[name](**kwargs)


def get_available_providers() -> list[str]:
    """Get list of available provider names.

    :returns: Sorted list of registered provider names.
    """
    return sorted(PROVIDER_REGISTRY.keys())
