"""Remote oracle router provider.

Endpoint: POST {endpoint}/prices with body {"keys": [...]}
Response: [{"key", "rate", "last_updated_base", "last_updated_quote"}, ...]
Rates are 18-decimal integers (as JSON numbers or strings).
"""

import logging

import httpx

from ..OraclePrice import OraclePrice
from .base import BasePriceProvider, ProviderConfigError, ProviderError, register_provider

logger = logging.getLogger(__name__)


@register_provider
class RouterPriceProvider(BasePriceProvider):
    """Provider querying a remote oracle router over HTTP.

    :ivar url: Base URL of the router API.
    :ivar api_key: Optional bearer token.
    """

    name = "router"

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the provider.

        :param url: Base URL of the router API (e.g., "https://router.example.com/v1").
        :param api_key: Optional bearer token sent as Authorization header.
        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional dedicated httpx.Client instead of the shared one.
        :raises ProviderConfigError: If no URL is given.
        """
        super().__init__(timeout=timeout)
        if not url:
            raise ProviderConfigError("[router] A router URL is required")
        self.url = url.rstrip("/")
        self.api_key = api_key
        self._http_client = client

    @property
    def endpoint(self) -> str:
        return f"router:{self.url}"

    def _client(self) -> httpx.Client:
        if self._http_client is not None:
            return self._http_client
        return self.get_shared_client()

    def get_prices(self, symbols: list[str]) -> list[OraclePrice]:
        """Query the router for ``symbols``.

        :raises ProviderError: On transport errors, bad responses or missing symbols.
        """
        if not symbols:
            return []
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        response = self._post(f"{self.url}/prices", json={"keys": symbols}, headers=headers)

        try:
            data = response.json()
            if isinstance(data, dict):
                data = data["prices"]
            prices = [OraclePrice.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"[router] Failed to parse response for {symbols}: {e}")
            raise ProviderError(f"[router] Malformed response: {e}") from e

        return self._require_complete(symbols, prices)
