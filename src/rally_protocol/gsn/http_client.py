"""
Relay Server HTTP Client

Thin httpx.AsyncClient subclass speaking the two relay server endpoints:

    - GET  {relayUrl}/getaddr   relay server configuration
    - POST {relayUrl}/relay     submit a signed relay request

Both requests carry ``Authorization: Bearer {relayerApiKey}``. Transport
failures, non-2xx responses and bodies that are not the expected JSON
surface as ``TransportError``.
"""

import logging
from typing import Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..config import RallyNetworkConfig
from ..engine.exceptions import TransportError
from ..schemas.https import GsnResponse, GsnServerConfigPayload
from .models import RelayHttpRequest

ModelT = TypeVar("ModelT", bound=BaseModel)


class RelayHttpClient(httpx.AsyncClient):
    """
    Extended httpx.AsyncClient for the GSN relay server.

    Fully compatible with httpx.AsyncClient; it can be used as an async
    context manager and accepts every standard constructor argument.

    Usage:
        ```python
        async with RelayHttpClient(timeout=30) as client:
            server_config = await client.get_server_config(config)
        ```
    """

    def __init__(self, logger: Optional[logging.Logger] = None, **kwargs):
        """
        Initialize the client.

        Args:
            logger: Optional logger; defaults to this module's logger.
            **kwargs: All standard httpx.AsyncClient arguments (timeout, transport, etc.)
        """
        super().__init__(**kwargs)
        self.logger = logger or logging.getLogger(__name__)

    # =========================================================================
    # Relay endpoints
    # =========================================================================

    async def get_server_config(self, config: RallyNetworkConfig) -> GsnServerConfigPayload:
        """
        Fetch the relay server configuration.

        Args:
            config: Network config supplying relay URL and API key.

        Returns:
            GsnServerConfigPayload: Parsed ``/getaddr`` response.

        Raises:
            TransportError: On network failure, a non-2xx status or a malformed body.
        """
        url = f"{config.gsn.relay_url}/getaddr"
        response = await self._send("GET", url, config)
        self.logger.debug("Relay server config from %s: %s", url, response.text)
        return self._parse(response, GsnServerConfigPayload)

    async def post_relay(self, config: RallyNetworkConfig, request: RelayHttpRequest) -> GsnResponse:
        """
        Submit a signed relay request.

        Args:
            config: Network config supplying relay URL and API key.
            request: Relay request and metadata.

        Returns:
            GsnResponse: The relay's answer; ``error`` is set when it refused.

        Raises:
            TransportError: On network failure, a non-2xx status or a malformed body.
        """
        url = f"{config.gsn.relay_url}/relay"
        response = await self._send("POST", url, config, json=request.to_wire())
        return self._parse(response, GsnResponse)

    # =========================================================================
    # Utility Methods
    # =========================================================================

    @staticmethod
    def auth_headers(config: RallyNetworkConfig, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Return ``headers`` with ``Authorization: Bearer {apiKey}`` added (empty key when unset)."""
        merged = dict(headers or {})
        merged["Authorization"] = f"Bearer {config.relayer_api_key or ''}"
        return merged

    async def _send(self, method: str, url: str, config: RallyNetworkConfig, **kwargs) -> httpx.Response:
        try:
            response = await self.request(method, url, headers=self.auth_headers(config), **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc

        if not response.is_success:
            raise TransportError(
                f"{method} {url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
                response_text=response.text,
            )
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            url = str(response.request.url)
            raise TransportError(
                f"{url} returned an unreadable {model.__name__}: {exc}",
                url=url,
                status_code=response.status_code,
                response_text=response.text,
            ) from exc
