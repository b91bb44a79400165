"""
AsyncWeb3 provider factory.

Hands out one ``AsyncWeb3`` instance per RPC endpoint so every component of a
network shares the same HTTP session.
"""

from typing import Dict, Optional

from web3 import AsyncWeb3


class Web3Provider:
    """
    Creates and caches ``AsyncWeb3`` instances keyed by RPC URL.

    Args:
        request_timeout: HTTP timeout in seconds for RPC calls.

    Example:
        provider = Web3Provider()
        w3 = provider.get_web3(config)
        block = await w3.eth.get_block("latest")
    """

    def __init__(self, request_timeout: int = 60):
        self._request_timeout = request_timeout
        self._instances: Dict[str, AsyncWeb3] = {}

    def get_web3(self, config) -> AsyncWeb3:
        """
        Return the ``AsyncWeb3`` instance for ``config.gsn.rpc_url``.

        Args:
            config: ``RallyNetworkConfig`` whose GSN section carries the RPC URL.
        """
        return self.get_web3_for_url(config.gsn.rpc_url)

    def get_web3_for_url(self, rpc_url: str) -> AsyncWeb3:
        web3 = self._instances.get(rpc_url)
        if web3 is None:
            web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": self._request_timeout}
            ))
            self._instances[rpc_url] = web3
        return web3

    def clear(self, rpc_url: Optional[str] = None) -> None:
        """Drop cached instances, all of them or the one for ``rpc_url``."""
        if rpc_url is None:
            self._instances.clear()
        else:
            self._instances.pop(rpc_url, None)
