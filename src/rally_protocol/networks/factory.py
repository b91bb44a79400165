"""
Rally network factory.

Builds a ``RallyEvmNetwork`` from a preset or a custom configuration, with
an optional API key and account manager.
"""

import logging
from enum import Enum
from typing import Optional, Union

from ..accounts.key_manager import FileKeyManager
from ..accounts.manager import RallyAccountManager
from ..config import (
    RallyNetworkConfig,
    apply_env_overrides,
    get_api_key_from_env,
    get_network_config,
    get_network_name_from_env,
)
from ..engine.exceptions import ConfigurationError
from ..evm.providers import Web3Provider
from ..gsn.client import GsnClient
from .evm_network import RallyEvmNetwork


class RallyNetworkType(str, Enum):
    """Supported networks; values are the preset names."""
    Local = "local"
    Test = "test"
    Amoy = "amoy"
    AmoyWithPermit = "amoyWithPermit"
    Polygon = "polygon"
    BaseSepolia = "baseSepolia"
    Base = "base"
    Custom = "custom"


class RallyNetworkFactory:
    """Creates configured ``RallyEvmNetwork`` instances."""

    @staticmethod
    def create(
        network: Union[RallyNetworkType, RallyNetworkConfig],
        api_key: Optional[str] = None,
        account_manager: Optional[RallyAccountManager] = None,
        custom_config: Optional[RallyNetworkConfig] = None,
        web3_provider: Optional[Web3Provider] = None,
        gsn_client: Optional[GsnClient] = None,
        logger: Optional[logging.Logger] = None,
    ) -> RallyEvmNetwork:
        """
        Create a network.

        Args:
            network: Preset type, or a complete config.
            api_key: Relayer API key. When omitted, the config's key is kept,
                falling back to ``RALLY_API_KEY``.
            account_manager: Account source; a file-backed manager when omitted.
            custom_config: Config for ``RallyNetworkType.Custom``.
            web3_provider: AsyncWeb3 factory.
            gsn_client: Relay client.
            logger: Optional logger passed to every component.

        Returns:
            RallyEvmNetwork

        Raises:
            ConfigurationError: For ``Custom`` without ``custom_config``.

        Example:
            network = RallyNetworkFactory.create(RallyNetworkType.Amoy, api_key="key")
        """
        if isinstance(network, RallyNetworkConfig):
            config = network.clone()
        elif network == RallyNetworkType.Custom:
            if custom_config is None:
                raise ConfigurationError("RallyNetworkType.Custom requires custom_config")
            config = custom_config.clone()
        else:
            config = get_network_config(RallyNetworkType(network).value)

        if api_key is None and config.relayer_api_key is None:
            api_key = get_api_key_from_env()
        if api_key is not None:
            config = config.with_api_key(api_key)

        if account_manager is None:
            account_manager = RallyAccountManager(FileKeyManager(logger=logger), logger=logger)

        return RallyEvmNetwork(
            config,
            account_manager,
            web3_provider=web3_provider,
            gsn_client=gsn_client,
            logger=logger,
        )

    @classmethod
    def create_from_env(
        cls,
        account_manager: Optional[RallyAccountManager] = None,
        logger: Optional[logging.Logger] = None,
    ) -> RallyEvmNetwork:
        """
        Create a network from environment variables.

        Environment Variables:
            - RALLY_NETWORK: Preset name (default ``baseSepolia``)
            - RALLY_API_KEY: Relayer API key
            - RALLY_RPC_URL / RALLY_RELAY_URL: Optional endpoint overrides
        """
        config = apply_env_overrides(get_network_config(get_network_name_from_env()))
        return cls.create(
            config,
            account_manager=account_manager,
            logger=logger,
        )
