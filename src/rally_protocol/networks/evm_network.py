"""
Rally EVM Network

Public entry point for gasless token operations on one EVM network. The
network picks a fee-delegation strategy, builds the transaction and hands it
to the GSN client; it also enforces the account and balance preconditions.

Usage:
    network = RallyNetworkFactory.create(RallyNetworkType.BaseSepolia, api_key="...")
    await network.account_manager.create_account()
    tx_hash = await network.transfer("0xRecipient", Decimal("1.5"))
"""

import logging
from decimal import Decimal
from typing import List, Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from ..accounts.manager import RallyAccountManager
from ..config import MetaTxMethod, RallyNetworkConfig, TokenConfig
from ..engine.exceptions import (
    InsufficientBalanceError,
    MissingWalletError,
    PriorDustingError,
    TransferMethodNotSupportedError,
)
from ..evm.abis import encode_claim, get_erc20_abi, get_faucet_abi
from ..evm.fees import FeeEstimator
from ..evm.providers import Web3Provider
from ..evm.units import amount_to_value, value_to_amount
from ..gsn.client import GsnClient
from ..gsn.models import GsnTransactionDetails
from ..transactions.bases import MetaTxStrategy
from ..transactions.meta_transaction import MetaTransaction
from ..transactions.permit import PermitTransaction


class RallyEvmNetwork:
    """
    Gasless transfers, faucet claims and balance reads for one network.

    Args:
        config: Network configuration. Never mutated; ``set_api_key``
            replaces it with a modified copy.
        account_manager: Source of the signing account.
        web3_provider: AsyncWeb3 factory shared with the GSN client.
        gsn_client: Relay client; built from ``web3_provider`` when omitted.
        fee_estimator: EIP-1559 fee source for strategies and claims.
        logger: Optional logger; defaults to this module's logger.
    """

    def __init__(
        self,
        config: RallyNetworkConfig,
        account_manager: RallyAccountManager,
        web3_provider: Optional[Web3Provider] = None,
        gsn_client: Optional[GsnClient] = None,
        fee_estimator: Optional[FeeEstimator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.account_manager = account_manager
        self.web3_provider = web3_provider or Web3Provider()
        self.gsn_client = gsn_client or GsnClient(web3_provider=self.web3_provider, logger=self.logger)
        self.fee_estimator = fee_estimator or FeeEstimator(logger=self.logger)

        helper = self.gsn_client.transaction_helper
        self.permit_transaction = PermitTransaction(helper, self.fee_estimator, self.logger)
        self.meta_transaction = MetaTransaction(helper, self.fee_estimator, self.logger)
        self._config = config

    @property
    def config(self) -> RallyNetworkConfig:
        return self._config

    def get_provider(self) -> AsyncWeb3:
        return self.web3_provider.get_web3(self._config)

    async def get_account(self) -> LocalAccount:
        """
        Return the loaded account.

        Raises:
            MissingWalletError: If no account has been created or imported.
        """
        account = await self.account_manager.get_account()
        if account is None:
            raise MissingWalletError()
        return account

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Use ``api_key`` for subsequent relay calls."""
        self._config = self._config.with_api_key(api_key)

    # =========================================================================
    # Transfers
    # =========================================================================

    async def transfer(
        self,
        destination: str,
        amount: Decimal,
        meta_tx_method: Optional[MetaTxMethod] = None,
        token_address: Optional[str] = None,
        token_config: Optional[TokenConfig] = None,
    ) -> str:
        """
        Transfer a display ``amount`` of a token without paying gas.

        The amount is converted to smallest units with the token's
        ``decimals()``; see ``transfer_exact`` for the rest.
        """
        await self.get_account()
        token_address = self._resolve_token_address(token_address, token_config)
        decimals = await self._token_contract(token_address).functions.decimals().call()
        value = amount_to_value(amount=amount, decimals=int(decimals))
        return await self.transfer_exact(destination, value, meta_tx_method, token_address, token_config)

    async def transfer_exact(
        self,
        destination: str,
        amount: int,
        meta_tx_method: Optional[MetaTxMethod] = None,
        token_address: Optional[str] = None,
        token_config: Optional[TokenConfig] = None,
    ) -> str:
        """
        Transfer ``amount`` smallest units of a token without paying gas.

        Args:
            destination: Recipient address.
            amount: Amount in smallest units.
            meta_tx_method: Delegation method to use. When omitted, the token
                config's method is used; failing that, executeMetaTransaction
                and then permit are probed.
            token_address: Token to send; defaults to the token config's
                address, then to the network's RLY token.
            token_config: Token quirks (method, permit domain version).

        Returns:
            str: Hash of the relayed transaction.

        Raises:
            MissingWalletError: No account loaded.
            InsufficientBalanceError: ``amount`` exceeds the balance; nothing is relayed.
            TransferMethodNotSupportedError: The token supports neither method.
        """
        account = await self.get_account()
        token_address = self._resolve_token_address(token_address, token_config)

        balance = await self.get_exact_balance(token_address)
        if balance - amount < 0:
            raise InsufficientBalanceError(balance=balance, amount=amount)

        w3 = self.get_provider()
        if meta_tx_method is None and token_config is not None:
            meta_tx_method = token_config.meta_tx_method

        if meta_tx_method is not None:
            strategy = self._strategy_for(meta_tx_method)
        else:
            strategy = await self._select_strategy(account, destination, amount, token_address, w3, token_config)

        transaction = await strategy.build_transaction(
            account, destination, amount, self._config, token_address, w3, token_config
        )
        return await self.relay(transaction)

    async def _select_strategy(
        self,
        account: LocalAccount,
        destination: str,
        amount: int,
        token_address: str,
        w3: AsyncWeb3,
        token_config: Optional[TokenConfig],
    ) -> MetaTxStrategy:
        reasons: List[str] = []
        for strategy in (self.meta_transaction, self.permit_transaction):
            probe = await strategy.probe_support(
                account, destination, amount, self._config, token_address, w3, token_config
            )
            if probe:
                self.logger.info("Using %s for %s", strategy.method.value, token_address)
                return strategy
            reasons.append(f"{strategy.method.value}: {probe.reason}")

        raise TransferMethodNotSupportedError(
            f"Token {token_address} supports neither executeMetaTransaction nor permit ({'; '.join(reasons)})"
        )

    def _strategy_for(self, method: MetaTxMethod) -> MetaTxStrategy:
        if method == MetaTxMethod.Permit:
            return self.permit_transaction
        return self.meta_transaction

    # =========================================================================
    # Faucet
    # =========================================================================

    async def claim_rly(self) -> str:
        """
        Claim RLY from the network's token faucet without paying gas.

        Raises:
            MissingWalletError: No account loaded.
            PriorDustingError: The current balance is negative.
        """
        account = await self.get_account()
        balance = await self.get_display_balance()
        if balance < 0:
            raise PriorDustingError()

        w3 = self.get_provider()
        faucet_address = AsyncWeb3.to_checksum_address(self._config.contracts.token_faucet)
        faucet = w3.eth.contract(address=faucet_address, abi=get_faucet_abi())
        gas = await faucet.functions.claim().estimate_gas({"from": account.address})
        fees = await self.fee_estimator.estimate(w3)

        transaction = GsnTransactionDetails(
            sender=account.address,
            data=encode_claim(),
            to=faucet_address,
            value=0,
            gas=int(gas),
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
        )
        return await self.relay(transaction)

    # =========================================================================
    # Balances and relay
    # =========================================================================

    async def get_exact_balance(self, token_address: Optional[str] = None) -> int:
        """Balance of the current account in smallest units."""
        account = await self.get_account()
        token = self._token_contract(self._resolve_token_address(token_address))
        return int(await token.functions.balanceOf(account.address).call())

    async def get_display_balance(self, token_address: Optional[str] = None) -> Decimal:
        """Balance of the current account scaled by the token's decimals."""
        token_address = self._resolve_token_address(token_address)
        decimals = await self._token_contract(token_address).functions.decimals().call()
        balance = await self.get_exact_balance(token_address)
        return value_to_amount(value=balance, decimals=int(decimals))

    async def relay(self, transaction: GsnTransactionDetails) -> str:
        account = await self.get_account()
        return await self.gsn_client.relay_transaction(account, self._config, transaction)

    def _resolve_token_address(
        self,
        token_address: Optional[str] = None,
        token_config: Optional[TokenConfig] = None,
    ) -> str:
        if token_address:
            return token_address
        if token_config is not None:
            return token_config.address
        return self._config.contracts.rly_erc20

    def _token_contract(self, token_address: str):
        return self.get_provider().eth.contract(
            address=AsyncWeb3.to_checksum_address(token_address),
            abi=get_erc20_abi(),
        )
