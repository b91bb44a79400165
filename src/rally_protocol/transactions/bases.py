"""
Abstract Base Class for Fee-Delegation Strategies

A strategy knows how to turn "send ``amount`` of a token to ``destination``"
into a ``GsnTransactionDetails`` the GSN client can relay, for one
delegation method (EIP-2612 permit, native executeMetaTransaction, ...).

Core Classes:
    - SupportProbe: Explicit supported / unsupported result of a capability probe
    - PreparedCall: Calldata, gas estimate and paymaster data of a signed call
    - MetaTxStrategy: Base class every strategy implements

Probing is a dry run of the real build: the call is signed and gas-estimated
against the token. A failure at any step means the token does not support
the method, and is reported as an unsupported ``SupportProbe`` carrying the
reason instead of an exception.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from ..config import MetaTxMethod, RallyNetworkConfig, TokenConfig
from ..evm.abis import get_erc20_abi
from ..evm.fees import FeeEstimator
from ..gsn.helper import GsnTransactionHelper
from ..gsn.models import GsnTransactionDetails


@dataclass(frozen=True)
class SupportProbe:
    """
    Outcome of a support probe.

    Truthy only when the method is supported, so ``if await probe(...)``
    reads naturally.

    Attributes:
        supported: Whether the token accepted the dry run.
        reason: Why the probe failed; ``None`` when supported.
    """
    supported: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.supported

    @classmethod
    def ok(cls) -> "SupportProbe":
        return cls(supported=True)

    @classmethod
    def unsupported(cls, reason: str) -> "SupportProbe":
        return cls(supported=False, reason=reason)


@dataclass(frozen=True)
class PreparedCall:
    """A signed, gas-estimated call on the token contract."""
    data: str
    gas: int
    paymaster_data: Optional[str] = None


class MetaTxStrategy(ABC):
    """
    Base class for fee-delegation strategies.

    Subclasses implement ``prepare_call``; probing and transaction assembly
    are shared.

    Args:
        transaction_helper: Helper used for nonce resolution.
        fee_estimator: Source of EIP-1559 fees for the built transaction.
        logger: Optional logger; defaults to the subclass module's logger.
    """

    method: MetaTxMethod

    def __init__(
        self,
        transaction_helper: Optional[GsnTransactionHelper] = None,
        fee_estimator: Optional[FeeEstimator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.logger = logger or logging.getLogger(type(self).__module__)
        self.transaction_helper = transaction_helper or GsnTransactionHelper(logger=self.logger)
        self.fee_estimator = fee_estimator or FeeEstimator(logger=self.logger)

    @abstractmethod
    async def prepare_call(
        self,
        account: LocalAccount,
        destination: str,
        amount: int,
        config: RallyNetworkConfig,
        token_address: str,
        w3: AsyncWeb3,
        token_config: Optional[TokenConfig] = None,
    ) -> PreparedCall:
        """
        Sign the delegated transfer and estimate its gas.

        Raises whatever the chain or signer raises; callers that only want a
        yes/no answer use ``probe_support``.
        """

    async def probe_support(
        self,
        account: LocalAccount,
        destination: str,
        amount: int,
        config: RallyNetworkConfig,
        token_address: str,
        w3: AsyncWeb3,
        token_config: Optional[TokenConfig] = None,
    ) -> SupportProbe:
        """
        Dry-run the delegated transfer to see if the token supports it.

        Returns:
            SupportProbe: ``ok()`` when signing and gas estimation succeed,
            otherwise ``unsupported(reason)``.
        """
        try:
            await self.prepare_call(account, destination, amount, config, token_address, w3, token_config)
        except Exception as exc:
            reason = f"{type(exc).__name__}: {exc}"
            self.logger.warning("%s not supported by %s: %s", self.method.value, token_address, reason)
            return SupportProbe.unsupported(reason)
        return SupportProbe.ok()

    async def build_transaction(
        self,
        account: LocalAccount,
        destination: str,
        amount: int,
        config: RallyNetworkConfig,
        token_address: str,
        w3: AsyncWeb3,
        token_config: Optional[TokenConfig] = None,
    ) -> GsnTransactionDetails:
        """
        Build the relayable transaction for the delegated transfer.

        Args:
            account: Token holder; signs the delegation.
            destination: Recipient of the tokens.
            amount: Amount in smallest units.
            config: Network configuration.
            token_address: Token contract.
            w3: AsyncWeb3 for the network.
            token_config: Token quirks, when known.

        Returns:
            GsnTransactionDetails: Ready for ``GsnClient.relay_transaction``.
        """
        token_address = AsyncWeb3.to_checksum_address(token_address)
        call = await self.prepare_call(account, destination, amount, config, token_address, w3, token_config)
        fees = await self.fee_estimator.estimate(w3)

        return GsnTransactionDetails(
            sender=account.address,
            data=call.data,
            to=token_address,
            value=0,
            gas=call.gas,
            max_fee_per_gas=fees.max_fee_per_gas,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            paymaster_data=call.paymaster_data,
        )

    # =========================================================================
    # Shared chain reads
    # =========================================================================

    @staticmethod
    def token_contract(w3: AsyncWeb3, token_address: str):
        return w3.eth.contract(address=AsyncWeb3.to_checksum_address(token_address), abi=get_erc20_abi())

    async def get_token_name(self, w3: AsyncWeb3, token_address: str) -> str:
        return await self.token_contract(w3, token_address).functions.name().call()
