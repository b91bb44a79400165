"""
EIP-2612 Permit strategy.

The user signs a ``Permit`` granting the paymaster an allowance of
``amount``. The relayed call is ``permit(...)`` on the token; the
``transferFrom`` that actually moves the tokens travels in
``paymasterData`` as ``token address || transferFrom calldata`` and is
executed by the paymaster after it accepts the relay.
"""

from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from ..config import MetaTxMethod, RallyNetworkConfig, TokenConfig
from ..evm.abis import encode_permit, encode_transfer_from
from ..evm.signatures import DEFAULT_PERMIT_VERSION, sign_permit
from .bases import MetaTxStrategy, PreparedCall

# Seconds a permit stays valid after the latest block.
PERMIT_DEADLINE_SECONDS = 45
# Index of ``salt`` in the eip712Domain() return tuple.
EIP712_DOMAIN_SALT_INDEX = 5


class PermitTransaction(MetaTxStrategy):
    """Transfers via EIP-2612 ``permit`` plus a paymaster-side ``transferFrom``."""

    method = MetaTxMethod.Permit

    async def get_permit_deadline(self, w3: AsyncWeb3) -> int:
        """Latest block timestamp plus 45 seconds."""
        block = await w3.eth.get_block("latest")
        return int(block["timestamp"]) + PERMIT_DEADLINE_SECONDS

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
        token_address = AsyncWeb3.to_checksum_address(token_address)
        owner = AsyncWeb3.to_checksum_address(account.address)
        spender = AsyncWeb3.to_checksum_address(config.gsn.paymaster_address)
        token = self.token_contract(w3, token_address)

        name = await self.get_token_name(w3, token_address)
        nonce = await self.transaction_helper.get_sender_contract_nonce(w3, token_address, owner)
        deadline = await self.get_permit_deadline(w3)
        eip712_domain = await token.functions.eip712Domain().call()
        salt = eip712_domain[EIP712_DOMAIN_SALT_INDEX]

        version = DEFAULT_PERMIT_VERSION
        if token_config is not None and token_config.eip712_domain_version:
            version = token_config.eip712_domain_version

        signature = sign_permit(
            private_key=account.key,
            token_name=name,
            token_address=token_address,
            chain_id=config.gsn.chain_id_int,
            owner=owner,
            spender=spender,
            value=amount,
            nonce=nonce,
            deadline=deadline,
            salt=salt,
            version=version,
        )

        gas = await token.functions.permit(
            owner, spender, amount, deadline, signature.v, signature.r_bytes, signature.s_bytes
        ).estimate_gas({"from": owner})

        transfer_from = encode_transfer_from(owner, AsyncWeb3.to_checksum_address(destination), amount)
        paymaster_data = "0x" + token_address.lower()[2:] + transfer_from[2:]

        self.logger.debug("Permit for %s on %s: nonce=%s deadline=%s gas=%s", owner, token_address, nonce, deadline, gas)
        return PreparedCall(
            data=encode_permit(owner, spender, amount, deadline, signature.v, signature.r_bytes, signature.s_bytes),
            gas=int(gas),
            paymaster_data=paymaster_data,
        )
