"""
executeMetaTransaction strategy.

The user signs ``MetaTransaction(nonce, from, functionSignature)`` where
``functionSignature`` is the calldata of ``transfer(destination, amount)``.
The relayed call is ``executeMetaTransaction`` on the token, which replays
that transfer on the user's behalf.
"""

from typing import Optional

from eth_account.signers.local import LocalAccount
from eth_utils import to_bytes
from web3 import AsyncWeb3

from ..config import MetaTxMethod, RallyNetworkConfig, TokenConfig
from ..evm.abis import encode_execute_meta_transaction, encode_transfer
from ..evm.signatures import sign_meta_transaction
from .bases import MetaTxStrategy, PreparedCall


class MetaTransaction(MetaTxStrategy):
    """Transfers via the token's native ``executeMetaTransaction``."""

    method = MetaTxMethod.ExecuteMetaTransaction

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
        user = AsyncWeb3.to_checksum_address(account.address)
        token = self.token_contract(w3, token_address)

        name = await self.get_token_name(w3, token_address)
        nonce = await self.transaction_helper.get_sender_contract_nonce(w3, token_address, user)
        function_signature = encode_transfer(AsyncWeb3.to_checksum_address(destination), amount)

        signature = sign_meta_transaction(
            private_key=account.key,
            token_name=name,
            token_address=token_address,
            chain_id=config.gsn.chain_id_int,
            sender=user,
            function_signature=function_signature,
            nonce=nonce,
        )

        function_bytes = to_bytes(hexstr=function_signature)
        gas = await token.functions.executeMetaTransaction(
            user, function_bytes, signature.r_bytes, signature.s_bytes, signature.v
        ).estimate_gas({"from": user})

        self.logger.debug("Meta transaction for %s on %s: nonce=%s gas=%s", user, token_address, nonce, gas)
        return PreparedCall(
            data=encode_execute_meta_transaction(
                user, function_bytes, signature.r_bytes, signature.s_bytes, signature.v
            ),
            gas=int(gas),
        )
