"""
GSN Transaction Helper

Stateless building blocks used by the GSN client and the transaction
strategies:

    - Calldata gas accounting (zero vs non-zero bytes)
    - Worst-case calldata cost of a relayCall for a given relay request
    - Relay request id derivation
    - EIP-712 signing of a RelayRequest against the forwarder domain
    - Forwarder and token nonce resolution
    - Relay response handling and receipt polling
"""

import asyncio
import logging
from typing import Optional, Tuple

import aiohttp
from eth_abi import encode
from eth_utils import keccak, to_bytes
from web3 import AsyncWeb3
from web3.exceptions import ProviderConnectionError, TransactionNotFound

from ..config import GsnConfig
from ..engine.exceptions import NoNonceFunctionFoundError, ReceiptPollError, ReceiptTimeoutError, RelayError
from ..evm.abis import (
    GET_NONCE_SELECTOR,
    NONCES_SELECTOR,
    encode_relay_call,
    get_forwarder_abi,
    get_nonce_abi,
)
from ..evm.signatures import sign_typed_data
from ..evm.standards import EIP712Domain, RelayRequestTypedData
from ..schemas.https import GsnResponse
from ..schemas.versions import GSN_DOMAIN_SEPARATOR_VERSION
from .models import GsnTransactionDetails, RelayRequest

MAX_SIGNATURE_LENGTH = 65
# Upper bound used for uint fields when sizing the worst-case relayCall.
WORST_CASE_UINT = 0xFFFFFFFFFF
RELAY_REQUEST_ID_PREFIX_SIZE = 8
DEFAULT_POLL_INTERVAL = 2.0

# Connection-level failures of the async RPC provider while waiting for a receipt.
RPC_CONNECTION_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ProviderConnectionError)


def _worst_case_bytes(length: int) -> bytes:
    # A zero length still yields one 0xff byte.
    return b"\xff" * max(length, 1)


class GsnTransactionHelper:
    """
    GSN request construction and settlement helpers.

    Args:
        logger: Optional logger; defaults to this module's logger.

    Example:
        helper = GsnTransactionHelper()
        cost = helper.calculate_calldata_cost("0x00ff", 16, 4)  # 20
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    # =========================================================================
    # Calldata gas accounting
    # =========================================================================

    @staticmethod
    def calculate_calldata_bytes(calldata: str) -> Tuple[int, int]:
        """
        Count zero and non-zero bytes of hex calldata.

        Returns:
            Tuple[int, int]: ``(zero_bytes, non_zero_bytes)``
        """
        raw = to_bytes(hexstr=calldata) if calldata and calldata != "0x" else b""
        zero_bytes = raw.count(0)
        return zero_bytes, len(raw) - zero_bytes

    @classmethod
    def calculate_calldata_cost(cls, calldata: str, gtx_data_non_zero: int, gtx_data_zero: int) -> int:
        """Intrinsic calldata gas: zero bytes * gtx_data_zero + non-zero bytes * gtx_data_non_zero."""
        zero_bytes, non_zero_bytes = cls.calculate_calldata_bytes(calldata)
        return zero_bytes * gtx_data_zero + non_zero_bytes * gtx_data_non_zero

    def estimate_gas_without_calldata(
        self,
        transaction: GsnTransactionDetails,
        gtx_data_non_zero: int,
        gtx_data_zero: int,
    ) -> int:
        """Return ``transaction.gas`` minus the calldata cost of ``transaction.data``."""
        calldata_cost = self.calculate_calldata_cost(transaction.data, gtx_data_non_zero, gtx_data_zero)
        return transaction.gas - calldata_cost

    def estimate_calldata_cost_for_request(self, relay_request: RelayRequest, config: GsnConfig) -> int:
        """
        Calldata cost of a ``relayCall`` carrying ``relay_request`` with every
        variable-width field at its maximum size.

        Works on a clone; ``relay_request`` is not modified.

        Args:
            relay_request: Request whose calldata cost is estimated.
            config: GSN config supplying the data length limits and gas costs.

        Returns:
            int: Calldata gas of the padded relayCall.

        Raises:
            ValueError: If the encoded relayCall is empty.
        """
        padded = relay_request.clone()
        padded.relay_data.transaction_calldata_gas_used = WORST_CASE_UINT
        padded.relay_data.paymaster_data = "0x" + _worst_case_bytes(config.max_paymaster_data_length).hex()

        data = encode_relay_call(
            config.domain_separator_name,
            WORST_CASE_UINT,
            padded.to_abi(),
            _worst_case_bytes(MAX_SIGNATURE_LENGTH),
            _worst_case_bytes(config.max_approval_data_length),
        )
        if not data or data == "0x":
            raise ValueError("Transaction data is empty")

        return self.calculate_calldata_cost(data, config.gtx_data_non_zero, config.gtx_data_zero)

    # =========================================================================
    # Request id and signing
    # =========================================================================

    @staticmethod
    def get_relay_request_id(relay_request: RelayRequest, signature: str) -> str:
        """
        Derive the relay request id.

        ``keccak256(abi.encode(address from, uint256 nonce, bytes signature))``
        as 64 hex chars with the first 8 replaced by zeros, 0x-prefixed.
        """
        request = relay_request.request
        digest = keccak(
            encode(
                ["address", "uint256", "bytes"],
                [request.to_abi()[0], request.nonce, to_bytes(hexstr=signature)],
            )
        )
        raw_id = digest.hex().rjust(64, "0")
        return "0x" + "0" * RELAY_REQUEST_ID_PREFIX_SIZE + raw_id[RELAY_REQUEST_ID_PREFIX_SIZE:]

    @staticmethod
    def build_relay_request_typed_data(
        relay_request: RelayRequest,
        domain_separator_name: str,
        chain_id: int,
    ) -> RelayRequestTypedData:
        """
        EIP-712 typed data for ``relay_request``.

        The domain carries ``chainId`` and uses the forwarder, not the relay
        hub, as ``verifyingContract``.
        """
        domain = EIP712Domain.with_chain_id(
            name=domain_separator_name,
            version=GSN_DOMAIN_SEPARATOR_VERSION,
            chain_id=int(chain_id),
            verifying_contract=relay_request.relay_data.forwarder.lower(),
        )
        return RelayRequestTypedData(domain=domain, message=relay_request.to_typed_message())

    def sign_request(
        self,
        relay_request: RelayRequest,
        domain_separator_name: str,
        chain_id: int,
        private_key: str,
    ) -> str:
        """
        Sign ``relay_request`` for the relay hub.

        Returns:
            str: Packed 65-byte signature as 0x hex.
        """
        typed_data = self.build_relay_request_typed_data(relay_request, domain_separator_name, chain_id)
        return sign_typed_data(private_key, typed_data).to_hex()

    # =========================================================================
    # Nonces
    # =========================================================================

    async def get_sender_nonce(self, w3: AsyncWeb3, sender: str, forwarder_address: str) -> int:
        """Forwarder nonce of ``sender``, via ``Forwarder.getNonce(from)``."""
        forwarder = w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(forwarder_address),
            abi=get_forwarder_abi(),
        )
        return int(await forwarder.functions.getNonce(AsyncWeb3.to_checksum_address(sender)).call())

    async def get_sender_contract_nonce(self, w3: AsyncWeb3, token_address: str, address: str) -> int:
        """
        Token-level nonce of ``address``.

        Tokens expose their nonce as either ``getNonce(address)`` or
        ``nonces(address)``. The deployed bytecode is searched for each
        selector and the first one found is called, ``getNonce`` first.

        Note:
            The search is a plain substring match over the hex bytecode, so a
            selector's 4 bytes appearing elsewhere in the code (a constant,
            a PUSH argument) also count as a match.

        Raises:
            NoNonceFunctionFoundError: If the bytecode is empty or contains
                neither selector.
        """
        token_address = AsyncWeb3.to_checksum_address(token_address)
        address = AsyncWeb3.to_checksum_address(address)

        code = bytes(await w3.eth.get_code(token_address)).hex()
        if not code:
            raise NoNonceFunctionFoundError(f"No bytecode at {token_address}")

        token = w3.eth.contract(address=token_address, abi=get_nonce_abi())
        if GET_NONCE_SELECTOR in code:
            self.logger.debug("Resolving nonce of %s via getNonce on %s", address, token_address)
            return int(await token.functions.getNonce(address).call())
        if NONCES_SELECTOR in code:
            self.logger.debug("Resolving nonce of %s via nonces on %s", address, token_address)
            return int(await token.functions.nonces(address).call())

        raise NoNonceFunctionFoundError(f"Neither getNonce nor nonces found on {token_address}")

    # =========================================================================
    # Settlement
    # =========================================================================

    async def handle_gsn_response(
        self,
        response: GsnResponse,
        w3: AsyncWeb3,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Turn a relay response into a settled transaction hash.

        Computes ``keccak256(signedTx)`` and polls ``eth_getTransactionReceipt``
        every ``poll_interval`` seconds until a receipt appears.

        Args:
            response: Parsed relay server response.
            w3: AsyncWeb3 for the relay's chain.
            poll_interval: Seconds between receipt polls.
            timeout: Give up after this many seconds. ``None`` polls until a
                receipt appears.

        Returns:
            str: 0x-prefixed transaction hash.

        Raises:
            RelayError: If the relay reported an error or returned no signedTx.
            ReceiptTimeoutError: If ``timeout`` elapsed without a receipt.
            ReceiptPollError: If the RPC connection failed while polling; the
                transaction was already broadcast.
        """
        if response.failed:
            self.logger.error("Relay failed, error: %s", response.error)
            raise RelayError(response.error)
        if not response.signed_tx:
            self.logger.error("Relay response carries no signedTx")
            raise RelayError("relay returned no signedTx")

        tx_hash = "0x" + keccak(hexstr=response.signed_tx).hex()
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        attempt = 0
        while True:
            attempt += 1
            try:
                receipt = await w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                receipt = None
            except RPC_CONNECTION_ERRORS as exc:
                self.logger.error("Receipt poll for %s failed: %s", tx_hash, exc)
                raise ReceiptPollError(tx_hash, str(exc) or type(exc).__name__) from exc
            if receipt:
                self.logger.debug("Receipt for %s found after %s poll(s)", tx_hash, attempt)
                return tx_hash

            if deadline is not None and loop.time() >= deadline:
                raise ReceiptTimeoutError(tx_hash, timeout)
            self.logger.debug("No receipt for %s yet (poll %s)", tx_hash, attempt)
            await asyncio.sleep(poll_interval)
