"""
GSN Client

Drives one relay call from a strategy-built ``GsnTransactionDetails`` to a
settled transaction hash:

    Idle -> FetchingServerConfig -> AdjustingFees -> Signing -> Submitting
         -> AwaitingReceipt -> Settled | Failed

Each step advances a ``RelayStateMachine``; any exception moves it to
Failed and propagates unchanged. Nothing is retried at this layer.
"""

import logging
import time
from typing import Optional, Tuple

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3

from ..config import RallyNetworkConfig
from ..engine.states import RelayState, RelayStateMachine
from ..evm.providers import Web3Provider
from ..schemas.https import GsnServerConfigPayload, RelayHttpRequestMetadata
from .helper import DEFAULT_POLL_INTERVAL, GsnTransactionHelper
from .http_client import RelayHttpClient
from .models import ForwardRequest, GsnTransactionDetails, RelayData, RelayHttpRequest, RelayRequest

# Legacy Mumbai relay servers report an unusable max fee.
MUMBAI_CHAIN_ID = "80001"
APPROVAL_DATA = "0x"
CLIENT_ID = 1


class GsnClient:
    """
    Relays GSN transactions through a relay server.

    Args:
        web3_provider: Source of AsyncWeb3 instances; a fresh ``Web3Provider``
            when omitted.
        http_client: Relay HTTP client to reuse. When omitted, a client is
            opened and closed for each relay call.
        logger: Optional logger; defaults to this module's logger.
        poll_interval: Seconds between receipt polls.
        receipt_timeout: Seconds to wait for a receipt before raising
            ``ReceiptTimeoutError``; ``None`` waits indefinitely.
        http_timeout: Timeout for relay HTTP calls when the client opens
            its own HTTP client.

    Example:
        client = GsnClient()
        tx_hash = await client.relay_transaction(account, config, gsn_tx)
    """

    def __init__(
        self,
        web3_provider: Optional[Web3Provider] = None,
        http_client: Optional[RelayHttpClient] = None,
        logger: Optional[logging.Logger] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        receipt_timeout: Optional[float] = None,
        http_timeout: float = 30.0,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.web3_provider = web3_provider or Web3Provider()
        self.transaction_helper = GsnTransactionHelper(logger=self.logger)
        self.poll_interval = poll_interval
        self.receipt_timeout = receipt_timeout
        self._http_client = http_client
        self._http_timeout = http_timeout
        self._machine: Optional[RelayStateMachine] = None

    @property
    def last_state(self) -> Optional[RelayState]:
        """
        State of the most recently started relay call, ``None`` before the first.

        Only meaningful when relay calls on this client are serialized; pass
        ``machine`` to ``relay_transaction`` to track concurrent calls.
        """
        return self._machine.state if self._machine else None

    @property
    def last_history(self):
        return self._machine.history if self._machine else []

    def get_provider(self, config: RallyNetworkConfig) -> AsyncWeb3:
        return self.web3_provider.get_web3(config)

    # =========================================================================
    # Relay flow
    # =========================================================================

    async def relay_transaction(
        self,
        account: LocalAccount,
        config: RallyNetworkConfig,
        transaction: GsnTransactionDetails,
        machine: Optional[RelayStateMachine] = None,
    ) -> str:
        """
        Relay ``transaction`` and wait for it to be mined.

        Neither ``config`` nor ``transaction`` is modified; the server's
        relay worker and fee suggestions are applied to copies.

        Args:
            account: Signing account; must be ``transaction.sender``.
            config: Network configuration.
            transaction: Strategy-built transaction details.
            machine: Fresh state machine owned by the caller; this call's
                progress is recorded on it. A new one is created when omitted.

        Returns:
            str: Hash of the relayed transaction.

        Raises:
            TransportError: Relay server unreachable or non-2xx.
            RelayError: Relay server refused the request.
            ReceiptTimeoutError: ``receipt_timeout`` elapsed.
            ReceiptPollError: The RPC failed while waiting for the receipt.
            InvalidTransition: ``machine`` was not idle.
        """
        if machine is None:
            machine = RelayStateMachine()
        if self._http_client is not None:
            return await self._relay(self._http_client, machine, account, config, transaction)
        async with RelayHttpClient(logger=self.logger, timeout=self._http_timeout) as http_client:
            return await self._relay(http_client, machine, account, config, transaction)

    async def _relay(
        self,
        http_client: RelayHttpClient,
        machine: RelayStateMachine,
        account: LocalAccount,
        config: RallyNetworkConfig,
        transaction: GsnTransactionDetails,
    ) -> str:
        self._machine = machine
        w3 = self.get_provider(config)

        try:
            machine.advance(RelayState.FETCHING_SERVER_CONFIG)
            server_config = await http_client.get_server_config(config)

            machine.advance(RelayState.ADJUSTING_FEES)
            config, transaction = self.update_config(config, transaction, server_config)

            machine.advance(RelayState.SIGNING)
            relay_request = await self.build_relay_request(transaction, config, account, w3)
            http_request = await self.build_relay_http_request(relay_request, config, account, w3)
            relay_request_id = self.transaction_helper.get_relay_request_id(
                http_request.relay_request, http_request.metadata.signature
            )
            http_request.metadata.relay_request_id = relay_request_id
            self.logger.debug("Relay request id %s", relay_request_id)

            machine.advance(RelayState.SUBMITTING)
            response = await http_client.post_relay(config, http_request)

            machine.advance(RelayState.AWAITING_RECEIPT)
            tx_hash = await self.transaction_helper.handle_gsn_response(
                response, w3, poll_interval=self.poll_interval, timeout=self.receipt_timeout
            )
            machine.advance(RelayState.SETTLED)
        except Exception:
            machine.fail()
            raise

        self.logger.info("Relayed transaction %s", tx_hash)
        return tx_hash

    # =========================================================================
    # Steps
    # =========================================================================

    def update_config(
        self,
        config: RallyNetworkConfig,
        transaction: GsnTransactionDetails,
        server_config: GsnServerConfigPayload,
    ) -> Tuple[RallyNetworkConfig, GsnTransactionDetails]:
        """
        Apply the relay server's worker and fee suggestions.

        Returns:
            Tuple of a cloned config carrying the server's relay worker and a
            cloned transaction carrying the adjusted fees.
        """
        config = config.clone()
        config.gsn.relay_worker_address = server_config.relay_worker_address
        transaction = transaction.clone()
        self.set_gas_fees_for_transaction(transaction, server_config)
        return config, transaction

    def set_gas_fees_for_transaction(
        self,
        transaction: GsnTransactionDetails,
        server_config: GsnServerConfigPayload,
    ) -> None:
        """
        Set the transaction fees from the relay server's suggestions.

        The priority fee is the server minimum padded by 40%. The max fee is
        the server's ``maxMaxFeePerGas``, except on chain 80001 where it is
        the padded priority fee as well.
        """
        padded_priority = int(server_config.min_max_priority_fee_per_gas) * 140 // 100
        transaction.max_priority_fee_per_gas = padded_priority

        if server_config.chain_id == MUMBAI_CHAIN_ID:
            transaction.max_fee_per_gas = padded_priority
        else:
            transaction.max_fee_per_gas = int(server_config.max_max_fee_per_gas)

        self.logger.debug(
            "Adjusted fees for chain %s: max=%s priority=%s",
            server_config.chain_id, transaction.max_fee_per_gas, transaction.max_priority_fee_per_gas,
        )

    async def build_relay_request(
        self,
        transaction: GsnTransactionDetails,
        config: RallyNetworkConfig,
        account: LocalAccount,
        w3: AsyncWeb3,
    ) -> RelayRequest:
        """Build the relay request for ``transaction``, including its worst-case calldata gas."""
        gsn = config.gsn
        gas = self.transaction_helper.estimate_gas_without_calldata(
            transaction, gsn.gtx_data_non_zero, gsn.gtx_data_zero
        )
        valid_until_time = int(time.time()) + gsn.request_valid_seconds
        sender_nonce = await self.transaction_helper.get_sender_nonce(w3, account.address, gsn.forwarder_address)

        relay_request = RelayRequest(
            request=ForwardRequest(
                sender=transaction.sender,
                to=transaction.to,
                value=transaction.value or 0,
                gas=gas,
                nonce=sender_nonce,
                data=transaction.data,
                valid_until_time=valid_until_time,
            ),
            relay_data=RelayData(
                max_fee_per_gas=transaction.max_fee_per_gas,
                max_priority_fee_per_gas=transaction.max_priority_fee_per_gas,
                transaction_calldata_gas_used=0,
                relay_worker=gsn.relay_worker_address,
                paymaster=gsn.paymaster_address,
                forwarder=gsn.forwarder_address,
                paymaster_data=transaction.paymaster_data or "0x",
                client_id=CLIENT_ID,
            ),
        )
        relay_request.relay_data.transaction_calldata_gas_used = (
            self.transaction_helper.estimate_calldata_cost_for_request(relay_request, gsn)
        )
        return relay_request

    async def build_relay_http_request(
        self,
        relay_request: RelayRequest,
        config: RallyNetworkConfig,
        account: LocalAccount,
        w3: AsyncWeb3,
    ) -> RelayHttpRequest:
        """Sign ``relay_request`` and wrap it with relay metadata. The request id is left empty."""
        gsn = config.gsn
        signature = self.transaction_helper.sign_request(
            relay_request, gsn.domain_separator_name, gsn.chain_id_int, account.key
        )
        relay_last_known_nonce = int(await w3.eth.get_transaction_count(
            AsyncWeb3.to_checksum_address(relay_request.relay_data.relay_worker)
        ))

        metadata = RelayHttpRequestMetadata(
            max_acceptance_budget=gsn.max_acceptance_budget,
            relay_hub_address=gsn.relay_hub_address,
            signature=signature,
            approval_data=APPROVAL_DATA,
            relay_last_known_nonce=relay_last_known_nonce,
            relay_max_nonce=relay_last_known_nonce + gsn.max_relay_nonce_gap,
            domain_separator_name=gsn.domain_separator_name,
            relay_request_id="",
        )
        return RelayHttpRequest(relay_request=relay_request, metadata=metadata)
