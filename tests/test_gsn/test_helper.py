"""
GSN Transaction Helper Test Suite

Covers:
- Calldata byte counting and cost
- Worst-case relayCall calldata estimation
- Relay request id derivation
- RelayRequest signing against the forwarder domain
- Token nonce accessor resolution from bytecode
- Relay response handling and receipt polling
"""

import asyncio
from unittest.mock import AsyncMock

import aiohttp
import pytest
from eth_abi import encode
from eth_utils import keccak, to_bytes

from mocks import (
    MOCK_BYTECODE_BOTH,
    MOCK_BYTECODE_GET_NONCE,
    MOCK_BYTECODE_NONCES,
    MOCK_BYTECODE_NONE,
    MOCK_NONCE,
    MOCK_OWNER_ADDRESS,
    MOCK_OWNER_PRIVATE_KEY,
    MOCK_SIGNED_TX,
    MOCK_TOKEN_ADDRESS,
    MOCK_TX_HASH,
    MockWeb3Provider,
    create_mock_config,
    create_mock_relay_request,
    create_mock_transaction_details,
)
from rally_protocol.engine.exceptions import (
    NoNonceFunctionFoundError,
    RallyError,
    ReceiptPollError,
    ReceiptTimeoutError,
    RelayError,
    TransportError,
)
from rally_protocol.evm.abis import encode_relay_call
from rally_protocol.evm.signatures import recover_typed_data_signer
from rally_protocol.gsn.helper import WORST_CASE_UINT, GsnTransactionHelper
from rally_protocol.schemas.https import GsnResponse


@pytest.fixture
def helper():
    return GsnTransactionHelper()


# ========================================================================
# Calldata cost
# ========================================================================

class TestCalldataCost:

    def test_counts_zero_and_non_zero_bytes(self):
        assert GsnTransactionHelper.calculate_calldata_bytes("0x0001ff00") == (2, 2)

    def test_empty_calldata(self):
        assert GsnTransactionHelper.calculate_calldata_bytes("0x") == (0, 0)
        assert GsnTransactionHelper.calculate_calldata_cost("0x", 16, 4) == 0

    def test_cost(self):
        assert GsnTransactionHelper.calculate_calldata_cost("0x0001ff00", 16, 4) == 2 * 4 + 2 * 16

    def test_cost_is_additive(self):
        first, second = "0x00a1b2000000", "0xffff0001"
        combined = first + second[2:]

        assert GsnTransactionHelper.calculate_calldata_cost(combined, 16, 4) == (
            GsnTransactionHelper.calculate_calldata_cost(first, 16, 4)
            + GsnTransactionHelper.calculate_calldata_cost(second, 16, 4)
        )

    def test_gas_without_calldata(self, helper):
        transaction = create_mock_transaction_details(data="0x00ff", gas=100000)
        assert helper.estimate_gas_without_calldata(transaction, 16, 4) == 100000 - 20

    def test_request_estimate_uses_worst_case_fields(self, helper):
        config = create_mock_config()
        relay_request = create_mock_relay_request(config)

        padded = relay_request.clone()
        padded.relay_data.transaction_calldata_gas_used = WORST_CASE_UINT
        padded.relay_data.paymaster_data = "0x" + "ff" * config.gsn.max_paymaster_data_length
        expected_data = encode_relay_call(
            config.gsn.domain_separator_name,
            WORST_CASE_UINT,
            padded.to_abi(),
            b"\xff" * 65,
            b"\xff" * config.gsn.max_approval_data_length,
        )

        cost = helper.estimate_calldata_cost_for_request(relay_request, config.gsn)

        assert cost == GsnTransactionHelper.calculate_calldata_cost(expected_data, 16, 4)

    def test_request_estimate_does_not_mutate(self, helper):
        config = create_mock_config()
        relay_request = create_mock_relay_request(config)
        before = relay_request.model_dump()

        helper.estimate_calldata_cost_for_request(relay_request, config.gsn)

        assert relay_request.model_dump() == before

    def test_zero_length_limits_still_pad_one_byte(self, helper):
        config = create_mock_config(max_approval_data_length=0, max_paymaster_data_length=0)
        cost = helper.estimate_calldata_cost_for_request(create_mock_relay_request(config), config.gsn)
        assert cost > 0


# ========================================================================
# Request id and signing
# ========================================================================

class TestRelayRequestId:

    SIGNATURE = "0x" + "ab" * 65

    def test_id_matches_digest_with_zeroed_prefix(self):
        relay_request = create_mock_relay_request()
        digest = keccak(encode(
            ["address", "uint256", "bytes"],
            [MOCK_OWNER_ADDRESS, relay_request.request.nonce, to_bytes(hexstr=self.SIGNATURE)],
        )).hex()

        request_id = GsnTransactionHelper.get_relay_request_id(relay_request, self.SIGNATURE)

        assert request_id == "0x00000000" + digest[8:]
        assert len(request_id) == 66

    def test_id_is_deterministic(self):
        relay_request = create_mock_relay_request()
        assert GsnTransactionHelper.get_relay_request_id(relay_request, self.SIGNATURE) == \
            GsnTransactionHelper.get_relay_request_id(relay_request.clone(), self.SIGNATURE)

    def test_id_depends_on_nonce(self):
        relay_request = create_mock_relay_request()
        other = relay_request.clone()
        other.request.nonce += 1

        assert GsnTransactionHelper.get_relay_request_id(relay_request, self.SIGNATURE) != \
            GsnTransactionHelper.get_relay_request_id(other, self.SIGNATURE)


class TestSignRequest:

    def test_signature_recovers_sender(self, helper):
        config = create_mock_config()
        relay_request = create_mock_relay_request(config)

        signature = helper.sign_request(
            relay_request, config.gsn.domain_separator_name, config.gsn.chain_id_int, MOCK_OWNER_PRIVATE_KEY
        )
        typed = GsnTransactionHelper.build_relay_request_typed_data(
            relay_request, config.gsn.domain_separator_name, config.gsn.chain_id_int
        )

        assert recover_typed_data_signer(typed, signature) == MOCK_OWNER_ADDRESS

    def test_domain_uses_forwarder(self):
        config = create_mock_config()
        domain = GsnTransactionHelper.build_relay_request_typed_data(
            create_mock_relay_request(config), "GSN Relayed Transaction", 80001
        ).to_dict()["domain"]

        assert domain == {
            "name": "GSN Relayed Transaction",
            "version": "3",
            "chainId": 80001,
            "verifyingContract": config.gsn.forwarder_address.lower(),
        }


# ========================================================================
# Nonces
# ========================================================================

class TestContractNonce:

    @pytest.mark.asyncio
    async def test_prefers_get_nonce(self, helper):
        w3 = MockWeb3Provider(bytecode=MOCK_BYTECODE_BOTH)

        nonce = await helper.get_sender_contract_nonce(w3, MOCK_TOKEN_ADDRESS, MOCK_OWNER_ADDRESS)

        contract = w3.contract_at(MOCK_TOKEN_ADDRESS)
        assert nonce == MOCK_NONCE
        contract.functions.getNonce.assert_called_once_with(MOCK_OWNER_ADDRESS)
        contract.functions.nonces.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_nonce_only(self, helper):
        w3 = MockWeb3Provider(bytecode=MOCK_BYTECODE_GET_NONCE)

        await helper.get_sender_contract_nonce(w3, MOCK_TOKEN_ADDRESS, MOCK_OWNER_ADDRESS)

        w3.contract_at(MOCK_TOKEN_ADDRESS).functions.getNonce.assert_called_once()

    @pytest.mark.asyncio
    async def test_falls_back_to_nonces(self, helper):
        w3 = MockWeb3Provider(bytecode=MOCK_BYTECODE_NONCES)

        nonce = await helper.get_sender_contract_nonce(w3, MOCK_TOKEN_ADDRESS, MOCK_OWNER_ADDRESS)

        contract = w3.contract_at(MOCK_TOKEN_ADDRESS)
        assert nonce == MOCK_NONCE
        contract.functions.nonces.assert_called_once_with(MOCK_OWNER_ADDRESS)
        contract.functions.getNonce.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_selector_raises(self, helper):
        w3 = MockWeb3Provider(bytecode=MOCK_BYTECODE_NONE)

        with pytest.raises(NoNonceFunctionFoundError):
            await helper.get_sender_contract_nonce(w3, MOCK_TOKEN_ADDRESS, MOCK_OWNER_ADDRESS)

    @pytest.mark.asyncio
    async def test_empty_bytecode_raises(self, helper):
        w3 = MockWeb3Provider(bytecode=b"")

        with pytest.raises(NoNonceFunctionFoundError):
            await helper.get_sender_contract_nonce(w3, MOCK_TOKEN_ADDRESS, MOCK_OWNER_ADDRESS)

    @pytest.mark.asyncio
    async def test_forwarder_nonce(self, helper):
        config = create_mock_config()
        w3 = MockWeb3Provider(nonce=11)

        nonce = await helper.get_sender_nonce(w3, MOCK_OWNER_ADDRESS, config.gsn.forwarder_address)

        assert nonce == 11
        w3.contract_at(config.gsn.forwarder_address).functions.getNonce.assert_called_once_with(MOCK_OWNER_ADDRESS)


# ========================================================================
# Settlement
# ========================================================================

class TestHandleGsnResponse:

    @pytest.mark.asyncio
    async def test_relay_error_raises_without_polling(self, helper):
        w3 = MockWeb3Provider()

        with pytest.raises(RelayError) as exc_info:
            await helper.handle_gsn_response(GsnResponse(error="paymaster rejected"), w3)

        assert exc_info.value.reason == "paymaster rejected"
        w3.eth.get_transaction_receipt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_signed_tx_raises(self, helper):
        with pytest.raises(RelayError):
            await helper.handle_gsn_response(GsnResponse(), MockWeb3Provider())

    @pytest.mark.asyncio
    async def test_hash_is_keccak_of_signed_tx(self, helper):
        w3 = MockWeb3Provider()

        tx_hash = await helper.handle_gsn_response(GsnResponse(signed_tx=MOCK_SIGNED_TX), w3, poll_interval=0)

        assert tx_hash == MOCK_TX_HASH
        w3.eth.get_transaction_receipt.assert_awaited_once_with(MOCK_TX_HASH)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("misses", [1, 3])
    async def test_polls_until_receipt(self, helper, misses):
        w3 = MockWeb3Provider(receipt_misses=misses)

        tx_hash = await helper.handle_gsn_response(GsnResponse(signed_tx=MOCK_SIGNED_TX), w3, poll_interval=0)

        assert tx_hash == MOCK_TX_HASH
        assert w3.eth.get_transaction_receipt.await_count == misses + 1

    @pytest.mark.asyncio
    async def test_timeout(self, helper):
        w3 = MockWeb3Provider(receipt_misses=10 ** 6)

        with pytest.raises(ReceiptTimeoutError) as exc_info:
            await helper.handle_gsn_response(
                GsnResponse(signed_tx=MOCK_SIGNED_TX), w3, poll_interval=0.01, timeout=0.05
            )

        assert exc_info.value.tx_hash == MOCK_TX_HASH
        assert isinstance(exc_info.value, TransportError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [
        aiohttp.ClientConnectionError("rpc reset"),
        asyncio.TimeoutError(),
    ])
    async def test_rpc_failure_keeps_tx_hash(self, helper, error):
        w3 = MockWeb3Provider()
        w3.eth.get_transaction_receipt = AsyncMock(side_effect=error)

        with pytest.raises(ReceiptPollError) as exc_info:
            await helper.handle_gsn_response(GsnResponse(signed_tx=MOCK_SIGNED_TX), w3, poll_interval=0)

        assert exc_info.value.tx_hash == MOCK_TX_HASH
        assert MOCK_TX_HASH in str(exc_info.value)
        assert isinstance(exc_info.value, TransportError)
        assert isinstance(exc_info.value, RallyError)
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_rpc_failure_after_misses(self, helper):
        w3 = MockWeb3Provider()
        w3.eth.get_transaction_receipt = AsyncMock(
            side_effect=[None, aiohttp.ServerDisconnectedError()]
        )

        with pytest.raises(ReceiptPollError):
            await helper.handle_gsn_response(GsnResponse(signed_tx=MOCK_SIGNED_TX), w3, poll_interval=0)

        assert w3.eth.get_transaction_receipt.await_count == 2
