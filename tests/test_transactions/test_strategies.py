"""
Fee-Delegation Strategy Test Suite

Tests for PermitTransaction and MetaTransaction against a mocked token:
- Calldata, gas and paymaster data of the prepared call
- Signatures recover to the token holder with the expected domain
- Support probing reports unsupported methods with a reason
- Transaction assembly with estimated fees
"""

import pytest
from eth_utils import function_signature_to_4byte_selector
from web3 import AsyncWeb3

from mocks import (
    MOCK_BLOCK_TIMESTAMP,
    MOCK_BASE_FEE,
    MOCK_BYTECODE_NONE,
    MOCK_GAS_LIMIT,
    MOCK_GAS_PRICE,
    MOCK_NONCE,
    MOCK_OWNER_ACCOUNT,
    MOCK_OWNER_ADDRESS,
    MOCK_RECIPIENT_ADDRESS,
    MOCK_TOKEN_ADDRESS,
    MOCK_TOKEN_NAME,
    NON_ZERO_SALT,
    MockWeb3Provider,
    create_mock_config,
)
from rally_protocol.config import MetaTxMethod, TokenConfig
from rally_protocol.evm.abis import encode_transfer, encode_transfer_from
from rally_protocol.evm.fees import FeeEstimator
from rally_protocol.evm.signatures import (
    EVMSignature,
    build_meta_transaction_typed_data,
    build_permit_typed_data,
    recover_typed_data_signer,
)
from rally_protocol.transactions import MetaTransaction, PermitTransaction, SupportProbe

AMOUNT = 5 * 10 ** 18


def selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def permit_signature(contract) -> EVMSignature:
    owner, spender, value, deadline, v, r, s = contract.functions.permit.call_args.args
    return EVMSignature(v=v, r="0x" + r.hex(), s="0x" + s.hex())


def permit_typed_data(config, salt=None, version="1"):
    return build_permit_typed_data(
        token_name=MOCK_TOKEN_NAME,
        token_address=MOCK_TOKEN_ADDRESS,
        chain_id=config.gsn.chain_id_int,
        owner=MOCK_OWNER_ADDRESS,
        spender=AsyncWeb3.to_checksum_address(config.gsn.paymaster_address),
        value=AMOUNT,
        nonce=MOCK_NONCE,
        deadline=MOCK_BLOCK_TIMESTAMP + 45,
        salt=salt,
        version=version,
    )


# ========================================================================
# Permit
# ========================================================================

class TestPermitTransaction:

    @pytest.mark.asyncio
    async def test_prepared_call(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()

        call = await PermitTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        assert call.data.startswith(selector("permit(address,address,uint256,uint256,uint8,bytes32,bytes32)"))
        assert call.gas == MOCK_GAS_LIMIT

    @pytest.mark.asyncio
    async def test_paymaster_data_is_token_then_transfer_from(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()

        call = await PermitTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        transfer_from = encode_transfer_from(MOCK_OWNER_ADDRESS, MOCK_RECIPIENT_ADDRESS, AMOUNT)
        assert call.paymaster_data == "0x" + MOCK_TOKEN_ADDRESS.lower()[2:] + transfer_from[2:]
        assert len(call.paymaster_data) == 2 + 40 + 8 + 3 * 64

    @pytest.mark.asyncio
    async def test_signature_uses_chain_id_domain_for_zero_salt(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()

        await PermitTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        signature = permit_signature(w3.contract_at(MOCK_TOKEN_ADDRESS))
        assert recover_typed_data_signer(permit_typed_data(config), signature) == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_signature_includes_non_zero_salt(self):
        w3 = MockWeb3Provider(salt=NON_ZERO_SALT)
        config = create_mock_config()

        await PermitTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        signature = permit_signature(w3.contract_at(MOCK_TOKEN_ADDRESS))
        assert recover_typed_data_signer(
            permit_typed_data(config, salt=NON_ZERO_SALT), signature
        ) == MOCK_OWNER_ADDRESS
        assert recover_typed_data_signer(permit_typed_data(config), signature) != MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_token_config_domain_version(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()
        token_config = TokenConfig(
            address=MOCK_TOKEN_ADDRESS, meta_tx_method=MetaTxMethod.Permit, eip712_domain_version="2"
        )

        await PermitTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3, token_config
        )

        signature = permit_signature(w3.contract_at(MOCK_TOKEN_ADDRESS))
        assert recover_typed_data_signer(permit_typed_data(config, version="2"), signature) == MOCK_OWNER_ADDRESS

    @pytest.mark.asyncio
    async def test_deadline_from_latest_block(self):
        w3 = MockWeb3Provider(block_timestamp=1_700_000_000)
        assert await PermitTransaction().get_permit_deadline(w3) == 1_700_000_045


# ========================================================================
# executeMetaTransaction
# ========================================================================

class TestMetaTransaction:

    @pytest.mark.asyncio
    async def test_prepared_call(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()

        call = await MetaTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        assert call.data.startswith(selector("executeMetaTransaction(address,bytes,bytes32,bytes32,uint8)"))
        assert call.gas == MOCK_GAS_LIMIT
        assert call.paymaster_data is None

    @pytest.mark.asyncio
    async def test_signature_over_transfer_calldata(self):
        w3 = MockWeb3Provider()
        config = create_mock_config()

        await MetaTransaction().prepare_call(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, config, MOCK_TOKEN_ADDRESS, w3
        )

        contract = w3.contract_at(MOCK_TOKEN_ADDRESS)
        user, function_bytes, r, s, v = contract.functions.executeMetaTransaction.call_args.args
        function_signature = encode_transfer(MOCK_RECIPIENT_ADDRESS, AMOUNT)
        typed = build_meta_transaction_typed_data(
            token_name=MOCK_TOKEN_NAME,
            token_address=MOCK_TOKEN_ADDRESS,
            chain_id=config.gsn.chain_id_int,
            sender=MOCK_OWNER_ADDRESS,
            function_signature=function_signature,
            nonce=MOCK_NONCE,
        )

        assert user == MOCK_OWNER_ADDRESS
        assert "0x" + function_bytes.hex() == function_signature
        signature = EVMSignature(v=v, r="0x" + r.hex(), s="0x" + s.hex())
        assert recover_typed_data_signer(typed, signature) == MOCK_OWNER_ADDRESS


# ========================================================================
# Probing and assembly
# ========================================================================

class TestSupportProbe:

    def test_truthiness(self):
        assert SupportProbe.ok()
        assert not SupportProbe.unsupported("nope")
        assert SupportProbe.unsupported("nope").reason == "nope"

    @pytest.mark.asyncio
    async def test_reverting_permit_is_unsupported(self):
        w3 = MockWeb3Provider(permit_supported=False)

        probe = await PermitTransaction().probe_support(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, create_mock_config(), MOCK_TOKEN_ADDRESS, w3
        )

        assert not probe
        assert "execution reverted" in probe.reason

    @pytest.mark.asyncio
    async def test_missing_nonce_function_is_unsupported(self):
        w3 = MockWeb3Provider(bytecode=MOCK_BYTECODE_NONE)

        probe = await MetaTransaction().probe_support(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, create_mock_config(), MOCK_TOKEN_ADDRESS, w3
        )

        assert not probe
        assert probe.reason.startswith("NoNonceFunctionFoundError")

    @pytest.mark.asyncio
    async def test_supported(self):
        probe = await MetaTransaction().probe_support(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, create_mock_config(), MOCK_TOKEN_ADDRESS,
            MockWeb3Provider(),
        )
        assert probe == SupportProbe.ok()


class TestBuildTransaction:

    @pytest.mark.asyncio
    async def test_permit_transaction_details(self):
        w3 = MockWeb3Provider()

        transaction = await PermitTransaction().build_transaction(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, create_mock_config(),
            MOCK_TOKEN_ADDRESS.lower(), w3,
        )

        fees = FeeEstimator.compute(MOCK_BASE_FEE, MOCK_GAS_PRICE)
        assert transaction.sender == MOCK_OWNER_ADDRESS
        assert transaction.to == MOCK_TOKEN_ADDRESS
        assert transaction.value == 0
        assert transaction.gas == MOCK_GAS_LIMIT
        assert transaction.max_fee_per_gas == fees.max_fee_per_gas
        assert transaction.max_priority_fee_per_gas == fees.max_priority_fee_per_gas
        assert transaction.paymaster_data.startswith("0x" + MOCK_TOKEN_ADDRESS.lower()[2:])

    @pytest.mark.asyncio
    async def test_meta_transaction_details(self):
        transaction = await MetaTransaction().build_transaction(
            MOCK_OWNER_ACCOUNT, MOCK_RECIPIENT_ADDRESS, AMOUNT, create_mock_config(),
            MOCK_TOKEN_ADDRESS, MockWeb3Provider(),
        )

        assert transaction.paymaster_data is None
        assert transaction.data.startswith(
            selector("executeMetaTransaction(address,bytes,bytes32,bytes32,uint8)")
        )
