"""
Calldata encoder and unit conversion tests.
"""

from decimal import Decimal

import pytest
from eth_abi import decode

from mocks import MOCK_OWNER_ADDRESS, MOCK_RECIPIENT_ADDRESS
from rally_protocol.evm.abis import (
    GET_NONCE_SELECTOR,
    NONCES_SELECTOR,
    RELAY_CALL_SIGNATURE,
    encode_claim,
    encode_transfer,
    encode_transfer_from,
    get_relay_hub_abi,
)
from rally_protocol.evm.units import amount_to_value, to_int, value_to_amount


class TestEncoders:

    def test_claim_is_selector_only(self):
        assert encode_claim() == "0x4e71d92d"

    def test_transfer(self):
        data = encode_transfer(MOCK_RECIPIENT_ADDRESS, 123)

        assert data.startswith("0xa9059cbb")
        recipient, amount = decode(["address", "uint256"], bytes.fromhex(data[10:]))
        assert recipient.lower() == MOCK_RECIPIENT_ADDRESS.lower()
        assert amount == 123

    def test_transfer_from(self):
        data = encode_transfer_from(MOCK_OWNER_ADDRESS, MOCK_RECIPIENT_ADDRESS, 7)

        assert data.startswith("0x23b872dd")
        assert len(data) == 2 + 8 + 3 * 64

    def test_nonce_selectors(self):
        from eth_utils import function_signature_to_4byte_selector

        assert function_signature_to_4byte_selector("getNonce(address)").hex() == GET_NONCE_SELECTOR
        assert function_signature_to_4byte_selector("nonces(address)").hex() == NONCES_SELECTOR

    def test_relay_hub_abi_matches_relay_call_signature(self):
        from eth_utils import function_abi_to_4byte_selector, function_signature_to_4byte_selector

        relay_call = get_relay_hub_abi()[0]

        assert function_abi_to_4byte_selector(relay_call) == function_signature_to_4byte_selector(
            RELAY_CALL_SIGNATURE
        )


class TestUnits:

    def test_amount_to_value(self):
        assert amount_to_value(amount=Decimal("1.5"), decimals=18) == 15 * 10 ** 17
        assert amount_to_value(amount="1.23", decimals=6) == 1_230_000

    def test_fractional_smallest_unit_rejected(self):
        with pytest.raises(ValueError):
            amount_to_value(amount=Decimal("0.0000001"), decimals=6)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            amount_to_value(amount=-1, decimals=6)

    def test_value_to_amount(self):
        assert value_to_amount(value=1_230_000, decimals=6) == Decimal("1.23")

    @pytest.mark.parametrize("raw, expected", [
        (None, 0),
        ("", 0),
        (5, 5),
        ("42", 42),
        ("0x2a", 42),
    ])
    def test_to_int(self, raw, expected):
        assert to_int(raw) == expected
