"""
GSN Wire Entities

One pydantic model per GSN entity, with integers held as Python ints.
Each model exposes separate serialization adapters over that single
representation:

    - to_abi():            tuple accepted by ``eth_abi.encode``
    - to_wire():           JSON dict sent to the relay server (camelCase keys,
                           integers as decimal strings, ``gas`` as 0x-hex)
    - to_typed_message():  EIP-712 message dict for ``RelayRequest`` signing

Core Classes:
    - ForwardRequest: Callee-facing part of a relay request
    - RelayData: Relay-hub-facing fee and routing metadata
    - RelayRequest: ForwardRequest plus RelayData, the struct passed to relayCall
    - GsnTransactionDetails: Strategy output, not yet relayed
    - RelayHttpRequest: Signed RelayRequest plus metadata for POST /relay
"""

from typing import Any, Dict, Optional

from eth_utils import to_bytes, to_checksum_address
from pydantic import Field, field_validator

from ..evm.units import to_int
from ..schemas.bases import WireModel
from ..schemas.https import RelayHttpRequestMetadata


def _hex_bytes(value: str) -> bytes:
    return to_bytes(hexstr=value) if value and value != "0x" else b""


class ForwardRequest(WireModel):
    """
    Forwarder-facing request: ``{from, to, value, gas, nonce, data, validUntilTime}``.

    ``nonce`` must equal the forwarder's on-chain nonce for ``sender`` and
    ``valid_until_time`` must lie in the future when the relay checks it.
    """
    sender: str = Field(..., alias="from")
    to: str
    value: int = 0
    gas: int
    nonce: int
    data: str = "0x"
    valid_until_time: int

    @field_validator("value", "gas", "nonce", "valid_until_time", mode="before")
    @classmethod
    def _parse_int(cls, value):
        return to_int(value)

    def to_abi(self) -> tuple:
        return (
            to_checksum_address(self.sender),
            to_checksum_address(self.to),
            self.value,
            self.gas,
            self.nonce,
            _hex_bytes(self.data),
            self.valid_until_time,
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "value": str(self.value),
            "gas": hex(self.gas),
            "nonce": str(self.nonce),
            "data": self.data,
            "validUntilTime": str(self.valid_until_time),
        }


class RelayData(WireModel):
    """Fee and routing data that accompanies a ForwardRequest to the relay hub."""
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    transaction_calldata_gas_used: int = 0
    relay_worker: str
    paymaster: str
    forwarder: str
    paymaster_data: str = "0x"
    client_id: int = 1

    @field_validator(
        "max_fee_per_gas",
        "max_priority_fee_per_gas",
        "transaction_calldata_gas_used",
        "client_id",
        mode="before",
    )
    @classmethod
    def _parse_int(cls, value):
        return to_int(value)

    def to_abi(self) -> tuple:
        return (
            self.max_fee_per_gas,
            self.max_priority_fee_per_gas,
            self.transaction_calldata_gas_used,
            to_checksum_address(self.relay_worker),
            to_checksum_address(self.paymaster),
            to_checksum_address(self.forwarder),
            _hex_bytes(self.paymaster_data),
            self.client_id,
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "maxFeePerGas": str(self.max_fee_per_gas),
            "maxPriorityFeePerGas": str(self.max_priority_fee_per_gas),
            "transactionCalldataGasUsed": str(self.transaction_calldata_gas_used),
            "relayWorker": self.relay_worker,
            "paymaster": self.paymaster,
            "forwarder": self.forwarder,
            "paymasterData": self.paymaster_data,
            "clientId": str(self.client_id),
        }


class RelayRequest(WireModel):
    """
    Full struct hashed, signed and passed to ``RelayHub.relayCall``.

    Example:
        estimate = relay_request.clone()
        estimate.relay_data.paymaster_data = "0x" + "ff" * 300
        # relay_request is unchanged
    """
    request: ForwardRequest
    relay_data: RelayData

    def to_abi(self) -> tuple:
        return (self.request.to_abi(), self.relay_data.to_abi())

    def to_wire(self) -> Dict[str, Any]:
        return {"request": self.request.to_wire(), "relayData": self.relay_data.to_wire()}

    def to_typed_message(self) -> Dict[str, Any]:
        """
        EIP-712 ``RelayRequest`` message: the forward request fields plus a
        nested ``relayData``. Addresses are lowercased.
        """
        request = self.request
        relay_data = self.relay_data
        return {
            "from": request.sender.lower(),
            "to": request.to.lower(),
            "value": request.value,
            "gas": request.gas,
            "nonce": request.nonce,
            "data": request.data,
            "validUntilTime": request.valid_until_time,
            "relayData": {
                "maxFeePerGas": relay_data.max_fee_per_gas,
                "maxPriorityFeePerGas": relay_data.max_priority_fee_per_gas,
                "transactionCalldataGasUsed": relay_data.transaction_calldata_gas_used,
                "relayWorker": relay_data.relay_worker.lower(),
                "paymaster": relay_data.paymaster.lower(),
                "forwarder": relay_data.forwarder.lower(),
                "paymasterData": relay_data.paymaster_data,
                "clientId": relay_data.client_id,
            },
        }


class GsnTransactionDetails(WireModel):
    """
    Not-yet-relayed transaction produced by a transaction strategy.

    Attributes:
        sender: Account the transaction is sent on behalf of.
        data: Calldata for ``to`` (0x hex).
        to: Target contract.
        value: Native value, normally 0.
        gas: Gas estimate including calldata cost.
        max_fee_per_gas: EIP-1559 max fee.
        max_priority_fee_per_gas: EIP-1559 priority fee.
        paymaster_data: Data forwarded to the paymaster, if any.
        client_id: GSN client id, if set.
        use_gsn: Whether the transaction should go through GSN.
    """
    sender: str = Field(..., alias="from")
    data: str
    to: str
    value: int = 0
    gas: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    paymaster_data: Optional[str] = None
    client_id: Optional[int] = None
    use_gsn: Optional[bool] = None

    @field_validator("value", "gas", "max_fee_per_gas", "max_priority_fee_per_gas", mode="before")
    @classmethod
    def _parse_int(cls, value):
        return to_int(value)


class RelayHttpRequest(WireModel):
    """Body of ``POST {relayUrl}/relay``."""
    relay_request: RelayRequest
    metadata: RelayHttpRequestMetadata

    def to_wire(self) -> Dict[str, Any]:
        return {
            "relayRequest": self.relay_request.to_wire(),
            "metadata": self.metadata.model_dump(mode="json", by_alias=True),
        }
