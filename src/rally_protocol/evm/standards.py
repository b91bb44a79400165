from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union

from ..engine.exceptions import SigningError


# -----------------------------
# EIP-712 Domain
# -----------------------------

# Canonical field order of the EIP712Domain struct.
_DOMAIN_FIELDS = (
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
)

ZERO_SALT = b"\x00" * 32


def chain_id_salt(chain_id: Union[int, str]) -> bytes:
    """Return ``chain_id`` left-padded to 32 bytes, as used for salt-only domains."""
    return int(chain_id).to_bytes(32, "big")


def as_salt_bytes(salt: Union[bytes, str]) -> bytes:
    """Normalise a salt given as bytes or hex string to bytes."""
    if isinstance(salt, str):
        return bytes.fromhex(salt[2:] if salt.startswith("0x") else salt)
    return bytes(salt)


def is_zero_salt(salt: Optional[Union[bytes, str]]) -> bool:
    """True when ``salt`` is missing or all zero bytes."""
    if salt is None:
        return True
    return not any(as_salt_bytes(salt))


@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across domains.

    Deployments disagree on which optional fields the domain carries, so
    ``chainId`` and ``salt`` are both optional. Only the fields that are set
    appear in ``to_dict()`` and ``domain_type()``:

    - ChainId only: name, version, chainId, verifyingContract
    - Salt, no ChainId: name, version, verifyingContract, salt
    - ChainId and Salt: name, version, chainId, verifyingContract, salt
    """
    name: str
    version: str
    verifyingContract: str
    chainId: Optional[int] = None
    salt: Optional[bytes] = None

    def __post_init__(self):
        if self.salt is not None and len(self.salt) != 32:
            raise SigningError(f"EIP-712 salt must be 32 bytes, got {len(self.salt)}")

    @classmethod
    def with_chain_id(cls, *, name: str, version: str, chain_id: int, verifying_contract: str) -> "EIP712Domain":
        return cls(name=name, version=version, chainId=int(chain_id), verifyingContract=verifying_contract)

    @classmethod
    def with_salt(cls, *, name: str, version: str, verifying_contract: str, salt: bytes) -> "EIP712Domain":
        return cls(name=name, version=version, verifyingContract=verifying_contract, salt=salt)

    @classmethod
    def with_chain_id_and_salt(
        cls, *, name: str, version: str, chain_id: int, verifying_contract: str, salt: bytes
    ) -> "EIP712Domain":
        return cls(
            name=name,
            version=version,
            chainId=int(chain_id),
            verifyingContract=verifying_contract,
            salt=salt,
        )

    def to_dict(self) -> Dict[str, Any]:
        values = {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
            "salt": "0x" + self.salt.hex() if self.salt is not None else None,
        }
        return {key: values[key] for key, _ in _DOMAIN_FIELDS if values[key] is not None}

    def domain_type(self) -> List[Dict[str, str]]:
        """Return the ``EIP712Domain`` type definition matching the set fields."""
        present = self.to_dict()
        return [{"name": key, "type": type_} for key, type_ in _DOMAIN_FIELDS if key in present]


# -----------------------------
# EIP-2612: Permit
# -----------------------------

@dataclass
class PermitMessage:
    """
    Represents the message payload for an EIP-2612 ``Permit``.

    Attributes:
        owner: Token owner granting the allowance.
        spender: Address receiving the allowance (the paymaster).
        value: Allowance amount in the token's smallest unit.
        nonce: Owner's current permit nonce on the token.
        deadline: Unix timestamp after which the permit is invalid.
    """
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


@dataclass
class PermitTypedData:
    """
    Container for EIP-2612 typed data usable with EIP-712 signing routines.

    The ``EIP712Domain`` type is derived from the domain, so the same container
    serves tokens with and without a salt in their domain.
    """
    domain: EIP712Domain
    message: PermitMessage

    primary_type: str = "Permit"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "Permit": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        """Return a dictionary compatible with EIP-712 structured signing."""
        return {
            "types": {"EIP712Domain": self.domain.domain_type(), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# Native meta-transactions: executeMetaTransaction
# -----------------------------

@dataclass
class MetaTransactionMessage:
    """
    Message signed for a token's ``executeMetaTransaction``.

    ``from`` is a Python reserved word; this class uses ``sender`` and maps
    it to ``from`` in ``to_dict()``.

    Attributes:
        nonce: User's meta-transaction nonce on the token.
        sender: Address on whose behalf the call is replayed (maps to ``from``).
        function_signature: ABI-encoded inner call (0x hex).
    """
    nonce: int
    sender: str
    function_signature: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nonce": self.nonce,
            "from": self.sender,
            "functionSignature": self.function_signature,
        }


@dataclass
class MetaTransactionTypedData:
    """Container for ``MetaTransaction`` typed data (salt-only domain)."""
    domain: EIP712Domain
    message: MetaTransactionMessage

    primary_type: str = "MetaTransaction"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "MetaTransaction": [
                {"name": "nonce", "type": "uint256"},
                {"name": "from", "type": "address"},
                {"name": "functionSignature", "type": "bytes"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": {"EIP712Domain": self.domain.domain_type(), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


# -----------------------------
# GSN: RelayRequest
# -----------------------------

@dataclass
class RelayRequestTypedData:
    """
    Container for GSN ``RelayRequest`` typed data.

    ``message`` is the flattened relay request: the forward request fields
    plus a nested ``relayData`` struct.
    """
    domain: EIP712Domain
    message: Dict[str, Any]

    primary_type: str = "RelayRequest"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "RelayRequest": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "gas", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "data", "type": "bytes"},
                {"name": "validUntilTime", "type": "uint256"},
                {"name": "relayData", "type": "RelayData"},
            ],
            "RelayData": [
                {"name": "maxFeePerGas", "type": "uint256"},
                {"name": "maxPriorityFeePerGas", "type": "uint256"},
                {"name": "transactionCalldataGasUsed", "type": "uint256"},
                {"name": "relayWorker", "type": "address"},
                {"name": "paymaster", "type": "address"},
                {"name": "forwarder", "type": "address"},
                {"name": "paymasterData", "type": "bytes"},
                {"name": "clientId", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": {"EIP712Domain": self.domain.domain_type(), **self.types},
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message,
        }
