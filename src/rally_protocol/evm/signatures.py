"""
EVM Off-Chain Signing Utilities

Local EIP-712 signing helpers for EIP-2612 ``permit``, native
``executeMetaTransaction`` and GSN ``RelayRequest`` payloads. All
cryptographic operations are performed in-process using ``eth_account``;
no RPC calls or on-chain state queries are made.

Exported helpers
----------------
sign_typed_data
    Sign any typed-data container exposing ``to_dict()`` and return an
    ``EVMSignature`` (v, r, s).

sign_permit
    Build the Permit payload with the domain shape the token expects
    (ChainId only, or ChainId plus Salt) and sign it.

sign_meta_transaction
    Build the MetaTransaction payload over the salt-only domain and sign it.

recover_typed_data_signer
    Recover the signing address of a typed-data signature.
"""

from typing import Any, Optional, Union

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_utils import ValidationError
from pydantic import Field, field_validator

from ..engine.exceptions import SigningError
from ..schemas.bases import CanonicalModel
from .standards import (
    EIP712Domain,
    PermitMessage,
    PermitTypedData,
    MetaTransactionMessage,
    MetaTransactionTypedData,
    as_salt_bytes,
    chain_id_salt,
    is_zero_salt,
)

DEFAULT_PERMIT_VERSION = "1"
DEFAULT_META_TRANSACTION_VERSION = "1"


# ---------------------------------------------------------------------------
# Signature model
# ---------------------------------------------------------------------------

class EVMSignature(CanonicalModel):
    """
    ECDSA signature split into its Ethereum components.

    Attributes:
        v: Recovery id, 27 or 28.
        r: 0x-prefixed 32-byte hex string.
        s: 0x-prefixed 32-byte hex string.
    """
    v: int = Field(..., description="Recovery id (27 or 28)")
    r: str = Field(..., description="R component, 0x + 64 hex chars")
    s: str = Field(..., description="S component, 0x + 64 hex chars")

    @field_validator("v")
    @classmethod
    def _check_v(cls, value: int) -> int:
        if value not in (27, 28):
            raise ValueError(f"v must be 27 or 28, got {value}")
        return value

    @field_validator("r", "s")
    @classmethod
    def _check_component(cls, value: str) -> str:
        if not value.startswith("0x") or len(value) != 66:
            raise ValueError("signature components must be 0x-prefixed 32-byte hex")
        return value.lower()

    @property
    def r_bytes(self) -> bytes:
        return bytes.fromhex(self.r[2:])

    @property
    def s_bytes(self) -> bytes:
        return bytes.fromhex(self.s[2:])

    def to_hex(self) -> str:
        """Return the packed 65-byte ``r || s || v`` signature as 0x hex."""
        return self.r + self.s[2:] + format(self.v, "02x")

    @classmethod
    def from_hex(cls, signature: Union[str, bytes]) -> "EVMSignature":
        """
        Split a packed 65-byte signature.

        A trailing recovery id of 0 or 1 is normalised to 27 or 28.

        Raises:
            SigningError: If the signature is not 65 bytes long.
        """
        if isinstance(signature, str):
            raw = bytes.fromhex(signature[2:] if signature.startswith("0x") else signature)
        else:
            raw = bytes(signature)
        if len(raw) != 65:
            raise SigningError(f"Expected a 65-byte signature, got {len(raw)} bytes")
        v = raw[64]
        if v < 27:
            v += 27
        return cls(v=v, r="0x" + raw[:32].hex(), s="0x" + raw[32:64].hex())


# ---------------------------------------------------------------------------
# Generic signer
# ---------------------------------------------------------------------------

def sign_typed_data(private_key: str, typed_data: Any) -> EVMSignature:
    """
    Sign an EIP-712 typed-data container with a private key.

    Args:
        private_key: Hex-encoded secp256k1 private key (with or without ``0x``).
        typed_data: Object exposing ``to_dict()`` that returns
            ``{types, primaryType, domain, message}``.

    Returns:
        ``EVMSignature`` with v in {27, 28} and 32-byte r and s.

    Raises:
        SigningError: If the payload cannot be encoded or signed.
    """
    try:
        signed = Account.sign_typed_data(private_key, full_message=typed_data.to_dict())
    except (ValueError, TypeError, KeyError, ValidationError) as exc:
        raise SigningError(f"Unable to sign typed data: {exc}") from exc

    return EVMSignature(
        v=signed.v,
        r="0x" + signed.r.to_bytes(32, "big").hex(),
        s="0x" + signed.s.to_bytes(32, "big").hex(),
    )


def recover_typed_data_signer(typed_data: Any, signature: Union[EVMSignature, str]) -> str:
    """Return the checksummed address that produced ``signature`` over ``typed_data``."""
    packed = signature.to_hex() if isinstance(signature, EVMSignature) else signature
    signable = encode_typed_data(full_message=typed_data.to_dict())
    return Account.recover_message(signable, signature=packed)


# ---------------------------------------------------------------------------
# EIP-2612 Permit
# ---------------------------------------------------------------------------

def build_permit_typed_data(
    *,
    token_name: str,
    token_address: str,
    chain_id: int,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    salt: Optional[bytes] = None,
    version: str = DEFAULT_PERMIT_VERSION,
) -> PermitTypedData:
    """
    Build Permit typed data, choosing the domain shape from ``salt``.

    A missing or all-zero salt selects the ChainId-only domain; any other salt
    selects the ChainId plus Salt domain. Picking the wrong shape yields a
    signature the token rejects on-chain.
    """
    if is_zero_salt(salt):
        domain = EIP712Domain.with_chain_id(
            name=token_name,
            version=version,
            chain_id=chain_id,
            verifying_contract=token_address,
        )
    else:
        domain = EIP712Domain.with_chain_id_and_salt(
            name=token_name,
            version=version,
            chain_id=chain_id,
            verifying_contract=token_address,
            salt=as_salt_bytes(salt),
        )
    message = PermitMessage(owner=owner, spender=spender, value=value, nonce=nonce, deadline=deadline)
    return PermitTypedData(domain=domain, message=message)


def sign_permit(
    *,
    private_key: str,
    token_name: str,
    token_address: str,
    chain_id: int,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    salt: Optional[bytes] = None,
    version: str = DEFAULT_PERMIT_VERSION,
) -> EVMSignature:
    """
    Sign an EIP-2612 ``Permit`` granting ``spender`` an allowance of ``value``.

    Args:
        private_key: Owner's private key.
        token_name: Token ``name()``, used as the domain name.
        token_address: Token address, used as ``verifyingContract``.
        chain_id: Chain id of the network.
        owner: Token owner (must match ``private_key``).
        spender: Address being approved (the paymaster).
        value: Allowance in smallest units.
        nonce: Owner's permit nonce on the token.
        deadline: Unix timestamp (seconds) after which the permit expires.
        salt: ``salt`` returned by the token's ``eip712Domain()``, if any.
        version: Domain version, ``"1"`` unless the token says otherwise.

    Returns:
        ``EVMSignature`` (v, r, s).

    Example::

        sig = sign_permit(
            private_key="0xKEY",
            token_name="Rally",
            token_address="0x846D8a5fb8a003b431b67115f809a9B9FFFe5012",
            chain_id=84532,
            owner="0xOwner",
            spender="0xPaymaster",
            value=10**18,
            nonce=0,
            deadline=1_900_000_000,
        )
    """
    typed_data = build_permit_typed_data(
        token_name=token_name,
        token_address=token_address,
        chain_id=chain_id,
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=deadline,
        salt=salt,
        version=version,
    )
    return sign_typed_data(private_key, typed_data)


# ---------------------------------------------------------------------------
# executeMetaTransaction
# ---------------------------------------------------------------------------

def build_meta_transaction_typed_data(
    *,
    token_name: str,
    token_address: str,
    chain_id: int,
    sender: str,
    function_signature: str,
    nonce: int,
    version: str = DEFAULT_META_TRANSACTION_VERSION,
) -> MetaTransactionTypedData:
    """Build MetaTransaction typed data over the salt-only domain (salt = chain id)."""
    domain = EIP712Domain.with_salt(
        name=token_name,
        version=version,
        verifying_contract=token_address,
        salt=chain_id_salt(chain_id),
    )
    message = MetaTransactionMessage(nonce=nonce, sender=sender, function_signature=function_signature)
    return MetaTransactionTypedData(domain=domain, message=message)


def sign_meta_transaction(
    *,
    private_key: str,
    token_name: str,
    token_address: str,
    chain_id: int,
    sender: str,
    function_signature: str,
    nonce: int,
    version: str = DEFAULT_META_TRANSACTION_VERSION,
) -> EVMSignature:
    """
    Sign a ``MetaTransaction(nonce, from, functionSignature)`` payload.

    The domain has no ``chainId`` field; the chain id is carried as a
    32-byte left-padded ``salt`` instead.

    Returns:
        ``EVMSignature`` (v, r, s).
    """
    typed_data = build_meta_transaction_typed_data(
        token_name=token_name,
        token_address=token_address,
        chain_id=chain_id,
        sender=sender,
        function_signature=function_signature,
        nonce=nonce,
        version=version,
    )
    return sign_typed_data(private_key, typed_data)
