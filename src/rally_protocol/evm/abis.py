"""
ERC20 + Permit + Meta-Transaction + GSN Contract ABI Module

This module provides minimal ABI definitions for the contracts the relay
pipeline talks to: the ERC-20 token (including its EIP-2612 ``permit`` and
native ``executeMetaTransaction`` extensions), the GSN forwarder, the relay
hub and the token faucet. It also provides a small calldata encoder built on
``eth_abi`` so calldata can be produced without a live provider.

Usage:
    from rally_protocol.evm.abis import (
        get_erc20_abi,
        get_forwarder_abi,
        encode_function_call,
    )

    # Query balance
    token = web3.eth.contract(address=token_address, abi=get_erc20_abi())
    balance = await token.functions.balanceOf(owner).call()

    # Encode transfer calldata
    data = encode_function_call("transfer(address,uint256)", ["address", "uint256"], [to, amount])
"""

from typing import Dict, Any, List, Sequence

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

# Selectors searched for in token bytecode when resolving the nonce accessor.
GET_NONCE_SELECTOR = "2d0335ab"  # getNonce(address)
NONCES_SELECTOR = "7ecebe00"  # nonces(address)

FORWARD_REQUEST_TUPLE = "(address,address,uint256,uint256,uint256,bytes,uint256)"
RELAY_DATA_TUPLE = "(uint256,uint256,uint256,address,address,address,bytes,uint256)"
RELAY_REQUEST_TUPLE = f"({FORWARD_REQUEST_TUPLE},{RELAY_DATA_TUPLE})"
RELAY_CALL_SIGNATURE = f"relayCall(string,uint256,{RELAY_REQUEST_TUPLE},bytes,bytes)"


def encode_function_call(signature: str, arg_types: Sequence[str], args: Sequence[Any]) -> str:
    """
    Encode a contract call as 0x-prefixed calldata.

    Args:
        signature: Canonical function signature, e.g. ``"transfer(address,uint256)"``.
        arg_types: ABI types of the arguments, in order.
        args: Argument values.

    Returns:
        str: ``0x`` + 4-byte selector + ABI-encoded arguments.

    Example:
        encode_function_call("claim()", [], [])  # '0x4e71d92d'
    """
    selector = function_signature_to_4byte_selector(signature)
    return "0x" + (selector + encode(list(arg_types), list(args))).hex()


# ---------------------------------------------------------------------------
# ERC-20 core
# ---------------------------------------------------------------------------

def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying a token balance.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function

    Example:
        abi = get_balance_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        balance = await contract.functions.balanceOf(address).call()
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_metadata_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 ``name()`` and ``decimals()``.

    Returns:
        List[Dict[str, Any]]: ABI for name and decimals functions.
    """
    return [
        {
            "name": "name",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "string"}],
        },
        {
            "name": "decimals",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [{"name": "", "type": "uint8"}],
        },
    ]


def get_transfer_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC20 ``transfer(recipient, amount)`` and
    ``transferFrom(sender, recipient, amount)``.

    Returns:
        List[Dict[str, Any]]: ABI for both transfer functions.
    """
    return [
        {
            "name": "transfer",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "recipient", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
        {
            "name": "transferFrom",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "sender", "type": "address"},
                {"name": "recipient", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "outputs": [{"name": "", "type": "bool"}],
        },
    ]


# ---------------------------------------------------------------------------
# Nonces and EIP-712 domain introspection
# ---------------------------------------------------------------------------

def get_nonce_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for both nonce accessors found on tokens: EIP-2612
    ``nonces(owner)`` and meta-transaction ``getNonce(user)``.

    Returns:
        List[Dict[str, Any]]: ABI for nonces and getNonce.
    """
    return [
        {
            "name": "nonces",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "owner", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "getNonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "user", "type": "address"}],
            "outputs": [{"name": "nonce", "type": "uint256"}],
        },
    ]


def get_eip712_domain_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for EIP-5267 ``eip712Domain()``.

    The call returns ``(fields, name, version, chainId, verifyingContract,
    salt, extensions)``; index 5 is the salt used to pick the Permit
    domain shape.

    Returns:
        List[Dict[str, Any]]: ABI for eip712Domain.
    """
    return [
        {
            "name": "eip712Domain",
            "type": "function",
            "stateMutability": "view",
            "inputs": [],
            "outputs": [
                {"name": "fields", "type": "bytes1"},
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
                {"name": "salt", "type": "bytes32"},
                {"name": "extensions", "type": "uint256[]"},
            ],
        }
    ]


# ---------------------------------------------------------------------------
# Delegation methods
# ---------------------------------------------------------------------------

def get_permit_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for EIP-2612 ``permit(owner, spender, value, deadline, v, r, s)``.

    Returns:
        List[Dict[str, Any]]: ABI for permit.
    """
    return [
        {
            "name": "permit",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "v", "type": "uint8"},
                {"name": "r", "type": "bytes32"},
                {"name": "s", "type": "bytes32"},
            ],
            "outputs": [],
        }
    ]


def get_execute_meta_transaction_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ``executeMetaTransaction(userAddress, functionSignature,
    sigR, sigS, sigV)``.

    Returns:
        List[Dict[str, Any]]: ABI for executeMetaTransaction.
    """
    return [
        {
            "name": "executeMetaTransaction",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {"name": "userAddress", "type": "address"},
                {"name": "functionSignature", "type": "bytes"},
                {"name": "sigR", "type": "bytes32"},
                {"name": "sigS", "type": "bytes32"},
                {"name": "sigV", "type": "uint8"},
            ],
            "outputs": [{"name": "", "type": "bytes"}],
        }
    ]


def get_erc20_abi() -> List[Dict[str, Any]]:
    """
    Get the combined token ABI used by the relay pipeline.

    Returns:
        List[Dict[str, Any]]: balance, metadata, transfer, nonce, domain,
        permit and executeMetaTransaction entries.
    """
    return (
        get_balance_abi()
        + get_metadata_abi()
        + get_transfer_abi()
        + get_nonce_abi()
        + get_eip712_domain_abi()
        + get_permit_abi()
        + get_execute_meta_transaction_abi()
    )


# ---------------------------------------------------------------------------
# GSN and faucet
# ---------------------------------------------------------------------------

def get_forwarder_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the GSN forwarder's ``getNonce(from)``.

    Returns:
        List[Dict[str, Any]]: ABI for Forwarder.getNonce.
    """
    return [
        {
            "name": "getNonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "from", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]


def get_faucet_abi() -> List[Dict[str, Any]]:
    """Get ABI for the token faucet's ``claim()``."""
    return [
        {
            "name": "claim",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [],
            "outputs": [{"name": "", "type": "bool"}],
        }
    ]


def get_relay_hub_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the GSN v3 RelayHub's ``relayCall``.

    The relay request is a ``(ForwardRequest, RelayData)`` tuple; its
    component order matches ``RELAY_REQUEST_TUPLE``.

    Returns:
        List[Dict[str, Any]]: ABI for RelayHub.relayCall.
    """
    forward_request = [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "gas", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "data", "type": "bytes"},
        {"name": "validUntilTime", "type": "uint256"},
    ]
    relay_data = [
        {"name": "maxFeePerGas", "type": "uint256"},
        {"name": "maxPriorityFeePerGas", "type": "uint256"},
        {"name": "transactionCalldataGasUsed", "type": "uint256"},
        {"name": "relayWorker", "type": "address"},
        {"name": "paymaster", "type": "address"},
        {"name": "forwarder", "type": "address"},
        {"name": "paymasterData", "type": "bytes"},
        {"name": "clientId", "type": "uint256"},
    ]
    return [
        {
            "name": "relayCall",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "domainSeparatorName", "type": "string"},
                {"name": "maxAcceptanceBudget", "type": "uint256"},
                {
                    "name": "relayRequest",
                    "type": "tuple",
                    "components": [
                        {"name": "request", "type": "tuple", "components": forward_request},
                        {"name": "relayData", "type": "tuple", "components": relay_data},
                    ],
                },
                {"name": "signature", "type": "bytes"},
                {"name": "approvalData", "type": "bytes"},
            ],
            "outputs": [
                {"name": "paymasterAccepted", "type": "bool"},
                {"name": "returnValue", "type": "bytes"},
            ],
        }
    ]


# ---------------------------------------------------------------------------
# Calldata encoders
# ---------------------------------------------------------------------------

def encode_transfer(recipient: str, amount: int) -> str:
    return encode_function_call("transfer(address,uint256)", ["address", "uint256"], [recipient, amount])


def encode_transfer_from(sender: str, recipient: str, amount: int) -> str:
    return encode_function_call(
        "transferFrom(address,address,uint256)",
        ["address", "address", "uint256"],
        [sender, recipient, amount],
    )


def encode_permit(owner: str, spender: str, value: int, deadline: int, v: int, r: bytes, s: bytes) -> str:
    return encode_function_call(
        "permit(address,address,uint256,uint256,uint8,bytes32,bytes32)",
        ["address", "address", "uint256", "uint256", "uint8", "bytes32", "bytes32"],
        [owner, spender, value, deadline, v, r, s],
    )


def encode_execute_meta_transaction(
    user_address: str, function_signature: bytes, sig_r: bytes, sig_s: bytes, sig_v: int
) -> str:
    return encode_function_call(
        "executeMetaTransaction(address,bytes,bytes32,bytes32,uint8)",
        ["address", "bytes", "bytes32", "bytes32", "uint8"],
        [user_address, function_signature, sig_r, sig_s, sig_v],
    )


def encode_claim() -> str:
    return encode_function_call("claim()", [], [])


def encode_relay_call(
    domain_separator_name: str,
    max_acceptance_budget: int,
    relay_request: tuple,
    signature: bytes,
    approval_data: bytes,
) -> str:
    """
    Encode ``RelayHub.relayCall``.

    Args:
        domain_separator_name: EIP-712 domain name of relay requests.
        max_acceptance_budget: Paymaster acceptance budget.
        relay_request: ``((ForwardRequest), (RelayData))`` tuple as produced
            by ``RelayRequest.to_abi()``.
        signature: Relay request signature bytes.
        approval_data: Paymaster approval data bytes.
    """
    return encode_function_call(
        RELAY_CALL_SIGNATURE,
        ["string", "uint256", RELAY_REQUEST_TUPLE, "bytes", "bytes"],
        [domain_separator_name, max_acceptance_budget, relay_request, signature, approval_data],
    )
