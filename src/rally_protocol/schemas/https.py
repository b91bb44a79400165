"""
HTTP Request/Response Schema Models for the GSN Relay Protocol

This module defines the Pydantic models used for HTTP communication between
the client and a GSN relay server. They give type-safe parsing of the relay
server's JSON and validated serialization of what the client sends.

The relay flow consists of:
1. Client fetches the relay server configuration (GET /getaddr)
2. Client signs a relay request against that configuration
3. Client posts the relay request with its metadata (POST /relay)
4. Relay server answers with the signed transaction or an error string

The relay request body itself is defined next to the GSN entities in
``rally_protocol.gsn.models``.
"""

from typing import Optional

from pydantic import Field, field_validator

from .bases import WireModel


# ============================================================================
# Step 1: Relay server configuration (GET /getaddr)
# ============================================================================

class GsnServerConfigPayload(WireModel):
    """Relay server configuration returned by ``GET {relayUrl}/getaddr``.

    Numeric quantities are kept as decimal strings, exactly as the relay
    server reports them.

    Attributes:
        relay_worker_address: Address of the worker that will sign and send the relayed tx.
        relay_manager_address: Address of the relay manager.
        relay_hub_address: Relay hub the server is registered with.
        owner_address: Owner of the relay manager stake.
        min_max_priority_fee_per_gas: Lowest priority fee the server accepts.
        max_max_fee_per_gas: Highest max fee the server will pay.
        min_max_fee_per_gas: Lowest max fee the server accepts.
        max_acceptance_budget: Paymaster acceptance budget the server allows.
        chain_id: Chain id the server relays on.
        network_id: Network id the server relays on.
        ready: Whether the server is ready to relay.
        version: Relay server software version.
    """
    relay_worker_address: str
    relay_manager_address: Optional[str] = None
    relay_hub_address: Optional[str] = None
    owner_address: Optional[str] = None
    min_max_priority_fee_per_gas: str
    max_max_fee_per_gas: str
    min_max_fee_per_gas: Optional[str] = None
    max_acceptance_budget: Optional[str] = None
    chain_id: str
    network_id: Optional[str] = None
    ready: bool = False
    version: Optional[str] = None

    @field_validator(
        "min_max_priority_fee_per_gas",
        "max_max_fee_per_gas",
        "min_max_fee_per_gas",
        "max_acceptance_budget",
        "chain_id",
        "network_id",
        mode="before",
    )
    @classmethod
    def _numbers_as_strings(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


# ============================================================================
# Step 3: Relay request metadata (POST /relay)
# ============================================================================

class RelayHttpRequestMetadata(WireModel):
    """Metadata sent alongside a signed relay request.

    Attributes:
        max_acceptance_budget: Paymaster acceptance budget (decimal string).
        relay_hub_address: Relay hub the request targets.
        signature: EIP-712 signature over the relay request (0x hex).
        approval_data: Paymaster approval data (0x hex, "0x" when unused).
        relay_last_known_nonce: Relay worker's current transaction count.
        relay_max_nonce: Highest worker nonce the client accepts.
        domain_separator_name: EIP-712 domain name used for signing.
        relay_request_id: Identifier derived from sender, nonce and signature.
    """
    max_acceptance_budget: str
    relay_hub_address: str
    signature: str
    approval_data: str = "0x"
    relay_last_known_nonce: int
    relay_max_nonce: int
    domain_separator_name: str
    relay_request_id: str = ""


# ============================================================================
# Step 4: Relay server response
# ============================================================================

class GsnResponse(WireModel):
    """Relay server answer to ``POST {relayUrl}/relay``.

    Attributes:
        error: Error string; empty or absent on success.
        signed_tx: RLP-encoded signed transaction (0x hex) the relay broadcast.
    """
    error: Optional[str] = Field(default=None)
    signed_tx: Optional[str] = Field(default=None)

    @property
    def failed(self) -> bool:
        return bool(self.error)
