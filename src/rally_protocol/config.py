"""
Rally Network Configuration Management

Provides the configuration models for a Rally network (contract addresses, GSN
relay settings, relayer API key), the built-in network and token presets, and
environment-aware overrides loaded through python-dotenv.

Configs are read-only by convention. Anything that needs a variation of a
config (setting an API key, applying the relay worker reported by the relay
server) works on ``config.clone()``.
"""

import os
import re
from enum import Enum
from typing import Dict, Optional

import dotenv
from pydantic import Field, field_validator

from .engine.exceptions import ConfigurationError
from .schemas.bases import CanonicalModel

dotenv.load_dotenv()

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _check_address(value: str) -> str:
    # ConfigurationError is not a ValueError, so pydantic lets it propagate unwrapped.
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise ConfigurationError(f"not a 20-byte hex address: {value!r}")
    return value


class MetaTxMethod(str, Enum):
    """Fee-delegation methods a token may support."""
    Permit = "permit"
    ExecuteMetaTransaction = "executeMetaTransaction"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ContractsConfig(CanonicalModel):
    """Addresses of the Rally token and its faucet."""
    rly_erc20: str = Field(..., description="Default ERC-20 token address")
    token_faucet: str = Field(..., description="Token faucet address")

    @field_validator("rly_erc20", "token_faucet")
    @classmethod
    def _check_addresses(cls, value: str) -> str:
        return _check_address(value)


class GsnConfig(CanonicalModel):
    """GSN relay settings and protocol constants for one network."""
    paymaster_address: str
    forwarder_address: str
    relay_hub_address: str
    relay_worker_address: str
    relay_url: str
    rpc_url: str
    chain_id: str = Field(..., description="Decimal chain id")
    max_acceptance_budget: str = "285252"
    domain_separator_name: str = "GSN Relayed Transaction"
    gtx_data_non_zero: int = 16
    gtx_data_zero: int = 4
    request_valid_seconds: int = 172800
    max_paymaster_data_length: int = 300
    max_approval_data_length: int = 300
    max_relay_nonce_gap: int = 3

    @field_validator(
        "paymaster_address", "forwarder_address", "relay_hub_address", "relay_worker_address"
    )
    @classmethod
    def _check_addresses(cls, value: str) -> str:
        return _check_address(value)

    @field_validator("chain_id", mode="before")
    @classmethod
    def _check_chain_id(cls, value) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not value.isdigit():
            raise ConfigurationError(f"chain_id must be a decimal string, got {value!r}")
        return value

    @property
    def chain_id_int(self) -> int:
        return int(self.chain_id)


class RallyNetworkConfig(CanonicalModel):
    """
    Complete configuration of a Rally network.

    Attributes:
        contracts: Token and faucet addresses.
        gsn: GSN relay configuration.
        relayer_api_key: Bearer token sent to the relay server.
    """
    contracts: ContractsConfig
    gsn: GsnConfig
    relayer_api_key: Optional[str] = None

    def clone(self) -> "RallyNetworkConfig":
        return self.model_copy(deep=True)

    def with_api_key(self, api_key: Optional[str]) -> "RallyNetworkConfig":
        """Return a copy of this config carrying ``api_key``."""
        config = self.clone()
        config.relayer_api_key = api_key
        return config

    def __repr__(self) -> str:
        return f"RallyNetworkConfig(chain_id={self.gsn.chain_id}, relay_url={self.gsn.relay_url}, relayer_api_key=***)"


class TokenConfig(CanonicalModel):
    """
    Signing quirks of a specific ERC-20.

    Attributes:
        address: Token address.
        meta_tx_method: Delegation method the token supports.
        eip712_domain_version: Permit domain version, when the token does not use "1".
    """
    address: str
    meta_tx_method: MetaTxMethod
    eip712_domain_version: Optional[str] = None

    @field_validator("address")
    @classmethod
    def _check_addresses(cls, value: str) -> str:
        return _check_address(value)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

_RALLY_RELAY_URL = "https://api.rallyprotocol.com"
_RALLY_RPC_URL = "https://api.rallyprotocol.com/rpc"

_NETWORKS_DATA: Dict[str, Dict] = {
    "local": {
        "contracts": {
            "rly_erc20": "0x3Aa5ebB10DC797CAC828524e59A333d0A371443c",
            "token_faucet": "0x3Aa5ebB10DC797CAC828524e59A333d0A371443c",
        },
        "gsn": {
            "paymaster_address": "0x7a2088a1bFc9d81c55368AE168C2C02570cB814F",
            "forwarder_address": "0xCf7Ed3AccA5a467e9e704C703E8D87F634fB0Fc9",
            "relay_hub_address": "0xDc64a140Aa3E981100a9becA4E685f962f0cF6C9",
            "relay_worker_address": "0x84ef35506635109ce61544193e8f87b0a1a1b4fd",
            "relay_url": "http://localhost:8090",
            "rpc_url": "http://127.0.0.1:8545",
            "chain_id": "1337",
            "max_approval_data_length": 0,
        },
    },
    "test": {
        "contracts": {
            "rly_erc20": "0x1C7312Cb60b40cF586e796FEdD60Cf243286c9E9",
            "token_faucet": "0xe7C3BD692C77Ec0C0bde523455B9D142c49720fF",
        },
        "gsn": {
            "paymaster_address": "0x8b3a505413Ca3B0A17F077e507aF8E3b3ad4Ce4d",
            "forwarder_address": "0xB2b5841DBeF766d4b521221732F9B618fCf34A87",
            "relay_hub_address": "0x3232f21A6E08312654270c78A773f00dd61d60f5",
            "relay_worker_address": "0xb9950b71ec94cbb274aeb1be98e697678077a17f",
            "relay_url": "http://localhost:3004",
            "rpc_url": "http://localhost:3004/rpc4",
            "chain_id": "80001",
        },
    },
    "amoy": {
        "contracts": {
            "rly_erc20": "0x846d8a5fb8a003b431b67115f809a9b9fffe5012",
            "token_faucet": "0xb8c8274f775474f4f2549edcc4db45cbad936fac",
        },
        "gsn": {
            "paymaster_address": "0xb570b57b821670707fF4E38Ea53fcb67192278F8",
            "forwarder_address": "0x0ae8FC9867CB4a124d7114B8bd15C4c78C4D40E5",
            "relay_hub_address": "0xe213A20A9E6CBAfd8456f9669D8a0b9e41Cb2751",
            "relay_worker_address": "0xb9950b71ec94cbb274aeb1be98e697678077a17f",
            "relay_url": _RALLY_RELAY_URL,
            "rpc_url": _RALLY_RPC_URL,
            "chain_id": "80002",
        },
    },
    "amoyWithPermit": {
        "contracts": {
            "rly_erc20": "0x758641a1b566998CaC5Bc5fC8032F001e1CEBeEf",
            "token_faucet": "0xAb5C5633a5c483499047e552C96E1760136dc70A",
        },
        "gsn": {
            "paymaster_address": "0xb570b57b821670707fF4E38Ea53fcb67192278F8",
            "forwarder_address": "0x0ae8FC9867CB4a124d7114B8bd15C4c78C4D40E5",
            "relay_hub_address": "0xe213A20A9E6CBAfd8456f9669D8a0b9e41Cb2751",
            "relay_worker_address": "0xb9950b71ec94cbb274aeb1be98e697678077a17f",
            "relay_url": _RALLY_RELAY_URL,
            "rpc_url": _RALLY_RPC_URL,
            "chain_id": "80002",
        },
    },
    "polygon": {
        "contracts": {
            "rly_erc20": "0x76b8D57e5ac6afAc5D415a054453d1DD2c3C0094",
            "token_faucet": "0x78a0794Bb3BB06238ed5f8D926419bD8fc9546d8",
        },
        "gsn": {
            "paymaster_address": "0x29CAa31142D17545C310437825aA4C53FbE621C3",
            "forwarder_address": "0xB2b5841DBeF766d4b521221732F9B618fCf34A87",
            "relay_hub_address": "0xfCEE9036EDc85cD5c12A9De6b267c4672Eb4bA1B",
            "relay_worker_address": "0x579de7c56cd9a07330504a7c734023a9f703778a",
            "relay_url": _RALLY_RELAY_URL,
            "rpc_url": _RALLY_RPC_URL,
            "chain_id": "137",
            "max_approval_data_length": 0,
        },
    },
    "baseSepolia": {
        "contracts": {
            "rly_erc20": "0x16723e9bb894EfC09449994eC5bCF5b41EE0D9b2",
            "token_faucet": "0xCeCFB48a9e7C0765Ed1319ee1Bc0F719a30641Ce",
        },
        "gsn": {
            "paymaster_address": "0x9bf59A7924cBa2475A03AD77e92fcf1Eaddb2Cc2",
            "forwarder_address": "0xabf9Fa3b2b2d9bDd77f4271A0d5A309AA465BCBa",
            "relay_hub_address": "0xb570b57b821670707fF4E38Ea53fcb67192278F8",
            "relay_worker_address": "0xdb1d6c7b07c857cc22a4ef10ac7b1dd06dd7501f",
            "relay_url": _RALLY_RELAY_URL,
            "rpc_url": _RALLY_RPC_URL,
            "chain_id": "84532",
        },
    },
    "base": {
        # No Rally token or faucet is deployed on Base mainnet.
        "contracts": {
            "rly_erc20": ZERO_ADDRESS,
            "token_faucet": ZERO_ADDRESS,
        },
        "gsn": {
            "paymaster_address": "0x01B83B33F0DD8be68627a9BE68E9e7E3c209a6b1",
            "forwarder_address": "0x524266345fB331cb624E27D2Cf5B61E769527FCC",
            "relay_hub_address": "0x54623092d2dB00D706e0Ad4ADaCc024F9cB9E915",
            "relay_worker_address": "0x7c5b7cf606ab2b56ead90b583bad47c5fd2c3417",
            "relay_url": _RALLY_RELAY_URL,
            "rpc_url": _RALLY_RPC_URL,
            "chain_id": "8453",
        },
    },
}

_TOKENS_DATA: Dict[str, Dict] = {
    "baseUsdc": {
        "address": "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
        "meta_tx_method": MetaTxMethod.Permit,
        "eip712_domain_version": "2",
    },
    "baseSepoliaUsdc": {
        "address": "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        "meta_tx_method": MetaTxMethod.Permit,
        "eip712_domain_version": "2",
    },
    "baseSepoliaRly": {
        "address": "0x846D8a5fb8a003b431b67115f809a9B9FFFe5012",
        "meta_tx_method": MetaTxMethod.Permit,
        "eip712_domain_version": "1",
    },
    "baseSepoliaExecMetaRly": {
        "address": "0x16723e9bb894EfC09449994eC5bCF5b41EE0D9b2",
        "meta_tx_method": MetaTxMethod.ExecuteMetaTransaction,
    },
}


def get_network_config(name: str) -> RallyNetworkConfig:
    """
    Build a fresh ``RallyNetworkConfig`` for a preset.

    Args:
        name: Preset name: local, test, amoy, amoyWithPermit, polygon,
            baseSepolia or base.

    Returns:
        RallyNetworkConfig: New instance; callers may mutate it freely.

    Raises:
        ConfigurationError: If ``name`` is not a known preset.
    """
    data = _NETWORKS_DATA.get(name)
    if data is None:
        raise ConfigurationError(
            f"Unknown network preset {name!r}; expected one of {sorted(_NETWORKS_DATA)}"
        )
    return RallyNetworkConfig.model_validate(data)


def get_token_config(name: str) -> TokenConfig:
    """Return the token preset ``name`` (baseUsdc, baseSepoliaUsdc, baseSepoliaRly, baseSepoliaExecMetaRly)."""
    data = _TOKENS_DATA.get(name)
    if data is None:
        raise ConfigurationError(f"Unknown token preset {name!r}; expected one of {sorted(_TOKENS_DATA)}")
    return TokenConfig.model_validate(data)


def find_token_config(address: str) -> Optional[TokenConfig]:
    """Return the token preset whose address matches ``address``, if any."""
    for data in _TOKENS_DATA.values():
        if data["address"].lower() == address.lower():
            return TokenConfig.model_validate(data)
    return None


def list_network_presets():
    return sorted(_NETWORKS_DATA)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

def get_api_key_from_env() -> Optional[str]:
    """
    Load the relayer API key from the environment.

    Environment Variable:
        - RALLY_API_KEY: Bearer token for the Rally relay server

    Returns:
        str: API key, or None if not configured

    Example:
        # In your .env file:
        # RALLY_API_KEY="your-api-key"
        api_key = get_api_key_from_env()
    """
    return os.getenv("RALLY_API_KEY") or None


def get_network_name_from_env(default: str = "baseSepolia") -> str:
    """Preset name from ``RALLY_NETWORK``, ``baseSepolia`` when unset."""
    return os.getenv("RALLY_NETWORK") or default


def get_key_file_from_env(default: str = "rally_mnemonic.txt") -> str:
    """Mnemonic file path from ``RALLY_KEY_FILE``."""
    return os.getenv("RALLY_KEY_FILE") or default


def apply_env_overrides(config: RallyNetworkConfig) -> RallyNetworkConfig:
    """
    Return a copy of ``config`` with ``RALLY_RPC_URL`` and ``RALLY_RELAY_URL``
    applied when they are set.
    """
    rpc_url = os.getenv("RALLY_RPC_URL")
    relay_url = os.getenv("RALLY_RELAY_URL")
    if not rpc_url and not relay_url:
        return config
    config = config.clone()
    if rpc_url:
        config.gsn.rpc_url = rpc_url
    if relay_url:
        config.gsn.relay_url = relay_url.rstrip("/")
    return config
