from .standards import (
    EIP712Domain,
    PermitMessage,
    PermitTypedData,
    MetaTransactionMessage,
    MetaTransactionTypedData,
    RelayRequestTypedData,
    chain_id_salt,
    is_zero_salt,
)
from .signatures import (
    EVMSignature,
    sign_typed_data,
    sign_permit,
    sign_meta_transaction,
    recover_typed_data_signer,
)
from .fees import FeeData, FeeEstimator
from .providers import Web3Provider
from .units import amount_to_value, value_to_amount, GWEI

__all__ = [
    "EIP712Domain",
    "PermitMessage",
    "PermitTypedData",
    "MetaTransactionMessage",
    "MetaTransactionTypedData",
    "RelayRequestTypedData",
    "chain_id_salt",
    "is_zero_salt",
    "EVMSignature",
    "sign_typed_data",
    "sign_permit",
    "sign_meta_transaction",
    "recover_typed_data_signer",
    "FeeData",
    "FeeEstimator",
    "Web3Provider",
    "amount_to_value",
    "value_to_amount",
    "GWEI",
]
