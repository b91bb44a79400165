from .exceptions import (
    RallyError,
    MissingWalletError,
    AccountExistsError,
    InsufficientBalanceError,
    PriorDustingError,
    TransferMethodNotSupportedError,
    NoNonceFunctionFoundError,
    SigningError,
    ConfigurationError,
    InvalidTransition,
    RelayError,
    TransportError,
    ReceiptTimeoutError,
    ReceiptPollError,
)
from .states import RelayState, RelayStateMachine

__all__ = [
    "RallyError",
    "MissingWalletError",
    "AccountExistsError",
    "InsufficientBalanceError",
    "PriorDustingError",
    "TransferMethodNotSupportedError",
    "NoNonceFunctionFoundError",
    "SigningError",
    "ConfigurationError",
    "InvalidTransition",
    "RelayError",
    "TransportError",
    "ReceiptTimeoutError",
    "ReceiptPollError",
    "RelayState",
    "RelayStateMachine",
]
