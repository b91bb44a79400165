"""
Exception and Error Definitions Module

Defines the error taxonomy for account handling, transaction construction,
relay submission and chain interaction. All exceptions inherit from RallyError
so callers can catch every library failure with a single clause.

Exception Hierarchy:
    RallyError (root)
    ├── MissingWalletError
    ├── AccountExistsError
    ├── InsufficientBalanceError
    ├── PriorDustingError
    ├── TransferMethodNotSupportedError
    ├── NoNonceFunctionFoundError
    ├── SigningError
    ├── ConfigurationError
    ├── InvalidTransition
    ├── RelayError
    └── TransportError
        └── ReceiptTimeoutError
"""

from typing import Optional


class RallyError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling at the application layer.
    """
    pass


class MissingWalletError(RallyError):
    """
    Raised when an operation requires an account but none is loaded.

    User-recoverable: create or import an account first.
    """

    def __init__(self, message: str = "No account loaded, create or import an account first"):
        super().__init__(message)


class AccountExistsError(RallyError):
    """
    Raised when creating an account while one already exists and
    ``overwrite`` was not requested.
    """

    def __init__(self, message: str = "An account already exists, pass overwrite=True to replace it"):
        super().__init__(message)


class InsufficientBalanceError(RallyError):
    """
    Raised when a transfer exceeds the available token balance.

    Attributes:
        balance: Balance at the time of the check (smallest units)
        amount: Requested amount (smallest units)
    """

    def __init__(self, balance: Optional[int] = None, amount: Optional[int] = None):
        self.balance = balance
        self.amount = amount
        if balance is None or amount is None:
            message = "Insufficient balance"
        else:
            message = f"Insufficient balance: have {balance}, need {amount}"
        super().__init__(message)


class PriorDustingError(RallyError):
    """
    Raised by the faucet claim path when the current balance is negative.

    Token balances are never negative, so this condition cannot occur in
    practice. The guard is kept for compatibility with existing callers.
    """
    pass


class TransferMethodNotSupportedError(RallyError):
    """
    Raised when a token supports neither ``permit`` nor
    ``executeMetaTransaction`` delegation.

    Not recoverable without a code or configuration change.
    """

    def __init__(self, message: str = "Token supports neither permit nor executeMetaTransaction"):
        super().__init__(message)


class NoNonceFunctionFoundError(RallyError):
    """
    Raised when a token contract exposes neither ``getNonce(address)`` nor
    ``nonces(address)``, or has no deployed bytecode at all.
    """
    pass


class SigningError(RallyError):
    """
    Raised when typed data cannot be built or signed.

    This includes scenarios such as:
    - Malformed EIP-712 domain
    - Salt that is not 32 bytes
    - Signature of unexpected length

    These are programming errors and should not be retried.
    """
    pass


class ConfigurationError(RallyError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Unknown network preset
    - Malformed contract address
    - Non-numeric chain id
    - Custom network requested without a config
    """
    pass


class InvalidTransition(RallyError):
    """
    Raised when the relay state machine is asked to move to a state that
    is not reachable from the current one.

    Attributes:
        current_state: State the machine was in
        requested_state: State that was requested
    """

    def __init__(self, current_state, requested_state):
        self.current_state = current_state
        self.requested_state = requested_state
        super().__init__(f"Invalid relay transition: {current_state} -> {requested_state}")


class RelayError(RallyError):
    """
    Raised when the relay server reports an explicit error for a request.

    May be transient (server busy, stale nonce); callers may retry with a
    fresh nonce and fees.

    Attributes:
        reason: Error string reported by the relay server
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Relay failed: {reason}")


class TransportError(RallyError):
    """
    Raised when the relay server or chain RPC cannot be reached, or answers
    with a non-success HTTP status.

    Transient and safe to retry with backoff.

    Attributes:
        url: Request URL
        status_code: HTTP status code, if a response was received
        response_text: Response body, if a response was received
    """

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
    ):
        self.url = url
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class ReceiptTimeoutError(TransportError):
    """
    Raised when a relayed transaction's receipt does not appear within the
    caller-supplied timeout.

    The transaction may still be mined later; it is not retracted.

    Attributes:
        tx_hash: Hash of the relayed transaction
    """

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        super().__init__(f"No receipt for {tx_hash} after {timeout}s")


class ReceiptPollError(TransportError):
    """
    Raised when the chain RPC fails while polling for a relayed
    transaction's receipt.

    The transaction has already been broadcast; poll again for ``tx_hash``
    rather than relaying a second time.

    Attributes:
        tx_hash: Hash of the relayed transaction
    """

    def __init__(self, tx_hash: str, reason: str):
        self.tx_hash = tx_hash
        super().__init__(f"RPC failed while polling receipt for {tx_hash}: {reason}")


# Short names kept for callers that use the protocol's exception vocabulary.
MissingWallet = MissingWalletError
AccountExists = AccountExistsError
InsufficientBalance = InsufficientBalanceError
PriorDusting = PriorDustingError
TransferMethodNotSupported = TransferMethodNotSupportedError
NoNonceFunctionFound = NoNonceFunctionFoundError
