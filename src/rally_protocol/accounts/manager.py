"""
Rally account manager.

Owns the session's active account: creates or imports it through the
injected ``KeyManager``, caches it once loaded, and signs with it.
"""

import logging
from typing import Any, Dict, Optional, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_bytes

from ..engine.exceptions import AccountExistsError, MissingWalletError
from .key_manager import CreateAccountOptions, KeyManager, KeyStorageConfig


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


class RallyAccountManager:
    """
    Creates, loads and signs with the user's account.

    Args:
        key_manager: Mnemonic storage backend.
        logger: Optional logger; defaults to this module's logger.

    Example:
        manager = RallyAccountManager(FileKeyManager())
        account = await manager.get_account()
        if account is None:
            account = await manager.create_account()
    """

    def __init__(self, key_manager: KeyManager, logger: Optional[logging.Logger] = None):
        self.key_manager = key_manager
        self.logger = logger or logging.getLogger(__name__)
        self._current_account: Optional[LocalAccount] = None

    @property
    def current_account(self) -> Optional[LocalAccount]:
        return self._current_account

    # =========================================================================
    # Account lifecycle
    # =========================================================================

    async def create_account(self, options: Optional[CreateAccountOptions] = None) -> LocalAccount:
        """
        Generate a new mnemonic, store it and make its account current.

        Raises:
            AccountExistsError: If an account exists and ``options.overwrite``
                is not set.
        """
        mnemonic = await self.key_manager.generate_new_mnemonic()
        return await self._save_mnemonic(mnemonic, options or CreateAccountOptions())

    async def import_existing_account(
        self,
        mnemonic: str,
        options: Optional[CreateAccountOptions] = None,
    ) -> LocalAccount:
        """Store an existing mnemonic and make its account current."""
        return await self._save_mnemonic(mnemonic, options or CreateAccountOptions())

    async def get_account(self) -> Optional[LocalAccount]:
        """
        Return the current account, loading it from the stored mnemonic on
        first use. ``None`` when no mnemonic is stored.
        """
        if self._current_account is not None:
            return self._current_account

        mnemonic = await self.key_manager.get_mnemonic()
        if not mnemonic:
            return None

        self._current_account = await self._account_from_mnemonic(mnemonic)
        return self._current_account

    async def get_public_address(self) -> Optional[str]:
        account = await self.get_account()
        return account.address if account else None

    async def is_wallet_backed_up_to_cloud(self) -> bool:
        return await self.key_manager.is_mnemonic_eligible_for_cloud_sync()

    async def get_account_phrase(self) -> Optional[str]:
        return await self.key_manager.get_mnemonic()

    async def permanently_delete_account(self) -> None:
        """Delete the stored mnemonic and forget the current account."""
        await self.key_manager.delete_mnemonic()
        self._current_account = None

    # =========================================================================
    # Signing
    # =========================================================================

    async def sign_message(self, message: str) -> str:
        """EIP-191 personal-sign ``message`` with the current account."""
        account = await self._require_account()
        signed = account.sign_message(encode_defunct(text=message))
        return _hex(signed.signature)

    async def sign_transaction(self, transaction: Dict[str, Any]) -> str:
        """Sign a transaction dict; returns the raw signed transaction as 0x hex."""
        account = await self._require_account()
        signed = account.sign_transaction(transaction)
        return _hex(signed.raw_transaction)

    async def sign_hash(self, message_hash: Union[bytes, str]) -> str:
        """Sign a 32-byte hash directly, without any message prefix."""
        account = await self._require_account()
        if isinstance(message_hash, str):
            message_hash = to_bytes(hexstr=message_hash)
        signed = account.unsafe_sign_hash(message_hash)
        return _hex(signed.signature)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _require_account(self) -> LocalAccount:
        account = await self.get_account()
        if account is None:
            raise MissingWalletError()
        return account

    async def _account_from_mnemonic(self, mnemonic: str) -> LocalAccount:
        private_key = await self.key_manager.get_private_key_from_mnemonic(mnemonic)
        return Account.from_key(private_key)

    async def _save_mnemonic(self, mnemonic: str, options: CreateAccountOptions) -> LocalAccount:
        existing = await self.get_account()
        if existing is not None and not options.overwrite:
            raise AccountExistsError()

        storage_options = options.storage_options or KeyStorageConfig()

        # Derive first so an invalid mnemonic is never stored.
        account = await self._account_from_mnemonic(mnemonic)
        await self.key_manager.save_mnemonic(mnemonic, storage_options)
        self._current_account = account
        self.logger.info("Account %s saved", account.address)
        return account
