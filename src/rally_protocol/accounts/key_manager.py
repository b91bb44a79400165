"""
Key Manager Capability

Defines the interface the account manager uses to generate, store and read
the wallet mnemonic, plus a plain-file implementation for desktop and server
use. Platform-specific stores (OS keychain, mobile secure storage with cloud
backup) implement the same ``KeyManager`` interface and are injected into
``RallyAccountManager``.

Core Classes:
    - KeyStorageConfig: Where a mnemonic should be stored
    - CreateAccountOptions: Options for creating or importing an account
    - KeyManager: Abstract key storage capability
    - FileKeyManager: Stores the mnemonic in a local text file
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from eth_account import Account
from pydantic import BaseModel, Field

from ..config import get_key_file_from_env

Account.enable_unaudited_hdwallet_features()

DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"
MNEMONIC_WORDS = 12


class KeyStorageConfig(BaseModel):
    """
    Storage options for a mnemonic.

    Attributes:
        save_to_cloud: Also back the mnemonic up to the platform cloud.
        reject_on_cloud_save_failure: Fail the save when the cloud backup fails,
            instead of keeping the device copy only.
    """
    save_to_cloud: bool = Field(default=True)
    reject_on_cloud_save_failure: bool = Field(default=False)


class CreateAccountOptions(BaseModel):
    """
    Options for creating or importing an account.

    Attributes:
        overwrite: Replace an existing account instead of failing.
        storage_options: How to store the new mnemonic; defaults apply when None.
    """
    overwrite: bool = False
    storage_options: Optional[KeyStorageConfig] = None


class KeyManager(ABC):
    """
    Abstract key storage capability.

    One implementation exists per storage backend; the rest of the package
    never branches on platform.
    """

    @abstractmethod
    async def get_bundle_id(self) -> str:
        """Identifier of the application the keys belong to."""

    @abstractmethod
    async def get_mnemonic(self) -> Optional[str]:
        """Return the stored mnemonic, or None if there is none."""

    @abstractmethod
    async def generate_new_mnemonic(self) -> str:
        """Generate a fresh mnemonic without storing it."""

    @abstractmethod
    async def save_mnemonic(self, mnemonic: str, options: KeyStorageConfig) -> None:
        """Persist ``mnemonic`` according to ``options``."""

    @abstractmethod
    async def delete_mnemonic(self) -> None:
        """Delete the stored mnemonic, device and cloud copies."""

    @abstractmethod
    async def delete_cloud_mnemonic(self) -> None:
        """Delete only the cloud copy of the mnemonic."""

    @abstractmethod
    async def is_mnemonic_eligible_for_cloud_sync(self) -> bool:
        """Whether the stored mnemonic is backed up to the cloud."""

    @abstractmethod
    async def get_private_key_from_mnemonic(self, mnemonic: str) -> str:
        """
        Derive the account private key from ``mnemonic``.

        Raises:
            eth_utils.ValidationError: If ``mnemonic`` is not a valid phrase.
        """


class FileKeyManager(KeyManager):
    """
    Stores the mnemonic as plain text in a local file.

    Cloud options are accepted and ignored: nothing is ever backed up, so
    ``is_mnemonic_eligible_for_cloud_sync`` is always False. File access and
    key derivation run in the default executor, off the event loop.

    Args:
        path: Mnemonic file. Defaults to ``RALLY_KEY_FILE`` or
            ``rally_mnemonic.txt``.
        bundle_id: Application identifier reported by ``get_bundle_id``.
        derivation_path: HD path of the account key.
        logger: Optional logger; defaults to this module's logger.

    Example:
        key_manager = FileKeyManager("/secure/dir/mnemonic.txt")
        manager = RallyAccountManager(key_manager)
        account = await manager.create_account()
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        bundle_id: str = "rally-protocol",
        derivation_path: str = DEFAULT_DERIVATION_PATH,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = Path(path or get_key_file_from_env())
        self.bundle_id = bundle_id
        self.derivation_path = derivation_path
        self.logger = logger or logging.getLogger(__name__)

    async def get_bundle_id(self) -> str:
        return self.bundle_id

    async def get_mnemonic(self) -> Optional[str]:
        def _read():
            if not self.path.exists():
                return None
            return self.path.read_text(encoding="utf-8").strip() or None

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, _read)

    async def generate_new_mnemonic(self) -> str:
        _, mnemonic = Account.create_with_mnemonic(num_words=MNEMONIC_WORDS)
        return mnemonic

    async def save_mnemonic(self, mnemonic: str, options: KeyStorageConfig) -> None:
        if options.save_to_cloud:
            self.logger.debug("Cloud backup not available for %s, storing on device only", self.path)

        def _write():
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(mnemonic.strip() + "\n", encoding="utf-8")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)

    async def delete_mnemonic(self) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, lambda: self.path.unlink(missing_ok=True))

    async def delete_cloud_mnemonic(self) -> None:
        return None

    async def is_mnemonic_eligible_for_cloud_sync(self) -> bool:
        return False

    async def get_private_key_from_mnemonic(self, mnemonic: str) -> str:
        def _derive():
            return Account.from_mnemonic(mnemonic.strip(), account_path=self.derivation_path)

        loop = asyncio.get_running_loop()
        account = await loop.run_in_executor(None, _derive)
        return "0x" + bytes(account.key).hex()
