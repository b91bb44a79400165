from .key_manager import (
    KeyManager,
    FileKeyManager,
    KeyStorageConfig,
    CreateAccountOptions,
)
from .manager import RallyAccountManager

__all__ = [
    "KeyManager",
    "FileKeyManager",
    "KeyStorageConfig",
    "CreateAccountOptions",
    "RallyAccountManager",
]
