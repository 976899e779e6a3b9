"""Navigator KeyVault.

Envelope encryption with local key files: a password (and optionally a
recovery code) protects a random data-encryption key.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    DerivationError,
    AuthenticationError,
    WrongSecretError,
    AlreadyExistsError,
    NotFoundError,
    InvalidIdentityError,
    RecordFormatError,
    RecoveryNotConfiguredError,
    RecoveryKeyMismatchError,
    VaultLockedError,
)
from .vault import (
    VaultConfig,
    VaultStore,
    VaultRecord,
    WrappedKeyRecord,
    KeyFileService,
    UnlockedVault,
    SetupResult,
    VaultState,
    Outcome,
    create_key_file,
    unlock_key_file,
)

__all__ = [
    "__version__",
    "VaultError",
    "DerivationError",
    "AuthenticationError",
    "WrongSecretError",
    "AlreadyExistsError",
    "NotFoundError",
    "InvalidIdentityError",
    "RecordFormatError",
    "RecoveryNotConfiguredError",
    "RecoveryKeyMismatchError",
    "VaultLockedError",
    "VaultConfig",
    "VaultStore",
    "VaultRecord",
    "WrappedKeyRecord",
    "KeyFileService",
    "UnlockedVault",
    "SetupResult",
    "VaultState",
    "Outcome",
    "create_key_file",
    "unlock_key_file",
]
