"""
KeyVault Exceptions.

Every error raised by the vault core derives from ``VaultError``.
Disk failures are not wrapped: ``OSError`` propagates as-is.
"""


class VaultError(Exception):
    """Base class for all vault errors."""


class DerivationError(VaultError):
    """The password-hashing function rejected its inputs or parameters."""


class AuthenticationError(VaultError):
    """AEAD verification failed; no plaintext was produced."""


class WrongSecretError(VaultError):
    """The supplied password or recovery code cannot unlock the key file.

    Raised for a wrong secret and for a damaged key file alike.
    """


class AlreadyExistsError(VaultError, FileExistsError):
    """A key file already exists for this identity."""


class NotFoundError(VaultError, FileNotFoundError):
    """No key file exists for this identity."""


class InvalidIdentityError(VaultError, ValueError):
    """Identity cannot be mapped to a key file name."""


class RecordFormatError(VaultError, ValueError):
    """Key file content does not match any known schema."""


class RecoveryNotConfiguredError(VaultError):
    """Recovery unlock requested for a record without a recovery wrap."""


class VaultLockedError(VaultError):
    """Operation attempted on a vault that has been locked."""


class RecoveryKeyMismatchError(VaultError):
    """The recovery wrap of an older key file protects a different key.

    Re-wrapping from that recovery code would discard the password's key.
    """
