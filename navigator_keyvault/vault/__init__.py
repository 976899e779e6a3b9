"""Key Vault — Password-protected data-encryption keys in local key files.

Security Note (Threat Model):
    The DEK and derived keys are decrypted in process memory while in use.
    Buffers the vault owns are zeroed after use, but immutable copies made
    by Python or by the crypto backends cannot be wiped, so a memory dump
    of the process may still expose key material. Mitigation requires
    HSM/secure enclave integration, which is out of scope.
"""

from .config import (
    KDF_PARAMETERS,
    CURRENT_KEY_VERSION,
    Argon2Parameters,
    VaultConfig,
    generate_recovery_code,
)
from .crypto import (
    derive_key,
    wrap_key,
    unwrap_key,
    encrypt_payload,
    decrypt_payload,
)
from .models import VaultRecord, WrappedKeyRecord
from .store import VaultStore
from .keyfile import (
    KeyFileService,
    UnlockedVault,
    SetupResult,
    VaultState,
    Outcome,
    create_key_file,
    unlock_key_file,
)

__all__ = [
    "KDF_PARAMETERS",
    "CURRENT_KEY_VERSION",
    "Argon2Parameters",
    "VaultConfig",
    "generate_recovery_code",
    "derive_key",
    "wrap_key",
    "unwrap_key",
    "encrypt_payload",
    "decrypt_payload",
    "VaultRecord",
    "WrappedKeyRecord",
    "VaultStore",
    "KeyFileService",
    "UnlockedVault",
    "SetupResult",
    "VaultState",
    "Outcome",
    "create_key_file",
    "unlock_key_file",
]
