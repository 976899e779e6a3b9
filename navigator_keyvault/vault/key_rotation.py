"""
Vault Key Rotation — Wrapping the DEK and re-wrapping it under new secrets.

The DEK itself never changes here: a password change re-encrypts the same
DEK under a key derived from the new password with a fresh salt, and a
recovery rotation does the same under a newly generated recovery code.
Each returns a new ``VaultRecord``; persisting it is the caller's job.

Security Note:
    The DEK and derived keys exist in memory only for the duration of a
    wrap. Never log secrets, recovery codes or key bytes.
"""
import logging

from .config import CURRENT_KEY_VERSION, RECOVERY_CODE_SIZE, generate_recovery_code
from .crypto import (
    BytesLike,
    Secret,
    derive_key,
    generate_salt,
    sensitive,
    unwrap_key,
    wrap_key,
)
from .models import VaultRecord, WrappedKeyRecord

logger = logging.getLogger("navigator.keyvault")


def wrap_dek(
    dek: BytesLike,
    secret: Secret,
    version: int = CURRENT_KEY_VERSION,
) -> WrappedKeyRecord:
    """Wrap a DEK under a key derived from ``secret`` with a fresh salt.

    Raises:
        DerivationError: If the version or secret is rejected.
    """
    salt = generate_salt()
    with sensitive(derive_key(secret, salt, version)) as kek:
        ciphertext, iv, tag = wrap_key(kek, dek)
    return WrappedKeyRecord(
        ciphertext=ciphertext, salt=salt, iv=iv, tag=tag, version=version,
    )


def unwrap_dek(wrapped: WrappedKeyRecord, secret: Secret) -> bytes:
    """Recover the DEK from one wrap using the stored salt and version.

    Raises:
        AuthenticationError: If ``secret`` is wrong or the wrap is damaged.
        DerivationError: If the wrap names an unknown version.
    """
    with sensitive(derive_key(secret, wrapped.salt, wrapped.version)) as kek:
        return unwrap_key(kek, wrapped.ciphertext, wrapped.iv, wrapped.tag)


def rewrap_primary(
    record: VaultRecord,
    dek: BytesLike,
    new_secret: Secret,
    version: int = CURRENT_KEY_VERSION,
) -> VaultRecord:
    """Return ``record`` with its primary wrap replaced.

    The recovery wrap is carried over untouched.
    """
    logger.debug(
        "Re-wrapping primary key for identity=%s at v%d",
        record.identity, version,
    )
    return record.model_copy(
        update={"primary_wrap": wrap_dek(dek, new_secret, version)}
    )


def rotate_recovery(
    record: VaultRecord,
    dek: BytesLike,
    version: int = CURRENT_KEY_VERSION,
    code_size: int = RECOVERY_CODE_SIZE,
) -> tuple[VaultRecord, str]:
    """Return ``record`` with a recovery wrap under a new recovery code.

    Adds a recovery wrap when the record had none. The primary wrap is
    carried over untouched, and afterwards both wraps protect ``dek``.

    Returns:
        Tuple of (updated record, recovery code). The code is not
        recoverable from the record.
    """
    code = generate_recovery_code(code_size)
    logger.debug(
        "Rotating recovery key for identity=%s at v%d (had_recovery=%s)",
        record.identity, version, record.has_recovery,
    )
    updated = record.model_copy(
        update={
            "recovery_wrap": wrap_dek(dek, code, version),
            "split_keys": False,
        }
    )
    return updated, code
