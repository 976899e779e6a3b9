"""
Vault Crypto Core — Key derivation, key wrapping and payload encryption.

Implements the envelope used by the key files:
- Derivation: Argon2id(secret, salt) → 32-byte key-encryption key
- Wrapping:   AES-256-GCM(derived_key, DEK) → (ciphertext, iv, tag)
- Payload:    AES-256-GCM(DEK, data) → [iv 12B][tag 16B][ciphertext]

Security Note:
    Never log plaintext, ciphertext, secrets or key bytes.
    IVs are random 96-bit; collision probability negligible under normal usage.
"""
import os
import base64
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Union

import orjson
from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import AuthenticationError, DerivationError
from .config import CURRENT_KEY_VERSION, get_kdf_parameters

logger = logging.getLogger("navigator.keyvault")

IV_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM tag
KEY_LENGTH = 32  # AES-256
SALT_SIZE = 16

_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"

BytesLike = Union[bytes, bytearray, memoryview]
Secret = Union[str, bytes, bytearray, memoryview]


# ---------------------------------------------------------------------------
# Sensitive buffers
# ---------------------------------------------------------------------------

def wipe(buf: bytearray) -> None:
    """Overwrite a mutable buffer with zeros, in place."""
    buf[:] = bytes(len(buf))


def _to_bytes(secret: Secret) -> bytes:
    if isinstance(secret, str):
        return secret.encode("utf-8")
    if isinstance(secret, (bytes, bytearray, memoryview)):
        return bytes(secret)
    raise TypeError(
        f"secret must be str or bytes-like, got {type(secret).__name__}"
    )


@contextmanager
def sensitive(data: Secret) -> Iterator[bytearray]:
    """Hold a copy of secret material in a buffer zeroed on exit.

    ``str`` values are UTF-8 encoded. The buffer is wiped on every exit
    path, including exceptions. Immutable objects the caller still holds
    (``str``/``bytes``) cannot be wiped by Python code.
    """
    buf = bytearray(_to_bytes(data))
    try:
        yield buf
    finally:
        wipe(buf)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def generate_salt() -> bytes:
    """Return fresh random salt bytes for one derivation."""
    return os.urandom(SALT_SIZE)


def generate_dek() -> bytes:
    """Generate a random 256-bit data-encryption key."""
    return AESGCM.generate_key(bit_length=256)


def derive_key(
    secret: Secret,
    salt: BytesLike,
    version: int = CURRENT_KEY_VERSION,
) -> bytes:
    """Derive a 32-byte key from a low-entropy secret using Argon2id.

    Cost parameters are fixed by ``version``; the salt is the only
    per-call input, so identical (secret, salt, version) always yield
    the same key.

    Args:
        secret: Password or recovery code (str is UTF-8 encoded).
        salt: Random salt, at least 16 bytes.
        version: Key-file schema version pinning the parameter set.

    Returns:
        32-byte derived key.

    Raises:
        DerivationError: Unknown version, short salt, invalid secret type,
            or the Argon2 backend rejected the parameters.
    """
    try:
        params = get_kdf_parameters(version)
    except KeyError as err:
        raise DerivationError(str(err.args[0])) from err
    if not isinstance(salt, (bytes, bytearray, memoryview)):
        raise DerivationError(
            f"salt must be bytes-like, got {type(salt).__name__}"
        )
    if len(salt) < params.salt_len:
        raise DerivationError(
            f"salt too short: {len(salt)} bytes (minimum {params.salt_len})"
        )
    try:
        secret_bytes = _to_bytes(secret)
    except TypeError as err:
        raise DerivationError(str(err)) from err
    try:
        derived = hash_secret_raw(
            secret=secret_bytes,
            salt=bytes(salt),
            time_cost=params.time_cost,
            memory_cost=params.memory_cost,
            parallelism=params.parallelism,
            hash_len=params.hash_len,
            type=Type.ID,
        )
    except HashingError as err:
        raise DerivationError(f"Argon2id derivation failed: {err}") from err
    if len(derived) != KEY_LENGTH:
        raise DerivationError(
            f"derived key has {len(derived)} bytes, expected {KEY_LENGTH}"
        )
    return derived


# ---------------------------------------------------------------------------
# Key wrapping
# ---------------------------------------------------------------------------

def _cipher(key: BytesLike) -> AESGCM:
    if len(key) != KEY_LENGTH:
        raise ValueError(
            f"AES-256-GCM key must be {KEY_LENGTH} bytes, got {len(key)}"
        )
    return AESGCM(bytes(key))


def wrap_key(
    derived_key: BytesLike,
    plaintext_key: BytesLike,
) -> tuple[bytes, bytes, bytes]:
    """Encrypt key material under a derived key.

    Args:
        derived_key: 32-byte key from ``derive_key``.
        plaintext_key: Key material to protect (the DEK).

    Returns:
        Tuple of (ciphertext, iv, tag); ciphertext has the plaintext length.
    """
    cipher = _cipher(derived_key)
    iv = os.urandom(IV_SIZE)
    sealed = cipher.encrypt(iv, bytes(plaintext_key), None)
    return sealed[:-TAG_SIZE], iv, sealed[-TAG_SIZE:]


def unwrap_key(
    derived_key: BytesLike,
    ciphertext: BytesLike,
    iv: BytesLike,
    tag: BytesLike,
) -> bytes:
    """Verify and decrypt wrapped key material.

    Raises:
        AuthenticationError: On any verification failure. No plaintext
            is returned, not even partially.
    """
    if len(iv) != IV_SIZE or len(tag) != TAG_SIZE:
        raise AuthenticationError("Key unwrap failed")
    cipher = _cipher(derived_key)
    try:
        return cipher.decrypt(bytes(iv), bytes(ciphertext) + bytes(tag), None)
    except InvalidTag:
        raise AuthenticationError("Key unwrap failed") from None


# ---------------------------------------------------------------------------
# Payload encryption
# ---------------------------------------------------------------------------

def encrypt_payload(dek: BytesLike, data: BytesLike) -> bytes:
    """Encrypt arbitrary data under the DEK.

    Format: [iv 12B][tag 16B][ciphertext]

    Args:
        dek: 32-byte data-encryption key.
        data: Plaintext bytes.

    Returns:
        Self-describing encrypted blob.
    """
    ciphertext, iv, tag = wrap_key(dek, data)
    return iv + tag + ciphertext


def decrypt_payload(dek: BytesLike, blob: BytesLike) -> bytes:
    """Decrypt a blob produced by ``encrypt_payload``.

    Raises:
        AuthenticationError: If the blob is truncated or fails verification.
    """
    _min = IV_SIZE + TAG_SIZE
    if len(blob) < _min:
        raise AuthenticationError(
            f"payload too short: {len(blob)} bytes (minimum {_min})"
        )
    blob = bytes(blob)
    iv = blob[:IV_SIZE]
    tag = blob[IV_SIZE:_min]
    try:
        return unwrap_key(dek, blob[_min:], iv, tag)
    except AuthenticationError:
        raise AuthenticationError("Payload decryption failed") from None


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None.
    bytes values are wrapped as {"__vault_bytes_b64__": "<base64>"}.
    """
    if isinstance(value, (bytes, bytearray)):
        wrapped = {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
        return orjson.dumps(wrapped)
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by ``serialize_value``."""
    parsed = orjson.loads(data)
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        return base64.b64decode(parsed[_BYTES_WRAPPER_KEY])
    return parsed
