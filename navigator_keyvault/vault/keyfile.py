"""
KeyFileService — Password-protected data-encryption keys in local key files.

Provides the public API for the key vault:
- ``setup(identity, password)`` — create a DEK, wrap it, persist the key file
- ``unlock(identity, secret)`` — reload the key file and unwrap the DEK
- ``rewrap(identity, old, new)`` — change the password, keeping the DEK
- ``rotate_recovery(identity, secret)`` — issue a new recovery code
- ``open(identity, secret)`` — an ``UnlockedVault`` for payload encryption

Security Note:
    Never log secrets, recovery codes, keys or ciphertext. Only log
    identities, paths and outcomes. A wrong secret and a damaged key file
    are reported the same way.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ..exceptions import (
    AlreadyExistsError,
    AuthenticationError,
    RecordFormatError,
    RecoveryKeyMismatchError,
    RecoveryNotConfiguredError,
    VaultLockedError,
    WrongSecretError,
)
from .config import VaultConfig
from .crypto import (
    BytesLike,
    Secret,
    decrypt_payload,
    deserialize_value,
    encrypt_payload,
    generate_dek,
    sensitive,
    serialize_value,
    wipe,
)
from .key_rotation import (
    rewrap_primary,
    rotate_recovery as rotate_recovery_wrap,
    unwrap_dek,
    wrap_dek,
)
from .models import VaultRecord, WrappedKeyRecord
from .store import VaultStore


class VaultState(str, Enum):
    UNINITIALIZED = "Uninitialized"
    SETUP = "Setup"
    UNLOCKED = "Unlocked"


class Outcome(str, Enum):
    """Outcomes reported to the logger through ``extra={"outcome": ...}``."""

    CREATED = "Created"
    ALREADY_EXISTS = "AlreadyExists"
    UNLOCKED = "Unlocked"
    WRONG_SECRET = "WrongSecret"
    REWRAPPED = "Rewrapped"
    RECOVERY_ROTATED = "RecoveryRotated"
    DELETED = "Deleted"


@dataclass(frozen=True)
class SetupResult:
    """What ``setup`` hands back, once.

    ``recovery_code`` is None when setup ran without recovery.
    """

    record: VaultRecord
    path: Path
    dek: bytes = field(repr=False)
    recovery_code: Optional[str] = field(default=None, repr=False)


class UnlockedVault:
    """A recovered DEK held in memory for payload encryption.

    The key is zeroed by ``lock()``, or on leaving a ``with`` block.
    """

    def __init__(self, identity: Optional[str], dek: BytesLike):
        self._identity = identity
        self._dek = bytearray(dek)
        self._locked = False

    def __repr__(self) -> str:
        return f"<UnlockedVault identity={self._identity!r} state={self.state.value}>"

    def __enter__(self) -> "UnlockedVault":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.lock()

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def state(self) -> VaultState:
        return VaultState.SETUP if self._locked else VaultState.UNLOCKED

    def _key(self) -> bytearray:
        if self._locked:
            raise VaultLockedError(f"Vault for identity={self._identity!r} is locked")
        return self._dek

    def encrypt(self, data: BytesLike) -> bytes:
        """Encrypt raw bytes: [iv 12B][tag 16B][ciphertext]."""
        return encrypt_payload(self._key(), data)

    def decrypt(self, blob: BytesLike) -> bytes:
        """Decrypt a blob from ``encrypt``.

        Raises:
            AuthenticationError: If the blob was tampered with or truncated.
        """
        return decrypt_payload(self._key(), blob)

    def encrypt_value(self, value: Any) -> bytes:
        """Serialize and encrypt a Python value (str, int, dict, bytes, ...)."""
        return self.encrypt(serialize_value(value))

    def decrypt_value(self, blob: BytesLike) -> Any:
        return deserialize_value(self.decrypt(blob))

    def lock(self) -> None:
        """Zero the DEK. Idempotent."""
        if not self._locked:
            wipe(self._dek)
            self._locked = True


class KeyFileService:
    """Setup and unlock of password-protected DEKs, one key file per identity.

    Control flow: service → key derivation → envelope → store.

    Args:
        store: Where the key files live.
        config: Parameter version and recovery settings; defaults to a
            ``VaultConfig`` pointed at the store's directory.
        logger: Receives outcome records; defaults to ``navigator.keyvault``.
    """

    def __init__(
        self,
        store: VaultStore,
        config: Optional[VaultConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.config = config or VaultConfig(vault_dir=store.vault_dir)
        self.logger = logger or logging.getLogger("navigator.keyvault")

    @classmethod
    def from_config(
        cls,
        config: Optional[VaultConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "KeyFileService":
        """Build a service for ``config`` (or the environment's config)."""
        config = config or VaultConfig.from_env()
        return cls(VaultStore(config.vault_dir), config=config, logger=logger)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _report(
        self,
        outcome: Outcome,
        identity: Optional[str],
        message: str,
        *args: Any,
        level: int = logging.INFO,
    ) -> None:
        self.logger.log(
            level, message, *args,
            extra={"outcome": outcome.value, "identity": identity},
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select_wrap(
        self,
        record: VaultRecord,
        identity: Optional[str],
        use_recovery: bool,
    ) -> WrappedKeyRecord:
        if not use_recovery:
            return record.primary_wrap
        if record.recovery_wrap is None:
            raise RecoveryNotConfiguredError(
                f"No recovery key configured for identity={identity!r}"
            )
        return record.recovery_wrap

    def _require_shared_key(
        self,
        record: VaultRecord,
        identity: Optional[str],
        use_recovery: bool,
    ) -> None:
        if use_recovery and record.split_keys:
            raise RecoveryKeyMismatchError(
                f"Recovery key for identity={identity!r} protects a different "
                "key than the password; rotate the recovery code with the "
                "password first"
            )

    def _unlock_record(
        self,
        identity: Optional[str],
        secret: Secret,
        use_recovery: bool,
    ) -> tuple[Path, VaultRecord, bytes]:
        """Load the record and unwrap its DEK.

        Raises:
            NotFoundError: No key file for identity.
            RecoveryNotConfiguredError: Recovery requested but not set up.
            WrongSecretError: Wrong secret, or a damaged key file.
        """
        path = self.store.path_for(identity)
        raw = self.store.read(path)
        try:
            record = VaultRecord.from_json(raw)
            if record.identity != identity:
                raise RecordFormatError(
                    f"Key file at {path} belongs to another identity"
                )
            wrapped = self._select_wrap(record, identity, use_recovery)
            dek = unwrap_dek(wrapped, secret)
        except (AuthenticationError, RecordFormatError) as err:
            self.logger.debug("Unlock failed for identity=%s: %s", identity, err)
            self._report(
                Outcome.WRONG_SECRET, identity,
                "Unable to unlock key for identity=%s (recovery=%s)",
                identity, use_recovery,
                level=logging.WARNING,
            )
            raise WrongSecretError(
                f"Unable to unlock key for identity={identity!r}"
            ) from None
        return path, record, dek

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def state(self, identity: Optional[str] = None) -> VaultState:
        """Report whether a key file exists for identity."""
        if self.store.exists(self.store.path_for(identity)):
            return VaultState.SETUP
        return VaultState.UNINITIALIZED

    def load(self, identity: Optional[str] = None) -> VaultRecord:
        """Read and parse the key file without unlocking it.

        Raises:
            NotFoundError: No key file for identity.
            RecordFormatError: The key file is not a valid record.
        """
        return VaultRecord.from_json(self.store.read(self.store.path_for(identity)))

    def setup(
        self,
        identity: Optional[str],
        password: Secret,
        with_recovery: Optional[bool] = None,
    ) -> SetupResult:
        """Create a DEK protected by ``password`` and persist its key file.

        With recovery, the same DEK is also wrapped under a fresh recovery
        code, so either secret alone reconstructs it.

        Args:
            identity: Record owner, or None for the single-tenant key file.
            password: Secret protecting the primary wrap.
            with_recovery: Defaults to ``config.with_recovery``.

        Returns:
            SetupResult holding the record, the DEK and the recovery code.
            This is the only place the recovery code is ever returned.

        Raises:
            AlreadyExistsError: A key file already exists; it is untouched.
            OSError: The vault directory or the file could not be written.
        """
        if with_recovery is None:
            with_recovery = self.config.with_recovery
        path = self.store.path_for(identity)
        self.store.ensure_directory()
        if self.store.exists(path):
            self._report(
                Outcome.ALREADY_EXISTS, identity,
                "Key file already exists: %s, delete existing file to create a new one",
                path,
                level=logging.WARNING,
            )
            raise AlreadyExistsError(f"Key file already exists: {path}")

        version = self.config.key_version
        recovery_code = None
        with sensitive(generate_dek()) as dek:
            record = VaultRecord(
                identity=identity,
                primary_wrap=wrap_dek(dek, password, version),
            )
            if with_recovery:
                record, recovery_code = rotate_recovery_wrap(
                    record, dek, version, self.config.recovery_code_size,
                )
            try:
                self.store.write(path, record.to_json())
            except AlreadyExistsError:
                self._report(
                    Outcome.ALREADY_EXISTS, identity,
                    "Key file created concurrently: %s", path,
                    level=logging.WARNING,
                )
                raise
            result = SetupResult(
                record=record, path=path, dek=bytes(dek),
                recovery_code=recovery_code,
            )
        self._report(
            Outcome.CREATED, identity,
            "Key saved: %s (recovery=%s)", path, with_recovery,
        )
        return result

    def unlock(
        self,
        identity: Optional[str],
        secret: Secret,
        use_recovery: bool = False,
    ) -> bytes:
        """Recover the DEK with the password, or the recovery code.

        Raises:
            NotFoundError: No key file for identity; run setup first.
            RecoveryNotConfiguredError: Recovery requested but not set up.
            WrongSecretError: Wrong secret, or a damaged key file.
        """
        _, _, dek = self._unlock_record(identity, secret, use_recovery)
        self._report(
            Outcome.UNLOCKED, identity,
            "Key unlocked for identity=%s (recovery=%s)", identity, use_recovery,
        )
        return dek

    def open(
        self,
        identity: Optional[str],
        secret: Secret,
        use_recovery: bool = False,
    ) -> UnlockedVault:
        """Unlock and return an ``UnlockedVault`` (usable as context manager)."""
        dek = self.unlock(identity, secret, use_recovery=use_recovery)
        return UnlockedVault(identity, dek)

    def rewrap(
        self,
        identity: Optional[str],
        old_secret: Secret,
        new_secret: Secret,
        use_recovery: bool = False,
    ) -> VaultRecord:
        """Change the password protecting the DEK.

        ``old_secret`` is the current password, or the recovery code when
        ``use_recovery`` is set. Only the primary wrap is replaced; the DEK
        and the recovery wrap are preserved.

        Raises:
            NotFoundError, RecoveryNotConfiguredError, WrongSecretError:
                as for ``unlock``; the key file is untouched.
            RecoveryKeyMismatchError: ``use_recovery`` on an older key file
                whose recovery wrap holds a different key; untouched.
        """
        path, record, dek = self._unlock_record(identity, old_secret, use_recovery)
        with sensitive(dek) as buf:
            self._require_shared_key(record, identity, use_recovery)
            updated = rewrap_primary(record, buf, new_secret, self.config.key_version)
        self.store.replace(path, updated.to_json())
        self._report(
            Outcome.REWRAPPED, identity,
            "Key re-wrapped for identity=%s", identity,
        )
        return updated

    def rotate_recovery(
        self,
        identity: Optional[str],
        secret: Secret,
        use_recovery: bool = False,
    ) -> str:
        """Replace (or add) the recovery wrap under a new recovery code.

        Returns:
            The new recovery code; the previous one stops working.

        Raises:
            RecoveryKeyMismatchError: ``use_recovery`` on an older key file
                whose recovery wrap holds a different key; untouched.
        """
        path, record, dek = self._unlock_record(identity, secret, use_recovery)
        with sensitive(dek) as buf:
            self._require_shared_key(record, identity, use_recovery)
            updated, code = rotate_recovery_wrap(
                record, buf, self.config.key_version,
                self.config.recovery_code_size,
            )
        self.store.replace(path, updated.to_json())
        self._report(
            Outcome.RECOVERY_ROTATED, identity,
            "Recovery key rotated for identity=%s", identity,
        )
        return code

    def delete(self, identity: Optional[str] = None) -> None:
        """Remove the key file. Data encrypted under its DEK becomes unrecoverable.

        Raises:
            NotFoundError: No key file for identity.
        """
        path = self.store.path_for(identity)
        self.store.delete(path)
        self._report(
            Outcome.DELETED, identity, "Key file deleted: %s", path,
            level=logging.WARNING,
        )


def create_key_file(
    identity: Optional[str],
    password: Secret,
    with_recovery: Optional[bool] = None,
    config: Optional[VaultConfig] = None,
) -> Optional[SetupResult]:
    """Run setup, returning None instead of raising if the key file exists.

    Intended for command-line callers; every other error propagates.
    """
    service = KeyFileService.from_config(config)
    try:
        return service.setup(identity, password, with_recovery=with_recovery)
    except AlreadyExistsError:
        return None


def unlock_key_file(
    identity: Optional[str],
    secret: Secret,
    use_recovery: bool = False,
    config: Optional[VaultConfig] = None,
) -> bytes:
    """Unlock the key file for identity and return its DEK."""
    service = KeyFileService.from_config(config)
    return service.unlock(identity, secret, use_recovery=use_recovery)
