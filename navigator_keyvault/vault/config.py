"""
Vault Configuration — Argon2id parameter sets and validated settings.

Reads settings from environment variables:
    VAULT_DIR = <directory holding the key files>
    VAULT_KEY_VERSION = <integer, parameter set for new wraps>
    VAULT_RECOVERY_CODE_SIZE = <integer, random bytes per recovery code>
    VAULT_WITH_RECOVERY = <true|false>

Security Note:
    Never log key material or recovery codes. Only log identities,
    paths and version numbers.
"""
import os
import secrets
import logging
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("navigator.keyvault")

DEFAULT_VAULT_DIR_NAME = ".vault"
RECOVERY_CODE_SIZE = 32  # bytes, hex-encoded for the operator


class Argon2Parameters(BaseModel):
    """Fixed Argon2id cost parameters shared by every derivation of a version."""

    time_cost: int = Field(ge=1)
    memory_cost: int = Field(ge=65536)  # KiB, 64 MiB floor
    parallelism: int = Field(ge=1)
    hash_len: int = Field(default=32, ge=32, le=32)
    salt_len: int = Field(default=16, ge=16)

    model_config = {"frozen": True}


# Parameter set pinned by the ``version`` field of each wrapped key.
# Version 1 matches the argon2 defaults the first key files were made with.
KDF_PARAMETERS: dict[int, Argon2Parameters] = {
    1: Argon2Parameters(time_cost=3, memory_cost=65536, parallelism=4),
}

CURRENT_KEY_VERSION = max(KDF_PARAMETERS)


def get_kdf_parameters(version: int) -> Argon2Parameters:
    """Return the Argon2id parameters pinned by ``version``.

    Raises:
        KeyError: If the version is unknown.
    """
    try:
        return KDF_PARAMETERS[version]
    except KeyError:
        raise KeyError(
            f"Unknown key version {version} "
            f"(available: {sorted(KDF_PARAMETERS)})"
        ) from None


def default_vault_dir() -> Path:
    return Path.home() / DEFAULT_VAULT_DIR_NAME


def generate_recovery_code(size: int = RECOVERY_CODE_SIZE) -> str:
    """Generate a random recovery code as a hex string.

    The code is shown to the operator once and never persisted.

    Args:
        size: Number of random bytes (the hex string is twice as long).

    Returns:
        Hex-encoded recovery code.
    """
    return secrets.token_hex(size)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    vault_dir: Path = Field(default_factory=default_vault_dir)
    key_version: int = Field(default=CURRENT_KEY_VERSION)
    recovery_code_size: int = Field(default=RECOVERY_CODE_SIZE, ge=16)
    with_recovery: bool = Field(default=True)

    @field_validator("vault_dir")
    @classmethod
    def expand_vault_dir(cls, v: Path) -> Path:
        """Expand ``~`` so paths are stable regardless of the caller's cwd."""
        return v.expanduser()

    @field_validator("key_version")
    @classmethod
    def validate_key_version(cls, v: int) -> int:
        """Ensure the key version names a known parameter set."""
        if v not in KDF_PARAMETERS:
            raise ValueError(
                f"key_version {v} not found in KDF parameter sets "
                f"(available: {sorted(KDF_PARAMETERS)})"
            )
        return v

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Unset variables fall back to the field defaults.

        Returns:
            Populated VaultConfig instance.
        """
        values: dict = {}
        vault_dir = os.environ.get("VAULT_DIR")
        if vault_dir:
            values["vault_dir"] = Path(vault_dir)
        version = os.environ.get("VAULT_KEY_VERSION")
        if version:
            values["key_version"] = int(version)
        size = os.environ.get("VAULT_RECOVERY_CODE_SIZE")
        if size:
            values["recovery_code_size"] = int(size)
        recovery = os.environ.get("VAULT_WITH_RECOVERY")
        if recovery is not None:
            values["with_recovery"] = _env_bool(recovery)
        config = cls(**values)
        logger.debug(
            "Vault config loaded: dir=%s key_version=%d",
            config.vault_dir, config.key_version,
        )
        return config
