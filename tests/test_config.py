"""Tests for VaultConfig and the Argon2id parameter sets."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from navigator_keyvault.vault.config import (
    CURRENT_KEY_VERSION,
    KDF_PARAMETERS,
    Argon2Parameters,
    VaultConfig,
    generate_recovery_code,
    get_kdf_parameters,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "VAULT_DIR",
        "VAULT_KEY_VERSION",
        "VAULT_RECOVERY_CODE_SIZE",
        "VAULT_WITH_RECOVERY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestKdfParameters:
    """Tests for the pinned parameter sets."""

    def test_current_version_params(self):
        params = get_kdf_parameters(CURRENT_KEY_VERSION)
        assert params.memory_cost >= 65536
        assert params.hash_len == 32
        assert params.salt_len >= 16

    def test_version_one_is_pinned(self):
        """Version 1 must never change: stored key files depend on it."""
        params = KDF_PARAMETERS[1]
        assert (params.time_cost, params.memory_cost, params.parallelism) == (3, 65536, 4)

    def test_unknown_version(self):
        with pytest.raises(KeyError):
            get_kdf_parameters(999)

    def test_memory_floor(self):
        with pytest.raises(ValidationError):
            Argon2Parameters(time_cost=3, memory_cost=1024, parallelism=4)

    def test_hash_len_fixed(self):
        with pytest.raises(ValidationError):
            Argon2Parameters(time_cost=3, memory_cost=65536, parallelism=4, hash_len=16)


class TestVaultConfig:
    """Tests for VaultConfig validation and env loading."""

    def test_defaults(self, clean_env):
        config = VaultConfig()
        assert config.vault_dir == Path.home() / ".vault"
        assert config.key_version == CURRENT_KEY_VERSION
        assert config.recovery_code_size == 32
        assert config.with_recovery is True

    def test_expands_user(self):
        config = VaultConfig(vault_dir="~/keys")
        assert config.vault_dir == Path.home() / "keys"

    def test_invalid_key_version(self):
        with pytest.raises(ValidationError):
            VaultConfig(key_version=42)

    def test_recovery_code_size_floor(self):
        with pytest.raises(ValidationError):
            VaultConfig(recovery_code_size=8)

    def test_from_env(self, clean_env, tmp_path):
        clean_env.setenv("VAULT_DIR", str(tmp_path / "keys"))
        clean_env.setenv("VAULT_KEY_VERSION", "1")
        clean_env.setenv("VAULT_RECOVERY_CODE_SIZE", "24")
        clean_env.setenv("VAULT_WITH_RECOVERY", "false")
        config = VaultConfig.from_env()
        assert config.vault_dir == tmp_path / "keys"
        assert config.key_version == 1
        assert config.recovery_code_size == 24
        assert config.with_recovery is False

    def test_from_env_defaults(self, clean_env):
        assert VaultConfig.from_env() == VaultConfig()


class TestRecoveryCode:
    """Tests for recovery code generation."""

    def test_default_length(self):
        code = generate_recovery_code()
        assert len(code) == 64
        bytes.fromhex(code)

    def test_unique(self):
        assert len({generate_recovery_code() for _ in range(100)}) == 100
