import pytest

from navigator_keyvault.vault.config import VaultConfig
from navigator_keyvault.vault.keyfile import KeyFileService
from navigator_keyvault.vault.store import VaultStore


@pytest.fixture
def vault_dir(tmp_path):
    """Vault directory that does not exist yet."""
    return tmp_path / "vault"


@pytest.fixture
def store(vault_dir):
    return VaultStore(vault_dir)


@pytest.fixture
def config(vault_dir):
    return VaultConfig(vault_dir=vault_dir)


@pytest.fixture
def service(store, config):
    """KeyFileService writing into a temporary vault directory."""
    return KeyFileService(store, config=config)
