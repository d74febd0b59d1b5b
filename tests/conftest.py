import pytest

from ppa_vault.vault.config import VaultConfig
from ppa_vault.vault.store import VaultStore

MASTER = "P" * 32


@pytest.fixture
def config(tmp_path):
    """Cheap Argon2 parameters so tests stay fast."""
    return VaultConfig(
        vault_path=tmp_path / "vault.bin",
        time_cost=1,
        memory_cost=8,
        parallelism=1,
    )


@pytest.fixture
def vault_path(config):
    return config.vault_path


@pytest.fixture
def initialized(config, vault_path):
    """Path of a freshly initialized, empty vault."""
    VaultStore(vault_path, config=config).init(MASTER)
    return vault_path


@pytest.fixture
def store(config, initialized):
    """An open, writable store; closed after the test."""
    vault = VaultStore(initialized, config=config)
    vault.open(MASTER)
    yield vault
    vault.close()
