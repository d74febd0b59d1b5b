"""Vault engine — master-password encrypted storage of credential records.

Security Note (Threat Model):
    Records are decrypted in process memory while a vault is open.
    Passwords and derived keys are wiped from the buffers this package
    owns, but immutable ``str`` copies made by the caller or the runtime
    cannot be scrubbed. This is an accepted limitation of a pure-Python
    engine.
"""

from .store import VaultStore, VaultState
from .config import VaultConfig, KdfParams, default_vault_path
from .container import VaultHeader, VaultLock

__all__ = [
    "VaultStore",
    "VaultState",
    "VaultConfig",
    "KdfParams",
    "default_vault_path",
    "VaultHeader",
    "VaultLock",
]
