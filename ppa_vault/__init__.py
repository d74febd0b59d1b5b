"""PPA Vault.

Local encrypted credential vault: named username/password records kept in
one file encrypted under a single master password.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    KeyDerivationError,
    AuthError,
    WrongPasswordOrCorruptFile,
    FormatError,
    UnsupportedVersionError,
    HeaderParamsError,
    InvalidRecordError,
    DuplicateNameError,
    NotFoundError,
    AlreadyInitializedError,
    InvalidStateError,
    VaultLockedError,
    IoError,
    VaultNotFoundError,
)
from .records import CredentialRecord, RecordSet
from .vault import VaultStore, VaultState, VaultConfig

__all__ = (
    "__version__",
    "VaultStore",
    "VaultState",
    "VaultConfig",
    "CredentialRecord",
    "RecordSet",
    "VaultError",
    "KeyDerivationError",
    "AuthError",
    "WrongPasswordOrCorruptFile",
    "FormatError",
    "UnsupportedVersionError",
    "HeaderParamsError",
    "InvalidRecordError",
    "DuplicateNameError",
    "NotFoundError",
    "AlreadyInitializedError",
    "InvalidStateError",
    "VaultLockedError",
    "IoError",
    "VaultNotFoundError",
)
