"""
Vault Exceptions — typed failures raised across the vault engine.

Every component translates the errors of the libraries it wraps
(cryptography, argon2, orjson, pydantic, OS calls) into one of these
classes at its boundary, chaining the original with ``raise ... from``.

Security Note:
    Messages must never carry key material, passwords or plaintext.
"""


class VaultError(Exception):
    """Base class for every vault failure."""


class KeyDerivationError(VaultError):
    """The KDF could not run (memory or resource exhaustion)."""


class AuthError(VaultError):
    """Authenticated decryption failed: the tag did not verify."""


class WrongPasswordOrCorruptFile(AuthError):
    """The vault could not be unlocked.

    Raised for both a wrong master password and a tampered file; the two
    cases are indistinguishable on purpose.
    """

    def __init__(self, message: str = "Wrong master password or corrupt vault file"):
        super().__init__(message)


class FormatError(VaultError):
    """Malformed container or malformed plaintext payload."""


class UnsupportedVersionError(FormatError):
    """The container declares a format version this build cannot read."""

    def __init__(self, version: int, supported: int):
        self.version = version
        self.supported = supported
        super().__init__(
            f"Unsupported vault format version {version} "
            f"(supported: {supported})"
        )


class HeaderParamsError(FormatError):
    """The header carries KDF parameters outside the accepted range."""


class InvalidRecordError(VaultError, ValueError):
    """Record fields failed validation (empty name, non-text value)."""


class DuplicateNameError(VaultError, KeyError):
    """A record with this name already exists."""

    def __str__(self) -> str:
        return f"Record already exists: {self.args[0]!r}"


class NotFoundError(VaultError, KeyError):
    """No record with this name."""

    def __str__(self) -> str:
        return f"Record not found: {self.args[0]!r}"


class AlreadyInitializedError(VaultError):
    """``init`` was called on a path that already exists."""


class InvalidStateError(VaultError):
    """Operation called while the store is in the wrong state."""


class VaultLockedError(VaultError):
    """Another holder has the vault open for writing."""


class IoError(VaultError):
    """Filesystem failure while reading or writing the vault."""


class VaultNotFoundError(IoError):
    """There is no vault file at the given path."""
