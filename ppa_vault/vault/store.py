"""
VaultStore — the encrypted credential vault bound to one file.

Provides the public API of the vault engine:
- ``init(password)`` — create a new, empty vault file
- ``open(password)`` — unlock the vault and return its RecordSet
- ``add`` / ``get`` / ``update`` / ``remove`` / ``list`` / ``search`` —
  in-memory record operations on the open vault
- ``save(password)`` — re-encrypt everything with a fresh nonce and
  atomically replace the file
- ``change_password(current, new)`` — rewrite under a new salt and password
- ``close()`` — scrub the records and release the writer lock

States: UNINITIALIZED → (init) → CLOSED ⇄ (open / close) ⇄ OPEN.

Security Note:
    Never log passwords, keys or record contents. Only log paths, counts
    and operations. Keys exist only inside a single call and are wiped on
    exit; decrypted records live in memory while the store is OPEN.
"""
import os
import enum
import secrets
import logging
from pathlib import Path
from typing import Optional, Union

from ..exceptions import (
    AlreadyInitializedError,
    AuthError,
    FormatError,
    HeaderParamsError,
    InvalidStateError,
    WrongPasswordOrCorruptFile,
)
from ..records import CredentialRecord, RecordSet
from . import codec, container
from .config import SALT_LENGTH, VaultConfig
from .container import VaultHeader, VaultLock
from .crypto import Cipher, cipher_id_for, new_nonce
from .kdf import KeyDeriver
from .memory import SecretBuffer

logger = logging.getLogger("ppa.vault")


class VaultState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    OPEN = "open"
    CLOSED = "closed"


class VaultStore:
    """Encrypted credential vault stored in a single file.

    Args:
        path: Vault file; defaults to ``config.vault_path``.
        config: Settings used when creating or re-keying a vault.
    """

    def __init__(
        self,
        path: Optional[Union[str, os.PathLike]] = None,
        config: Optional[VaultConfig] = None,
    ):
        self.config = config or VaultConfig()
        self.path = Path(path) if path is not None else Path(self.config.vault_path)
        self._records: Optional[RecordSet] = None
        self._header: Optional[VaultHeader] = None
        self._lock: Optional[VaultLock] = None
        self._read_only = False
        self._state = (
            VaultState.CLOSED if container.is_vault(self.path)
            else VaultState.UNINITIALIZED
        )

    def __repr__(self) -> str:
        return f"<VaultStore {self.path} state={self._state.value}>"

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is VaultState.OPEN

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def records(self) -> RecordSet:
        return self._require_open()

    @property
    def dirty(self) -> bool:
        """True if records changed since the last open or save."""
        return self._records is not None and self._records.is_changed

    def _require_open(self) -> RecordSet:
        if self._state is not VaultState.OPEN or self._records is None:
            raise InvalidStateError(
                f"Vault must be open (current state: {self._state.value})"
            )
        return self._records

    def _require_writable(self) -> RecordSet:
        records = self._require_open()
        if self._read_only:
            raise InvalidStateError("Vault was opened read-only")
        return records

    def _new_lock(self) -> VaultLock:
        return VaultLock(self.path, stale_check=self.config.lock_stale_check)

    # ------------------------------------------------------------------
    # Crypto helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _seal(key: SecretBuffer, header: VaultHeader, records: RecordSet) -> tuple[bytes, bytes]:
        """Encode and encrypt ``records``; the packed header is the AAD."""
        return Cipher(header.cipher_id).encrypt(
            key.view(), header.nonce, codec.encode(records), header.pack(),
        )

    @staticmethod
    def _unseal(
        key: SecretBuffer,
        header: VaultHeader,
        ciphertext: bytes,
        tag: bytes,
    ) -> RecordSet:
        try:
            cipher = Cipher(header.cipher_id)
        except ValueError as err:
            raise FormatError(f"Unknown cipher id {header.cipher_id}") from err
        return codec.decode(
            cipher.decrypt(key.view(), header.nonce, ciphertext, tag, header.pack())
        )

    def _read(self) -> tuple[VaultHeader, bytes, bytes]:
        """Read the container, rejecting headers that ask for an excessive KDF cost.

        The KDF parameters are only authenticated after the key is derived,
        so a header outside the configured limits is reported the same way
        as any other tampering.
        """
        try:
            return container.read(self.path, self.config.kdf_limits())
        except HeaderParamsError:
            logger.warning("Vault %s has out-of-range KDF parameters", self.path)
            raise WrongPasswordOrCorruptFile() from None

    def _verify_on_disk(self, key: SecretBuffer) -> None:
        """Check that ``key`` authenticates the vault currently on disk."""
        header, ciphertext, tag = self._read()
        if header.salt != self._header.salt:
            raise WrongPasswordOrCorruptFile()
        try:
            Cipher(header.cipher_id).decrypt(
                key.view(), header.nonce, ciphertext, tag, header.pack(),
            )
        except (AuthError, ValueError):
            logger.warning("Save rejected for %s: authentication failed", self.path)
            raise WrongPasswordOrCorruptFile() from None

    def _write(self, key: SecretBuffer, header: VaultHeader, records: RecordSet) -> VaultHeader:
        header = header.with_nonce(new_nonce())
        ciphertext, tag = self._seal(key, header, records)
        container.write_atomic(self.path, header, ciphertext, tag)
        return header

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, password: str) -> None:
        """Create a new, empty vault at ``self.path``.

        Raises:
            AlreadyInitializedError: If anything already exists at the path.
            VaultLockedError: If another process holds the vault lock.
            KeyDerivationError: If the KDF could not run.
            IoError: If the file could not be written.
        """
        if self.path.exists():
            raise AlreadyInitializedError(f"Path already exists: {self.path}")
        if self._state is VaultState.OPEN:
            raise InvalidStateError("Cannot init an open vault")

        header = VaultHeader(
            cipher_id=cipher_id_for(self.config.cipher_backend),
            kdf=self.config.kdf_params(),
            salt=secrets.token_bytes(SALT_LENGTH),
            nonce=new_nonce(),
        )
        with self._new_lock():
            # Re-check under the lock; another process may have won the race.
            if self.path.exists():
                raise AlreadyInitializedError(f"Path already exists: {self.path}")
            with KeyDeriver(header.kdf).derive(password, header.salt) as key:
                self._write(key, header, RecordSet())
        self._state = VaultState.CLOSED
        logger.info("Vault created at %s", self.path)

    def open(self, password: str, read_only: bool = False) -> RecordSet:
        """Unlock the vault and load its records.

        Args:
            password: Master password.
            read_only: Do not take the writer lock; ``save`` is refused.

        Returns:
            The live RecordSet of the open vault.

        Raises:
            WrongPasswordOrCorruptFile: If the password is wrong, the
                file was tampered with, or its KDF parameters exceed the
                configured maximums.
            VaultLockedError: If another holder has the vault open for writing.
            InvalidStateError: If the store is already open.
            VaultNotFoundError: If there is no vault at the path.
            UnsupportedVersionError: If the file format is unknown.
            FormatError: If the container or payload is malformed.
        """
        if self._state is VaultState.OPEN:
            raise InvalidStateError("Vault is already open")

        lock = None if read_only else self._new_lock().acquire()
        try:
            header, ciphertext, tag = self._read()
            with KeyDeriver(header.kdf).derive(password, header.salt) as key:
                try:
                    records = self._unseal(key, header, ciphertext, tag)
                except AuthError:
                    logger.warning("Failed to unlock vault %s", self.path)
                    raise WrongPasswordOrCorruptFile() from None
        except BaseException:
            if lock is not None:
                lock.release()
            raise

        self._lock = lock
        self._header = header
        self._records = records
        self._read_only = read_only
        self._state = VaultState.OPEN
        logger.debug("Vault %s opened: %d record(s)", self.path, len(records))
        return records

    def save(self, password: str) -> None:
        """Re-encrypt all records with a fresh nonce and replace the file.

        The key is re-derived from the stored salt and ``password``, which
        must unlock the vault currently on disk.

        Raises:
            InvalidStateError: If the store is not open for writing.
            WrongPasswordOrCorruptFile: If ``password`` does not match.
            IoError: If writing fails; the previous file is kept intact.
        """
        records = self._require_writable()
        with KeyDeriver(self._header.kdf).derive(password, self._header.salt) as key:
            self._verify_on_disk(key)
            self._header = self._write(key, self._header, records)
        records.mark_clean()
        logger.info("Vault saved at %s: %d record(s)", self.path, len(records))

    def change_password(self, current_password: str, new_password: str) -> None:
        """Re-key the vault under a new salt and master password.

        Raises:
            InvalidStateError: If the store is not open for writing.
            WrongPasswordOrCorruptFile: If ``current_password`` does not match.
            IoError: If writing fails; the previous file is kept intact.
        """
        records = self._require_writable()
        with KeyDeriver(self._header.kdf).derive(current_password, self._header.salt) as key:
            self._verify_on_disk(key)

        new_header = VaultHeader(
            cipher_id=cipher_id_for(self.config.cipher_backend),
            kdf=self.config.kdf_params(),
            salt=secrets.token_bytes(SALT_LENGTH),
            nonce=new_nonce(),
        )
        with KeyDeriver(new_header.kdf).derive(new_password, new_header.salt) as key:
            self._header = self._write(key, new_header, records)
        records.mark_clean()
        logger.info("Vault master password changed for %s", self.path)

    def close(self) -> None:
        """Scrub the records and release the writer lock."""
        if self._records is not None:
            if self._records.is_changed:
                logger.warning("Closing vault %s with unsaved changes", self.path)
            self._records.clear()
        self._records = None
        self._header = None
        self._read_only = False
        lock, self._lock = self._lock, None
        if self._state is VaultState.OPEN:
            self._state = VaultState.CLOSED
        if lock is not None:
            lock.release()

    def exists(self) -> bool:
        return container.is_vault(self.path)

    def __enter__(self) -> "VaultStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Record operations (in memory until save)
    # ------------------------------------------------------------------

    def add(
        self,
        name: str,
        username: str,
        password: str,
        comments: str = "",
    ) -> CredentialRecord:
        """Add a record; fails with DuplicateNameError if ``name`` exists."""
        record = self._require_open().add(name, username, password, comments)
        logger.debug("Vault add: %s", name)
        return record

    def get(self, name: str) -> CredentialRecord:
        return self._require_open().get(name)

    def update(
        self,
        name: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        comments: Optional[str] = None,
    ) -> CredentialRecord:
        """Change fields of an existing record; NotFoundError otherwise."""
        record = self._require_open().update(
            name, username=username, password=password, comments=comments,
        )
        logger.debug("Vault update: %s", name)
        return record

    def remove(self, name: str) -> None:
        self._require_open().remove(name)
        logger.debug("Vault remove: %s", name)

    def search(self, term: str = "") -> list[str]:
        """Names fuzzily matching ``term`` (case-insensitive)."""
        names = self._require_open().search(term)
        logger.debug("Vault search: %d match(es)", len(names))
        return names

    def list(self) -> list[str]:
        """Record names, sorted. No secrets are exposed."""
        return self._require_open().names()
