"""
Vault Container — on-disk binary format, atomic writes and exclusive lock.

Format (big-endian):
    [magic "PPAV" 4B][version uint16][cipher_id uint8]
    [time_cost uint32][memory_cost uint32][parallelism uint16]
    [salt 16B][nonce 12B][ciphertext ...][tag 16B]

The version is checked before anything else is parsed. The packed header
(everything up to and including the nonce) is the AEAD associated data.
The KDF parameters are range-checked on read, since they feed Argon2
before the tag can be verified.

Writes go to a temporary file in the same directory which is fsync'ed and
then renamed over the target, so readers see either the complete old file
or the complete new one.
"""
import os
import struct
import logging
import tempfile
from pathlib import Path
from typing import Union
from dataclasses import dataclass, replace

from ..exceptions import (
    FormatError,
    HeaderParamsError,
    IoError,
    UnsupportedVersionError,
    VaultLockedError,
    VaultNotFoundError,
)
from .config import DEFAULT_KDF_LIMITS, SALT_LENGTH, KdfParams
from .crypto import NONCE_SIZE, TAG_SIZE

logger = logging.getLogger("ppa.vault")

PathLike = Union[str, os.PathLike]

MAGIC = b"PPAV"
FORMAT_VERSION = 1

_PREFIX = struct.Struct("!4sH")
_BODY_V1 = struct.Struct(f"!BIIH{SALT_LENGTH}s{NONCE_SIZE}s")
HEADER_SIZE = _PREFIX.size + _BODY_V1.size


@dataclass(frozen=True)
class VaultHeader:
    """Unencrypted container header."""
    cipher_id: int
    kdf: KdfParams
    salt: bytes
    nonce: bytes
    version: int = FORMAT_VERSION

    def pack(self) -> bytes:
        return _PREFIX.pack(MAGIC, self.version) + _BODY_V1.pack(
            self.cipher_id,
            self.kdf.time_cost,
            self.kdf.memory_cost,
            self.kdf.parallelism,
            self.salt,
            self.nonce,
        )

    @classmethod
    def unpack(cls, data: bytes, limits: KdfParams = DEFAULT_KDF_LIMITS) -> "VaultHeader":
        """Parse the header at the start of ``data``.

        Raises:
            FormatError: If the magic is wrong or the data is truncated.
            UnsupportedVersionError: If the format version is not supported.
            HeaderParamsError: If the KDF parameters are invalid or costlier
                than ``limits``.
        """
        if len(data) < _PREFIX.size:
            raise FormatError("Vault file is truncated")
        magic, version = _PREFIX.unpack_from(data)
        if magic != MAGIC:
            raise FormatError("Not a vault file (bad magic)")
        if version != FORMAT_VERSION:
            raise UnsupportedVersionError(version, FORMAT_VERSION)
        if len(data) < HEADER_SIZE:
            raise FormatError("Vault file is truncated")
        cipher_id, t, m, p, salt, nonce = _BODY_V1.unpack_from(data, _PREFIX.size)
        kdf = KdfParams(time_cost=t, memory_cost=m, parallelism=p)
        if not kdf.within(limits):
            raise HeaderParamsError("Vault header has out-of-range KDF parameters")
        return cls(
            cipher_id=cipher_id,
            kdf=kdf,
            salt=salt,
            nonce=nonce,
            version=version,
        )

    def with_nonce(self, nonce: bytes) -> "VaultHeader":
        return replace(self, nonce=nonce)

    def with_salt(self, salt: bytes) -> "VaultHeader":
        return replace(self, salt=salt)


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------

def read(
    path: PathLike,
    limits: KdfParams = DEFAULT_KDF_LIMITS,
) -> tuple[VaultHeader, bytes, bytes]:
    """Read a vault container.

    Args:
        path: Vault file path.
        limits: Largest KDF cost accepted from the header.

    Returns:
        Tuple of (header, ciphertext, tag).

    Raises:
        VaultNotFoundError: If there is no file at ``path``.
        IoError: On any other filesystem failure.
        FormatError: If the container is malformed.
        UnsupportedVersionError: If the format version is unknown.
        HeaderParamsError: If the header KDF parameters are out of range.
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as err:
        raise VaultNotFoundError(f"No vault at {path}") from err
    except OSError as err:
        raise IoError(f"Could not read vault {path}: {err}") from err

    header = VaultHeader.unpack(data, limits)
    if len(data) < HEADER_SIZE + TAG_SIZE:
        raise FormatError("Vault file is truncated")
    ciphertext = data[HEADER_SIZE:-TAG_SIZE]
    tag = data[-TAG_SIZE:]
    logger.debug(
        "Read vault %s: version=%d, %d payload bytes",
        path, header.version, len(ciphertext),
    )
    return header, ciphertext, tag


def _fsync_dir(directory: Path) -> None:
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_atomic(
    path: PathLike,
    header: VaultHeader,
    ciphertext: bytes,
    tag: bytes,
) -> None:
    """Atomically replace ``path`` with a new container.

    Raises:
        IoError: If writing fails; the previous file is left untouched.
    """
    path = Path(path)
    directory = path.parent
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=directory,
        )
    except OSError as err:
        raise IoError(f"Could not create temporary file in {directory}: {err}") from err

    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(header.pack())
            f.write(ciphertext)
            f.write(tag)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException as err:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        if isinstance(err, OSError):
            raise IoError(f"Could not write vault {path}: {err}") from err
        raise
    try:
        _fsync_dir(directory)
    except OSError as err:
        logger.warning("Could not sync directory %s: %s", directory, err)
    logger.debug("Wrote vault %s (%d payload bytes)", path, len(ciphertext))


def is_vault(path: PathLike) -> bool:
    """True if ``path`` is a file starting with the vault magic."""
    try:
        with open(path, "rb") as f:
            return f.read(len(MAGIC)) == MAGIC
    except OSError:
        return False


# ---------------------------------------------------------------------------
# Exclusive lock
# ---------------------------------------------------------------------------

def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class VaultLock:
    """Exclusive writer lock on a vault path.

    Implemented as a ``<vault>.lock`` file created with ``O_EXCL`` holding
    the owner PID. Acquiring a held lock fails immediately.

    Args:
        path: Vault file path.
        stale_check: On POSIX, reclaim a lock whose owner process is gone.
    """

    def __init__(self, path: PathLike, stale_check: bool = True):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.guard_path = self.path.with_name(self.path.name + ".lock.reclaim")
        self._stale_check = stale_check
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def _create(self) -> None:
        fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))

    def _is_stale(self) -> bool:
        if not self._stale_check or os.name != "posix":
            return False
        try:
            pid = int(self.lock_path.read_text().strip())
        except (OSError, ValueError):
            return False
        return pid != os.getpid() and not _pid_alive(pid)

    def _reclaim(self) -> bool:
        """Replace a stale lock with ours.

        Only one process may reclaim at a time: the guard file is created
        with ``O_EXCL`` and staleness is checked again while holding it, so
        a lock another reclaimer has just taken is never removed.
        """
        try:
            fd = os.open(self.guard_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o600)
        except FileExistsError:
            return False
        os.close(fd)
        try:
            if not self._is_stale():
                return False
            logger.warning("Removing stale vault lock %s", self.lock_path)
            self.lock_path.unlink(missing_ok=True)
            self._create()
            return True
        finally:
            self.guard_path.unlink(missing_ok=True)

    def acquire(self) -> "VaultLock":
        """Take the lock.

        Raises:
            VaultLockedError: If another holder has the lock.
            IoError: If the lock file cannot be created.
        """
        if self._held:
            return self
        try:
            try:
                self._create()
            except FileExistsError:
                if not (self._is_stale() and self._reclaim()):
                    raise
        except FileExistsError as err:
            raise VaultLockedError(
                f"Vault {self.path} is locked by another process"
            ) from err
        except OSError as err:
            raise IoError(f"Could not lock vault {self.path}: {err}") from err
        self._held = True
        logger.debug("Acquired vault lock %s", self.lock_path)
        return self

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.lock_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as err:
            raise IoError(f"Could not release vault lock {self.lock_path}: {err}") from err
        logger.debug("Released vault lock %s", self.lock_path)

    def __enter__(self) -> "VaultLock":
        return self.acquire()

    def __exit__(self, *exc) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"<VaultLock {self.lock_path} held={self._held}>"
