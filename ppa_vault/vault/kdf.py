"""
Vault Key Derivation — master password + salt → 32-byte key via Argon2id.

Argon2id is deliberately slow and memory-hard so that an exfiltrated vault
file stays expensive to brute-force. The cost parameters used to create a
vault are stored in its header and reused for every later derivation.

Security Note:
    Never log the password or the derived key.
"""
import logging

from argon2.low_level import hash_secret_raw, Type
from argon2.exceptions import HashingError

from ..exceptions import KeyDerivationError
from .config import KEY_LENGTH, KdfParams
from .memory import SecretBuffer

logger = logging.getLogger("ppa.vault")


def derive_key(password: str, salt: bytes, params: KdfParams) -> SecretBuffer:
    """Derive the vault key from the master password using Argon2id.

    Same password, salt and params always give the same key.

    Args:
        password: Master password, any content is accepted.
        salt: Salt stored in the vault header.
        params: Argon2id cost parameters.

    Returns:
        SecretBuffer holding the 32-byte key; the caller must scope it
        with ``with`` so it is wiped after use.

    Raises:
        KeyDerivationError: If Argon2 could not allocate or run.
    """
    with SecretBuffer.from_text(password) as secret:
        try:
            raw = hash_secret_raw(
                secret=bytes(secret.view()),
                salt=bytes(salt),
                time_cost=params.time_cost,
                memory_cost=params.memory_cost,
                parallelism=params.parallelism,
                hash_len=KEY_LENGTH,
                type=Type.ID,
            )
        except (HashingError, MemoryError) as err:
            logger.error("Key derivation failed: %s", type(err).__name__)
            raise KeyDerivationError(
                f"Could not derive vault key with {params}"
            ) from err
    return SecretBuffer(raw)


class KeyDeriver:
    """Binds a set of Argon2id parameters for repeated derivations."""

    def __init__(self, params: KdfParams):
        self.params = params

    def derive(self, password: str, salt: bytes) -> SecretBuffer:
        return derive_key(password, salt, self.params)

    def __repr__(self) -> str:
        return f"<KeyDeriver {self.params}>"
