"""
Vault Crypto Core — authenticated encryption of the vault payload.

The whole record set is sealed as one AEAD message:
    AEAD(key, nonce, plaintext, aad=header) → ciphertext | tag 16B

The tag is kept detached so the container can store it after the
ciphertext. The packed header is authenticated as associated data, so
any change to it (cipher, KDF cost, salt, nonce) fails decryption.

Security Note:
    Never log plaintext, ciphertext or key values.
    Nonces are random 96-bit and generated fresh for every encryption.
"""
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import AuthError
from .config import KEY_LENGTH

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16    # GCM / Poly1305 tag

# Identifiers written in the container header.
CIPHER_AESGCM = 1
CIPHER_CHACHA20 = 2

_CIPHERS = {
    CIPHER_AESGCM: AESGCM,
    CIPHER_CHACHA20: ChaCha20Poly1305,
}

_BACKEND_IDS = {
    "aesgcm": CIPHER_AESGCM,
    "chacha20": CIPHER_CHACHA20,
}


def cipher_id_for(backend: str) -> int:
    """Map a configured backend name to its header identifier."""
    try:
        return _BACKEND_IDS[backend.lower()]
    except KeyError:
        raise ValueError(f"Unsupported cipher backend: {backend}") from None


def new_nonce() -> bytes:
    """Return a fresh random 96-bit nonce."""
    return secrets.token_bytes(NONCE_SIZE)


class Cipher:
    """AEAD wrapper with a detached authentication tag.

    Args:
        cipher_id: One of ``CIPHER_AESGCM`` or ``CIPHER_CHACHA20``.
    """

    def __init__(self, cipher_id: int = CIPHER_AESGCM):
        if cipher_id not in _CIPHERS:
            raise ValueError(f"Unknown cipher id: {cipher_id}")
        self.cipher_id = cipher_id
        self._cls = _CIPHERS[cipher_id]

    def _aead(self, key: bytearray):
        if len(key) != KEY_LENGTH:
            raise ValueError(
                f"key must be {KEY_LENGTH} bytes, got {len(key)}"
            )
        return self._cls(key)

    def encrypt(
        self,
        key: bytearray,
        nonce: bytes,
        plaintext: bytes,
        associated_data: Optional[bytes] = None,
    ) -> tuple[bytes, bytes]:
        """Encrypt and authenticate plaintext.

        Args:
            key: 32-byte derived key.
            nonce: 12-byte nonce, never reused with the same key.
            plaintext: Encoded record set.
            associated_data: Bytes authenticated but not encrypted.

        Returns:
            Tuple of (ciphertext, tag).
        """
        if len(nonce) != NONCE_SIZE:
            raise ValueError(f"nonce must be {NONCE_SIZE} bytes")
        sealed = self._aead(key).encrypt(nonce, plaintext, associated_data)
        return sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

    def decrypt(
        self,
        key: bytearray,
        nonce: bytes,
        ciphertext: bytes,
        tag: bytes,
        associated_data: Optional[bytes] = None,
    ) -> bytes:
        """Verify and decrypt.

        Returns:
            Decrypted plaintext bytes.

        Raises:
            AuthError: If the tag does not verify. No plaintext is returned.
        """
        if len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
            raise AuthError("Authentication failed")
        try:
            return self._aead(key).decrypt(
                nonce, bytes(ciphertext) + bytes(tag), associated_data,
            )
        except InvalidTag as err:
            raise AuthError("Authentication failed") from err

    def __repr__(self) -> str:
        return f"<Cipher {self._cls.__name__}>"
