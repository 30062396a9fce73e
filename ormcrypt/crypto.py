"""Raw cipher primitives used by the built-in strategies.

AES runs in ECB mode with PKCS#7 padding, so the same plaintext and key
always produce the same ciphertext.  That is what lets equality and IN
predicates on encrypted columns keep working: the query literal is
encrypted and compared against the stored value.

The key is used as-is and must be 16, 24 or 32 bytes long (AES-128/192/256).
"""

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from ormcrypt.errors import CryptoConfigurationError

AES_KEY_SIZES = (16, 24, 32)
_BLOCK_BITS = algorithms.AES.block_size


def normalize_key(key: str | bytes) -> bytes:
    """Return ``key`` as bytes, rejecting lengths AES cannot use."""
    raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
    if len(raw) not in AES_KEY_SIZES:
        raise CryptoConfigurationError(
            f"AES key must be 16, 24 or 32 bytes, got {len(raw)}"
        )
    return raw


def _cipher(key: bytes) -> Cipher:
    return Cipher(algorithms.AES(key), modes.ECB())


# ─── Block encryption ─────────────────────────────────────────────────────────


def encrypt_bytes(plaintext: bytes, key: str | bytes) -> bytes:
    """Pad and encrypt ``plaintext``."""
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = _cipher(normalize_key(key)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt_bytes(ciphertext: bytes, key: str | bytes) -> bytes:
    """Decrypt and unpad ``ciphertext``.

    Raises ValueError when the input is not a whole number of blocks or the
    padding is invalid (wrong key, truncated or tampered data).
    """
    decryptor = _cipher(normalize_key(key)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
    return unpadder.update(padded) + unpadder.finalize()
