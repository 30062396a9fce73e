"""Named encrypt/decrypt strategies.

Every strategy marks its ciphertext with ``{NAME}`` so that decryption can
tell its own output apart from plaintext (legacy rows, values written before
the column was tagged) and from other strategies.  Unmarked values always
pass through ``decrypt`` unchanged.
"""

from __future__ import annotations

import base64
import binascii
from abc import ABC, abstractmethod

from cryptography.fernet import Fernet, InvalidToken

from ormcrypt.crypto import decrypt_bytes, encrypt_bytes, normalize_key
from ormcrypt.errors import CryptoConfigurationError, DecryptionError


class CryptoStrategy(ABC):
    """Base class for a named, keyed cipher."""

    #: Registration key; also used to build the ciphertext marker.
    name: str = ""

    @property
    def prefix(self) -> str:
        return "{" + self.name.upper() + "}"

    def is_encrypted(self, value: str) -> bool:
        return isinstance(value, str) and value.startswith(self.prefix)

    def encrypt(self, plaintext: str) -> str:
        """Return the marked ciphertext for ``plaintext`` (empty stays empty)."""
        if not plaintext:
            return ""
        return self.prefix + self._encrypt(plaintext)

    def decrypt(self, value: str) -> str:
        """Return the plaintext behind a marked value.

        Values without this strategy's marker are returned unchanged.
        Raises DecryptionError when a marked payload is corrupt or was
        written with a different key.
        """
        if not self.is_encrypted(value):
            return value
        return self._decrypt(value[len(self.prefix):])

    @abstractmethod
    def _encrypt(self, plaintext: str) -> str:
        """Encrypt a non-empty string into the payload that follows the marker."""

    @abstractmethod
    def _decrypt(self, payload: str) -> str:
        """Invert ``_encrypt``."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class AesCryptoStrategy(CryptoStrategy):
    """AES-ECB with PKCS#7 padding, base64 encoded.

    Deterministic: equal plaintexts give equal ciphertexts, so encrypted
    columns stay usable in equality and IN filters.
    """

    name = "AES"

    def __init__(self, secret_key: str | bytes) -> None:
        self._key = normalize_key(secret_key)

    def _encrypt(self, plaintext: str) -> str:
        raw = encrypt_bytes(plaintext.encode("utf-8"), self._key)
        return base64.b64encode(raw).decode("ascii")

    def _decrypt(self, payload: str) -> str:
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError(self.name, "invalid base64") from exc
        try:
            return decrypt_bytes(raw, self._key).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptionError(self.name, "plaintext is not UTF-8") from exc
        except ValueError as exc:
            raise DecryptionError(self.name, str(exc)) from exc


class FernetCryptoStrategy(CryptoStrategy):
    """Fernet (AES-128-CBC + HMAC-SHA256) tokens.

    Each encryption uses a fresh IV, so ciphertexts differ for the same
    plaintext.  Columns using this strategy cannot be filtered on.

    Generate a key with:

        python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    """

    name = "FERNET"

    def __init__(self, key: str | bytes) -> None:
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as exc:
            raise CryptoConfigurationError(f"Invalid Fernet key: {exc}") from exc

    def _encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def _decrypt(self, payload: str) -> str:
        try:
            return self._fernet.decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise DecryptionError(self.name, "invalid or tampered token") from exc
        except UnicodeError as exc:
            raise DecryptionError(self.name, "payload is not text") from exc
