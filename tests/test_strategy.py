"""Tests for the cipher primitives (crypto.py) and strategies (strategy.py).

Covers:
- Known AES ciphertexts and determinism
- Encrypt/decrypt round-trip, including unicode
- Empty-value identity
- Marker discrimination: unmarked values pass through decrypt
- Typed DecryptionError for corrupt marked values
- Key validation at construction time
"""

import base64

import pytest
from cryptography.fernet import Fernet

from entities import AES_KEY, VECTORS
from ormcrypt.crypto import decrypt_bytes, encrypt_bytes, normalize_key
from ormcrypt.errors import CryptoConfigurationError, DecryptionError
from ormcrypt.strategy import AesCryptoStrategy, FernetCryptoStrategy


# ─── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def aes():
    return AesCryptoStrategy(AES_KEY)


@pytest.fixture()
def fernet():
    return FernetCryptoStrategy(Fernet.generate_key().decode())


@pytest.fixture(params=["aes", "fernet"])
def strategy(request, aes, fernet):
    return {"aes": aes, "fernet": fernet}[request.param]


# ─── Block primitives ─────────────────────────────────────────────────────────


class TestBlockPrimitives:
    def test_round_trip(self):
        data = "user1@example.com".encode()
        ciphertext = encrypt_bytes(data, AES_KEY)
        assert ciphertext != data
        assert decrypt_bytes(ciphertext, AES_KEY) == data

    def test_ciphertext_is_padded_to_blocks(self):
        assert len(encrypt_bytes(b"", AES_KEY)) == 16
        assert len(encrypt_bytes(b"x" * 16, AES_KEY)) == 32

    def test_bytes_and_str_keys_are_equivalent(self):
        assert encrypt_bytes(b"abc", AES_KEY) == encrypt_bytes(b"abc", AES_KEY.encode())

    @pytest.mark.parametrize("size", [16, 24, 32])
    def test_accepts_aes_key_sizes(self, size):
        assert len(normalize_key("k" * size)) == size

    @pytest.mark.parametrize("key", ["", "short", "k" * 17, b"k" * 33])
    def test_rejects_other_key_sizes(self, key):
        with pytest.raises(CryptoConfigurationError):
            normalize_key(key)

    def test_decrypt_partial_block_raises_value_error(self):
        with pytest.raises(ValueError):
            decrypt_bytes(b"12345", AES_KEY)


# ─── AES strategy ─────────────────────────────────────────────────────────────


class TestAesStrategy:
    @pytest.mark.parametrize("plaintext,ciphertext", sorted(VECTORS.items()))
    def test_known_ciphertexts(self, aes, plaintext, ciphertext):
        assert aes.encrypt(plaintext) == ciphertext
        assert aes.decrypt(ciphertext) == plaintext

    def test_deterministic(self, aes):
        assert aes.encrypt("same-value") == aes.encrypt("same-value")

    def test_prefix(self, aes):
        assert aes.name == "AES"
        assert aes.prefix == "{AES}"

    def test_payload_is_base64(self, aes):
        payload = aes.encrypt("hello")[len("{AES}"):]
        assert len(base64.b64decode(payload)) == 16

    def test_short_key_fails_at_construction(self):
        with pytest.raises(CryptoConfigurationError):
            AesCryptoStrategy("too-short")

    def test_decrypt_invalid_base64_raises(self, aes):
        with pytest.raises(DecryptionError) as exc_info:
            aes.decrypt("{AES}not base64!!")
        assert exc_info.value.strategy == "AES"

    def test_decrypt_partial_block_raises(self, aes):
        payload = base64.b64encode(b"12345").decode()
        with pytest.raises(DecryptionError):
            aes.decrypt("{AES}" + payload)

    def test_decrypt_empty_payload_raises(self, aes):
        with pytest.raises(DecryptionError):
            aes.decrypt("{AES}")


# ─── Fernet strategy ──────────────────────────────────────────────────────────


class TestFernetStrategy:
    def test_prefix(self, fernet):
        assert fernet.encrypt("secret").startswith("{FERNET}")

    def test_randomized(self, fernet):
        assert fernet.encrypt("same-value") != fernet.encrypt("same-value")

    def test_wrong_key_raises(self, fernet):
        other = FernetCryptoStrategy(Fernet.generate_key())
        with pytest.raises(DecryptionError) as exc_info:
            other.decrypt(fernet.encrypt("secret"))
        assert exc_info.value.strategy == "FERNET"

    def test_tampered_token_raises(self, fernet):
        with pytest.raises(DecryptionError):
            fernet.decrypt("{FERNET}gAAAAABf_corrupted_data_here")

    def test_invalid_key_fails_at_construction(self):
        with pytest.raises(CryptoConfigurationError):
            FernetCryptoStrategy("not-a-valid-fernet-key")


# ─── Properties shared by every strategy ──────────────────────────────────────


class TestStrategyContract:
    @pytest.mark.parametrize(
        "plaintext",
        ["a", "user1@example.com", "Maria García-López 123 Main St", "x" * 1000, "   "],
    )
    def test_round_trip(self, strategy, plaintext):
        encrypted = strategy.encrypt(plaintext)
        assert encrypted != plaintext
        assert strategy.is_encrypted(encrypted)
        assert strategy.decrypt(encrypted) == plaintext

    def test_empty_value_identity(self, strategy):
        assert strategy.encrypt("") == ""
        assert strategy.decrypt("") == ""

    @pytest.mark.parametrize(
        "value",
        ["plaintext", "stored before encryption was enabled", "{AE}x", "{aes}abc", "{OTHER}abc"],
    )
    def test_unmarked_values_pass_through(self, strategy, value):
        assert strategy.decrypt(value) == value

    def test_foreign_marker_passes_through(self, aes, fernet):
        token = fernet.encrypt("secret")
        assert aes.decrypt(token) == token
        ciphertext = aes.encrypt("secret")
        assert fernet.decrypt(ciphertext) == ciphertext
