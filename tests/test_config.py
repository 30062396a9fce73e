"""Tests for environment-driven settings (config.py)."""

import pytest

from ormcrypt.config import Settings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)
    for name in ("DEBUG", "CRYPTO_AES_KEY", "CRYPTO_FERNET_KEY"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.debug is False
        assert settings.crypto_aes_key == ""
        assert settings.crypto_fernet_key == ""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CRYPTO_AES_KEY", "1234567890123456")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()
        assert settings.crypto_aes_key == "1234567890123456"
        assert settings.debug is True

    def test_reads_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("CRYPTO_FERNET_KEY=from-dotenv\nUNRELATED=1\n")
        assert Settings().crypto_fernet_key == "from-dotenv"

    def test_get_settings_is_cached(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("CRYPTO_AES_KEY", "changed-after-first-call")
        assert get_settings() is first
        assert get_settings().crypto_aes_key == ""
