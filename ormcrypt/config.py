from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Encryption configuration loaded from environment variables."""

    debug: bool = False

    # AES strategy key: 16, 24 or 32 characters. Leave empty to skip registering AES.
    crypto_aes_key: str = ""

    # Fernet strategy key.
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    crypto_fernet_key: str = ""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
