"""Transparent column encryption for the SQLAlchemy ORM.

Tag string columns with ``info={"crypto": "<strategy>"}``, register the
strategy, attach ``CryptoPlugin`` and the ORM stores ciphertext while
application code only sees plaintext.
"""

from ormcrypt.errors import (
    CryptoConfigurationError,
    CryptoError,
    DecryptionError,
    FieldAccessError,
    UnknownStrategyError,
)
from ormcrypt.fields import CRYPTO_TAG, EncryptableField, SchemaFieldCache
from ormcrypt.interceptors import CryptoInterceptors
from ormcrypt.logging_config import setup_logging
from ormcrypt.plugin import CryptoPlugin
from ormcrypt.registry import (
    StrategyRegistry,
    default_registry,
    get_strategy,
    register_configured_strategies,
    register_strategy,
)
from ormcrypt.strategy import AesCryptoStrategy, CryptoStrategy, FernetCryptoStrategy
from ormcrypt.values import CryptoValue

__version__ = "0.1.0"

__all__ = [
    "CRYPTO_TAG",
    "AesCryptoStrategy",
    "CryptoConfigurationError",
    "CryptoError",
    "CryptoInterceptors",
    "CryptoPlugin",
    "CryptoStrategy",
    "CryptoValue",
    "DecryptionError",
    "EncryptableField",
    "FernetCryptoStrategy",
    "FieldAccessError",
    "SchemaFieldCache",
    "StrategyRegistry",
    "UnknownStrategyError",
    "default_registry",
    "get_strategy",
    "register_configured_strategies",
    "register_strategy",
    "setup_logging",
]
