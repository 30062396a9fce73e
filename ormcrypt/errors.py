"""Exception types raised by the encryption layer."""

from __future__ import annotations


class CryptoError(Exception):
    """Base class for every error raised by ormcrypt."""


class CryptoConfigurationError(CryptoError):
    """A strategy or key is unusable; fix the configuration, not the data."""


class UnknownStrategyError(CryptoConfigurationError):
    """A column names a strategy that was never registered."""

    def __init__(self, name: str, known: list[str] | None = None) -> None:
        self.name = name
        self.known = known or []
        detail = f"Unknown crypto strategy {name!r}"
        if self.known:
            detail += f" (registered: {', '.join(self.known)})"
        super().__init__(detail)


class DecryptionError(CryptoError):
    """A value carries a strategy marker but its payload cannot be decrypted."""

    def __init__(self, strategy: str, reason: str) -> None:
        self.strategy = strategy
        super().__init__(f"{strategy}: cannot decrypt value ({reason})")


class FieldAccessError(CryptoError):
    """Writing an encrypted or decrypted value back onto an instance failed."""
