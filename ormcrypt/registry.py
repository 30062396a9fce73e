"""Strategy registry.

Columns refer to strategies by name (``info={"crypto": "aes"}``); the
registry resolves those names case-insensitively.  Strategies are usually
registered once at startup and only looked up afterwards, but registration
is safe at any time.
"""

from __future__ import annotations

import logging
import threading

from ormcrypt.config import Settings, get_settings
from ormcrypt.errors import UnknownStrategyError
from ormcrypt.strategy import AesCryptoStrategy, CryptoStrategy, FernetCryptoStrategy

logger = logging.getLogger(__name__)


class StrategyRegistry:
    """Thread-safe mapping of uppercase strategy name to strategy."""

    def __init__(self) -> None:
        self._strategies: dict[str, CryptoStrategy] = {}
        self._lock = threading.Lock()

    def register(self, strategy: CryptoStrategy) -> None:
        """Register ``strategy``; a later registration under the same name wins."""
        key = strategy.name.upper()
        with self._lock:
            previous = self._strategies.get(key)
            self._strategies[key] = strategy
        if previous is not None and previous is not strategy:
            logger.debug("Replaced crypto strategy %s (%r -> %r)", key, previous, strategy)

    def lookup(self, name: str) -> CryptoStrategy | None:
        with self._lock:
            return self._strategies.get(name.upper())

    def get(self, name: str) -> CryptoStrategy:
        """Like ``lookup`` but raises UnknownStrategyError when missing."""
        strategy = self.lookup(name)
        if strategy is None:
            raise UnknownStrategyError(name, self.names())
        return strategy

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._strategies)

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._strategies)


default_registry = StrategyRegistry()


def register_strategy(strategy: CryptoStrategy) -> None:
    """Register ``strategy`` in the process-wide registry."""
    default_registry.register(strategy)


def get_strategy(name: str) -> CryptoStrategy | None:
    """Look ``name`` up in the process-wide registry."""
    return default_registry.lookup(name)


def register_configured_strategies(
    registry: StrategyRegistry | None = None,
    settings: Settings | None = None,
) -> list[CryptoStrategy]:
    """Build and register the strategies whose keys are configured.

    Returns the strategies that were registered.  Raises
    CryptoConfigurationError when a configured key is unusable.
    """
    registry = registry if registry is not None else default_registry
    settings = settings if settings is not None else get_settings()

    strategies: list[CryptoStrategy] = []
    if settings.crypto_aes_key:
        strategies.append(AesCryptoStrategy(settings.crypto_aes_key))
    if settings.crypto_fernet_key:
        strategies.append(FernetCryptoStrategy(settings.crypto_fernet_key))

    if not strategies:
        logger.warning(
            "Neither CRYPTO_AES_KEY nor CRYPTO_FERNET_KEY is set; no crypto strategies "
            "registered, tagged columns will fail with UnknownStrategyError."
        )
    for strategy in strategies:
        registry.register(strategy)
        logger.info("Registered crypto strategy %s", strategy.name, extra={"strategy": strategy.name})
    return strategies
