"""Discovery and caching of encrypted columns per mapped class.

A column is encrypted when it carries ``info={"crypto": <strategy name>}``
and has a string type.  Each mapper is scanned once; the result (possibly
empty) is cached for the life of the process.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapper
from sqlalchemy.orm.attributes import instance_dict, set_committed_value
from sqlalchemy.types import TypeDecorator, TypeEngine

from ormcrypt.errors import DecryptionError, FieldAccessError
from ormcrypt.registry import StrategyRegistry, default_registry
from ormcrypt.strategy import CryptoStrategy

logger = logging.getLogger(__name__)

CRYPTO_TAG = "crypto"


@dataclass(frozen=True)
class EncryptableField:
    """One encrypted column of one mapped class."""

    key: str
    column: str
    crypto_type: str
    strategy: CryptoStrategy

    def matches(self, name: str) -> bool:
        return name == self.key or name == self.column

    def get(self, instance: Any) -> Any:
        # Only loaded state; never trigger a lazy load from inside a flush.
        return instance_dict(instance).get(self.key)

    def set(self, instance: Any, value: str) -> None:
        try:
            setattr(instance, self.key, value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise FieldAccessError(
                f"Cannot set {type(instance).__name__}.{self.key}: {exc}"
            ) from exc

    def set_committed(self, instance: Any, value: str) -> None:
        """Store ``value`` as the loaded database value, leaving the instance clean."""
        try:
            set_committed_value(instance, self.key, value)
        except (AttributeError, KeyError, TypeError) as exc:
            raise FieldAccessError(
                f"Cannot load {type(instance).__name__}.{self.key}: {exc}"
            ) from exc

    def is_ciphertext(self, value: str) -> bool:
        """True when ``value`` is marked for this strategy and decrypts.

        A plaintext that merely starts with the marker (``"{AES}hello"``)
        is not ciphertext.
        """
        if not self.strategy.is_encrypted(value):
            return False
        try:
            self.strategy.decrypt(value)
        except DecryptionError:
            return False
        return True

    def encrypt(self, value: str) -> str:
        """Encrypt unless the value is empty or already this strategy's ciphertext."""
        if not value or self.is_ciphertext(value):
            return value
        return self.strategy.encrypt(value)

    def decrypt(self, value: str) -> str:
        return self.strategy.decrypt(value)


def _is_string_type(type_: TypeEngine) -> bool:
    if isinstance(type_, TypeDecorator):
        type_ = type_.impl_instance
    return isinstance(type_, String) and not isinstance(type_, Enum)


class SchemaFieldCache:
    """Memoizes the encrypted columns of each mapper."""

    def __init__(self, registry: StrategyRegistry | None = None) -> None:
        self.registry = registry if registry is not None else default_registry
        self._fields: dict[Mapper, list[EncryptableField]] = {}
        self._lock = threading.Lock()

    def fields_for(self, mapper: Mapper | None) -> list[EncryptableField]:
        """Return the encrypted columns of ``mapper`` in declaration order.

        Raises UnknownStrategyError when a column names an unregistered
        strategy; nothing is cached in that case.
        """
        if mapper is None:
            return []
        fields = self._fields.get(mapper)
        if fields is not None:
            return fields
        # Scanning is pure, so a concurrent duplicate scan is harmless;
        # setdefault keeps whichever list landed first.
        fields = self._scan(mapper)
        with self._lock:
            return self._fields.setdefault(mapper, fields)

    def _scan(self, mapper: Mapper) -> list[EncryptableField]:
        fields = []
        for prop in mapper.column_attrs:
            column = prop.columns[0]
            info = getattr(column, "info", None) or {}
            crypto_type = info.get(CRYPTO_TAG)
            if crypto_type is None:
                continue
            if not _is_string_type(column.type):
                logger.debug(
                    "Ignoring crypto tag on %s.%s: %s is not a string type",
                    mapper.class_.__name__, prop.key, column.type,
                )
                continue
            fields.append(
                EncryptableField(
                    key=prop.key,
                    column=column.name,
                    crypto_type=crypto_type,
                    strategy=self.registry.get(crypto_type),
                )
            )
        logger.debug(
            "Encrypted columns for %s: %s",
            mapper.class_.__name__, [f.key for f in fields] or "none",
        )
        return fields

    def clear(self) -> None:
        with self._lock:
            self._fields.clear()

    def __len__(self) -> int:
        return len(self._fields)
