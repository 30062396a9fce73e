"""The four lifecycle operations: encrypt before create, update and query,
decrypt after query.

Each operation takes the mapper of the entity in play plus whatever value the
ORM is about to write or has just read, works out its shape, and transforms
the encrypted columns in place.  A mapper without encrypted columns makes
every operation a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableMapping
from typing import Any

from sqlalchemy.orm import Mapper
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import BindParameter, ClauseElement

from ormcrypt.fields import EncryptableField, SchemaFieldCache
from ormcrypt.predicates import PredicateRewriter, encrypt_literal
from ormcrypt.registry import StrategyRegistry, default_registry
from ormcrypt.values import CryptoValue

logger = logging.getLogger(__name__)


def _entity_name(mapper: Mapper) -> str:
    return mapper.class_.__name__


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class CryptoInterceptors:
    def __init__(
        self,
        registry: StrategyRegistry | None = None,
        cache: SchemaFieldCache | None = None,
    ) -> None:
        self.registry = registry if registry is not None else default_registry
        self.cache = cache if cache is not None else SchemaFieldCache(self.registry)

    def fields_for(self, mapper: Mapper | None) -> list[EncryptableField]:
        return self.cache.fields_for(mapper)

    # ─── Writes ───────────────────────────────────────────────────────────────

    def encrypt_before_create(self, mapper: Mapper, value: Any) -> None:
        """Encrypt a new instance, a list of them, or insert parameter mappings."""
        fields = self.fields_for(mapper)
        if not fields:
            return
        self._encrypt_target(mapper, fields, value, "create")

    def encrypt_before_update(self, mapper: Mapper, value: Any) -> None:
        """Encrypt an updated instance or the entries of a partial-update mapping.

        Mapping keys that are absent stay absent; only the columns being
        written are touched.
        """
        fields = self.fields_for(mapper)
        if not fields:
            return
        self._encrypt_target(mapper, fields, value, "update")

    def _encrypt_target(
        self, mapper: Mapper, fields: list[EncryptableField], value: Any, operation: str
    ) -> None:
        items = value if _is_sequence(value) else (value,)
        for item in items:
            if isinstance(item, MutableMapping):
                self._encrypt_mapping(fields, item)
            elif isinstance(item, mapper.class_):
                self._encrypt_instance(fields, item)
            else:
                logger.error(
                    "Cannot encrypt %s value of type %s for %s; leaving it unchanged",
                    operation, type(item).__name__, _entity_name(mapper),
                    extra={"entity": _entity_name(mapper)},
                )

    def _encrypt_instance(self, fields: list[EncryptableField], instance: Any) -> None:
        for field in fields:
            current = field.get(instance)
            if current is None or current == "":
                continue
            encrypted = field.encrypt(str(current))
            if encrypted != current:
                field.set(instance, encrypted)

    def _encrypt_mapping(self, fields: list[EncryptableField], mapping: MutableMapping) -> None:
        for key in list(mapping):
            field = _field_for_key(fields, key)
            if field is None:
                continue
            current = mapping[key]
            if isinstance(current, CryptoValue):
                current = current.value
            if current is None or isinstance(current, ClauseElement):
                continue
            mapping[key] = field.encrypt(str(current))

    def encrypt_statement_values(self, mapper: Mapper, statement: ClauseElement) -> ClauseElement:
        """Encrypt literals given to ``insert().values()`` / ``update().values()``."""
        fields = self.fields_for(mapper)
        if not fields:
            return statement

        def visit_dml(dml: Any) -> None:
            for key, element in _dml_values(dml):
                field = _field_for_key(fields, key)
                if field is not None and isinstance(element, BindParameter):
                    element.value = _encrypted_bind_value(field, element.value)
            # multi-row VALUES are copied into fresh dicts per clone
            for rows in getattr(dml, "_multi_values", None) or ():
                for row in rows:
                    if not isinstance(row, MutableMapping):
                        continue
                    for key, element in list(row.items()):
                        field = _field_for_key(fields, key)
                        if field is not None and isinstance(element, BindParameter):
                            row[key] = element._with_value(
                                _encrypted_bind_value(field, element.value), maintain_key=True
                            )
                    self._encrypt_mapping(fields, row)

        return visitors.cloned_traverse(
            statement,
            {"maintain_key": True},
            {"insert": visit_dml, "update": visit_dml},
        )

    # ─── Queries ──────────────────────────────────────────────────────────────

    def encrypt_before_query(self, mapper: Mapper, statement: ClauseElement) -> ClauseElement:
        """Return ``statement`` with literals compared to encrypted columns encrypted."""
        return self.encrypt_criteria(mapper, statement)[0]

    def encrypt_criteria(
        self, mapper: Mapper, statement: ClauseElement
    ) -> tuple[ClauseElement, bool]:
        """Like ``encrypt_before_query``, also reporting whether any criterion
        compared an encrypted column.
        """
        fields = self.fields_for(mapper)
        if not fields:
            return statement, False
        rewriter = PredicateRewriter(mapper, fields)
        return rewriter.rewrite(statement), rewriter.matched

    def encrypt_parameters(
        self, mapper: Mapper, parameters: Any, statement: ClauseElement | None = None
    ) -> None:
        """Encrypt execution parameters in place.

        CryptoValue entries are always resolved.  When ``statement`` is given,
        parameters feeding a ``bindparam`` compared to an encrypted column
        (``User.email == bindparam("e")``) are encrypted as well.
        """
        fields = self.fields_for(mapper)
        if not fields or not parameters:
            return
        rewriter = PredicateRewriter(mapper, fields)
        binds = rewriter.execution_binds(statement) if statement is not None else {}
        for params in parameters if _is_sequence(parameters) else (parameters,):
            if not isinstance(params, MutableMapping):
                continue
            for key, value in list(params.items()):
                if isinstance(value, CryptoValue):
                    params[key] = rewriter.resolve(value)
                elif key in binds:
                    params[key] = encrypt_literal(binds[key], value)

    def decrypt_after_query(
        self, mapper: Mapper, dest: Any, attrs: Iterable[str] | None = None
    ) -> None:
        """Decrypt a loaded instance or each instance of a list, in order.

        ``attrs`` limits the work to those attribute keys (partial refresh).
        Loaded values are stored as committed state so a read never makes
        an instance dirty.
        """
        fields = self.fields_for(mapper)
        if not fields:
            return
        if attrs is not None:
            wanted = set(attrs)
            fields = [f for f in fields if f.key in wanted]
            if not fields:
                return

        if isinstance(dest, mapper.class_):
            self._decrypt_instance(fields, dest)
        elif _is_sequence(dest):
            for item in dest:
                if isinstance(item, mapper.class_):
                    self._decrypt_instance(fields, item)
        else:
            logger.error(
                "Cannot decrypt query result of type %s for %s; leaving it unchanged",
                type(dest).__name__, _entity_name(mapper),
                extra={"entity": _entity_name(mapper)},
            )

    def _decrypt_instance(self, fields: list[EncryptableField], instance: Any) -> None:
        for field in fields:
            current = field.get(instance)
            if not isinstance(current, str) or not current:
                continue
            plaintext = field.decrypt(current)
            if plaintext != current:
                field.set_committed(instance, plaintext)


def _field_for_key(fields: list[EncryptableField], key: Any) -> EncryptableField | None:
    """Match a mapping or DML key (attribute name, column name or column) to a field."""
    if isinstance(key, str):
        name = key
    else:
        name = getattr(key, "name", None) or getattr(key, "key", None)
        if not isinstance(name, str):
            return None
    for field in fields:
        if field.matches(name):
            return field
    return None


def _encrypted_bind_value(field: EncryptableField, value: Any) -> Any:
    if isinstance(value, CryptoValue):
        value = value.value
    if isinstance(value, str):
        return field.encrypt(value)
    return value


def _dml_values(dml: Any) -> list[tuple[Any, Any]]:
    """The (column, element) pairs of a DML statement's single-row VALUES/SET."""
    pairs = list((getattr(dml, "_values", None) or {}).items())
    pairs.extend(getattr(dml, "_ordered_values", None) or ())
    return pairs
