"""Rewrites literals in query criteria so they compare against ciphertext.

Recognized shapes:

* ``column == "literal"``: the literal is encrypted.
* ``column.in_([...])``: string members are encrypted, others pass through.
* any bind parameter holding a ``CryptoValue``: replaced by the encrypted
  value of the column it names (this is how raw ``text()`` criteria opt in).
* ``column == bindparam("key")`` with the value supplied at execution time:
  the rewriter reports ``key`` through ``execution_binds`` so the matching
  execution parameter can be encrypted.

Everything else in the statement is left untouched.  Rewriting works on a
clone; the original statement object is not modified.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Mapper
from sqlalchemy.sql import operators, visitors
from sqlalchemy.sql.elements import BinaryExpression, BindParameter, ClauseElement

from ormcrypt.fields import EncryptableField
from ormcrypt.values import CryptoValue

logger = logging.getLogger(__name__)

_EQ = operators.eq
_IN = operators.in_op


def encrypt_literal(field: EncryptableField, value: Any) -> Any:
    """Encrypt a criteria value: a string, or the string members of a list."""
    if isinstance(value, str):
        return field.encrypt(value)
    if isinstance(value, (list, tuple)):
        return [field.encrypt(v) if isinstance(v, str) else v for v in value]
    return value


class PredicateRewriter:
    def __init__(self, mapper: Mapper, fields: list[EncryptableField]) -> None:
        self.mapper = mapper
        self.fields = fields
        self._by_column = {f.column: f for f in fields}
        # Set once any criterion compared an encrypted column.
        self.matched = False

    def rewrite(self, statement: ClauseElement) -> ClauseElement:
        if not self.fields:
            return statement
        return visitors.cloned_traverse(
            statement,
            {"maintain_key": True, "detect_subquery_cols": True},
            {"binary": self._visit_binary, "bindparam": self._visit_bindparam},
        )

    def execution_binds(self, statement: ClauseElement) -> dict[str, EncryptableField]:
        """Keys of binds compared to encrypted columns that get their value at execution."""
        found: dict[str, EncryptableField] = {}

        def visit_binary(binary: BinaryExpression) -> None:
            matched = self._match(binary)
            if matched is not None and matched[1].value is None:
                found[matched[1].key] = matched[0]

        if self.fields:
            visitors.traverse(statement, {}, {"binary": visit_binary})
        return found

    def field_for_name(self, name: str) -> EncryptableField | None:
        for field in self.fields:
            if field.matches(name):
                return field
        return None

    def field_for_column(self, element: Any) -> EncryptableField | None:
        name = getattr(element, "name", None)
        if not isinstance(name, str):
            return None
        field = self._by_column.get(name)
        if field is None:
            return None
        table = getattr(element, "table", None)
        if table is not None and not any(table.is_derived_from(t) for t in self.mapper.tables):
            return None
        return field

    def _match(self, binary: BinaryExpression) -> tuple[EncryptableField, BindParameter] | None:
        if binary.operator is not _EQ and binary.operator is not _IN:
            return None
        column, bind = binary.left, binary.right
        if binary.operator is _EQ and isinstance(column, BindParameter):
            column, bind = bind, column
        if not isinstance(bind, BindParameter) or bind.callable is not None:
            return None
        field = self.field_for_column(column)
        if field is None:
            return None
        return field, bind

    def _visit_binary(self, binary: BinaryExpression) -> None:
        matched = self._match(binary)
        if matched is None:
            return
        field, bind = matched
        self.matched = True
        bind.value = encrypt_literal(field, bind.value)

    def _visit_bindparam(self, bind: BindParameter) -> None:
        if isinstance(bind.value, CryptoValue):
            self.matched = True
            bind.value = self.resolve(bind.value)

    def resolve(self, value: CryptoValue) -> str:
        """Return the value to bind in place of ``value``."""
        field = self.field_for_name(value.column)
        if field is None:
            logger.debug(
                "Column %r of %s is not encrypted; binding CryptoValue as plaintext",
                value.column, self.mapper.class_.__name__,
            )
            return value.value
        return field.encrypt(value.value)
