"""SQLAlchemy event wiring for transparent column encryption.

Usage::

    registry = StrategyRegistry()
    registry.register(AesCryptoStrategy("1234567890123456"))

    SessionLocal = sessionmaker(engine)
    CryptoPlugin(registry).initialize(Base, SessionLocal)

    class User(Base):
        __tablename__ = "users"
        id: Mapped[int] = mapped_column(primary_key=True)
        email: Mapped[str] = mapped_column(String(255), info={"crypto": "aes"})

Flushes encrypt tagged columns in place, loads decrypt them, and ORM
statements executed through the session get their criteria and VALUES
encrypted before they reach the database.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Result, event
from sqlalchemy.orm import Mapper, ORMExecuteState, Session, object_mapper

from ormcrypt.interceptors import CryptoInterceptors
from ormcrypt.registry import StrategyRegistry

logger = logging.getLogger(__name__)


class CryptoPlugin:
    name = "crypto"

    def __init__(self, registry: StrategyRegistry | None = None) -> None:
        self.interceptors = CryptoInterceptors(registry)
        self._attached: set[tuple[Any, Any]] = set()

    @property
    def registry(self) -> StrategyRegistry:
        return self.interceptors.registry

    def initialize(self, base: Any, session: Any = Session) -> CryptoPlugin:
        """Attach the hooks.

        ``base`` is a declarative base or mapped class; hooks propagate to
        every subclass.  ``session`` is a Session class, sessionmaker or
        session whose executions should have their statements rewritten.
        Calling this again with the same targets changes nothing.
        """
        if (base, session) in self._attached:
            return self
        mapper_hooks = (
            ("before_insert", self.before_create),
            ("before_update", self.before_update),
            ("load", self.after_load),
            ("refresh", self.after_refresh),
        )
        for identifier, fn in mapper_hooks:
            event.listen(base, identifier, fn, propagate=True)
        event.listen(session, "do_orm_execute", self.before_execute)
        self._attached.add((base, session))
        logger.debug("Crypto plugin attached to %r and %r", base, session)
        return self

    # ─── Flush ────────────────────────────────────────────────────────────────

    def before_create(self, mapper: Mapper, connection: Any, target: Any) -> None:
        self.interceptors.encrypt_before_create(mapper, target)

    def before_update(self, mapper: Mapper, connection: Any, target: Any) -> None:
        self.interceptors.encrypt_before_update(mapper, target)

    # ─── Load ─────────────────────────────────────────────────────────────────

    def after_load(self, target: Any, context: Any) -> None:
        self.interceptors.decrypt_after_query(object_mapper(target), target)

    def after_refresh(self, target: Any, context: Any, attrs: Any) -> None:
        self.interceptors.decrypt_after_query(object_mapper(target), target, attrs)

    # ─── Statements ───────────────────────────────────────────────────────────

    def before_execute(self, orm_execute_state: ORMExecuteState) -> Result | None:
        """Encrypt the statement and parameters of an ORM execution.

        The caller's parameter dicts are never modified; when parameters
        need encrypting the statement is re-invoked with encrypted copies.
        UPDATE and DELETE criteria on encrypted columns cannot be evaluated
        against the plaintext held by in-session objects, so those switch to
        ``synchronize_session="fetch"`` unless the caller chose a strategy.
        """
        mapper = orm_execute_state.bind_mapper
        if mapper is None or orm_execute_state.is_column_load:
            return None

        interceptors = self.interceptors
        statement = orm_execute_state.statement
        params = _copy_parameters(orm_execute_state.parameters)
        matched = False

        if orm_execute_state.is_insert:
            statement = interceptors.encrypt_statement_values(mapper, statement)
            if params:
                interceptors.encrypt_before_create(mapper, params)
        elif orm_execute_state.is_update:
            statement = interceptors.encrypt_statement_values(mapper, statement)
            statement, matched = interceptors.encrypt_criteria(mapper, statement)
            if params:
                interceptors.encrypt_before_update(mapper, params)
            interceptors.encrypt_parameters(mapper, params, statement)
        else:
            statement, matched = interceptors.encrypt_criteria(mapper, statement)
            interceptors.encrypt_parameters(mapper, params, statement)

        # "fetch" is not available to executemany (bulk by primary key) runs
        if (
            matched
            and (orm_execute_state.is_update or orm_execute_state.is_delete)
            and not isinstance(orm_execute_state.parameters, (list, tuple))
            and "synchronize_session" not in orm_execute_state.execution_options
        ):
            orm_execute_state.update_execution_options(synchronize_session="fetch")

        if params is not None and params != orm_execute_state.parameters:
            return orm_execute_state.invoke_statement(statement=statement, params=params)
        orm_execute_state.statement = statement
        return None


def _copy_parameters(parameters: Any) -> Any:
    if isinstance(parameters, Mapping):
        return dict(parameters)
    if isinstance(parameters, (list, tuple)):
        return [dict(p) if isinstance(p, Mapping) else p for p in parameters]
    return None
