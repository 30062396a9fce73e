import logging

import pytest
from sqlalchemy import create_engine, text

from entities import REGISTRY, Base, SessionLocal, User
from ormcrypt.interceptors import CryptoInterceptors
from ormcrypt.plugin import CryptoPlugin


@pytest.fixture(scope="session")
def crypto_plugin():
    """Attach the plugin once; mapper events cannot be cleanly detached per test."""
    return CryptoPlugin(REGISTRY).initialize(Base, SessionLocal)


@pytest.fixture()
def interceptors():
    return CryptoInterceptors(REGISTRY)


@pytest.fixture()
def user_mapper():
    return User.__mapper__


@pytest.fixture()
def engine(crypto_plugin):
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session(engine):
    with SessionLocal(bind=engine) as session:
        yield session


@pytest.fixture()
def raw_column(session):
    """Read a column straight from the table, bypassing the ORM."""

    def read(column, user_id):
        return session.connection().execute(
            text(f"SELECT {column} FROM test_user WHERE id = :id"), {"id": user_id}
        ).scalar_one()

    return read


@pytest.fixture()
def restore_ormcrypt_logger():
    logger = logging.getLogger("ormcrypt")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
