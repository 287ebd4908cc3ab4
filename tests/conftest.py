"""
Test configuration and fixtures for Linker.
This centralizes all test setup, making individual tests clean.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from linker_app.app import create_app
from linker_app.config import DatabaseSettings, Settings
from linker_app.database.connection import create_db_engine, ensure_schema
from linker_app.dependencies import ServiceHandle
from linker_app.lifecycle.cancel import CancelToken
from linker_app.services.link_service import LinkService
from linker_app.services.resolver import LookupStatement, Resolver

DEFAULT_URL = "https://duckduckgo.com"


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Fresh SQLite database file for each test.
    This ensures tests are isolated and don't affect each other.
    """
    engine = create_db_engine(make_url(f"sqlite:///{tmp_path / 'links.db'}"))
    ensure_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def link_service(engine):
    return LinkService(sessionmaker(bind=engine, autoflush=False))


@pytest.fixture(scope="function")
def token():
    token = CancelToken()
    yield token
    token.cancel()


@pytest.fixture(scope="function")
def statement(engine, token):
    statement = LookupStatement.prepare(engine, token)
    yield statement
    statement.close()


@pytest.fixture(scope="function")
def resolver(statement, token):
    return Resolver(statement, token)


@pytest.fixture(scope="function")
def client(resolver):
    """
    Test client around the redirect app, backed by the real resolver.
    This is the main fixture that redirect tests will use.
    """
    app = create_app(ServiceHandle(default_url=DEFAULT_URL, resolver=resolver))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def service_settings(tmp_path):
    """Settings for a full service on an ephemeral local port"""
    return Settings(
        listen="127.0.0.1:0",
        timeout=1,
        default="duckduckgo.com",
        db=DatabaseSettings(url=f"sqlite:///{tmp_path / 'service.db'}"),
    )
