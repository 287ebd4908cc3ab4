"""
Database engine helpers.

The engine is owned by the lifecycle manager (one per service instance);
nothing here keeps module level connection state.
"""

import re
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base

from linker_app.config import DatabaseSettings
from linker_app.errors import ConfigError

Base = declarative_base()

# Older config files use the Go driver notation "tcp(host:port)"
_TCP_SERVER = re.compile(r"^tcp\((.*)\)$")


def build_database_url(db: DatabaseSettings) -> URL:
    """Build the SQLAlchemy URL from the database settings block."""
    if db.url:
        try:
            return make_url(db.url)
        except SQLAlchemyError as err:
            raise ConfigError(f"invalid database URL: {err}") from err
    if not db.is_complete():
        raise ConfigError("database configuration requires a username, server and name")
    server = db.server.strip()
    match = _TCP_SERVER.match(server)
    if match:
        server = match.group(1)
    host, _, port = server.partition(":")
    try:
        return URL.create(
            drivername=db.driver,
            username=db.username,
            password=db.password or None,
            host=host,
            port=int(port) if port else None,
            database=db.name,
        )
    except ValueError as err:
        raise ConfigError(f'invalid database server "{db.server}"') from err


def driver_connect_args(url: URL, timeout: Optional[int] = None) -> dict:
    """
    Driver arguments for the engine.

    SQLite connections are shared by request worker threads. For MySQL the
    timeout (seconds) bounds every socket read and write, so a query whose
    request was abandoned at shutdown still returns its pooled connection.
    """
    connect_args = {}
    backend = url.get_backend_name()
    if backend == "sqlite":
        connect_args["check_same_thread"] = False
    elif backend == "mysql" and url.get_driver_name() == "pymysql" and timeout:
        connect_args["read_timeout"] = timeout
        connect_args["write_timeout"] = timeout
    return connect_args


def create_db_engine(url: URL, timeout: Optional[int] = None) -> Engine:
    """Create an engine whose pool can be shared by request worker threads.

    Raises:
        ConfigError: the dialect or driver cannot be loaded
    """
    try:
        return create_engine(url, connect_args=driver_connect_args(url, timeout), pool_pre_ping=True)
    except (SQLAlchemyError, ImportError) as err:
        raise ConfigError(f'unable to load database driver "{url.drivername}": {err}') from err


def ping(engine: Engine) -> None:
    """Open one connection and run a trivial query."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def ensure_schema(engine: Engine) -> None:
    """Create the Links table if it does not exist."""
    # Import models to ensure they're registered with Base
    from linker_app.models import Link  # noqa: F401

    Base.metadata.create_all(bind=engine)
