"""
Short name lookup.

LookupStatement is the prepared query shared by every request; Resolver
runs it off the event loop and gives up as soon as the service's
CancelToken fires.
"""

import asyncio
from typing import Optional

from sqlalchemy import bindparam, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoResultFound, SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from linker_app.errors import (
    LinkerError,
    LookupCancelledError,
    LookupFailedError,
    StatementClosedError,
)
from linker_app.lifecycle.cancel import CancelToken
from linker_app.logging_config import get_logger
from linker_app.models.link import Link

logger = get_logger("resolver")


class LookupStatement:
    """
    Prepared ``SELECT LinkURL FROM Links WHERE LinkName = :name``.

    Created together with the service's CancelToken and closed right after
    it is cancelled. Safe to execute from many threads at once: each call
    checks out its own pooled connection.

    Cancellation releases the waiting request, not the worker thread: an
    abandoned query keeps its connection until the driver returns, bounded
    by the driver read timeout where one is configured (MySQL).
    """

    def __init__(self, engine: Engine, token: CancelToken):
        self._engine = engine
        self._token = token
        self._query = select(Link.url).where(Link.name == bindparam("name"))
        self._closed = False

    @classmethod
    def prepare(cls, engine: Engine, token: CancelToken) -> "LookupStatement":
        """Build the statement and compile it once for the engine's dialect."""
        statement = cls(engine, token)
        try:
            statement._query.compile(dialect=engine.dialect)
        except SQLAlchemyError as err:
            raise LinkerError(f"unable to prepare get statement: {err}") from err
        return statement

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, name: str) -> Optional[str]:
        """
        Run the lookup for ``name``.

        Returns:
            The stored URL, or None when no row matches

        Raises:
            LookupCancelledError: the service token is cancelled
            StatementClosedError: the statement was closed
            LookupFailedError: any other database failure
        """
        if self._token.cancelled:
            raise LookupCancelledError(name)
        if self._closed:
            raise StatementClosedError("get statement is closed")
        try:
            with self._engine.connect() as conn:
                return conn.execute(self._query, {"name": name}).scalar_one()
        except NoResultFound:
            return None
        except SQLAlchemyError as err:
            raise LookupFailedError(name) from err

    def close(self) -> None:
        self._closed = True


class Resolver:
    """Resolve short names to destination URLs for the redirect handler."""

    def __init__(self, statement: LookupStatement, token: CancelToken):
        self.statement = statement
        self.token = token

    async def resolve(self, name: str) -> Optional[str]:
        """
        Look up ``name``, returning its URL or None when it does not exist.

        The query runs in the worker thread pool and is raced against the
        cancel token, so a shutdown releases every waiting request without
        waiting for the driver.

        Raises:
            LookupFailedError: the query failed or the service is stopping
        """
        if self.token.cancelled:
            raise LookupCancelledError(name)

        query = asyncio.ensure_future(run_in_threadpool(self._execute, name))
        cancelled = asyncio.ensure_future(self.token.wait_async())
        try:
            await asyncio.wait({query, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()

        if not query.done():
            # The worker thread keeps running until the driver returns
            query.add_done_callback(_discard_result)
            query.cancel()
            raise LookupCancelledError(name)
        return query.result()

    def _execute(self, name: str) -> Optional[str]:
        try:
            return self.statement.execute(name)
        except StatementClosedError as err:
            raise LookupFailedError(name, f'unable to look up "{name}": {err}') from err


def _discard_result(task: asyncio.Future) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.debug("abandoned lookup finished with %r", task.exception())
