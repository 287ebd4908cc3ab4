"""
Lifecycle manager for the redirect service.

States: UNCONFIGURED -> CONFIGURED -> LISTENING -> DRAINING -> CLOSED

- configure(): engine, table, default URL, listen address and timeouts
- start(): cancel token + lookup statement, signal handlers, uvicorn on a
  background thread
- stop() / SIGINT / SIGTERM / SIGQUIT: cancel the token, first one wins;
  cancelling also tells uvicorn to stop accepting and leave its loop
- close(): cancel token -> stop server -> close statement -> dispose
  engine, every step attempted once even when an earlier one fails
"""

import signal
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

import uvicorn
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from linker_app.app import create_app
from linker_app.config import DEFAULT_URL, Settings, load_settings, parse_listen_address
from linker_app.database.connection import build_database_url, create_db_engine, ensure_schema, ping
from linker_app.dependencies import ServiceHandle
from linker_app.errors import (
    ConfigError,
    InvalidURLError,
    LinkerError,
    NotConfiguredError,
    ServerError,
    ShutdownError,
)
from linker_app.lifecycle.cancel import CancelToken
from linker_app.logging_config import get_logger
from linker_app.services.link_service import LinkService
from linker_app.services.resolver import LookupStatement, Resolver
from linker_app.services.validation import normalize_url

logger = get_logger("lifecycle")

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGQUIT") if hasattr(signal, name)
)
STARTUP_TIMEOUT = 10.0  # seconds to wait for the server to bind
FORCE_EXIT_GRACE = 2.0  # seconds allowed after force_exit


class State(Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    LISTENING = "listening"
    DRAINING = "draining"
    CLOSED = "closed"


@dataclass(frozen=True)
class ServerOptions:
    """Listen address, timeout (seconds) and optional TLS files"""
    host: str
    port: int
    timeout: int
    key: str = ""
    cert: str = ""

    @property
    def tls(self) -> bool:
        return bool(self.key and self.cert)


class LinkerService:
    """
    Owns the database engine, the prepared lookup statement, the cancel
    token and the HTTP server of one Linker instance.

    Usage:
        service = LinkerService(settings).configure()
        service.listen()  # blocks until a signal or stop()
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.state = State.UNCONFIGURED
        self.engine = None
        self.session_factory: Optional[sessionmaker] = None
        self.default_url: Optional[str] = None
        self.options: Optional[ServerOptions] = None
        self.token: Optional[CancelToken] = None
        self.statement: Optional[LookupStatement] = None
        self.server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._server_error: Optional[BaseException] = None
        self._previous_handlers = {}
        self._lock = threading.RLock()

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "LinkerService":
        """Load the JSON configuration file and configure a new service."""
        return cls(load_settings(path)).configure()

    @property
    def links(self) -> LinkService:
        """Administrative operations bound to this service's database"""
        if self.session_factory is None or self.state is State.CLOSED:
            raise NotConfiguredError()
        return LinkService(self.session_factory)

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """Actual (host, port) the server listens on, once it has started"""
        if self.server is None or not self.server.started or not self.server.servers:
            return None
        sockname = self.server.servers[0].sockets[0].getsockname()
        return sockname[0], sockname[1]

    def configure(self) -> "LinkerService":
        """
        Connect to the database and prepare everything short of listening.

        Raises:
            ConfigError: bad listen address, default URL or database settings
        """
        if self.state is not State.UNCONFIGURED:
            raise LinkerError(f"service cannot be configured while {self.state.value}")

        host, port = parse_listen_address(self.settings.listen)
        self.options = ServerOptions(
            host=host,
            port=port,
            timeout=self.settings.effective_timeout,
            key=self.settings.key,
            cert=self.settings.cert,
        )
        default = self.settings.default.strip()
        try:
            self.default_url = normalize_url(default) if default else DEFAULT_URL
        except InvalidURLError as err:
            raise ConfigError(f'unable to parse default URL "{default}"') from err

        url = build_database_url(self.settings.db)
        target = f'"{url.database}" on "{url.host or url.drivername}"'
        engine = create_db_engine(url, timeout=self.options.timeout)
        try:
            ping(engine)
        except SQLAlchemyError as err:
            engine.dispose()
            raise ConfigError(f"unable to connect to database {target}: {err}") from err
        try:
            ensure_schema(engine)
        except SQLAlchemyError as err:
            engine.dispose()
            raise ConfigError(f"unable to create the initial database table in {target}: {err}") from err

        self.engine = engine
        self.session_factory = sessionmaker(bind=engine, autoflush=False)
        self.state = State.CONFIGURED
        logger.info("configured, listen=%s:%d default=%s", host, port, self.default_url)
        return self

    def start(self, install_signals: bool = True) -> None:
        """
        Start serving on a background thread and return once the socket is bound.

        Raises:
            NotConfiguredError: configure() has not run
            ServerError: the server could not start
        """
        with self._lock:
            if self.state is State.UNCONFIGURED:
                raise NotConfiguredError()
            if self.state is not State.CONFIGURED:
                raise LinkerError(f"service cannot start while {self.state.value}")

            # The token and the statement live and die together
            self.token = CancelToken()
            try:
                self.statement = LookupStatement.prepare(self.engine, self.token)
            except LinkerError:
                self.token.cancel()
                raise
            handle = ServiceHandle(
                default_url=self.default_url,
                resolver=Resolver(self.statement, self.token),
            )
            self.server = uvicorn.Server(self._uvicorn_config(create_app(handle)))
            # Cancelling the token, from stop() or a signal, also ends the accept loop
            self.token.add_callback(self._request_server_exit)
            if install_signals:
                self._install_signal_handlers()
            self._thread = threading.Thread(target=self._serve, name="linker-server", daemon=True)
            self.state = State.LISTENING
            self._thread.start()

        if not self._wait_started():
            cause = self._server_error
            try:
                self.close()
            except ShutdownError:
                logger.error("teardown after failed start was incomplete")
            raise ServerError(f"unable to start server on {self.options.host}:{self.options.port}") from cause

        host, port = self.bound_address or (self.options.host, self.options.port)
        logger.info("listening on %s://%s:%d", "https" if self.options.tls else "http", host, port)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the service is asked to stop. Returns False on timeout."""
        if self.token is None:
            raise NotConfiguredError("service is not listening")
        deadline = None if timeout is None else time.monotonic() + timeout
        # Short waits keep the main thread responsive to signal handlers
        while not self.token.wait(0.5):
            if deadline is not None and time.monotonic() >= deadline:
                return False
        return True

    def listen(self, install_signals: bool = True) -> None:
        """
        Serve until a termination signal or stop(), then tear everything down.

        Raises:
            ServerError: the server failed to start or stopped with an error
            ShutdownError: teardown was incomplete
        """
        self.start(install_signals=install_signals)
        try:
            self.wait()
        finally:
            self.close()
        if self._server_error is not None:
            raise ServerError(f"server stopped: {self._server_error}") from self._server_error

    def stop(self) -> None:
        """
        Request shutdown; safe to call from any thread, more than once.

        Pending lookups are released and the server stops accepting
        connections. close() still has to run to release the statement and
        the database.
        """
        if self.token is not None and self.token.cancel():
            logger.info("shutdown requested")

    def close(self) -> None:
        """
        Release every owned resource, in order, exactly once.

        Calling close() on a closed service does nothing.

        Raises:
            ShutdownError: one or more steps failed (all were still attempted)
        """
        with self._lock:
            if self.state is State.CLOSED:
                return
            self.state = State.DRAINING
            errors: List[Exception] = []

            if self.token is not None:
                self.token.cancel()
            if self.server is not None:
                _attempt(errors, "unable to shutdown server", self._stop_server)
            if self.statement is not None:
                _attempt(errors, "unable to close get statement", self.statement.close)
            if self.engine is not None:
                _attempt(errors, "unable to close database", self.engine.dispose)
            _attempt(errors, "unable to restore signal handlers", self._restore_signal_handlers)

            self.state = State.CLOSED
        logger.info("closed")
        if errors:
            raise ShutdownError(errors)

    def _uvicorn_config(self, app) -> uvicorn.Config:
        options = self.options
        return uvicorn.Config(
            app,
            host=options.host,
            port=options.port,
            timeout_keep_alive=options.timeout,
            timeout_graceful_shutdown=options.timeout,
            ssl_keyfile=options.key if options.tls else None,
            ssl_certfile=options.cert if options.tls else None,
            lifespan="off",
            log_config=None,
            log_level=self.settings.log_level.lower(),
        )

    def _serve(self) -> None:
        try:
            self.server.run()
        except (Exception, SystemExit) as err:
            # uvicorn raises SystemExit when it cannot bind
            self._server_error = err
            logger.error("server stopped with an error: %r", err)
        finally:
            self.token.cancel()

    def _wait_started(self) -> bool:
        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self.server.started:
            if not self._thread.is_alive() or time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def _request_server_exit(self) -> None:
        self.server.should_exit = True

    def _stop_server(self) -> None:
        self.server.should_exit = True
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(self.options.timeout + FORCE_EXIT_GRACE)
        if thread.is_alive():
            logger.warning("graceful shutdown timed out, forcing exit")
            self.server.force_exit = True
            thread.join(FORCE_EXIT_GRACE)
        if thread.is_alive():
            raise ServerError("server thread did not stop")

    def _handle_signal(self, signum, frame) -> None:
        logger.info("received %s", signal.Signals(signum).name)
        self.stop()

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in SHUTDOWN_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        handlers, self._previous_handlers = self._previous_handlers, {}
        for sig, handler in handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


def _attempt(errors: List[Exception], message: str, step: Callable[[], None]) -> None:
    try:
        step()
    except Exception as err:
        logger.error("%s: %s", message, err)
        failure = LinkerError(f"{message}: {err}")
        failure.__cause__ = err
        errors.append(failure)
